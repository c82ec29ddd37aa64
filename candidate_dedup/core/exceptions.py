"""Domain errors raised by the dedup services.

Each error carries the HTTP status and a stable error code so the API layer
can translate it without inspecting messages.  Only the resolution service
and the population fetch raise these; matching itself never does.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class DedupError(Exception):
    """Base class for dedup domain errors."""
    status_code: int = 400
    error_code: str = "DEDUP_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationFailure(DedupError):
    """Malformed probe or request input."""
    status_code = 400
    error_code = "VALIDATION_FAILED"


class InvalidActionError(ValidationFailure):
    """Resolution action is not merge, link or dismiss."""
    error_code = "INVALID_ACTION"


class NotFound(DedupError):
    """Referenced candidate does not exist or is soft-deleted."""
    status_code = 404
    error_code = "NOT_FOUND"


class Conflict(DedupError):
    """Dedup state changed underneath the operation."""
    status_code = 409
    error_code = "CONFLICT"


class DuplicateChainError(Conflict):
    """A ``duplicate_of`` chain is cyclic or deeper than allowed."""
    error_code = "DUPLICATE_CHAIN"


class PersistenceFailure(DedupError):
    """Storage call failed; the original error is chained."""
    status_code = 500
    error_code = "PERSISTENCE_FAILED"


class PartialUpdateFailure(DedupError):
    """Primary half of a merge was written but the secondary half failed.

    ``rolled_back`` tells the caller whether the compensating restore of the
    primary succeeded; when it did not, the primary needs manual
    reconciliation.
    """
    status_code = 500
    error_code = "PARTIAL_UPDATE"

    def __init__(
        self,
        message: str,
        rolled_back: bool,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.rolled_back = rolled_back
        super().__init__(message, {**(details or {}), "rolled_back": rolled_back})


def register_error_handlers(app: FastAPI) -> None:
    """Register the ``DedupError`` exception handler on the FastAPI app."""

    @app.exception_handler(DedupError)
    async def dedup_error_handler(request: Request, exc: DedupError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": {
                    "code": exc.error_code,
                    "message": exc.message,
                    "details": exc.details or None,
                },
            },
        )
