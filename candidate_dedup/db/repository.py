"""Data access for the ``candidates`` and ``audit_log`` tables.

Every storage call goes through ``CandidateRepository._execute`` so that
client errors surface as ``PersistenceFailure`` with the original exception
chained.  The repository never interprets dedup semantics; it only reads
rows and applies the updates the services hand it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from supabase import Client

from candidate_dedup.core.constants import AUDIT_LOG_TABLE, CANDIDATES_TABLE
from candidate_dedup.core.exceptions import PersistenceFailure
from candidate_dedup.db.supabase import get_supabase
from candidate_dedup.models.candidate import CandidateRecord
from candidate_dedup.models.resolution import AuditLogCreate

logger = logging.getLogger(__name__)


class CandidateRepository:
    """Thin wrapper over the Supabase query builder for candidate rows."""

    def __init__(self, client: Client | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def _execute(self, operation: str, call: Callable[[], Any]) -> Any:
        try:
            return call()
        except Exception as exc:
            logger.error(
                "repository_call_failed",
                extra={"operation": operation, "error_message": str(exc)},
            )
            raise PersistenceFailure(
                f"{operation} failed: {exc}",
                {"operation": operation},
            ) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch_population(self, page_size: int = 1000) -> list[CandidateRecord]:
        """Return every live, non-duplicate candidate, oldest first.

        Pages through the table with ``range`` until a short page comes
        back; ordering by ``created_at`` then ``id`` keeps the pages (and
        the self-scan canonical order) stable.
        """
        records: list[CandidateRecord] = []
        start = 0
        while True:
            end = start + page_size - 1
            result = self._execute(
                "fetch_population",
                lambda: (
                    self.client.table(CANDIDATES_TABLE)
                    .select("*")
                    .is_("deleted_at", "null")
                    .eq("is_duplicate", False)
                    .order("created_at")
                    .order("id")
                    .range(start, end)
                    .execute()
                ),
            )
            rows: list[dict[str, Any]] = result.data or []
            records.extend(CandidateRecord.model_validate(row) for row in rows)
            if len(rows) < page_size:
                break
            start += page_size
        return records

    def get_live(self, candidate_id: str) -> CandidateRecord | None:
        """Return the candidate unless it is missing or soft-deleted."""
        result = self._execute(
            "get_candidate",
            lambda: (
                self.client.table(CANDIDATES_TABLE)
                .select("*")
                .eq("id", candidate_id)
                .is_("deleted_at", "null")
                .limit(1)
                .execute()
            ),
        )
        if not result.data:
            return None
        return CandidateRecord.model_validate(result.data[0])

    def get_many(self, candidate_ids: list[str]) -> list[CandidateRecord]:
        """Return the live candidates among *candidate_ids*."""
        if not candidate_ids:
            return []
        result = self._execute(
            "get_candidates",
            lambda: (
                self.client.table(CANDIDATES_TABLE)
                .select("*")
                .in_("id", candidate_ids)
                .is_("deleted_at", "null")
                .execute()
            ),
        )
        return [CandidateRecord.model_validate(row) for row in result.data or []]

    def list_flagged(self, reviewed: bool | None = None) -> list[CandidateRecord]:
        """Return live records flagged ``is_duplicate``, newest first."""

        def _query() -> Any:
            query = (
                self.client.table(CANDIDATES_TABLE)
                .select("*")
                .eq("is_duplicate", True)
                .is_("deleted_at", "null")
            )
            if reviewed is not None:
                query = query.eq("dedup_reviewed", reviewed)
            return query.order("created_at", desc=True).execute()

        result = self._execute("list_flagged", _query)
        return [CandidateRecord.model_validate(row) for row in result.data or []]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update(
        self,
        candidate_id: str,
        data: dict[str, Any],
        guards: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Update one candidate and return the rows actually written.

        *guards* are extra equality filters (``None`` means IS NULL); when the
        stored row no longer satisfies them nothing is written and an empty
        list comes back.
        """

        def _query() -> Any:
            query = self.client.table(CANDIDATES_TABLE).update(data).eq("id", candidate_id)
            for column, value in (guards or {}).items():
                if value is None:
                    query = query.is_(column, "null")
                else:
                    query = query.eq(column, value)
            return query.execute()

        result = self._execute("update_candidate", _query)
        return result.data or []

    def insert_audit(self, entry: AuditLogCreate) -> None:
        """Append one ``audit_log`` row."""
        self._execute(
            "insert_audit_log",
            lambda: (
                self.client.table(AUDIT_LOG_TABLE)
                .insert(entry.model_dump(mode="json"))
                .execute()
            ),
        )
