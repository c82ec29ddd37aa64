"""FastAPI application entry point.

Configures CORS, structured logging, domain error handlers, lifespan events
(including APScheduler) and router registration.
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from candidate_dedup.core.config import settings
from candidate_dedup.core.exceptions import register_error_handlers
from candidate_dedup.core.logging import setup_logging
from candidate_dedup.routers import candidates, duplicates, health
from candidate_dedup.scheduler.jobs import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: starts APScheduler on startup, stops it on exit."""
    setup_logging()
    logger.info("Application starting up")
    start_scheduler()
    yield
    shutdown_scheduler()
    logger.info("Application shutting down")


app = FastAPI(
    title="Candidate Dedup API",
    description="Deteccion y resolucion de candidatos duplicados",
    version="0.1.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS Configuration
# ---------------------------------------------------------------------------
_raw_origins = settings.ALLOWED_ORIGINS.strip()
if _raw_origins == "*":
    _allowed_origins: list[str] = ["*"]
else:
    _allowed_origins = [o.strip() for o in _raw_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# ---------------------------------------------------------------------------
# Router Registration
# ---------------------------------------------------------------------------
app.include_router(health.router, tags=["Health"])
app.include_router(candidates.router, prefix="/api/v1/candidates", tags=["Candidates"])
app.include_router(duplicates.router, prefix="/api/v1/duplicates", tags=["Duplicates"])
