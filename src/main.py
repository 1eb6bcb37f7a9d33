"""FastAPI application entry point — wires everything together.

Usage:
    python -m src.main
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from src.api import audit as audit_routes
from src.api import messages as message_routes
from src.api.errors import register_exception_handlers
from src.config import settings
from src.db.engine import db_lifespan

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting messaging authorization service (env=%s)", settings.environment)

    async with db_lifespan():
        logger.info("Database initialized")
        logger.info(
            "Anomaly detection: %d denials in %d minutes (flag_on_denial=%s)",
            settings.authorization.suspicious_failure_threshold,
            settings.authorization.suspicious_window_minutes,
            settings.authorization.flag_on_denial,
        )
        yield
        logger.info("Shutting down...")

    logger.info("Shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="Tutoring Messaging API",
    description="Audited authorization for conversations and messages",
    version="0.1.0",
    lifespan=lifespan,
)
register_exception_handlers(app)
app.include_router(message_routes.router)
app.include_router(audit_routes.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "environment": settings.environment}


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
