"""FastAPI application entry point: wires everything together.

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
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.auth import identity_provider
from src.api.routes import router
from src.audit.events import emit, start_event_system, stop_event_system, subscribe
from src.audit.operational import audit_on_event
from src.config import settings
from src.db.engine import db_lifespan
from src.errors import PipelineError, ValidationFailed
from src.llm.client import ai_client
from src.schemas.events import EventType, SystemEvent
from src.storage.gateway import storage_gateway

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
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
    logger.info("Starting ESG extraction pipeline (env=%s)", settings.environment)

    # 1. Database + Redis
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system
        await start_event_system()
        logger.info("Event system started")

        # 3. Operational audit log: always active (global subscriber)
        subscribe(audit_on_event)
        logger.info("Operational audit subscriber registered")

        await emit(SystemEvent(
            event_type=EventType.SYSTEM_STARTUP,
            data={"environment": settings.environment, "model": settings.ai.extraction_model},
            source_module="main",
        ))

        try:
            yield
        finally:
            # Shutdown in reverse order
            logger.info("Shutting down ESG extraction pipeline...")

            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))

            await ai_client.close()
            await storage_gateway.close()
            await identity_provider.close()
            logger.info("HTTP clients closed")

            await stop_event_system()
            logger.info("Event system stopped")

    logger.info("ESG extraction pipeline shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="ESG Document Pipeline API",
    description="AI-assisted extraction and human-approved reconciliation of ESG documents",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(router)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    """Structured body for every expected pipeline failure."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.error_type, request.method, request.url.path, exc.user_message)
    else:
        logger.info("%s on %s %s: %s", exc.error_type, request.method, request.url.path, exc.user_message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies get the same structured shape as pipeline errors."""
    error = ValidationFailed(
        "Invalid request.",
        details=[{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()],
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "model": settings.ai.extraction_model,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
