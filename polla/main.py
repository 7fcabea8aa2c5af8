"""Polla Partidos FastAPI application.

Group betting coordination: one betting window at a time, one bet per
participant, admin grading, and a cached bookmaker odds proxy.
"""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from polla import __version__
from polla.api.routes import (
    admin_ticket,
    auth,
    bets,
    health,
    odds,
    participants,
    tokens,
    windows,
)
from polla.config import get_settings
from polla.services.errors import PollaError

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("starting_polla", version=__version__)
    yield
    logger.info("shutting_down_polla")


app = FastAPI(
    title="Polla Partidos",
    description="Group betting windows, bet grading and bookmaker odds",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(windows.router)
app.include_router(bets.router)
app.include_router(admin_ticket.router)
app.include_router(odds.router)
app.include_router(participants.router)
app.include_router(tokens.router)


# Error handlers
@app.exception_handler(PollaError)
async def polla_error_handler(request: Request, exc: PollaError):
    """Render domain errors as {"ok": false, "error": ...}."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        error=exc.message,
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        {"ok": False, "error": exc.message},
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are plain 400s."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse({"ok": False, "error": message}, status_code=400)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Backing-store failures, including unique-index races, are 500s."""
    logger.error(
        "request_failed",
        path=request.url.path,
        status_code=500,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        {"ok": False, "error": "Error de base de datos"},
        status_code=500,
    )
