"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure logging
3. Initialize database engine and session factory
4. Create the usage limiter client
5. Register middleware and exception handlers
6. Include all routers

Shutdown order:
1. Close the usage limiter
2. Close DB connection pool
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from keyadmin import __version__
from keyadmin.api.errors import register_exception_handlers
from keyadmin.api.router import api_router, public_router
from keyadmin.config import get_settings
from keyadmin.database import close_db, init_db
from keyadmin.services.usage_limiter import get_usage_limiter
from keyadmin.telemetry.logging import RequestIdMiddleware, configure_logging

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    settings = get_settings()

    # Configure structured logging first (before any log calls)
    configure_logging(
        json_logs=settings.is_prod,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    log.info(
        "app.starting",
        environment=settings.environment,
        db_url=settings.database_url.split("@")[-1],
    )

    init_db(settings)
    app.state.usage_limiter = get_usage_limiter(settings)

    log.info("app.ready")
    yield

    await app.state.usage_limiter.close()
    await close_db()
    log.info("app.shutdown")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title="Key Administration API",
        description="Root-key authenticated management of API keys with audit logging.",
        version=__version__,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )

    # Unique request ID for log correlation and error bodies
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    app.include_router(public_router)
    app.include_router(api_router)

    return app


# Module-level app instance for uvicorn
app = create_app()
