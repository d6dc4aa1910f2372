"""Health check endpoints.

/health/live   - Liveness check: is the process up?
/health/ready  - Readiness check: can we serve traffic? (DB reachable?)

These are public endpoints - no auth required.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from keyadmin.database import get_engine

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict:
    """Liveness check - always returns 200 if the process is running."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def readiness() -> dict:
    """Readiness check - checks DB connectivity."""
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "ok"
    except (RuntimeError, SQLAlchemyError) as exc:
        log.warning("health.database_unavailable", error=str(exc))
        db_status = "unavailable"

    is_ready = db_status == "ok"
    return {
        "status": "ready" if is_ready else "not_ready",
        "database": db_status,
        "timestamp": datetime.now(UTC).isoformat(),
    }
