"""
Health check endpoints for monitoring and orchestration.

- /health: liveness, always 200 while the process is up
- /health/db: database connectivity
- /health/ready: readiness, database plus effects outbox backlog
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session
from app.config import Settings, get_settings
from app.domain.entities.outbox_event import OutboxStatus
from app.infrastructure.db.tables import outbox_events

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "comparepco-bookings"


@router.get("/health")
async def health_check():
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/db")
async def health_check_db(session: AsyncSession = Depends(get_db_session)):
    """Returns 503 when the database does not answer ``SELECT 1``."""
    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
        return {"status": "healthy", "component": "database"}
    except Exception as e:
        logger.error("Database health check failed", exc_info=e)
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "component": "database",
                "error": "Database connection failed",
            },
        )


@router.get("/health/ready")
async def health_check_ready(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    """
    Readiness check.

    In-memory mode has no database to check. In SQL mode the count of FAILED
    outbox events is reported so a stuck effect shows up on dashboards; it does
    not flip readiness.
    """
    health_status = {"status": "ready", "checks": {}}
    if settings.use_in_memory:
        health_status["checks"]["database"] = "in_memory"
        return health_status

    try:
        failed = await session.execute(
            select(func.count()).select_from(outbox_events).where(
                outbox_events.c.status == OutboxStatus.FAILED.value
            )
        )
        health_status["checks"]["database"] = "healthy"
        health_status["checks"]["failed_effects"] = failed.scalar() or 0
    except Exception as e:
        logger.error("Readiness check: Database unhealthy", exc_info=e)
        health_status["status"] = "not_ready"
        health_status["checks"]["database"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
