"""Liveness, readiness and database health checks."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow import __version__
from payroll_workflow.api.dependencies import DbSession
from payroll_workflow.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: str
    version: str
    engine_version: str


async def _database_reachable(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report the API version and whether the database answers."""
    reachable = await _database_reachable(db)
    return HealthResponse(
        status="healthy" if reachable else "degraded",
        timestamp=datetime.now(timezone.utc),
        database="healthy" if reachable else "unhealthy",
        version=__version__,
        engine_version=get_settings().engine_version,
    )


@router.get("/ready")
async def readiness_check(db: DbSession) -> dict[str, str]:
    """Ready only once the database accepts queries."""
    if not await _database_reachable(db):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        )
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
