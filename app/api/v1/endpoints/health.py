"""Health check endpoints."""

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.dependencies import DatabaseSession
from app.services.appointment_tags import AppointmentTagService

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class CalendarHealthResponse(HealthResponse):
    """Store reachability plus the settings that shape scheduling."""

    database: str
    missing_tags: list[str]
    max_recurring_occurrences: int
    default_daily_appointment_limit: int


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Liveness only; does not touch the store."""
    return HealthResponse(status="healthy", version=settings.app_version)


@router.get(
    "/health/detailed",
    response_model=CalendarHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Scheduling readiness",
)
async def detailed_health_check(db: DatabaseSession) -> CalendarHealthResponse:
    """
    Report whether new appointments can be booked as configured.

    The status is "degraded" when the store is unreachable or when part of
    the tag taxonomy is missing, since new appointments would then be
    created without their default tags.
    """
    try:
        missing = await AppointmentTagService(db).missing_tags()
        database = "healthy"
    except SQLAlchemyError as e:
        logger.warning("health_database_unreachable", error=str(e))
        missing = []
        database = "unhealthy"

    degraded = database != "healthy" or bool(missing)
    return CalendarHealthResponse(
        status="degraded" if degraded else "healthy",
        version=settings.app_version,
        database=database,
        missing_tags=missing,
        max_recurring_occurrences=settings.max_recurring_occurrences,
        default_daily_appointment_limit=settings.default_daily_appointment_limit,
    )
