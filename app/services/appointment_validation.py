"""Request checks shared by create and update."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.practice import client_groups
from app.schemas.appointments import AppointmentCreate, AppointmentType

REQUIRED_FIELDS = (
    "title",
    "start_date",
    "end_date",
    "clinician_id",
    "location_id",
    "created_by",
)


def missing_required_fields(data: AppointmentCreate) -> list[str]:
    """Names of required fields left empty; events need no client group."""
    missing = [name for name in REQUIRED_FIELDS if getattr(data, name) in (None, "")]
    if data.type is not AppointmentType.EVENT and data.client_group_id is None:
        missing.append("client_group_id")
    return missing


async def ensure_client_group_exists(db: AsyncSession, client_group_id: UUID) -> None:
    """Raise ``NotFoundException`` if the client group is unknown."""
    result = await db.execute(select(client_groups.c.id).where(client_groups.c.id == client_group_id))
    if result.scalar() is None:
        raise NotFoundException("Invalid client group")
