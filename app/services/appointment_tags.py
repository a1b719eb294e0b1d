"""Default appointment tags."""

from collections.abc import Sequence
from enum import Enum
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointments import appointments
from app.models.tags import appointment_tags, tags

logger = structlog.get_logger()


class AppointmentTagName(str, Enum):
    """Status tags the calendar shows on an appointment."""

    APPOINTMENT_PAID = "Appointment Paid"
    APPOINTMENT_UNPAID = "Appointment Unpaid"
    NOTE_ADDED = "Note Added"
    NO_NOTE = "No Note"
    NEW_CLIENT = "New Client"


DEFAULT_APPOINTMENT_TAGS = (
    AppointmentTagName.APPOINTMENT_UNPAID,
    AppointmentTagName.NO_NOTE,
)


class AppointmentTagService:
    """Attaches the starter tag set to new appointments."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self._tag_ids: dict[str, UUID] | None = None

    async def _get_tag_ids(self) -> dict[str, UUID]:
        if self._tag_ids is None:
            names = [name.value for name in AppointmentTagName]
            result = await self.db.execute(select(tags.c.id, tags.c.name).where(tags.c.name.in_(names)))
            self._tag_ids = {row.name: row.id for row in result}
        return self._tag_ids

    async def _is_first_for_client_group(self, appointment_id: UUID, client_group_id: UUID) -> bool:
        stmt = (
            select(func.count())
            .select_from(appointments)
            .where(
                and_(
                    appointments.c.client_group_id == client_group_id,
                    appointments.c.id != appointment_id,
                )
            )
        )
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) == 0

    async def add_default_tags(
        self,
        appointment_id: UUID,
        client_group_id: UUID | None,
    ) -> list[UUID]:
        """
        Attach the unpaid/no-note pair, plus "New Client" for a group's first appointment.

        Tags missing from the taxonomy are skipped; the taxonomy is managed elsewhere.

        Args:
            appointment_id: Newly created appointment
            client_group_id: Client group of the appointment, if any

        Returns:
            IDs of the tags attached
        """
        tag_ids = await self._get_tag_ids()

        selected = [tag_ids[name.value] for name in DEFAULT_APPOINTMENT_TAGS if name.value in tag_ids]

        new_client_tag = tag_ids.get(AppointmentTagName.NEW_CLIENT.value)
        if client_group_id and new_client_tag:
            if await self._is_first_for_client_group(appointment_id, client_group_id):
                selected.append(new_client_tag)

        if not selected:
            logger.warning("default_appointment_tags_missing", appointment_id=str(appointment_id))
            return []

        await self.db.execute(
            insert(appointment_tags),
            [{"appointment_id": appointment_id, "tag_id": tag_id} for tag_id in selected],
        )
        return selected

    async def delete_for_appointments(self, appointment_ids: Sequence[UUID]) -> int:
        """Remove the tag links owned by the given appointments."""
        if not appointment_ids:
            return 0
        result = await self.db.execute(
            delete(appointment_tags).where(appointment_tags.c.appointment_id.in_(list(appointment_ids)))
        )
        return result.rowcount or 0

    async def missing_tags(self) -> list[str]:
        """Names from the tag taxonomy that have no row in the tags table."""
        tag_ids = await self._get_tag_ids()
        return [name.value for name in AppointmentTagName if name.value not in tag_ids]
