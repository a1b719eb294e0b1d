"""Per-day appointment cap check."""

from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import LimitExceededException
from app.models.appointment_limits import appointment_limits
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentStatus

# Cancelled appointments do not take a slot
NON_COUNTING_STATUSES = (
    AppointmentStatus.CANCELLED.value,
    AppointmentStatus.CLINICIAN_CANCELLED.value,
)


class AppointmentLimitGuard:
    """
    Rejects creates once a clinician's daily cap is reached.

    The count and the insert are not serialized: two concurrent creates can
    both pass and leave the day one over the cap. The cap is a soft
    administrative limit.
    """

    def __init__(self, db: AsyncSession, default_limit: int | None = None):
        """Initialize guard with database session and fallback cap."""
        self.db = db
        self.default_limit = (
            settings.default_daily_appointment_limit if default_limit is None else default_limit
        )

    @staticmethod
    def _day_bounds(day: date) -> tuple[datetime, datetime]:
        start = datetime.combine(day, time.min, tzinfo=UTC)
        return start, start + timedelta(days=1)

    async def get_limit(self, clinician_id: UUID, day: date) -> int:
        """Cap for the clinician on that day; 0 means unlimited."""
        stmt = select(appointment_limits.c.max_limit).where(
            and_(
                appointment_limits.c.clinician_id == clinician_id,
                appointment_limits.c.date == day,
            )
        )
        result = await self.db.execute(stmt)
        limit = result.scalar()
        if limit is not None and limit > 0:
            return limit
        return self.default_limit

    async def count_for_day(
        self,
        clinician_id: UUID,
        client_group_id: UUID | None,
        day: date,
    ) -> int:
        """Count the clinician's active appointments with the client group on that day."""
        day_start, day_end = self._day_bounds(day)
        conditions = [
            appointments.c.clinician_id == clinician_id,
            appointments.c.start_date >= day_start,
            appointments.c.start_date < day_end,
            appointments.c.status.notin_(NON_COUNTING_STATUSES),
        ]
        if client_group_id is not None:
            conditions.append(appointments.c.client_group_id == client_group_id)

        stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def check(
        self,
        clinician_id: UUID,
        client_group_id: UUID | None,
        start: datetime,
    ) -> bool:
        """
        Check whether the daily cap is already reached.

        Args:
            clinician_id: Clinician being booked
            client_group_id: Client group being booked, if any
            start: Start instant; only its UTC calendar day matters

        Returns:
            True if the limit is reached or exceeded
        """
        day = start.astimezone(UTC).date()
        limit = await self.get_limit(clinician_id, day)
        if limit <= 0:
            return False
        return await self.count_for_day(clinician_id, client_group_id, day) >= limit

    async def ensure_within_limit(
        self,
        clinician_id: UUID,
        client_group_id: UUID | None,
        start: datetime,
    ) -> None:
        """Raise ``LimitExceededException`` if the cap is reached."""
        if await self.check(clinician_id, client_group_id, start):
            raise LimitExceededException()
