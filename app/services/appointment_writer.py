"""Transactional writes against the appointment tables."""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreException
from app.models.appointments import appointments
from app.models.billing import invoices
from app.services.appointment_tags import AppointmentTagService

logger = structlog.get_logger()


@dataclass
class DeleteOutcome:
    """What a delete removed and which billing rows it left in place."""

    deleted_ids: list[UUID] = field(default_factory=list)
    removed_tag_count: int = 0
    preserved_invoice_ids: list[UUID] = field(default_factory=list)


class AppointmentWriter:
    """
    Single write path for appointments.

    Every multi-row change runs inside ``transaction()``: either all of it
    lands or none of it does.
    """

    def __init__(self, db: AsyncSession, tag_service: AppointmentTagService | None = None):
        """Initialize writer with database session."""
        self.db = db
        self.tags = tag_service or AppointmentTagService(db)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Commit on success, roll back on any failure.

        Store errors are logged in full and re-raised as a generic
        ``StoreException``; domain exceptions pass through unchanged.
        """
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("appointment_transaction_failed", error=str(e), exc_info=True)
            raise StoreException() from e
        except Exception:
            await self.db.rollback()
            raise

    async def create_appointment(self, values: dict[str, Any]) -> dict[str, Any]:
        """Insert one appointment and attach its default tags."""
        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        row = dict(result.mappings().one())

        await self.tags.add_default_tags(row["id"], row["client_group_id"])
        return row

    async def update_appointment(self, appointment_id: UUID, values: dict[str, Any]) -> None:
        """Apply field values to one appointment."""
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values, updated_at=datetime.now(UTC))
        )
        await self.db.execute(stmt)

    async def detach(self, appointment_ids: Sequence[UUID]) -> None:
        """Turn series members into standalone appointments."""
        if not appointment_ids:
            return
        stmt = (
            update(appointments)
            .where(appointments.c.id.in_(list(appointment_ids)))
            .values(
                recurring_appointment_id=None,
                is_recurring=False,
                recurring_rule=None,
                updated_at=datetime.now(UTC),
            )
        )
        await self.db.execute(stmt)

    async def promote(self, appointment_id: UUID, recurring_rule: str | None) -> None:
        """Make an appointment the master of its own series."""
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(
                recurring_appointment_id=None,
                is_recurring=True,
                recurring_rule=recurring_rule,
                updated_at=datetime.now(UTC),
            )
        )
        await self.db.execute(stmt)

    async def retarget(self, appointment_ids: Sequence[UUID], master_id: UUID) -> None:
        """Point children at a different master."""
        if not appointment_ids:
            return
        stmt = (
            update(appointments)
            .where(appointments.c.id.in_(list(appointment_ids)))
            .values(
                recurring_appointment_id=master_id,
                is_recurring=True,
                updated_at=datetime.now(UTC),
            )
        )
        await self.db.execute(stmt)

    async def invoice_ids_for(self, appointment_ids: Sequence[UUID]) -> list[UUID]:
        """Invoices that reference any of the given appointments."""
        if not appointment_ids:
            return []
        result = await self.db.execute(
            select(invoices.c.id).where(invoices.c.appointment_id.in_(list(appointment_ids)))
        )
        return list(result.scalars())

    async def delete_appointments(self, appointment_ids: Sequence[UUID]) -> DeleteOutcome:
        """
        Delete appointments together with the tag links they own.

        Invoices and their payments are deliberately left untouched and keep
        pointing at the deleted appointment ids.
        """
        ids = list(appointment_ids)
        if not ids:
            return DeleteOutcome()

        preserved = await self.invoice_ids_for(ids)
        removed_tags = await self.tags.delete_for_appointments(ids)
        await self.db.execute(delete(appointments).where(appointments.c.id.in_(ids)))

        if preserved:
            logger.info(
                "appointment_billing_preserved",
                appointment_ids=[str(i) for i in ids],
                invoice_ids=[str(i) for i in preserved],
            )

        return DeleteOutcome(
            deleted_ids=ids,
            removed_tag_count=removed_tags,
            preserved_invoice_ids=preserved,
        )

    async def fetch(self, appointment_ids: Sequence[UUID]) -> list[dict[str, Any]]:
        """Load appointments ordered by start."""
        if not appointment_ids:
            return []
        stmt = (
            select(appointments)
            .where(appointments.c.id.in_(list(appointment_ids)))
            .order_by(appointments.c.start_date.asc())
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]
