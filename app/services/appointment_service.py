"""Appointment service for business logic."""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ValidationException
from app.models.appointments import appointments
from app.models.billing import invoices
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentDeleteResponse,
    AppointmentFilters,
    AppointmentResponse,
    AppointmentUpdate,
    AppointmentUpdateResponse,
    DeleteScope,
    UpdateScope,
)
from app.services import first_appointment
from app.services.appointment_limit import AppointmentLimitGuard
from app.services.appointment_validation import ensure_client_group_exists, missing_required_fields
from app.services.appointment_writer import AppointmentWriter
from app.services.recurrence import (
    Occurrence,
    RecurrenceRule,
    Termination,
    expand_for_members,
    expand_occurrences,
    parse_recurring_rule,
)
from app.services.series_linker import SeriesLinker
from app.services.series_scope import SeriesPlan, SeriesRole, SeriesScopeResolver

logger = structlog.get_logger()

# Columns copied from a create request onto every occurrence
SHARED_FIELDS = (
    "type",
    "title",
    "is_all_day",
    "clinician_id",
    "client_group_id",
    "location_id",
    "service_id",
    "created_by",
    "status",
    "appointment_fee",
)

NON_NULLABLE_FIELDS = ("type", "is_all_day", "clinician_id", "location_id", "status")


class AppointmentService:
    """Service for managing appointments and recurring series."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.writer = AppointmentWriter(db)
        self.resolver = SeriesScopeResolver(db)
        self.limit_guard = AppointmentLimitGuard(db)

    async def create_appointment(
        self,
        data: AppointmentCreate,
    ) -> AppointmentResponse | list[AppointmentResponse]:
        """
        Create a single appointment or a whole recurring series.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment, or every occurrence of the series (master first)

        Raises:
            ValidationException: If required fields or the rule are invalid
            NotFoundException: If the client group does not exist
            LimitExceededException: If the clinician's daily cap is reached
        """
        missing = missing_required_fields(data)
        if missing:
            raise ValidationException("Missing required fields", fields=missing)

        occurrences: list[Occurrence] | None = None
        if data.is_recurring:
            if not data.recurring_rule:
                raise ValidationException(
                    "Recurring appointments require a recurring rule",
                    fields=["recurring_rule"],
                )
            rule = parse_recurring_rule(data.recurring_rule)
            occurrences = expand_occurrences(
                data.start_date,
                data.end_date,
                rule,
                Termination(end_date=data.recurring_end_date, count=data.recurring_count),
                max_occurrences=settings.max_recurring_occurrences,
            )

        if data.client_group_id is not None:
            await ensure_client_group_exists(self.db, data.client_group_id)

        await self.limit_guard.ensure_within_limit(
            data.clinician_id,
            data.client_group_id,
            data.start_date,
        )

        base_values = self._base_values(data)

        if occurrences is None:
            async with self.writer.transaction():
                row = await self.writer.create_appointment(
                    {
                        **base_values,
                        "start_date": data.start_date,
                        "end_date": data.end_date,
                        "is_recurring": False,
                        "recurring_rule": None,
                        "recurring_appointment_id": None,
                    }
                )
            logger.info("appointment_created", appointment_id=str(row["id"]))
            row["is_first_appointment_for_group"] = await first_appointment.is_first_for_group(
                self.db, row
            )
            return AppointmentResponse.model_validate(row)

        linker = SeriesLinker(self.writer)
        async with self.writer.transaction():
            rows = await linker.link(occurrences, base_values, data.recurring_rule)

        master = rows[0]
        logger.info(
            "recurring_series_created",
            master_id=str(master["id"]),
            occurrences=len(rows),
        )

        # Children always start after the master
        master_first = await first_appointment.is_first_for_group(self.db, master)
        return [
            AppointmentResponse.model_validate(
                {**row, "is_first_appointment_for_group": master_first if row is master else False}
            )
            for row in rows
        ]

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        row = await self.resolver.get_appointment(appointment_id)
        row["is_first_appointment_for_group"] = await first_appointment.is_first_for_group(
            self.db, row
        )
        return AppointmentResponse.model_validate(row)

    async def list_appointments(self, filters: AppointmentFilters) -> list[AppointmentResponse]:
        """
        List appointments in start order.

        Args:
            filters: Clinician, client group, date range and invoice status filters

        Returns:
            Appointments annotated with first-appointment-for-group
        """
        conditions = []

        if filters.clinician_id:
            conditions.append(appointments.c.clinician_id == filters.clinician_id)

        if filters.client_group_id:
            conditions.append(appointments.c.client_group_id == filters.client_group_id)

        if filters.start_date:
            conditions.append(appointments.c.start_date >= filters.start_date)

        if filters.end_date:
            conditions.append(appointments.c.start_date <= filters.end_date)

        if filters.invoice_status:
            conditions.append(
                exists().where(
                    and_(
                        invoices.c.appointment_id == appointments.c.id,
                        invoices.c.status == filters.invoice_status,
                    )
                )
            )

        stmt = select(appointments).order_by(
            appointments.c.start_date.asc(),
            appointments.c.id.asc(),
        )
        if conditions:
            stmt = stmt.where(and_(*conditions))

        result = await self.db.execute(stmt)
        rows = [dict(row) for row in result.mappings().all()]

        return [AppointmentResponse.model_validate(row) for row in first_appointment.annotate(rows)]

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
        scope: UpdateScope = UpdateScope.THIS,
    ) -> AppointmentUpdateResponse:
        """
        Update an appointment and, depending on scope, its series.

        Args:
            appointment_id: Appointment ID
            data: Update data
            scope: Which series members the update touches

        Returns:
            Updated target plus every row the update touched

        Raises:
            NotFoundException: If the appointment, its master or the client group is missing
            ValidationException: If the resulting times or rule are invalid
            StructuralIntegrityException: If the series graph is inconsistent
        """
        target = await self.resolver.get_appointment(appointment_id)

        changes = data.changes()
        new_rule = changes.pop("recurring_rule", None)
        new_start = changes.pop("start_date", None)
        new_end = changes.pop("end_date", None)

        nulled = [name for name in NON_NULLABLE_FIELDS if name in changes and changes[name] is None]
        if nulled:
            raise ValidationException("Fields cannot be null", fields=nulled)

        if changes.get("client_group_id") is not None:
            await ensure_client_group_exists(self.db, changes["client_group_id"])

        effective_start = new_start or target["start_date"]
        effective_end = new_end or target["end_date"]
        if effective_end <= effective_start:
            raise ValidationException("End date must be after start date", fields=["end_date"])

        plan = await self.resolver.resolve_update(target, scope)

        if new_start is not None and plan.start_before is not None and new_start >= plan.start_before:
            raise ValidationException(
                "Series master must start before its first occurrence; "
                "use scope this_and_future or all to move the whole series",
                fields=["start_date"],
            )

        if new_rule is not None:
            if plan.role is SeriesRole.STANDALONE or scope is UpdateScope.THIS:
                raise ValidationException(
                    "Recurring rule can only change for this_and_future or all on a series",
                    fields=["recurring_rule"],
                )
            times = self._retime(plan, parse_recurring_rule(new_rule), effective_start, effective_end)
        else:
            times = self._shift(plan, effective_start, effective_end)

        async with self.writer.transaction():
            await self.writer.detach(plan.detach_ids)
            if plan.promote_id is not None:
                await self.writer.promote(plan.promote_id, plan.promote_rule)
                await self.writer.retarget(plan.retarget_ids, plan.promote_id)

            for row in plan.update_rows:
                values: dict[str, Any] = dict(changes)
                if row["id"] in times:
                    values["start_date"], values["end_date"] = times[row["id"]]
                if new_rule is not None:
                    values["recurring_rule"] = new_rule
                await self.writer.update_appointment(row["id"], values)

        updated = await self.writer.fetch(plan.update_ids)
        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            scope=scope.value,
            updated_count=len(updated),
        )

        target_row = next(row for row in updated if row["id"] == appointment_id)
        return AppointmentUpdateResponse(
            message=plan.message,
            scope=scope,
            appointment=AppointmentResponse.model_validate(target_row),
            appointments=[AppointmentResponse.model_validate(row) for row in updated],
            updated_count=len(updated),
        )

    async def delete_appointment(
        self,
        appointment_id: UUID,
        scope: DeleteScope = DeleteScope.SINGLE,
    ) -> AppointmentDeleteResponse:
        """
        Delete an appointment and, depending on scope, its series.

        Invoices and payments of deleted appointments are never removed.

        Args:
            appointment_id: Appointment ID
            scope: Which series members the delete removes

        Returns:
            Deleted ids and the invoices left in place

        Raises:
            NotFoundException: If the appointment or its master is missing
            StructuralIntegrityException: If the delete would orphan series members
        """
        target = await self.resolver.get_appointment(appointment_id)
        plan = await self.resolver.resolve_delete(target, scope)

        async with self.writer.transaction():
            if plan.promote_id is not None:
                await self.writer.promote(plan.promote_id, plan.promote_rule)
                await self.writer.retarget(plan.retarget_ids, plan.promote_id)
            outcome = await self.writer.delete_appointments(plan.delete_ids)

        logger.info(
            "appointment_deleted",
            appointment_id=str(appointment_id),
            scope=scope.value,
            deleted_count=len(outcome.deleted_ids),
            removed_tag_count=outcome.removed_tag_count,
            preserved_invoice_count=len(outcome.preserved_invoice_ids),
        )

        return AppointmentDeleteResponse(
            message=plan.message,
            scope=scope,
            deleted_count=len(outcome.deleted_ids),
            deleted_ids=outcome.deleted_ids,
            removed_tag_count=outcome.removed_tag_count,
            preserved_invoice_ids=outcome.preserved_invoice_ids,
        )

    @staticmethod
    def _base_values(data: AppointmentCreate) -> dict[str, Any]:
        values = {name: getattr(data, name) for name in SHARED_FIELDS}
        values["type"] = data.type.value
        values["status"] = data.status.value
        return values

    @staticmethod
    def _shift(
        plan: SeriesPlan,
        new_start: datetime,
        new_end: datetime,
    ) -> dict[UUID, tuple[datetime, datetime]]:
        """Move the target to its new window and every other row by the same deltas."""
        target = plan.target
        start_delta = new_start - target["start_date"]
        end_delta = new_end - target["end_date"]
        if not start_delta and not end_delta:
            return {}

        times = {}
        for row in plan.update_rows:
            if row["id"] == target["id"]:
                times[row["id"]] = (new_start, new_end)
                continue
            start, end = row["start_date"] + start_delta, row["end_date"] + end_delta
            if end <= start:
                raise ValidationException(
                    "Time change would end an appointment before it starts",
                    fields=["start_date", "end_date"],
                )
            times[row["id"]] = (start, end)
        return times

    @staticmethod
    def _retime(
        plan: SeriesPlan,
        rule: RecurrenceRule,
        new_start: datetime,
        new_end: datetime,
    ) -> dict[UUID, tuple[datetime, datetime]]:
        """Lay the affected rows, in start order, onto the new rule's occurrences."""
        rows = sorted(plan.update_rows, key=lambda row: (row["start_date"], str(row["id"])))
        anchor_start = rows[0]["start_date"] + (new_start - plan.target["start_date"])
        occurrences = expand_for_members(
            anchor_start,
            anchor_start + (new_end - new_start),
            rule,
            len(rows),
        )
        return {row["id"]: (occ.start, occ.end) for row, occ in zip(rows, occurrences, strict=True)}
