"""
Series scope resolution for updates and deletes.

Every appointment is in one of three roles relative to a series:

- STANDALONE: not recurring
- MASTER: recurring, no back reference, owns the rule
- CHILD: recurring, ``recurring_appointment_id`` points at the master

Given a target and a scope, the resolver reloads the series from the store
and returns a ``SeriesPlan`` describing exactly which rows to update, detach,
promote, retarget or delete. It never writes; ``AppointmentWriter`` applies
the plan inside one transaction.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException, StructuralIntegrityException
from app.models.appointments import appointments
from app.schemas.appointments import DeleteScope, UpdateScope

Row = dict[str, Any]


class SeriesRole(str, Enum):
    """Position of an appointment relative to its series."""

    STANDALONE = "standalone"
    MASTER = "master"
    CHILD = "child"


def series_role(row: Row) -> SeriesRole:
    """Classify an appointment row."""
    if row["recurring_appointment_id"] is not None:
        return SeriesRole.CHILD
    if row["is_recurring"]:
        return SeriesRole.MASTER
    return SeriesRole.STANDALONE


def _chronological(row: Row) -> tuple:
    return (row["start_date"], str(row["id"]))


@dataclass
class SeriesMembers:
    """A freshly loaded series: its master (if any) and children in start order."""

    target: Row
    master: Row | None = None
    children: list[Row] = field(default_factory=list)

    @property
    def members(self) -> list[Row]:
        if self.master is None:
            return [self.target]
        return sorted([self.master, *self.children], key=_chronological)

    def from_target_on(self) -> list[Row]:
        """Members starting at or after the target."""
        start = self.target["start_date"]
        return [row for row in self.members if row["start_date"] >= start]


@dataclass
class SeriesPlan:
    """Row-level changes needed to carry out a scoped intent."""

    target: Row
    role: SeriesRole
    scope: UpdateScope | DeleteScope
    message: str
    update_rows: list[Row] = field(default_factory=list)
    detach_ids: list[UUID] = field(default_factory=list)
    promote_id: UUID | None = None
    promote_rule: str | None = None
    retarget_ids: list[UUID] = field(default_factory=list)
    delete_ids: list[UUID] = field(default_factory=list)
    start_before: datetime | None = None

    @property
    def update_ids(self) -> list[UUID]:
        return [row["id"] for row in self.update_rows]


class SeriesScopeResolver:
    """Computes the rows an update or delete touches for a given scope."""

    def __init__(self, db: AsyncSession):
        """Initialize resolver with database session."""
        self.db = db
        self._update_handlers: dict[UpdateScope, Callable[[SeriesMembers], SeriesPlan]] = {
            UpdateScope.THIS: self._plan_update_this,
            UpdateScope.THIS_AND_FUTURE: self._plan_update_future,
            UpdateScope.ALL: self._plan_update_all,
        }
        self._delete_handlers: dict[DeleteScope, Callable[[SeriesMembers], SeriesPlan]] = {
            DeleteScope.SINGLE: self._plan_delete_single,
            DeleteScope.FUTURE: self._plan_delete_future,
            DeleteScope.ALL: self._plan_delete_all,
        }

    async def _find(self, appointment_id: UUID) -> Row | None:
        result = await self.db.execute(select(appointments).where(appointments.c.id == appointment_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def _children_of(self, master_id: UUID) -> list[Row]:
        stmt = (
            select(appointments)
            .where(appointments.c.recurring_appointment_id == master_id)
            .order_by(appointments.c.start_date.asc())
        )
        result = await self.db.execute(stmt)
        return sorted((dict(row) for row in result.mappings().all()), key=_chronological)

    async def get_appointment(self, appointment_id: UUID) -> Row:
        """
        Load one appointment.

        Raises:
            NotFoundException: If the appointment does not exist
        """
        row = await self._find(appointment_id)
        if row is None:
            raise NotFoundException("Appointment not found")
        return row

    async def load_series(self, target: Row) -> SeriesMembers:
        """
        Resolve the target's series from the store.

        Raises:
            NotFoundException: If a child's master no longer exists
            StructuralIntegrityException: If the master is itself a child
        """
        role = series_role(target)
        if role is SeriesRole.STANDALONE:
            return SeriesMembers(target=target)

        if role is SeriesRole.MASTER:
            return SeriesMembers(
                target=target,
                master=target,
                children=await self._children_of(target["id"]),
            )

        master = await self._find(target["recurring_appointment_id"])
        if master is None:
            raise NotFoundException("Series master not found")
        if master["recurring_appointment_id"] is not None:
            raise StructuralIntegrityException(
                f"Appointment {master['id']} is both a series master and a child"
            )
        return SeriesMembers(
            target=target,
            master=master,
            children=await self._children_of(master["id"]),
        )

    async def resolve_update(self, target: Row, scope: UpdateScope) -> SeriesPlan:
        """Plan an update of ``target`` under ``scope``."""
        return self._update_handlers[scope](await self.load_series(target))

    async def resolve_delete(self, target: Row, scope: DeleteScope) -> SeriesPlan:
        """Plan a delete of ``target`` under ``scope``."""
        return self._delete_handlers[scope](await self.load_series(target))

    # Updates

    def _plan_update_this(self, series: SeriesMembers) -> SeriesPlan:
        target = series.target
        role = series_role(target)
        if role is SeriesRole.CHILD:
            return SeriesPlan(
                target=target,
                role=role,
                scope=UpdateScope.THIS,
                message="Appointment updated and removed from recurring series",
                update_rows=[target],
                detach_ids=[target["id"]],
            )
        return SeriesPlan(
            target=target,
            role=role,
            scope=UpdateScope.THIS,
            message="Appointment updated successfully",
            update_rows=[target],
            start_before=series.children[0]["start_date"] if series.children else None,
        )

    def _plan_update_future(self, series: SeriesMembers) -> SeriesPlan:
        target = series.target
        role = series_role(target)
        if role is SeriesRole.STANDALONE:
            return SeriesPlan(
                target=target,
                role=role,
                scope=UpdateScope.THIS_AND_FUTURE,
                message="Appointment updated successfully",
                update_rows=[target],
            )

        affected = series.from_target_on()
        master_affected = any(row["id"] == series.master["id"] for row in affected)
        if role is SeriesRole.MASTER or master_affected:
            return SeriesPlan(
                target=target,
                role=role,
                scope=UpdateScope.THIS_AND_FUTURE,
                message="This and all future appointments updated",
                update_rows=affected,
            )

        # Split: the target anchors a new series for itself and later children
        return SeriesPlan(
            target=target,
            role=role,
            scope=UpdateScope.THIS_AND_FUTURE,
            message="Created new series with this and all future appointments",
            update_rows=affected,
            promote_id=target["id"],
            promote_rule=series.master["recurring_rule"],
            retarget_ids=[row["id"] for row in affected if row["id"] != target["id"]],
        )

    def _plan_update_all(self, series: SeriesMembers) -> SeriesPlan:
        target = series.target
        role = series_role(target)
        if role is SeriesRole.STANDALONE:
            message = "Appointment updated successfully"
        else:
            message = "All appointments in the series updated"
        return SeriesPlan(
            target=target,
            role=role,
            scope=UpdateScope.ALL,
            message=message,
            update_rows=series.members,
        )

    # Deletes

    def _plan_delete_single(self, series: SeriesMembers) -> SeriesPlan:
        target = series.target
        role = series_role(target)
        plan = SeriesPlan(
            target=target,
            role=role,
            scope=DeleteScope.SINGLE,
            message="Appointment deleted successfully",
            delete_ids=[target["id"]],
        )
        if role is SeriesRole.MASTER and series.children:
            # The earliest child takes over so no child points at a deleted master
            heir, *rest = series.children
            plan.promote_id = heir["id"]
            plan.promote_rule = target["recurring_rule"]
            plan.retarget_ids = [row["id"] for row in rest]
            plan.message = "Appointment deleted successfully and recurring series updated"
        return plan

    def _plan_delete_future(self, series: SeriesMembers) -> SeriesPlan:
        """
        Delete the target and every member starting at or after it.

        The master is expected to be the earliest member; updates refuse to move
        it past its first child. A series where that no longer holds (rows
        written outside the service) cannot be cut from a child without
        orphaning the earlier members, so it is rejected instead.
        """
        target = series.target
        role = series_role(target)
        if role is SeriesRole.STANDALONE:
            return SeriesPlan(
                target=target,
                role=role,
                scope=DeleteScope.FUTURE,
                message="Appointment deleted successfully",
                delete_ids=[target["id"]],
            )

        doomed = series.from_target_on()
        doomed_ids = {row["id"] for row in doomed}
        survivors = [row for row in series.members if row["id"] not in doomed_ids]
        if series.master["id"] in doomed_ids and survivors:
            raise StructuralIntegrityException(
                "Deleting future appointments would remove the series master "
                "while earlier occurrences remain; delete the whole series instead"
            )

        return SeriesPlan(
            target=target,
            role=role,
            scope=DeleteScope.FUTURE,
            message="Future appointments deleted successfully",
            delete_ids=[row["id"] for row in doomed],
        )

    def _plan_delete_all(self, series: SeriesMembers) -> SeriesPlan:
        target = series.target
        role = series_role(target)
        if role is SeriesRole.STANDALONE:
            message = "Appointment deleted successfully"
        else:
            message = "All appointments in the series deleted successfully"
        return SeriesPlan(
            target=target,
            role=role,
            scope=DeleteScope.ALL,
            message=message,
            delete_ids=[row["id"] for row in series.members],
        )
