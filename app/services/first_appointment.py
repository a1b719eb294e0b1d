"""First-appointment-for-client-group annotation."""

from collections.abc import Iterable
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointments import appointments


def annotate(rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Mark the earliest appointment of each client group within ``rows``.

    Ties on start are broken by id so exactly one row per group is marked.
    Rows without a client group are never first.
    """
    rows = list(rows)
    earliest: dict[Any, dict[str, Any]] = {}
    for row in rows:
        group_id = row.get("client_group_id")
        if group_id is None:
            continue
        current = earliest.get(group_id)
        if current is None or (row["start_date"], str(row["id"])) < (
            current["start_date"],
            str(current["id"]),
        ):
            earliest[group_id] = row

    first_ids = {row["id"] for row in earliest.values()}
    return [{**row, "is_first_appointment_for_group": row["id"] in first_ids} for row in rows]


async def is_first_for_group(db: AsyncSession, row: dict[str, Any]) -> bool:
    """Whether no other appointment of the row's client group starts earlier."""
    if row.get("client_group_id") is None:
        return False

    stmt = (
        select(func.count())
        .select_from(appointments)
        .where(
            and_(
                appointments.c.client_group_id == row["client_group_id"],
                appointments.c.id != row["id"],
                or_(
                    appointments.c.start_date < row["start_date"],
                    and_(
                        appointments.c.start_date == row["start_date"],
                        appointments.c.id < row["id"],
                    ),
                ),
            )
        )
    )
    result = await db.execute(stmt)
    return (result.scalar() or 0) == 0
