"""Master/child linking for newly generated series."""

from collections.abc import Sequence
from typing import Any

from app.core.exceptions import ValidationException
from app.services.appointment_writer import AppointmentWriter
from app.services.recurrence import Occurrence


class SeriesLinker:
    """Writes a generated series: the first occurrence is the master, the rest its children."""

    def __init__(self, writer: AppointmentWriter):
        """Initialize linker with the writer it writes through."""
        self.writer = writer

    async def link(
        self,
        occurrences: Sequence[Occurrence],
        base_values: dict[str, Any],
        recurring_rule: str,
    ) -> list[dict[str, Any]]:
        """
        Insert every occurrence with its series identity.

        Must run inside ``AppointmentWriter.transaction()`` so a failure on
        any occurrence discards the whole series.

        Args:
            occurrences: Ascending occurrences from the expander
            base_values: Column values shared by every occurrence
            recurring_rule: Rule stored on the master and mirrored on children

        Returns:
            Created rows, master first
        """
        if not occurrences:
            raise ValidationException("Recurring rule produced no occurrences", fields=["recurring_rule"])

        first, *rest = occurrences
        master = await self.writer.create_appointment(
            {
                **base_values,
                "start_date": first.start,
                "end_date": first.end,
                "is_recurring": True,
                "recurring_rule": recurring_rule,
                "recurring_appointment_id": None,
            }
        )

        rows = [master]
        for occurrence in rest:
            child = await self.writer.create_appointment(
                {
                    **base_values,
                    "start_date": occurrence.start,
                    "end_date": occurrence.end,
                    "is_recurring": True,
                    "recurring_rule": recurring_rule,
                    "recurring_appointment_id": master["id"],
                }
            )
            rows.append(child)

        return rows
