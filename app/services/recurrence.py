"""
Recurrence rule parsing and occurrence expansion.

Rules use the RFC 5545 property syntax (``FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=6``)
or the bare keywords ``Daily`` and ``Weekly``. Only daily and weekly
cadences are supported; weekly rules may name explicit weekdays.

Expansion is pure: the same anchor, rule and termination always produce the
same ordered sequence, and nothing here reads the clock or the database.
"""

from collections.abc import Iterator
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, time
from typing import NamedTuple

from dateutil.parser import isoparse
from dateutil.rrule import DAILY, FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from app.core.exceptions import ValidationException

# Safety bound when neither an end date nor a count is supplied
DEFAULT_MAX_OCCURRENCES = 52

FREQUENCIES = {
    "DAILY": DAILY,
    "WEEKLY": WEEKLY,
}

WEEKDAY_CODES = {
    "MO": MO,
    "TU": TU,
    "WE": WE,
    "TH": TH,
    "FR": FR,
    "SA": SA,
    "SU": SU,
}


@dataclass(frozen=True)
class RecurrenceRule:
    """Parsed recurrence rule."""

    freq: str
    interval: int = 1
    by_days: tuple[str, ...] = ()
    count: int | None = None
    until: datetime | None = None


@dataclass(frozen=True)
class Termination:
    """Explicit series bound; either field may be omitted."""

    end_date: date | None = None
    count: int | None = None


class Occurrence(NamedTuple):
    """One concrete time window of a series."""

    start: datetime
    end: datetime


def _invalid(message: str) -> ValidationException:
    return ValidationException(message, fields=["recurring_rule"])


def _positive_int(value: str, name: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise _invalid(f"{name} must be an integer, got {value!r}") from None
    if number < 1:
        raise _invalid(f"{name} must be at least 1")
    return number


def _end_of_day(day: date, tz=UTC) -> datetime:
    return datetime.combine(day, time.max, tzinfo=tz)


def _parse_until(value: str) -> datetime:
    try:
        parsed = isoparse(value)
    except ValueError:
        raise _invalid(f"UNTIL is not a valid date: {value!r}") from None
    if "T" not in value.upper():
        # A bare date bounds the whole day
        return _end_of_day(parsed.date())
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def parse_recurring_rule(rule: str) -> RecurrenceRule:
    """
    Parse a recurrence rule string.

    Args:
        rule: Rule string, e.g. ``FREQ=WEEKLY;BYDAY=MO,TH;COUNT=8`` or ``Weekly``

    Returns:
        Parsed rule

    Raises:
        ValidationException: If the rule is malformed or outside the supported vocabulary
    """
    text = (rule or "").strip()
    if not text:
        raise _invalid("Recurring rule is empty")

    keyword = text.upper()
    if keyword in FREQUENCIES:
        return RecurrenceRule(freq=keyword)

    if keyword.startswith("RRULE:"):
        text = text[len("RRULE:") :]

    parts: dict[str, str] = {}
    for chunk in text.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        key, sep, value = chunk.partition("=")
        if not sep or not value.strip():
            raise _invalid(f"Malformed recurring rule part: {chunk!r}")
        parts[key.strip().upper()] = value.strip()

    freq = parts.get("FREQ", "WEEKLY").upper()
    if freq not in FREQUENCIES:
        raise _invalid(f"Unsupported recurrence frequency: {freq}")

    interval = _positive_int(parts["INTERVAL"], "INTERVAL") if "INTERVAL" in parts else 1

    by_days: tuple[str, ...] = ()
    if "BYDAY" in parts:
        by_days = tuple(day.strip().upper() for day in parts["BYDAY"].split(",") if day.strip())
        unknown = [day for day in by_days if day not in WEEKDAY_CODES]
        if unknown:
            raise _invalid(f"Unknown weekday codes: {', '.join(unknown)}")
        if freq != "WEEKLY":
            raise _invalid("BYDAY is only supported for weekly rules")

    count = _positive_int(parts["COUNT"], "COUNT") if "COUNT" in parts else None
    until = _parse_until(parts["UNTIL"]) if "UNTIL" in parts else None

    return RecurrenceRule(
        freq=freq,
        interval=interval,
        by_days=by_days,
        count=count,
        until=until,
    )


def _occurrence_limit(rule: RecurrenceRule, termination: Termination, max_occurrences: int) -> int:
    count = termination.count or rule.count
    if count is None:
        return max_occurrences
    return min(count, max_occurrences)


def _until(anchor_start: datetime, rule: RecurrenceRule, termination: Termination) -> datetime | None:
    if termination.end_date is not None:
        return _end_of_day(termination.end_date, anchor_start.tzinfo or UTC)
    return rule.until


def iter_occurrences(
    anchor_start: datetime,
    anchor_end: datetime,
    rule: RecurrenceRule,
    termination: Termination | None = None,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> Iterator[Occurrence]:
    """
    Lazily yield the occurrences of a series.

    The anchor is always the first occurrence, even when its weekday is not
    part of an explicit weekday pattern. Every occurrence keeps the anchor's
    time of day and duration. Iteration stops at the end date (inclusive),
    the count, or ``max_occurrences``, whichever comes first.
    """
    if anchor_end <= anchor_start:
        raise ValidationException("End date must be after start date", fields=["end_date"])

    termination = termination or Termination()
    limit = _occurrence_limit(rule, termination, max_occurrences)
    duration = anchor_end - anchor_start

    yield Occurrence(anchor_start, anchor_end)
    if limit <= 1:
        return

    until = _until(anchor_start, rule, termination)
    if until is not None and anchor_start.tzinfo is None:
        until = until.replace(tzinfo=None)

    pattern = rrule(
        FREQUENCIES[rule.freq],
        dtstart=anchor_start,
        interval=rule.interval,
        byweekday=[WEEKDAY_CODES[day] for day in rule.by_days] or None,
        until=until,
    )

    emitted = 1
    for start in pattern:
        if start <= anchor_start:
            continue
        yield Occurrence(start, start + duration)
        emitted += 1
        if emitted >= limit:
            return


def expand_occurrences(
    anchor_start: datetime,
    anchor_end: datetime,
    rule: RecurrenceRule,
    termination: Termination | None = None,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[Occurrence]:
    """Expand a series into its full, ascending list of occurrences."""
    return list(iter_occurrences(anchor_start, anchor_end, rule, termination, max_occurrences))


def expand_for_members(
    anchor_start: datetime,
    anchor_end: datetime,
    rule: RecurrenceRule,
    member_count: int,
) -> list[Occurrence]:
    """
    Re-time an existing series of ``member_count`` appointments under a rule.

    The rule's own COUNT and UNTIL are ignored: the series keeps its size.
    """
    unbounded = replace(rule, count=None, until=None)
    return expand_occurrences(
        anchor_start,
        anchor_end,
        unbounded,
        Termination(count=member_count),
        max_occurrences=max(member_count, 1),
    )
