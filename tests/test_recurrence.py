"""Tests for recurrence rule parsing and occurrence expansion."""

from datetime import UTC, date, datetime, timedelta

import pytest

from app.core.exceptions import ValidationException
from app.services.recurrence import (
    DEFAULT_MAX_OCCURRENCES,
    RecurrenceRule,
    Termination,
    expand_for_members,
    expand_occurrences,
    iter_occurrences,
    parse_recurring_rule,
)

ANCHOR_START = datetime(2024, 1, 15, 10, 0, tzinfo=UTC)  # Monday
ANCHOR_END = datetime(2024, 1, 15, 11, 0, tzinfo=UTC)


def starts(occurrences) -> list[datetime]:
    return [occurrence.start for occurrence in occurrences]


def test_weekly_series_until_end_date() -> None:
    """Weekly from 2024-01-15 through 2024-02-05 gives four Mondays."""
    rule = parse_recurring_rule("Weekly")
    occurrences = expand_occurrences(
        ANCHOR_START,
        ANCHOR_END,
        rule,
        Termination(end_date=date(2024, 2, 5)),
    )

    assert starts(occurrences) == [
        datetime(2024, 1, 15, 10, 0, tzinfo=UTC),
        datetime(2024, 1, 22, 10, 0, tzinfo=UTC),
        datetime(2024, 1, 29, 10, 0, tzinfo=UTC),
        datetime(2024, 2, 5, 10, 0, tzinfo=UTC),
    ]
    assert all(o.end - o.start == timedelta(hours=1) for o in occurrences)


def test_expansion_is_deterministic() -> None:
    rule = parse_recurring_rule("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH")
    termination = Termination(count=9)

    first = expand_occurrences(ANCHOR_START, ANCHOR_END, rule, termination)
    second = expand_occurrences(ANCHOR_START, ANCHOR_END, rule, termination)

    assert first == second
    assert starts(first) == sorted(starts(first))


def test_anchor_outside_weekday_pattern_is_first() -> None:
    rule = parse_recurring_rule("FREQ=WEEKLY;BYDAY=TU,TH;COUNT=4")
    occurrences = expand_occurrences(ANCHOR_START, ANCHOR_END, rule)

    assert [o.start.date() for o in occurrences] == [
        date(2024, 1, 15),
        date(2024, 1, 16),
        date(2024, 1, 18),
        date(2024, 1, 23),
    ]


def test_daily_with_interval() -> None:
    rule = parse_recurring_rule("FREQ=DAILY;INTERVAL=2")
    occurrences = expand_occurrences(ANCHOR_START, ANCHOR_END, rule, Termination(count=3))

    assert [o.start.day for o in occurrences] == [15, 17, 19]
    assert all(o.start.hour == 10 for o in occurrences)


def test_first_bound_reached_wins() -> None:
    rule = parse_recurring_rule("Daily")
    occurrences = expand_occurrences(
        ANCHOR_START,
        ANCHOR_END,
        rule,
        Termination(end_date=date(2024, 1, 31), count=3),
    )
    assert len(occurrences) == 3

    occurrences = expand_occurrences(
        ANCHOR_START,
        ANCHOR_END,
        rule,
        Termination(end_date=date(2024, 1, 16), count=10),
    )
    assert len(occurrences) == 2


def test_rule_count_used_without_termination() -> None:
    rule = parse_recurring_rule("FREQ=WEEKLY;COUNT=5")
    assert len(expand_occurrences(ANCHOR_START, ANCHOR_END, rule)) == 5


def test_rule_until_date_is_inclusive() -> None:
    rule = parse_recurring_rule("FREQ=WEEKLY;UNTIL=20240129")
    occurrences = expand_occurrences(ANCHOR_START, ANCHOR_END, rule)
    assert occurrences[-1].start == datetime(2024, 1, 29, 10, 0, tzinfo=UTC)


def test_unbounded_rule_is_capped() -> None:
    rule = parse_recurring_rule("Daily")
    occurrences = expand_occurrences(ANCHOR_START, ANCHOR_END, rule)
    assert len(occurrences) == DEFAULT_MAX_OCCURRENCES


def test_cap_bounds_explicit_count() -> None:
    rule = parse_recurring_rule("Weekly")
    occurrences = expand_occurrences(
        ANCHOR_START,
        ANCHOR_END,
        rule,
        Termination(count=500),
        max_occurrences=10,
    )
    assert len(occurrences) == 10


def test_iter_occurrences_is_lazy() -> None:
    rule = parse_recurring_rule("Daily")
    iterator = iter_occurrences(ANCHOR_START, ANCHOR_END, rule)
    assert next(iterator).start == ANCHOR_START
    assert next(iterator).start == ANCHOR_START + timedelta(days=1)


def test_expand_for_members_ignores_rule_bounds() -> None:
    rule = parse_recurring_rule("FREQ=DAILY;COUNT=2")
    occurrences = expand_for_members(ANCHOR_START, ANCHOR_END, rule, 4)
    assert len(occurrences) == 4


@pytest.mark.parametrize(
    "text,expected",
    [
        ("weekly", RecurrenceRule(freq="WEEKLY")),
        ("DAILY", RecurrenceRule(freq="DAILY")),
        ("RRULE:FREQ=WEEKLY;BYDAY=mo,we", RecurrenceRule(freq="WEEKLY", by_days=("MO", "WE"))),
        ("FREQ=DAILY;INTERVAL=3;COUNT=4", RecurrenceRule(freq="DAILY", interval=3, count=4)),
    ],
)
def test_parse_supported_rules(text: str, expected: RecurrenceRule) -> None:
    assert parse_recurring_rule(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        "",
        "Monthly",
        "FREQ=MONTHLY",
        "FREQ=YEARLY;COUNT=2",
        "FREQ=WEEKLY;INTERVAL=0",
        "FREQ=WEEKLY;INTERVAL=two",
        "FREQ=WEEKLY;BYDAY=XX",
        "FREQ=DAILY;BYDAY=MO",
        "FREQ=WEEKLY;COUNT",
    ],
)
def test_parse_rejects_unsupported_rules(text: str) -> None:
    with pytest.raises(ValidationException) as exc_info:
        parse_recurring_rule(text)
    assert exc_info.value.fields == ["recurring_rule"]


def test_rejects_empty_window() -> None:
    rule = parse_recurring_rule("Weekly")
    with pytest.raises(ValidationException):
        expand_occurrences(ANCHOR_END, ANCHOR_START, rule)
