# tests/test_recurrence.py

from __future__ import annotations

from datetime import datetime

import pytest

from tasky.tasks.recurrence import (
    RecurrencePattern,
    RecurrenceType,
    WeekdayOrdinal,
    add_months,
    format_days,
    parse_days,
)


def test_description_for_common_patterns() -> None:
    assert RecurrencePattern(RecurrenceType.DAILY).description == "Every day"
    assert RecurrencePattern(RecurrenceType.DAILY, interval=3).description == "Every 3 days"
    assert RecurrencePattern(RecurrenceType.WEEKLY, weekdays={6, 7}).description == "Every week on weekends"
    assert (
        RecurrencePattern(RecurrenceType.WEEKLY, weekdays={1, 2, 3, 4, 5}).description
        == "Every week on weekdays"
    )
    assert RecurrencePattern(RecurrenceType.WEEKLY, weekdays={1, 3}).description == "Every week on Mon, Wed"
    assert (
        RecurrencePattern(RecurrenceType.AFTER_COMPLETION, interval=2).description
        == "2 days after completion"
    )


def test_description_mentions_end_date_or_occurrences() -> None:
    until = RecurrencePattern(RecurrenceType.DAILY, end_date=datetime(2025, 3, 9))
    assert until.description == "Every day until Mar 9, 2025"

    limited = RecurrencePattern(RecurrenceType.YEARLY, max_occurrences=4)
    assert limited.description == "Every year for 4 times"


def test_monthly_description_with_ordinal() -> None:
    p = RecurrencePattern(RecurrenceType.MONTHLY, weekdays={2}, weekday_ordinal=WeekdayOrdinal.SECOND)
    assert p.description == "Every month on the second Tue"


def test_weekly_next_occurrence_walks_to_next_selected_day() -> None:
    # 2025-01-01 is a Wednesday (isoweekday 3).
    p = RecurrencePattern(RecurrenceType.WEEKLY, weekdays={1, 5})
    assert p.next_occurrence(datetime(2025, 1, 1, 9, 0)) == datetime(2025, 1, 3, 9, 0)
    assert p.next_occurrence(datetime(2025, 1, 3, 9, 0)) == datetime(2025, 1, 6, 9, 0)


def test_weekly_without_days_adds_whole_weeks() -> None:
    p = RecurrencePattern(RecurrenceType.WEEKLY, interval=2)
    assert p.next_occurrence(datetime(2025, 1, 1)) == datetime(2025, 1, 15)


def test_monthly_day_clamps_to_month_length() -> None:
    p = RecurrencePattern(RecurrenceType.MONTHLY, day_of_month=31)
    assert p.next_occurrence(datetime(2025, 1, 31)) == datetime(2025, 2, 28)


def test_monthly_last_weekday() -> None:
    # Last Friday of February 2025 is the 28th.
    p = RecurrencePattern(RecurrenceType.MONTHLY, weekdays={5}, weekday_ordinal=WeekdayOrdinal.LAST)
    assert p.next_occurrence(datetime(2025, 1, 10)) == datetime(2025, 2, 28)


def test_yearly_handles_leap_day() -> None:
    p = RecurrencePattern(RecurrenceType.YEARLY)
    assert p.next_occurrence(datetime(2024, 2, 29)) == datetime(2025, 2, 28)


def test_end_date_exhausts_pattern() -> None:
    p = RecurrencePattern(RecurrenceType.DAILY, end_date=datetime(2025, 1, 2))
    assert p.next_occurrence(datetime(2025, 1, 1)) == datetime(2025, 1, 2)
    assert p.next_occurrence(datetime(2025, 1, 2)) is None


def test_validity() -> None:
    assert RecurrencePattern(RecurrenceType.DAILY).is_valid
    assert not RecurrencePattern(RecurrenceType.MONTHLY).is_valid
    assert RecurrencePattern(RecurrenceType.MONTHLY, day_of_month=5).is_valid


@pytest.mark.parametrize(
    "kind",
    [RecurrenceType.DAILY, RecurrenceType.WEEKLY, RecurrenceType.YEARLY, RecurrenceType.AFTER_COMPLETION],
)
@pytest.mark.parametrize("interval", [0, -2])
def test_non_positive_interval_is_invalid(kind: RecurrenceType, interval: int) -> None:
    assert not RecurrencePattern(kind, interval=interval).is_valid
    assert not RecurrencePattern(kind, interval=interval, weekdays={1, 3}).is_valid


def test_dict_round_trip_preserves_fields() -> None:
    p = RecurrencePattern(
        RecurrenceType.MONTHLY,
        interval=2,
        weekdays={4},
        weekday_ordinal=WeekdayOrdinal.LAST,
        end_date=datetime(2026, 1, 1),
    )
    again = RecurrencePattern.from_dict(p.to_dict())
    assert again == p


def test_from_dict_tolerates_bad_values() -> None:
    assert RecurrencePattern.from_dict(None) is None
    p = RecurrencePattern.from_dict({"type": "fortnightly", "weekdays": [0, 3, 9], "weekday_ordinal": 7})
    assert p is not None
    assert p.type == RecurrenceType.WEEKLY
    assert p.weekdays == {3}
    assert p.weekday_ordinal is None


def test_add_months_and_day_strings() -> None:
    assert add_months(datetime(2025, 11, 30), 3) == datetime(2026, 2, 28)
    assert parse_days("1, 3,x,9,5") == {1, 3, 5}
    assert format_days([5, 1, 1]) == "1,5"
    assert format_days(set()) is None
