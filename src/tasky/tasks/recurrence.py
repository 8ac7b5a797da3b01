# src/tasky/tasks/recurrence.py

"""
Recurrence patterns for repeating tasks.

Weekdays use 1=Mon .. 7=Sun (ISO numbering, same as date.isoweekday()).
All functions are pure: they take a date and return the next one.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import IntEnum, StrEnum
from typing import Any

_WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class RecurrenceType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    AFTER_COMPLETION = "afterCompletion"

    @classmethod
    def from_db(cls, raw: str | None) -> RecurrenceType:
        if not raw:
            return cls.WEEKLY
        try:
            return cls(raw)
        except ValueError:
            return cls.WEEKLY


class WeekdayOrdinal(IntEnum):
    FIRST = 1
    SECOND = 2
    THIRD = 3
    FOURTH = 4
    LAST = -1

    @property
    def display_name(self) -> str:
        return self.name.capitalize()


def weekday_name(number: int) -> str | None:
    if 1 <= number <= 7:
        return _WEEKDAY_NAMES[number - 1]
    return None


def parse_days(raw: str | None) -> set[int]:
    """Parse a stored "1,3,5" string into a weekday set (invalid parts are skipped)."""
    out: set[int] = set()
    for part in (raw or "").split(","):
        part = part.strip()
        if part.isdigit() and 1 <= int(part) <= 7:
            out.add(int(part))
    return out


def format_days(days: set[int] | list[int] | None) -> str | None:
    if not days:
        return None
    return ",".join(str(d) for d in sorted(set(days)))


def add_months(d: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month length."""
    idx = d.month - 1 + months
    year = d.year + idx // 12
    month = idx % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return d.replace(year=year, month=month, day=day)


def add_years(d: datetime, years: int) -> datetime:
    year = d.year + years
    day = min(d.day, calendar.monthrange(year, d.month)[1])
    return d.replace(year=year, day=day)


def _nth_weekday_of_month(year: int, month: int, weekday: int, ordinal: WeekdayOrdinal) -> int:
    """Day of month for e.g. the second Tuesday (weekday 1..7) or the last Friday."""
    days_in_month = calendar.monthrange(year, month)[1]
    matches = [
        day
        for day in range(1, days_in_month + 1)
        if date(year, month, day).isoweekday() == weekday
    ]
    if ordinal == WeekdayOrdinal.LAST:
        return matches[-1]
    return matches[min(int(ordinal), len(matches)) - 1]


@dataclass(slots=True)
class RecurrencePattern:
    type: RecurrenceType = RecurrenceType.WEEKLY
    interval: int = 1
    weekdays: set[int] = field(default_factory=set)
    day_of_month: int = 0
    weekday_ordinal: WeekdayOrdinal | None = None
    end_date: datetime | None = None
    max_occurrences: int = 0

    # ---- description ----

    @property
    def description(self) -> str:
        parts: list[str] = []
        n = self.interval

        if self.type == RecurrenceType.DAILY:
            parts.append("Every day" if n == 1 else f"Every {n} days")

        elif self.type == RecurrenceType.WEEKLY:
            parts.append("Every week" if n == 1 else f"Every {n} weeks")
            if self.weekdays:
                names = [x for x in (weekday_name(d) for d in sorted(self.weekdays)) if x]
                if len(names) == 7:
                    pass
                elif len(names) == 5 and not self.weekdays & {6, 7}:
                    parts.append("on weekdays")
                elif len(names) == 2 and self.weekdays == {6, 7}:
                    parts.append("on weekends")
                else:
                    parts.append("on " + ", ".join(names))

        elif self.type == RecurrenceType.MONTHLY:
            parts.append("Every month" if n == 1 else f"Every {n} months")
            if self.weekday_ordinal is not None and self.weekdays:
                day_name = weekday_name(min(self.weekdays)) or ""
                parts.append(f"on the {self.weekday_ordinal.display_name.lower()} {day_name}")
            elif self.day_of_month > 0:
                parts.append(f"on day {self.day_of_month}")

        elif self.type == RecurrenceType.YEARLY:
            parts.append("Every year" if n == 1 else f"Every {n} years")

        elif self.type == RecurrenceType.AFTER_COMPLETION:
            parts.append("1 day after completion" if n == 1 else f"{n} days after completion")

        if self.end_date is not None:
            parts.append(f"until {self.end_date.strftime('%b')} {self.end_date.day}, {self.end_date.year}")
        elif self.max_occurrences > 0:
            parts.append(f"for {self.max_occurrences} times")

        return " ".join(parts)

    # ---- next occurrence ----

    def next_occurrence(self, after: datetime) -> datetime | None:
        """
        Next date strictly after `after`, or None when the pattern is exhausted.

        Weekly with a weekday set steps forward day by day, bounded by
        7 * interval + 1 attempts.
        """
        nxt = self._raw_next(after)
        if nxt is None:
            return None
        if self.end_date is not None and nxt.date() > self.end_date.date():
            return None
        return nxt

    def _raw_next(self, after: datetime) -> datetime | None:
        n = max(1, int(self.interval))

        if self.type in (RecurrenceType.DAILY, RecurrenceType.AFTER_COMPLETION):
            return after + timedelta(days=n)

        if self.type == RecurrenceType.WEEKLY:
            if not self.weekdays:
                return after + timedelta(weeks=n)
            candidate = after + timedelta(days=1)
            for _ in range(7 * n + 1):
                if candidate.isoweekday() in self.weekdays:
                    return candidate
                candidate += timedelta(days=1)
            return None

        if self.type == RecurrenceType.MONTHLY:
            nxt = add_months(after, n)
            if self.weekday_ordinal is not None and self.weekdays:
                day = _nth_weekday_of_month(nxt.year, nxt.month, min(self.weekdays), self.weekday_ordinal)
                return nxt.replace(day=day)
            if self.day_of_month > 0:
                last = calendar.monthrange(nxt.year, nxt.month)[1]
                return nxt.replace(day=min(self.day_of_month, last))
            return nxt

        if self.type == RecurrenceType.YEARLY:
            return add_years(after, n)

        return None

    @property
    def is_valid(self) -> bool:
        if self.interval <= 0:
            return False
        if self.type == RecurrenceType.MONTHLY:
            return self.day_of_month > 0 or self.weekday_ordinal is not None
        return True

    # ---- persistence ----

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "interval": int(self.interval),
            "weekdays": sorted(self.weekdays),
            "day_of_month": int(self.day_of_month),
            "weekday_ordinal": int(self.weekday_ordinal) if self.weekday_ordinal is not None else 0,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "max_occurrences": int(self.max_occurrences),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RecurrencePattern | None:
        if not data:
            return None
        ordinal_raw = int(data.get("weekday_ordinal") or 0)
        try:
            ordinal = WeekdayOrdinal(ordinal_raw) if ordinal_raw else None
        except ValueError:
            ordinal = None
        end_raw = data.get("end_date")
        return cls(
            type=RecurrenceType.from_db(data.get("type")),
            interval=int(data.get("interval") or 1),
            weekdays={int(d) for d in data.get("weekdays") or [] if 1 <= int(d) <= 7},
            day_of_month=int(data.get("day_of_month") or 0),
            weekday_ordinal=ordinal,
            end_date=datetime.fromisoformat(end_raw) if end_raw else None,
            max_occurrences=int(data.get("max_occurrences") or 0),
        )
