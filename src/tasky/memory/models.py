# src/tasky/memory/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

_DAY_SECONDS = 24 * 3600.0


class ContextCategory(StrEnum):
    PERSON = "person"
    PREFERENCE = "preference"
    SCHEDULE = "schedule"
    GOAL = "goal"
    CONSTRAINT = "constraint"
    PATTERN = "pattern"
    OTHER = "other"

    @classmethod
    def from_db(cls, raw: str | None) -> ContextCategory:
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.OTHER

    @property
    def display_name(self) -> str:
        return _CATEGORY_NAMES[self]


_CATEGORY_NAMES = {
    ContextCategory.PERSON: "People",
    ContextCategory.PREFERENCE: "Preferences",
    ContextCategory.SCHEDULE: "Schedule",
    ContextCategory.GOAL: "Goals",
    ContextCategory.CONSTRAINT: "Constraints",
    ContextCategory.PATTERN: "Patterns",
    ContextCategory.OTHER: "Other",
}


class ContextSource(StrEnum):
    EXPLICIT = "explicit"  # user said "remember this"
    EXTRACTED = "extracted"  # parsed from tasks or conversation
    INFERRED = "inferred"  # derived from behavior

    @classmethod
    def from_db(cls, raw: str | None) -> ContextSource:
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.EXTRACTED

    @property
    def display_name(self) -> str:
        return {
            ContextSource.EXPLICIT: "You told me",
            ContextSource.EXTRACTED: "Learned from tasks",
            ContextSource.INFERRED: "Inferred pattern",
        }[self]

    @property
    def base_confidence(self) -> float:
        return {ContextSource.EXPLICIT: 0.85, ContextSource.EXTRACTED: 0.5, ContextSource.INFERRED: 0.3}[self]

    @property
    def boost_factor(self) -> float:
        return {ContextSource.EXPLICIT: 0.15, ContextSource.EXTRACTED: 0.1, ContextSource.INFERRED: 0.05}[self]

    @property
    def half_life_days(self) -> float:
        return {ContextSource.EXPLICIT: 180.0, ContextSource.EXTRACTED: 60.0, ContextSource.INFERRED: 30.0}[self]


def normalize_key(key: str) -> str:
    return (key or "").strip().lower()


@dataclass(slots=True)
class UserContext:
    id: str
    category: ContextCategory
    key: str
    value: str
    confidence: float
    source: ContextSource
    created_at: datetime
    updated_at: datetime
    last_accessed_at: datetime | None = None
    access_count: int = 0
    reinforcement_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def days_since_update(self, now: datetime | None = None) -> float:
        now = now or datetime.now()
        return max(0.0, (now - self.updated_at).total_seconds() / _DAY_SECONDS)

    def days_since_access(self, now: datetime | None = None) -> float:
        now = now or datetime.now()
        ref = self.last_accessed_at or self.created_at
        return max(0.0, (now - ref).total_seconds() / _DAY_SECONDS)

    def effective_confidence(self, now: datetime | None = None) -> float:
        """Stored confidence with half-life decay; never below 10% of it."""
        decay = max(0.1, 0.5 ** (self.days_since_update(now) / self.source.half_life_days))
        return self.confidence * decay

    def is_stale(self, now: datetime | None = None) -> bool:
        return self.effective_confidence(now) < 0.1 and self.days_since_access(now) > 90

    @property
    def formatted_confidence(self) -> str:
        return f"{int(self.effective_confidence() * 100)}%"

    @property
    def prompt_description(self) -> str:
        prefix = {
            ContextCategory.SCHEDULE: "Schedule",
            ContextCategory.GOAL: "Goal",
            ContextCategory.PREFERENCE: "Prefers",
            ContextCategory.CONSTRAINT: "Constraint",
            ContextCategory.PATTERN: "Pattern",
        }.get(self.category)
        if prefix is None:
            return f"{self.key}: {self.value}"
        return f"{prefix}: {self.value}"
