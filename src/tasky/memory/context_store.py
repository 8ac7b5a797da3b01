# src/tasky/memory/context_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from ..errors import NotFoundError, ValidationError
from ..tasks.models import new_id
from .models import ContextCategory, ContextSource, UserContext, normalize_key

logger = logging.getLogger(__name__)

STALE_CONFIDENCE = 0.1
WEAK_PATTERN_DATA_POINTS = 3
WEAK_PATTERN_DAYS = 30


class ContextIntent(StrEnum):
    CREATE_TASK = "create_task"
    PLAN_DAY = "plan_day"
    PRIORITIZE = "prioritize"
    QUERY = "query"
    GENERAL = "general"


# intent -> (categories or None for all, min confidence, limit)
_INTENT_QUERIES: dict[ContextIntent, tuple[tuple[ContextCategory, ...] | None, float, int]] = {
    ContextIntent.CREATE_TASK: ((ContextCategory.PERSON, ContextCategory.GOAL), 0.5, 5),
    ContextIntent.PLAN_DAY: (
        (ContextCategory.SCHEDULE, ContextCategory.CONSTRAINT, ContextCategory.GOAL, ContextCategory.PATTERN),
        0.5,
        10,
    ),
    ContextIntent.PRIORITIZE: ((ContextCategory.GOAL, ContextCategory.PERSON), 0.5, 8),
    ContextIntent.QUERY: ((ContextCategory.PERSON, ContextCategory.GOAL), 0.3, 5),
    ContextIntent.GENERAL: (None, 0.5, 12),
}


def _ts(d: datetime | None) -> float | None:
    return d.timestamp() if d is not None else None


def _dt(raw: float | None) -> datetime | None:
    return datetime.fromtimestamp(float(raw)) if raw is not None else None


class ContextStore:
    """
    SQLite-backed user context memory.

    One row per (category, key). Saving an existing pair reinforces it
    instead of creating a duplicate:
    - confidence grows asymptotically towards 1.0 by the source's boost factor,
    - new information is merged into the value ("old; new").

    Thread-safety:
    - each operation opens its own SQLite connection.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        max_items: int = 100,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_items = int(max_items)
        self._clock = clock
        self._ensure_schema()
        logger.info("ContextStore ready db=%s total=%s", self._db_path, self.count())

    def close(self) -> None:
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS user_context (
                    id TEXT PRIMARY KEY,
                    category TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    source TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    last_accessed_at REAL,
                    access_count INTEGER NOT NULL DEFAULT 0,
                    reinforcement_count INTEGER NOT NULL DEFAULT 0,
                    metadata TEXT,
                    UNIQUE(category, key)
                );
                CREATE INDEX IF NOT EXISTS idx_context_category ON user_context(category);
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> UserContext:
        raw_meta = row["metadata"]
        meta: dict[str, Any] = {}
        if raw_meta:
            try:
                parsed = json.loads(raw_meta)
            except (TypeError, ValueError):
                logger.warning("Bad metadata for context id=%s", row["id"])
                parsed = {}
            if isinstance(parsed, dict):
                meta = parsed

        created = _dt(row["created_at"]) or datetime.now()
        return UserContext(
            id=str(row["id"]),
            category=ContextCategory.from_db(row["category"]),
            key=str(row["key"]),
            value=str(row["value"]),
            confidence=float(row["confidence"]),
            source=ContextSource.from_db(row["source"]),
            created_at=created,
            updated_at=_dt(row["updated_at"]) or created,
            last_accessed_at=_dt(row["last_accessed_at"]),
            access_count=int(row["access_count"] or 0),
            reinforcement_count=int(row["reinforcement_count"] or 0),
            metadata=meta,
        )

    def _write(self, conn: sqlite3.Connection, item: UserContext) -> None:
        conn.execute(
            """
            INSERT INTO user_context(
                id, category, key, value, confidence, source, created_at, updated_at,
                last_accessed_at, access_count, reinforcement_count, metadata
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                value = excluded.value,
                confidence = excluded.confidence,
                updated_at = excluded.updated_at,
                last_accessed_at = excluded.last_accessed_at,
                access_count = excluded.access_count,
                reinforcement_count = excluded.reinforcement_count,
                metadata = excluded.metadata
            """,
            (
                item.id,
                item.category.value,
                item.key,
                item.value,
                float(item.confidence),
                item.source.value,
                _ts(item.created_at),
                _ts(item.updated_at),
                _ts(item.last_accessed_at),
                int(item.access_count),
                int(item.reinforcement_count),
                json.dumps(item.metadata, ensure_ascii=False) if item.metadata else None,
            ),
        )

    def _select(self, where: str = "1=1", params: Sequence[Any] = (), order: str = "confidence DESC, updated_at DESC") -> list[UserContext]:
        conn = self._get_conn()
        try:
            rows = conn.execute(f"SELECT * FROM user_context WHERE {where} ORDER BY {order}", list(params)).fetchall()
            return [self._row_to_item(r) for r in rows]
        finally:
            conn.close()

    def _delete_ids(self, ids: Iterable[str]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        conn = self._get_conn()
        try:
            conn.executemany("DELETE FROM user_context WHERE id = ?", [(i,) for i in ids])
            conn.commit()
        finally:
            conn.close()
        return len(ids)

    # ---- CRUD ----

    def save(
        self,
        category: ContextCategory,
        key: str,
        value: str,
        source: ContextSource = ContextSource.EXPLICIT,
        metadata: dict[str, Any] | None = None,
    ) -> UserContext:
        """Insert a new item, or reinforce the existing (category, key) pair."""
        norm = normalize_key(key)
        value = (value or "").strip()
        if not norm or not value:
            raise ValidationError("Context key and value must not be empty.")

        existing = self.get(category, norm)
        if existing is not None:
            return self.reinforce(existing, value)

        now = self._clock()
        item = UserContext(
            id=new_id(),
            category=category,
            key=norm,
            value=value,
            confidence=source.base_confidence,
            source=source,
            created_at=now,
            updated_at=now,
            metadata=dict(metadata or {}),
        )

        self._enforce_item_limit()
        conn = self._get_conn()
        try:
            self._write(conn, item)
            conn.commit()
        finally:
            conn.close()

        logger.info("Context saved key=%s category=%s", norm, category.value)
        return item

    def get(self, category: ContextCategory, key: str) -> UserContext | None:
        items = self._select("category = ? AND key = ?", [category.value, normalize_key(key)])
        return items[0] if items else None

    def get_by_id(self, context_id: str) -> UserContext | None:
        items = self._select("id = ?", [context_id])
        return items[0] if items else None

    def fetch_all(
        self,
        category: ContextCategory | None = None,
        *,
        categories: Sequence[ContextCategory] | None = None,
        min_confidence: float = 0.0,
        limit: int | None = None,
    ) -> list[UserContext]:
        """Sorted by stored confidence, then most recently updated; filtered by effective confidence."""
        cats: list[ContextCategory] = []
        if category is not None:
            cats.append(category)
        if categories:
            cats.extend(categories)

        if cats:
            marks = ",".join("?" for _ in cats)
            items = self._select(f"category IN ({marks})", [c.value for c in cats])
        else:
            items = self._select()

        if min_confidence > 0:
            now = self._clock()
            items = [i for i in items if i.effective_confidence(now) >= min_confidence]
        if limit is not None:
            items = items[: max(0, int(limit))]
        return items

    def count(self) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT COUNT(*) AS c FROM user_context").fetchone()
            return int(row["c"]) if row else 0
        finally:
            conn.close()

    def delete(self, context_id: str) -> None:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM user_context WHERE id = ?", (context_id,))
            conn.commit()
            if cur.rowcount == 0:
                raise NotFoundError(f"Context item {context_id} not found")
        finally:
            conn.close()
        logger.info("Context deleted id=%s", context_id)

    def delete_all(self, category: ContextCategory | None = None) -> int:
        conn = self._get_conn()
        try:
            if category is None:
                cur = conn.execute("DELETE FROM user_context")
            else:
                cur = conn.execute("DELETE FROM user_context WHERE category = ?", (category.value,))
            conn.commit()
            n = int(cur.rowcount or 0)
        finally:
            conn.close()
        logger.info("Context deleted count=%s category=%s", n, category.value if category else "*")
        return n

    # ---- confidence management ----

    def reinforce(self, item: UserContext, new_value: str | None = None) -> UserContext:
        item.confidence = item.confidence + (1.0 - item.confidence) * item.source.boost_factor
        item.reinforcement_count += 1
        item.updated_at = self._clock()

        if new_value and new_value.lower() not in item.value.lower():
            item.value = f"{item.value}; {new_value}"

        conn = self._get_conn()
        try:
            self._write(conn, item)
            conn.commit()
        finally:
            conn.close()

        logger.info("Context reinforced key=%s confidence=%.2f", item.key, item.confidence)
        return item

    def mark_accessed(self, items: Iterable[UserContext]) -> None:
        items = list(items)
        if not items:
            return
        now = self._clock()
        conn = self._get_conn()
        try:
            for item in items:
                item.last_accessed_at = now
                item.access_count += 1
                conn.execute(
                    "UPDATE user_context SET last_accessed_at = ?, access_count = ? WHERE id = ?",
                    (_ts(now), item.access_count, item.id),
                )
            conn.commit()
        finally:
            conn.close()

    # ---- prompt retrieval ----

    def fetch_relevant(self, query: str = "", *, max_items: int = 12, min_confidence: float = 0.3) -> list[UserContext]:
        """
        Items for an AI prompt.

        Without a query: the top items by confidence.
        With a query: effective confidence + 1.0 when the key is one of the
        query words + 0.3 per value word shared with the query.
        Returned items are marked as accessed.
        """
        items = self.fetch_all(min_confidence=min_confidence)
        query = (query or "").strip().lower()

        if not query:
            top = items[:max_items]
        else:
            now = self._clock()
            words = set(query.split())

            def score(item: UserContext) -> float:
                s = item.effective_confidence(now)
                if item.key.lower() in words:
                    s += 1.0
                s += len(words & set(item.value.lower().split())) * 0.3
                return s

            top = sorted(items, key=score, reverse=True)[:max_items]

        self.mark_accessed(top)
        return top

    def for_intent(self, intent: ContextIntent) -> list[UserContext]:
        cats, min_conf, limit = _INTENT_QUERIES[intent]
        return self.fetch_all(categories=cats, min_confidence=min_conf, limit=limit)

    @staticmethod
    def format_for_prompt(items: Sequence[UserContext]) -> str:
        return "\n- ".join(i.prompt_description for i in items)

    def search(self, keyword: str) -> list[UserContext]:
        kw = (keyword or "").strip().lower()
        if not kw:
            return []
        like = f"%{kw}%"
        return self._select("LOWER(key) LIKE ? OR LOWER(value) LIKE ?", [like, like], order="confidence DESC")

    # ---- maintenance ----

    def perform_daily_maintenance(self) -> tuple[int, int]:
        """
        Prune stale items and weak patterns, then enforce the item limit.

        Returns (pruned, removed_over_limit).
        """
        now = self._clock()
        doomed: list[str] = []
        for item in self.fetch_all():
            if item.is_stale(now):
                doomed.append(item.id)
            elif (
                item.category == ContextCategory.PATTERN
                and int(item.metadata.get("dataPoints", WEAK_PATTERN_DATA_POINTS)) < WEAK_PATTERN_DATA_POINTS
                and item.days_since_update(now) > WEAK_PATTERN_DAYS
            ):
                doomed.append(item.id)
        pruned = self._delete_ids(doomed)

        removed = 0
        total = self.count()
        if total > self.max_items:
            weakest = sorted(self.fetch_all(), key=lambda i: i.effective_confidence(now))
            removed = self._delete_ids(i.id for i in weakest[: total - self.max_items])

        logger.info("Context maintenance pruned=%s limit_enforced=%s", pruned, removed)
        return pruned, removed

    def _enforce_item_limit(self) -> None:
        """Make room for one new item by dropping the lowest stored confidence."""
        if self.count() < self.max_items:
            return
        lowest = self._select(order="confidence ASC, updated_at ASC")
        if lowest:
            self._delete_ids([lowest[0].id])
            logger.info("Context limit reached; removed key=%s", lowest[0].key)
