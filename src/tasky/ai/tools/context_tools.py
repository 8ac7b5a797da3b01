# src/tasky/ai/tools/context_tools.py

from __future__ import annotations

import logging
import re
from typing import Any

from ...core.events import Notification
from ...memory.models import ContextCategory, ContextSource, UserContext
from .base import Tool, ToolContext, arg_bool, arg_str

logger = logging.getLogger(__name__)

MAX_INFORMATION_CHARS = 500

# Display order for recall.
_RECALL_ORDER = (
    ContextCategory.PERSON,
    ContextCategory.SCHEDULE,
    ContextCategory.GOAL,
    ContextCategory.PREFERENCE,
    ContextCategory.CONSTRAINT,
    ContextCategory.PATTERN,
    ContextCategory.OTHER,
)

_RELATIONSHIPS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("manager", "boss"), "manager"),
    (("colleague", "coworker", "team"), "colleague"),
    (("report",), "report"),
    (("client", "customer"), "client"),
    (("mom", "dad", "mother", "father", "sister", "brother", "family"), "family"),
    (("friend",), "friend"),
    (("partner", "spouse", "husband", "wife"), "partner"),
)


def _category(raw: str | None) -> ContextCategory:
    return ContextCategory.from_db(raw) if raw else ContextCategory.OTHER


def generate_key(information: str, category: ContextCategory) -> str:
    words = information.split()
    if category == ContextCategory.PERSON:
        for w in words:
            cleaned = re.sub(r"[^\w]", "", w)
            if len(cleaned) > 1 and cleaned[0].isupper():
                return cleaned.lower()
    significant = [re.sub(r"[^\w]", "", w).lower() for w in words]
    significant = [w for w in significant if len(w) > 2][:3]
    return "_".join(significant) or "note"


def infer_relationship(information: str) -> str | None:
    lowered = information.lower()
    for words, relationship in _RELATIONSHIPS:
        if any(w in lowered for w in words):
            return relationship
    return None


def _remember(ctx: ToolContext, args: dict[str, Any]) -> str:
    info = arg_str(args, "information")
    if not info:
        return "Please provide some information to remember."
    if len(info) > MAX_INFORMATION_CHARS:
        return "Information is too long. Please keep it under 500 characters."

    category = _category(arg_str(args, "category"))
    key = arg_str(args, "key") or generate_key(info, category)

    metadata: dict[str, Any] = {}
    if category == ContextCategory.PERSON:
        relationship = infer_relationship(info)
        if relationship:
            metadata = {"relationship": relationship, "importance": "medium"}

    ctx.context_store.save(category, key, info, ContextSource.EXPLICIT, metadata)

    if category == ContextCategory.PERSON:
        return f"I'll remember that {key.title()} is {info}."
    if category == ContextCategory.PREFERENCE:
        return f"Got it, I'll keep in mind that you {info.lower()}."
    if category == ContextCategory.SCHEDULE:
        return f"I'll remember your schedule: {info}."
    if category == ContextCategory.GOAL:
        return f"I'll keep track of your goal: {info}."
    if category == ContextCategory.CONSTRAINT:
        return f"Noted. I'll respect that {info.lower()}."
    return f"I'll remember that: {info}."


REMEMBER = Tool(
    name="remember",
    description=(
        "Store information the user wants remembered. "
        "Triggers: remember, don't forget, keep in mind, note that, my boss is, I prefer."
    ),
    handler=_remember,
    parameters={
        "information": {"type": "string"},
        "category": {"enum": [c.value for c in ContextCategory]},
        "key": {"type": "string"},
    },
    required=("information",),
)


def _confidence_marker(item: UserContext) -> str:
    c = item.effective_confidence()
    if c >= 0.7:
        return ""
    if c >= 0.4:
        return " (~)"
    return " (?)"


def format_recall(items: list[UserContext]) -> str:
    grouped: dict[ContextCategory, list[UserContext]] = {}
    for item in items:
        grouped.setdefault(item.category, []).append(item)

    out = "Here's what I know:\n\n"
    for cat in _RECALL_ORDER:
        group = grouped.get(cat)
        if not group:
            continue
        out += f"{cat.display_name}:\n"
        for item in group[:5]:
            out += f"• {item.key.title()}: {item.value}{_confidence_marker(item)}\n"
        if len(group) > 5:
            out += f"  ...and {len(group) - 5} more\n"
        out += "\n"
    return out.rstrip() + "\n"


def _recall(ctx: ToolContext, args: dict[str, Any]) -> str:
    topic = arg_str(args, "topic")
    raw_category = (arg_str(args, "category") or "").lower()

    if topic:
        items = ctx.context_store.search(topic)
        if not items:
            return f"I don't have any information stored about '{topic}'. You can tell me things to remember."
    elif raw_category and raw_category != "all":
        category = _category(raw_category)
        items = ctx.context_store.fetch_all(category, min_confidence=0.1)
        if not items:
            return (
                f"I don't have any {category.display_name.lower()} information stored yet. "
                "You can tell me things to remember."
            )
    else:
        items = ctx.context_store.fetch_all(min_confidence=0.1)
        if not items:
            return (
                "I don't have any information stored yet. "
                "You can tell me things to remember by saying 'remember that...'."
            )

    ctx.context_store.mark_accessed(items)
    ctx.notifications.post(
        Notification.RECALL_RESULTS,
        topic=topic or "",
        category=raw_category or "all",
        count=len(items),
    )
    return format_recall(items)


RECALL = Tool(
    name="recall",
    description=(
        "Show what I remember about the user. "
        "Triggers: what do you know, what do you remember, recall, who is."
    ),
    handler=_recall,
    parameters={
        "topic": {"type": "string"},
        "category": {"enum": ["all", *[c.value for c in ContextCategory]]},
    },
)


def _forget(ctx: ToolContext, args: dict[str, Any]) -> str:
    topic = arg_str(args, "topic") or ""
    confirm = arg_bool(args, "confirm")
    lowered = topic.lower()
    store = ctx.context_store

    if lowered in ("all", "everything"):
        if not confirm:
            return (
                "This will delete all stored information about you. "
                "Say 'forget all, confirm' to proceed."
            )
        n = store.delete_all()
        return f"Cleared all stored context ({n} items)."

    category = next((c for c in ContextCategory if c.value == lowered), None)
    if category is not None:
        items = store.fetch_all(category)
        if not items:
            return f"I don't have any {category.display_name.lower()} information stored."
        if len(items) > 1 and not confirm:
            return (
                f"This will delete {len(items)} items in the {category.display_name} category. "
                f"Say 'forget {topic}, confirm' to proceed."
            )
        n = store.delete_all(category)
        return f"Cleared all {n} items in the {category.display_name} category."

    matches = store.search(topic)
    if not matches:
        return f"I don't have any information about '{topic}' stored."
    if len(matches) == 1:
        store.delete(matches[0].id)
        return f"Removed information about '{matches[0].key}'."
    if not confirm:
        keys = ", ".join(f"'{m.key}'" for m in matches[:3])
        more = f" and {len(matches) - 3} more" if len(matches) > 3 else ""
        return (
            f"Found {len(matches)} items matching '{topic}': {keys}{more}. "
            f"Say 'forget {topic}, confirm' to delete all of them."
        )
    for m in matches:
        store.delete(m.id)
    return f"Removed {len(matches)} items matching '{topic}'."


FORGET_CONTEXT = Tool(
    name="forgetContext",
    description=(
        "Delete stored information about the user. "
        "Triggers: forget, stop remembering, delete what you know, clear memory."
    ),
    handler=_forget,
    parameters={
        "topic": {"type": "string"},
        "confirm": {"type": "boolean"},
    },
    required=("topic",),
)


CONTEXT_TOOLS = (REMEMBER, RECALL, FORGET_CONTEXT)
