# src/tasky/core/prompts.py

"""
System prompt for the task assistant.

Kept short on purpose: small models follow a compact routing line better
than long instructions. The tool catalogue and the call format follow it.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..memory.context_store import ContextStore
from ..tasks.store import TaskStore

logger = logging.getLogger(__name__)

TOOL_ROUTING = (
    "Tools: add→createTasks, done→completeTasks, reschedule→rescheduleTasks, "
    "delete→deleteTasks, update→updateTasks, plan→planDay, prioritize→smartPrioritize, "
    "breakdown→suggestBreakdown, find→queryTasks, lists→manageList, focus→focusSession, "
    "remember→remember, recall→recall, forget→forgetContext, stats→taskAnalytics."
)

TOOL_CALL_FORMAT = (
    "To use a tool, reply with exactly one block per call:\n"
    '<tool_call>{"name": "<tool>", "arguments": {...}}</tool_call>\n'
    'Results come back as <tool_result name="<tool>">...</tool_result>. '
    "Then answer the user in 1-2 sentences, or stay silent to show the result as is."
)

CONTEXT_MAX_ITEMS = 10
CONTEXT_MIN_CONFIDENCE = 0.4


def user_context_for_prompt(context_store: ContextStore) -> str:
    items = context_store.fetch_relevant(max_items=CONTEXT_MAX_ITEMS, min_confidence=CONTEXT_MIN_CONFIDENCE)
    return "\n".join(f"- {i.prompt_description}" for i in items)


def build_system_prompt(
    store: TaskStore,
    context_store: ContextStore,
    tool_catalogue: str,
    *,
    now: datetime | None = None,
) -> str:
    now = now or datetime.now()
    names = [lst.name for lst in store.fetch_all_lists()]
    lists = ", ".join(names) if names else "Inbox only"

    prompt = (
        f"Task assistant. Today: {now.isoformat(timespec='seconds')}. Lists: {lists}.\n"
        "Defaults: dueDate=today, list=Inbox. Responses: 1-2 sentences.\n"
        f"{TOOL_ROUTING}\n\n"
        f"Available tools:\n{tool_catalogue}\n\n"
        f"{TOOL_CALL_FORMAT}"
    )

    context = user_context_for_prompt(context_store)
    if context:
        prompt += f"\nContext:\n{context}"
    return prompt
