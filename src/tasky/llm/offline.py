# src/tasky/llm/offline.py

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

from ..core.ports import ChatMessage


def _tool_call(name: str, arguments: dict[str, Any]) -> str:
    return "<tool_call>" + json.dumps({"name": name, "arguments": arguments}, ensure_ascii=False) + "</tool_call>"


def _split_titles(raw: str) -> list[str]:
    parts = re.split(r",|;|\band\b", raw)
    return [p.strip(" .") for p in parts if p.strip(" .")]


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - Recognizes a handful of phrasings and answers with a single tool call.
    - After a tool result, stays silent so the tool output becomes the reply.
    - Anything else -> a friendly offline demo response.
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        last = messages[-1] if messages else {"role": "user", "content": ""}
        content = (last.get("content") or "").strip()

        if content.startswith("<tool_result"):
            return

        call = self.route(content)
        if call is not None:
            yield _tool_call(*call)
            return

        yield (
            "Offline demo mode: no external LLM is configured.\n"
            "Set TASKY_OPENROUTER_API_KEY (and TASKY_LLM_MODELS) to enable real responses.\n\n"
            'Try: "add: buy milk, call mom", "plan my day", "what\'s overdue", '
            '"remember that ...", "prioritize", "focus on <task>".'
        )

    @staticmethod
    def route(text: str) -> tuple[str, dict[str, Any]] | None:
        """Map a user message to (tool name, arguments), or None."""
        lowered = text.lower().strip()

        m = re.match(r"^(?:add|create|new task)s?\s*:?\s+(.+)$", text, flags=re.IGNORECASE)
        if m:
            titles = _split_titles(m.group(1))
            return "createTasks", {"tasks": [{"title": t} for t in titles]}

        m = re.match(r"^(?:complete|done|finish(?:ed)?)\s*:?\s+(.+)$", text, flags=re.IGNORECASE)
        if m:
            return "completeTasks", {"filter": {"taskNames": _split_titles(m.group(1))}}

        m = re.match(r"^remember(?: that)?\s+(.+)$", text, flags=re.IGNORECASE)
        if m:
            return "remember", {"information": m.group(1).strip()}

        m = re.match(r"^forget\s+(.+)$", text, flags=re.IGNORECASE)
        if m:
            return "forgetContext", {"topic": m.group(1).strip()}

        m = re.match(r"^break(?:\s+down|down)\s+(.+)$", text, flags=re.IGNORECASE)
        if m:
            return "suggestBreakdown", {"taskName": m.group(1).strip()}

        if "stop focus" in lowered or lowered in ("stop", "end session"):
            return "focusSession", {"action": "stop"}
        m = re.match(r"^focus(?: on)?\s+(.+)$", text, flags=re.IGNORECASE)
        if m:
            return "focusSession", {"action": "start", "taskTitle": m.group(1).strip()}

        if "plan" in lowered and "day" in lowered:
            target = "tomorrow" if "tomorrow" in lowered else "today"
            return "planDay", {"targetDate": target}
        if "prioriti" in lowered or "most important" in lowered:
            return "smartPrioritize", {}
        if "overdue" in lowered:
            return "queryTasks", {"queryType": "list", "filter": {"status": "overdue"}}
        if "what do you know" in lowered or "what do you remember" in lowered:
            return "recall", {}
        if "streak" in lowered:
            return "taskAnalytics", {"analyticsType": "productivity_streak"}
        if "how am i doing" in lowered or "stats" in lowered:
            return "taskAnalytics", {"analyticsType": "daily_summary"}
        if "summary" in lowered:
            return "queryTasks", {"queryType": "summary"}
        if "today" in lowered and ("task" in lowered or "what" in lowered):
            return "queryTasks", {"queryType": "list", "filter": {"status": "today"}}
        return None
