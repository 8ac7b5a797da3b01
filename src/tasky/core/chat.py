# src/tasky/core/chat.py

"""
Core chat orchestration.

This module is transport-agnostic:
- connectors feed user text and print the yielded chunks,
- the session builds the system prompt, streams LLM output and runs tool calls,
- tools change the store; their results are fed back to the model.

Key invariants:
- tool call blocks (<tool_call>...</tool_call>) are never shown to the user
  (streaming-safe filter),
- at most `max_tool_rounds` rounds of tool execution per user message,
- the rolling token estimate triggers a session reset with a short summary
  primer once it passes the limit.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..ai.tools import ToolRegistry
from ..errors import (
    ContextWindowExceeded,
    GuardrailViolation,
    LLMUnavailableError,
    RateLimitedError,
    ToolExecutionError,
)
from .events import Event, Notification
from .ports import ChatMessage, LLMClient
from .prompts import build_system_prompt

logger = logging.getLogger(__name__)

TOKEN_LIMIT = 3500
TOKENS_PER_TOOL = 50
SUMMARY_MESSAGES = 10
SUMMARY_CHARS = 200
PREVIEW_DISMISS_SECONDS = 5.0

DEFAULT_REPLY = "I've processed your request."
CONTEXT_REFRESHED_NOTICE = "Chat context refreshed to maintain performance."

WELCOME_MESSAGE = (
    "Hi! I'm your AI task assistant. I excel at bulk operations:\n\n"
    "• Add multiple tasks at once\n"
    "• Complete/reschedule all tasks in a list\n"
    "• Plan your day or do weekly reviews\n"
    "• Clean up overdue tasks\n\n"
    'Try: "Add: milk, eggs, bread" or "Plan my day"'
)

GUARDRAIL_REPLY = "I'm not able to help with that particular request. Could you try rephrasing?"
RATE_LIMITED_REPLY = "I'm still processing your previous request. Please wait a moment."
CONTEXT_EXCEEDED_REPLY = (
    "I've refreshed our conversation to keep things running smoothly. Could you repeat your last request?"
)
TOOL_ERROR_REPLY = "I had trouble completing that action. Please try again."
GENERIC_ERROR_REPLY = "Sorry, I encountered an error. Please try again."


def estimate_tokens(text: str) -> int:
    """~4 characters per token for English."""
    return len(text or "") // 4


class ChatState(StrEnum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    STREAMING = "streaming"
    ERROR = "error"


@dataclass(slots=True)
class ChatEntry:
    role: str  # "user" | "assistant"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(slots=True, frozen=True)
class ToolCall:
    name: str
    arguments: dict[str, Any]


class _ToolCallExtractor:
    """
    Streaming-safe splitter for <tool_call>...</tool_call> blocks.
    Works across chunk boundaries and is case-insensitive.

    Text outside blocks is returned by feed(); block bodies are collected in `bodies`.
    """

    def __init__(self, start_tag: str = "<tool_call>", end_tag: str = "</tool_call>") -> None:
        self._start = start_tag
        self._end = end_tag
        self._start_l = start_tag.lower()
        self._end_l = end_tag.lower()
        self._buf = ""
        self._inside = False
        self._body = ""
        self.bodies: list[str] = []

    def feed(self, chunk: str) -> str:
        if not chunk:
            return ""

        self._buf += chunk
        out_parts: list[str] = []

        while self._buf:
            low = self._buf.lower()

            if not self._inside:
                i = low.find(self._start_l)
                if i == -1:
                    # Hold back a possible partial start tag at the end.
                    keep = _partial_suffix(low, self._start_l)
                    out_parts.append(self._buf[: len(self._buf) - keep])
                    self._buf = self._buf[len(self._buf) - keep :]
                    break

                if i:
                    out_parts.append(self._buf[:i])
                self._buf = self._buf[i + len(self._start) :]
                self._inside = True
                self._body = ""
                continue

            j = low.find(self._end_l)
            if j == -1:
                keep = _partial_suffix(low, self._end_l)
                self._body += self._buf[: len(self._buf) - keep]
                self._buf = self._buf[len(self._buf) - keep :]
                break

            self._body += self._buf[:j]
            self.bodies.append(self._body.strip())
            self._body = ""
            self._buf = self._buf[j + len(self._end) :]
            self._inside = False

        return "".join(out_parts)

    def flush(self) -> str:
        if self._inside:
            # Unterminated block: still try to run it.
            body = (self._body + self._buf).strip()
            if body:
                self.bodies.append(body)
            self._buf = ""
            self._body = ""
            self._inside = False
            return ""
        out = self._buf
        self._buf = ""
        return out


def _partial_suffix(text: str, tag: str) -> int:
    """Length of the longest suffix of `text` that is a proper prefix of `tag`."""
    for n in range(min(len(tag) - 1, len(text)), 0, -1):
        if text.endswith(tag[:n]):
            return n
    return 0


def parse_tool_call(body: str) -> ToolCall | None:
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        logger.warning("Unparseable tool call: %r", body[:200])
        return None
    if not isinstance(data, dict) or not isinstance(data.get("name"), str):
        logger.warning("Tool call without a name: %r", body[:200])
        return None
    args = data.get("arguments")
    if isinstance(args, str):
        try:
            args = json.loads(args)
        except json.JSONDecodeError:
            args = {}
    return ToolCall(name=data["name"], arguments=args if isinstance(args, dict) else {})


def format_tool_result(name: str, result: str) -> str:
    return f'<tool_result name="{name}">\n{result}\n</tool_result>'


def format_error(err: BaseException) -> tuple[str, str]:
    """User-friendly (title, message) for an error banner."""
    if isinstance(err, LLMUnavailableError):
        return ("Session Error", "AI assistant is not available. Check the LLM settings in .env and try again.")
    if isinstance(err, RateLimitedError):
        return ("Rate Limited", "Too many requests. Please wait a moment and try again.")

    description = str(err).lower()
    if "network" in description or "connection" in description:
        return ("Connection Error", "Unable to connect. Please check your internet connection and try again.")
    if "timeout" in description:
        return ("Timeout", "The request took too long. Please try again with a shorter message.")
    if "rate limit" in description or "too many" in description:
        return ("Rate Limited", "Too many requests. Please wait a moment and try again.")
    return ("Error", "Something went wrong. Please try again. If the problem persists, restart the app.")


class ChatSession:
    """
    One conversation with the task assistant.

    State machine: idle -> awaiting_response -> streaming -> idle | error.
    A message sent while a reply is in progress is ignored.
    """

    def __init__(
        self,
        llm: LLMClient,
        tools: ToolRegistry,
        *,
        token_limit: int = TOKEN_LIMIT,
        max_tool_rounds: int = 3,
        preview_seconds: float = PREVIEW_DISMISS_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.llm = llm
        self.tools = tools
        self.token_limit = int(token_limit)
        self.max_tool_rounds = max(0, int(max_tool_rounds))
        self.preview_seconds = float(preview_seconds)
        self._clock = clock

        self.messages: list[ChatEntry] = []
        self.state = ChatState.IDLE
        self.estimated_tokens = 0
        self.system_prompt = ""
        self.last_error: tuple[str, str] | None = None

        self.created_tasks_preview: list[dict[str, Any]] = []
        self._preview_timer: threading.Timer | None = None

        self._history: list[ChatMessage] = []

        self.tools.ctx.notifications.subscribe(Notification.TASKS_CREATED, self._on_tasks_created)
        self.setup_session()

    # ---- session lifecycle ----

    def setup_session(self, primer: str = "") -> None:
        """(Re)build the system prompt and start a fresh model history."""
        ctx = self.tools.ctx
        self.system_prompt = build_system_prompt(
            ctx.store,
            ctx.context_store,
            self.tools.describe(),
            now=self._clock(),
        )
        if primer:
            self.system_prompt += f"\n{primer}"
        self._history = []
        self.estimated_tokens = estimate_tokens(self.system_prompt) + len(self.tools) * TOKENS_PER_TOOL

    def add_welcome_message(self) -> None:
        self._add_assistant(WELCOME_MESSAGE)

    def clear_chat(self) -> None:
        self.messages.clear()
        self.estimated_tokens = 0
        self.setup_session()
        self.add_welcome_message()

    @property
    def is_busy(self) -> bool:
        return self.state in (ChatState.AWAITING_RESPONSE, ChatState.STREAMING)

    def should_reset(self) -> bool:
        return self.estimated_tokens > self.token_limit

    def conversation_summary(self) -> str:
        recent = self.messages[-SUMMARY_MESSAGES:]
        joined = " ".join(m.content for m in recent if m.role == "assistant")
        return joined[:SUMMARY_CHARS]

    def reset_with_summary(self) -> None:
        summary = self.conversation_summary()
        primer = f"Previous context: {summary}" if summary else ""
        self.setup_session(primer)
        logger.info("Chat session reset tokens=%s primer=%s", self.estimated_tokens, bool(primer))
        self._add_assistant(f"ℹ️ {CONTEXT_REFRESHED_NOTICE}")

    # ---- messaging ----

    def send_message(self, text: str) -> str | None:
        """Non-streaming helper: the full reply, or None if the input was ignored."""
        pieces = list(self.stream_message(text))
        if not pieces:
            return None
        return "".join(pieces).strip()

    def stream_message(self, text: str) -> Iterator[str]:
        """
        Yield reply text as it arrives.

        Empty input and input received while busy are ignored (nothing is yielded).
        """
        text = (text or "").strip()
        if not text:
            return
        if self.is_busy:
            logger.info("Chat busy, ignoring message.")
            return

        self.messages.append(ChatEntry("user", text, self._clock()))
        self.estimated_tokens += estimate_tokens(text)
        self.state = ChatState.AWAITING_RESPONSE
        self.last_error = None

        if self.should_reset():
            self.reset_with_summary()

        try:
            reply = yield from self._generate(text)
        except GuardrailViolation as e:
            yield self._fail(e, GUARDRAIL_REPLY)
            return
        except RateLimitedError as e:
            yield self._fail(e, RATE_LIMITED_REPLY)
            return
        except ContextWindowExceeded as e:
            logger.info("Context window exceeded: %s", e)
            self.reset_with_summary()
            yield self._fail(e, CONTEXT_EXCEEDED_REPLY, record=False)
            return
        except ToolExecutionError as e:
            logger.warning("Tool call error: %s - %s", e.tool_name, e)
            yield self._fail(e, TOOL_ERROR_REPLY)
            return
        except Exception as e:
            logger.exception("Chat reply failed")
            yield self._fail(e, GENERIC_ERROR_REPLY)
            return

        self._add_assistant(reply)
        self.estimated_tokens += estimate_tokens(reply)
        self.state = ChatState.IDLE

    def _generate(self, user_text: str) -> Iterator[str]:
        """Run the model/tool loop; yields visible text and returns the final reply."""
        pending: list[ChatMessage] = [{"role": "user", "content": user_text}]
        visible_total = ""
        tool_outputs: list[str] = []

        for round_no in range(self.max_tool_rounds + 1):
            extractor = _ToolCallExtractor()
            raw = ""
            visible = ""

            for piece in self.llm.stream_chat([*self._history, *pending], self.system_prompt):
                if not piece or piece.strip().lower() in ("null", "nil"):
                    continue
                raw += piece
                clean = extractor.feed(piece)
                if clean:
                    if self.state != ChatState.STREAMING:
                        self.state = ChatState.STREAMING
                    visible += clean
                    yield clean
            tail = extractor.flush()
            if tail:
                visible += tail
                yield tail

            visible_total += visible
            pending.append({"role": "assistant", "content": raw})
            self.estimated_tokens += estimate_tokens(raw) if extractor.bodies else 0

            calls = [c for c in (parse_tool_call(b) for b in extractor.bodies) if c is not None]
            if not calls or round_no == self.max_tool_rounds:
                if calls:
                    logger.warning("Tool round limit reached, %d call(s) dropped", len(calls))
                break

            results = []
            for call in calls:
                output = self.tools.call(call.name, call.arguments)
                tool_outputs.append(output)
                results.append(format_tool_result(call.name, output))
            result_text = "\n".join(results)
            pending.append({"role": "user", "content": result_text})
            self.estimated_tokens += estimate_tokens(result_text)

        reply = visible_total.strip()
        if not reply or reply.lower() == "null":
            reply = "\n\n".join(o for o in tool_outputs if o).strip() or DEFAULT_REPLY
            yield reply

        self._history.extend(pending)
        return reply

    def _fail(self, err: Exception, reply: str, *, record: bool = True) -> str:
        if record:
            self.last_error = format_error(err)
            logger.info("AI chat error [%s]: %s", self.last_error[0], err)
        self._remove_empty_assistant_messages()
        self._add_assistant(reply)
        self.state = ChatState.ERROR if record else ChatState.IDLE
        return reply

    def _add_assistant(self, content: str) -> None:
        self.messages.append(ChatEntry("assistant", content, self._clock()))

    def _remove_empty_assistant_messages(self) -> None:
        self.messages = [m for m in self.messages if m.role != "assistant" or m.content]

    # ---- history persistence ----

    def export_history(self) -> list[ChatMessage]:
        return [{"role": m.role, "content": m.content} for m in self.messages]

    def restore_history(self, msgs: list[ChatMessage]) -> None:
        """Restore visible messages saved by export_history; the model session starts fresh."""
        for m in msgs:
            role = m.get("role", "user")
            content = m.get("content", "")
            if role in ("user", "assistant") and content:
                self.messages.append(ChatEntry(role, content, self._clock()))
        summary = self.conversation_summary()
        if summary:
            self.setup_session(f"Previous context: {summary}")

    # ---- created-tasks preview ----

    def _on_tasks_created(self, event: Event) -> None:
        tasks = event.payload.get("tasks") or []
        if not tasks:
            return
        self.created_tasks_preview = list(tasks)
        self._start_preview_timer()

    @property
    def show_task_preview(self) -> bool:
        return bool(self.created_tasks_preview)

    def _start_preview_timer(self) -> None:
        if self._preview_timer is not None:
            self._preview_timer.cancel()
        timer = threading.Timer(self.preview_seconds, self.dismiss_task_preview)
        timer.daemon = True
        self._preview_timer = timer
        timer.start()

    def dismiss_task_preview(self) -> None:
        if self._preview_timer is not None:
            self._preview_timer.cancel()
            self._preview_timer = None
        self.created_tasks_preview = []

    def undo_created_tasks(self) -> int:
        """Delete every task shown in the preview; returns how many were removed."""
        store = self.tools.ctx.store
        removed = 0
        for info in self.created_tasks_preview:
            task_id = info.get("id")
            if task_id and store.get_task(task_id) is not None:
                store.delete_task(task_id)
                removed += 1
                logger.info("Undone created task: %s", info.get("title"))
        self.dismiss_task_preview()
        return removed

    def close(self) -> None:
        self.dismiss_task_preview()
        self.tools.ctx.notifications.unsubscribe(Notification.TASKS_CREATED, self._on_tasks_created)
