# src/tasky/core/ports.py

"""
Ports (interfaces) used by the core.

The chat session and the reminder loop depend on Protocols instead of
concrete implementations, so LLM providers and connectors stay swappable.
"""

from __future__ import annotations

from typing import Awaitable, Iterable, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class OutboundMessenger(Protocol):
    """
    Connector-side port: how background services (reminders) send text outward.

    The console connector prints; other connectors may route elsewhere.
    """

    def send_text(self, *, text: str) -> Awaitable[None]: ...
