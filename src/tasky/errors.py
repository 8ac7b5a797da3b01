# src/tasky/errors.py

"""
Error taxonomy.

Domain errors are raised by stores and helpers and turned into user-facing
text at the tool boundary. LLM errors are raised by LLM clients and mapped
to chat messages by the chat session.
"""

from __future__ import annotations


class TaskyError(Exception):
    pass


class NotFoundError(TaskyError):
    pass


class ValidationError(TaskyError):
    pass


class ConflictError(TaskyError):
    pass


class LimitReachedError(TaskyError):
    pass


class LLMError(TaskyError):
    """Base class for failures coming from the language model layer."""


class LLMUnavailableError(LLMError):
    """Client is not configured or every model failed."""


class GuardrailViolation(LLMError):
    pass


class RateLimitedError(LLMError):
    pass


class ContextWindowExceeded(LLMError):
    pass


class ToolExecutionError(LLMError):
    def __init__(self, tool_name: str, message: str = "") -> None:
        self.tool_name = tool_name
        super().__init__(message or f"tool '{tool_name}' failed")
