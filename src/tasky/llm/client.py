# src/tasky/llm/client.py

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..config import Settings, get_settings
from ..core.ports import ChatMessage
from ..errors import ContextWindowExceeded, GuardrailViolation, LLMUnavailableError, RateLimitedError

logger = logging.getLogger(__name__)

BAD_MODEL_COOLDOWN_SECONDS = 3600.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _timeouts_from_env() -> dict[str, float]:
    """
    Connect / read / first-token timeouts, configurable via env.

    A model with a long time-to-first-token is abandoned for the next one.
    """
    first_token = _env_float("TASKY_LLM_FIRST_TOKEN_TIMEOUT_SECONDS", 20.0)
    read_timeout = _env_float("TASKY_LLM_READ_TIMEOUT_SECONDS", 25.0)
    connect_timeout = _env_float("TASKY_LLM_CONNECT_TIMEOUT_SECONDS", 5.0)

    # read >= first_token
    read_timeout = max(read_timeout, first_token)
    return {"first_token": first_token, "read": read_timeout, "connect": connect_timeout}


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError, httpx.TimeoutException, TimeoutError))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def _is_context_window_error(exc: Exception) -> bool:
    if not isinstance(exc, openai.BadRequestError):
        return False
    msg = str(exc).lower()
    return "context length" in msg or "context_length" in msg or "maximum context" in msg


def _is_guardrail_error(exc: Exception) -> bool:
    if not isinstance(exc, openai.BadRequestError):
        return False
    msg = str(exc).lower()
    return "content_filter" in msg or "moderation" in msg or "flagged" in msg


class OpenRouterLLMClient:
    """
    Streaming chat client for any OpenAI-compatible endpoint (OpenRouter by default).

    Behavior:
    - Tries models in the configured order.
    - No first content token within the first-token timeout -> next model.
    - 404 (model not available) -> model is benched for an hour, next model.
    - Rate limit / network issues -> next model.
    - Auth issues -> fail fast with LLMUnavailableError.
    - Context-window overflow and content-filter rejections are raised immediately,
      as ContextWindowExceeded and GuardrailViolation, so the chat session can react.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._client: OpenAI | None = None
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

    @property
    def is_configured(self) -> bool:
        key = self.settings.openrouter_api_key
        return bool(key and key.strip() and self.settings.llm_models)

    def _get_client(self) -> OpenAI:
        """Lazily create the OpenAI client with retries disabled, so fallback across models is quick."""
        if self._client is not None:
            return self._client

        api_key = self.settings.openrouter_api_key
        base_url = self.settings.openrouter_base_url or ""
        if not api_key or not api_key.strip():
            raise LLMUnavailableError("LLM API key is not set. Set TASKY_OPENROUTER_API_KEY in your .env.")
        if not base_url.strip():
            raise LLMUnavailableError("LLM base URL is not set. Set TASKY_OPENROUTER_BASE_URL in your .env.")

        t = _timeouts_from_env()
        self._client = OpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=httpx.Timeout(connect=t["connect"], read=t["read"], write=10.0, pool=t["connect"]),
            max_retries=0,
        )
        return self._client

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        models = [m.strip() for m in self.settings.llm_models if m and m.strip()]
        if not models:
            raise LLMUnavailableError("LLM model list is empty. Set TASKY_LLM_MODELS in your .env.")

        client = self._get_client()
        t = _timeouts_from_env()
        first_token_timeout = t["first_token"]
        headers = dict(self.settings.extra_headers or {})

        last_error: Exception | None = None
        now = time.monotonic()

        for model in models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info(
                "LLM: trying model=%s (first_token_timeout=%.1fs, read_timeout=%.1fs)",
                model,
                first_token_timeout,
                t["read"],
            )
            t0 = time.monotonic()
            deadline = t0 + first_token_timeout
            stream: Any = None
            used_any = False

            try:
                stream = client.chat.completions.create(
                    model=model,
                    stream=True,
                    extra_headers=headers or None,
                    messages=[{"role": "system", "content": system_prompt}, *messages],  # type: ignore[list-item]
                )

                for chunk in stream:
                    if not used_any and time.monotonic() > deadline:
                        last_error = TimeoutError(f"First token timeout on model: {model}")
                        logger.info("LLM: first token timeout on model=%s -> trying next", model)
                        break

                    content = _chunk_content(chunk)
                    if content:
                        if not used_any:
                            logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0)
                        used_any = True
                        yield content

                if used_any:
                    logger.debug("LLM: completed with model=%s", model)
                    return

                if last_error is None:
                    last_error = LLMUnavailableError(f"Model returned no content: {model}")

            except openai.OpenAIError as e:
                last_error = e

                if _is_auth_error(e):
                    raise LLMUnavailableError(
                        "LLM authentication failed. Check your API key (TASKY_OPENROUTER_API_KEY)."
                    ) from e
                if _is_context_window_error(e):
                    raise ContextWindowExceeded(str(e)) from e
                if _is_guardrail_error(e):
                    raise GuardrailViolation(str(e)) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)

            except httpx.TimeoutException as e:
                last_error = e
                logger.info("LLM: read timeout on model=%s, trying next", model)

            finally:
                if stream is not None:
                    stream.close()

        if last_error is not None and _is_rate_limit_error(last_error):
            raise RateLimitedError("LLM is rate-limited. Try again later.") from last_error
        if last_error is not None and _is_connection_error(last_error):
            raise LLMUnavailableError("LLM network/timeout error. Try again later or change models.") from last_error
        raise LLMUnavailableError("All LLM models failed.") from last_error


def _chunk_content(chunk: Any) -> str | None:
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return None
    delta = getattr(choices[0], "delta", None)
    return getattr(delta, "content", None) if delta is not None else None


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "LLM is not configured (missing API key). Set TASKY_OPENROUTER_API_KEY in .env (see .env.example)."
    if "LLM model list is empty" in msg:
        return "LLM is not configured (no models). Set TASKY_LLM_MODELS in .env (see .env.example)."
    if "LLM base URL is not set" in msg:
        return "LLM is not configured (missing base URL). Set TASKY_OPENROUTER_BASE_URL in .env (see .env.example)."
    return msg
