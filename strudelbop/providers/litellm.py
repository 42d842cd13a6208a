from __future__ import annotations

import asyncio
import logging
import re
import warnings
from collections.abc import Mapping
from typing import Any, Callable, Coroutine

from pydantic import BaseModel

from ..errors import (
    InvalidInputError,
    LLMInferenceError,
    ModelNotAvailableError,
    PatternGenerateError,
)
from ..prompts import build_pattern_messages

_LOGGER = logging.getLogger("strudelbop.providers.litellm")
_RESERVED_LITELLM_KWARGS = frozenset({"model", "messages", "api_key"})
_OPENING_FENCE = re.compile(r"^```(?:javascript|js)?\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?```$")
_litellm_logging_configured = False


def _safe_async_cleanup(
    cleanup_coro: Callable[[], Coroutine[Any, Any, None]],
) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        _LOGGER.debug("LiteLLM cleanup running outside an event loop.")
        loop = None

    if loop is not None:
        try:
            loop.create_task(cleanup_coro())
        except Exception as exc:
            _LOGGER.warning("LiteLLM async cleanup task failed: %s", exc, exc_info=True)
        return

    try:
        asyncio.run(cleanup_coro())
    except Exception as exc:
        _LOGGER.warning("LiteLLM async cleanup failed: %s", exc, exc_info=True)


def _configure_litellm_logging(litellm_module: Any) -> None:
    global _litellm_logging_configured
    if _litellm_logging_configured:
        return
    _litellm_logging_configured = True
    try:
        litellm_module.turn_off_message_logging = True
        litellm_module.disable_streaming_logging = True
    except Exception as exc:
        _LOGGER.info("LiteLLM logging config failed: %s", exc, exc_info=True)
    warnings.filterwarnings("ignore", message="Pydantic serializer warnings")


def strip_code_fences(content: str) -> str:
    cleaned = _OPENING_FENCE.sub("", content.strip())
    return _CLOSING_FENCE.sub("", cleaned).strip()


def _content_snippet(content: str, limit: int = 200) -> str:
    cleaned = content.strip()
    if len(cleaned) <= limit:
        return cleaned
    return f"{cleaned[:limit]}..."


class _LiteLLMRequest(BaseModel):
    model: str
    messages: list[dict[str, str]]
    temperature: float | None = None
    api_key: str | None = None


class LiteLLMPatternGenerator:
    """Turns free-text intent into one pattern fragment through LiteLLM."""

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        litellm_kwargs: Mapping[str, Any] | None = None,
        temperature: float | None = None,
        system_prompt: str | None = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._litellm_kwargs = dict(litellm_kwargs or {})
        self._temperature = temperature
        self._system_prompt = system_prompt
        if self._api_key is None:
            _LOGGER.debug("No API key provided; letting LiteLLM read from env vars.")
        invalid_keys = _RESERVED_LITELLM_KWARGS.intersection(self._litellm_kwargs)
        if invalid_keys:
            keys = ", ".join(sorted(invalid_keys))
            raise InvalidInputError(f"litellm_kwargs cannot override: {keys}")

    @property
    def model(self) -> str:
        return self._model

    def close(self) -> None:
        _safe_async_cleanup(self.aclose)

    async def aclose(self) -> None:
        try:
            import litellm  # type: ignore[import]
        except ImportError as exc:
            _LOGGER.info("LiteLLM not installed; skipping async close: %s", exc)
            return
        close_fn: Any = getattr(litellm, "aclose", None)
        if close_fn is None:
            close_fn = getattr(litellm, "close_litellm_async_clients", None)
        if close_fn is None:
            return
        try:
            await close_fn()
        except Exception as exc:
            _LOGGER.warning("LiteLLM close failed: %s", exc, exc_info=True)

    async def generate(self, intent: str) -> str:
        if not intent or not intent.strip():
            raise InvalidInputError("Prompt is required")
        try:
            import litellm  # type: ignore[import]
        except ImportError as exc:
            _LOGGER.warning("LiteLLM not installed: %s", exc)
            raise ModelNotAvailableError("litellm is not installed") from exc

        _configure_litellm_logging(litellm)
        request = _LiteLLMRequest(
            model=self._model,
            messages=build_pattern_messages(intent.strip(), self._system_prompt),
            temperature=self._temperature,
            api_key=self._api_key or None,
        ).model_dump(exclude_none=True)
        request.update(self._litellm_kwargs)

        try:
            response: Any = await litellm.acompletion(**request)
        except Exception as exc:
            _LOGGER.warning("LiteLLM request failed: %s", exc, exc_info=True)
            raise LLMInferenceError(str(exc) or "Failed to generate code") from exc

        if response is None or not getattr(response, "choices", None):
            raise PatternGenerateError("LiteLLM response missing choices")
        raw_content = response.choices[0].message.content
        if not isinstance(raw_content, str) or not raw_content.strip():
            raise PatternGenerateError("LiteLLM returned empty content")
        fragment = strip_code_fences(raw_content)
        if not fragment:
            snippet = _content_snippet(raw_content) or "<empty>"
            raise PatternGenerateError(f"LiteLLM returned no pattern code: {snippet}")
        _LOGGER.debug("Generated fragment for %r:\n%s", intent, fragment)
        return fragment
