"""Unified LLM client that wraps OpenAI-compatible providers behind a single interface.

This file provides LLMClient which accepts an LLMConfig and exposes `chat` and
`health_check` methods, plus `get_llm_client()` which builds a client from the
application settings.

Note: This module depends on the `openai` package for AsyncOpenAI.
"""
from typing import Any, Optional
import logging

from openai import AsyncOpenAI

from app.core.config import settings
from app.core.llm_config import LLMConfig, LLMProvider, PROVIDER_BASE_URLS

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Custom exception for LLM client errors."""


class LLMClient:
    def __init__(self, config: LLMConfig):
        self._config = config
        if config.provider == LLMProvider.LOCAL:
            base = (config.base_url or "").rstrip("/")
            self._client = AsyncOpenAI(
                base_url=f"{base}/v1" if base else None,
                api_key=config.api_key or "not-needed",
            )
        else:
            self._client = AsyncOpenAI(
                base_url=config.base_url or PROVIDER_BASE_URLS.get(config.provider),
                api_key=config.api_key,
            )
        self._model = config.model

    @property
    def model(self) -> str:
        return self._model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        response_format: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Send a chat completion request and return the text of the first choice.

        Raises:
            LLMError: on any transport or API failure, or an empty completion.
        """
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": self._config.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self._config.max_tokens,
            "timeout": timeout or self._config.timeout,
            "stream": False,
        }
        if response_format is not None:
            kwargs["response_format"] = response_format

        logger.debug("LLM request: model=%s messages=%d", self._model, len(messages))
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            raise LLMError(f"LLM request failed: {type(exc).__name__}: {exc}") from exc

        choices = getattr(response, "choices", None)
        if not choices:
            raise LLMError("Response has empty choices list")

        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None) if message is not None else None
        if content is None:
            raise LLMError("Response message has no content")

        content_str = str(content)
        if not content_str.strip():
            raise LLMError(f"Response content is empty or whitespace only: {content_str!r}")

        logger.debug("LLM response: %d chars", len(content_str))
        return content_str.strip()

    async def health_check(self) -> bool:
        """Simple health check: ask the model to reply 'ok' and return True if we get any response."""
        try:
            result = await self.chat(messages=[{"role": "user", "content": "reply with: ok"}], max_tokens=5)
            return bool(result)
        except LLMError:
            return False


def get_llm_client() -> LLMClient:
    """Factory: build an LLMClient from the application settings."""
    return LLMClient(LLMConfig.from_settings(settings))
