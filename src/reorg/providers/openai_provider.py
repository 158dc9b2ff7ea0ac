"""OpenAI chat-completions provider."""

from __future__ import annotations

import logging
from typing import Any, Optional

try:  # pragma: no cover - optional dependency
    from openai import AsyncOpenAI  # type: ignore
except ImportError:  # pragma: no cover - executed when the SDK is absent
    AsyncOpenAI = None  # type: ignore[assignment, misc]

from reorg.config.models import LLMSettings

from .base import ModelProvider, PromptContext
from .errors import ProviderError

LOGGER = logging.getLogger(__name__)


class OpenAIProvider(ModelProvider):
    """Send the conversation to the OpenAI chat-completions endpoint."""

    name = "openai"

    def __init__(self, settings: Optional[LLMSettings] = None, *, client: Any = None) -> None:
        """Create the async client.

        Args:
            settings: LLM configuration.
            client: Pre-built client exposing ``chat.completions.create``.

        Raises:
            RuntimeError: If the `openai` package is not installed.
        """
        self._settings = settings or LLMSettings()
        if client is None:
            if AsyncOpenAI is None:
                raise RuntimeError(
                    "The OpenAI provider requires the `openai` package (pip install 'reorg[openai]')."
                )
            client = AsyncOpenAI(
                api_key=self._settings.api_key,
                base_url=self._settings.api_base_url,
                timeout=self._settings.timeout_seconds,
            )
        self._client = client

    async def invoke(self, context: PromptContext) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.model,
                messages=context.as_chat(),
                temperature=context.temperature,
                max_tokens=context.max_tokens or self._settings.max_tokens,
            )
        except Exception as exc:
            LOGGER.debug("OpenAI request failed: %s", exc)
            raise ProviderError(f"OpenAI request failed: {exc}", provider=self.name) from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise ProviderError("OpenAI returned an empty response", provider=self.name)
        return content


__all__ = ["OpenAIProvider"]
