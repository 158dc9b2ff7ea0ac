"""Anthropic messages-API provider."""

from __future__ import annotations

import logging
from typing import Any, Optional

try:  # pragma: no cover - optional dependency
    from anthropic import AsyncAnthropic  # type: ignore
except ImportError:  # pragma: no cover - executed when the SDK is absent
    AsyncAnthropic = None  # type: ignore[assignment, misc]

from reorg.config.models import LLMSettings

from .base import ModelProvider, PromptContext
from .errors import ProviderError

LOGGER = logging.getLogger(__name__)


class AnthropicProvider(ModelProvider):
    """Send the conversation to the Anthropic messages endpoint."""

    name = "anthropic"

    def __init__(self, settings: Optional[LLMSettings] = None, *, client: Any = None) -> None:
        """Create the async client.

        Args:
            settings: LLM configuration.
            client: Pre-built client exposing ``messages.create``.

        Raises:
            RuntimeError: If the `anthropic` package is not installed.
        """
        self._settings = settings or LLMSettings()
        if client is None:
            if AsyncAnthropic is None:
                raise RuntimeError(
                    "The Anthropic provider requires the `anthropic` package "
                    "(pip install 'reorg[anthropic]')."
                )
            client = AsyncAnthropic(
                api_key=self._settings.api_key,
                base_url=self._settings.api_base_url,
                timeout=self._settings.timeout_seconds,
            )
        self._client = client

    async def invoke(self, context: PromptContext) -> str:
        request: dict[str, Any] = {
            "model": self._settings.model,
            "max_tokens": context.max_tokens or self._settings.max_tokens,
            "temperature": context.temperature,
            "messages": context.dialogue(),
        }
        system = context.system_text()
        if system:
            request["system"] = system

        try:
            response = await self._client.messages.create(**request)
        except Exception as exc:
            LOGGER.debug("Anthropic request failed: %s", exc)
            raise ProviderError(f"Anthropic request failed: {exc}", provider=self.name) from exc

        text = "".join(
            getattr(block, "text", "")
            for block in getattr(response, "content", None) or []
            if getattr(block, "type", "text") == "text"
        )
        if not text:
            raise ProviderError("Anthropic returned an empty response", provider=self.name)
        return text


__all__ = ["AnthropicProvider"]
