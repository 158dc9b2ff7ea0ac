"""Model providers behind the single `invoke(context) -> text` interface."""

from __future__ import annotations

import logging

from reorg.config.models import LLMSettings

from . import anthropic_provider, openai_provider
from .anthropic_provider import AnthropicProvider
from .base import ModelProvider, PromptContext, PromptMessage
from .dspy_provider import DSPyProvider
from .errors import ProviderError
from .openai_provider import OpenAIProvider

LOGGER = logging.getLogger(__name__)


def build_provider(settings: LLMSettings) -> ModelProvider:
    """Return the provider matching ``settings.provider``.

    ``openai`` and ``anthropic`` use their native SDKs when installed. Any other
    provider name, or a native provider whose SDK is missing, is routed through
    DSPy.

    Raises:
        RuntimeError: If neither the native SDK nor DSPy is installed.
    """
    provider = settings.provider.lower()
    if provider == "openai":
        if openai_provider.AsyncOpenAI is not None:
            return OpenAIProvider(settings)
        LOGGER.info("openai package not installed; routing %s through DSPy", settings.model)
    elif provider == "anthropic":
        if anthropic_provider.AsyncAnthropic is not None:
            return AnthropicProvider(settings)
        LOGGER.info("anthropic package not installed; routing %s through DSPy", settings.model)
    return DSPyProvider(settings)


__all__ = [
    "AnthropicProvider",
    "DSPyProvider",
    "ModelProvider",
    "OpenAIProvider",
    "PromptContext",
    "PromptMessage",
    "ProviderError",
    "build_provider",
]
