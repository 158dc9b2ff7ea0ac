"""DSPy-backed provider routing through any LiteLLM-compatible model."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

try:  # pragma: no cover - optional dependency
    import dspy  # type: ignore
except ImportError:  # pragma: no cover - executed when DSPy absent
    dspy = None  # type: ignore[assignment]

from reorg.config.models import LLMSettings

from .base import ModelProvider, PromptContext
from .errors import ProviderError

LOGGER = logging.getLogger(__name__)


class DSPyProvider(ModelProvider):
    """Invoke a `dspy.LM` with the conversation as chat messages."""

    name = "dspy"

    def __init__(self, settings: Optional[LLMSettings] = None, *, lm: Any = None) -> None:
        """Configure the DSPy language model.

        Args:
            settings: LLM configuration.
            lm: Pre-built callable language model, mainly for tests.

        Raises:
            RuntimeError: If DSPy is unavailable or the language model cannot be configured.
        """
        self._settings = settings or LLMSettings()
        if lm is not None:
            self._lm = lm
            return
        if dspy is None:
            raise RuntimeError(
                "The DSPy provider requires the `dspy` package. Install it or select "
                "`openai`/`anthropic` as `llm.provider`."
            )
        self._lm = self._configure_language_model()

    def _configure_language_model(self) -> Any:
        settings = self._settings
        model = settings.model
        if "/" not in model and settings.provider:
            model = f"{settings.provider}/{model}"

        lm_kwargs: dict[str, object] = {
            "model": model,
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
            "timeout": settings.timeout_seconds,
        }
        if settings.api_base_url:
            lm_kwargs["api_base"] = settings.api_base_url
        if settings.api_key is not None:
            lm_kwargs["api_key"] = settings.api_key

        try:
            return dspy.LM(**lm_kwargs)
        except Exception as exc:  # pragma: no cover - DSPy configuration errors
            raise RuntimeError(
                f"Unable to configure the DSPy language model '{model}'. Verify your LLM settings."
            ) from exc

    async def invoke(self, context: PromptContext) -> str:
        """Run the blocking DSPy call in a worker thread and return the first completion."""
        call_kwargs: dict[str, object] = {
            "messages": context.as_chat(),
            "temperature": context.temperature,
        }
        if context.max_tokens is not None:
            call_kwargs["max_tokens"] = context.max_tokens

        try:
            outputs = await asyncio.wait_for(
                asyncio.to_thread(self._lm, **call_kwargs),
                timeout=self._settings.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderError(
                f"Model call timed out after {self._settings.timeout_seconds}s", provider=self.name
            ) from exc
        except Exception as exc:
            LOGGER.debug("DSPy call failed: %s", exc)
            raise ProviderError(f"Model call failed: {exc}", provider=self.name) from exc

        first = outputs[0] if outputs else None
        if isinstance(first, dict):
            first = first.get("text")
        if not isinstance(first, str) or not first.strip():
            raise ProviderError("Model returned an empty response", provider=self.name)
        return first


__all__ = ["DSPyProvider"]
