"""Errors raised by model providers."""

from __future__ import annotations


class ProviderError(Exception):
    """Raised when a model call fails, times out, or returns nothing usable.

    Attributes:
        provider: Name of the backend that failed.
    """

    def __init__(self, message: str, *, provider: str = "unknown") -> None:
        super().__init__(message)
        self.provider = provider


__all__ = ["ProviderError"]
