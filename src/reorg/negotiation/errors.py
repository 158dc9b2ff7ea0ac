"""Errors raised by the negotiation orchestrator."""

from __future__ import annotations


class NegotiationAborted(Exception):
    """Raised when the orchestrator exhausts its retry budget.

    Attributes:
        attempts: Number of failed attempts made before giving up.
    """

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


__all__ = ["NegotiationAborted"]
