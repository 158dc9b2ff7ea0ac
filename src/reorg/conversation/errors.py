"""Contract violations raised by conversation state machines."""

from __future__ import annotations


class StateViolation(Exception):
    """Raised when an operation is invoked outside its valid lifecycle or phase."""


class TurnBudgetExceeded(StateViolation):
    """Raised when a conversation has used every turn it was allotted."""


__all__ = ["StateViolation", "TurnBudgetExceeded"]
