"""Turn-bounded conversations with a model provider."""

from .errors import StateViolation, TurnBudgetExceeded
from .models import ConversationConfig, ConversationMessage, ConversationSnapshot, Lifecycle
from .state import ConversationState

__all__ = [
    "ConversationConfig",
    "ConversationMessage",
    "ConversationSnapshot",
    "ConversationState",
    "Lifecycle",
    "StateViolation",
    "TurnBudgetExceeded",
]
