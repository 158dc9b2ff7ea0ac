"""Conversational negotiation of file organization suggestions."""

from .errors import NegotiationAborted
from .models import (
    CATCH_ALL_CATEGORY,
    AnalysisResult,
    Clarification,
    ClarificationNeeded,
    ConversationResult,
    FinalSuggestions,
    OrganizationContext,
    OrganizationFeedback,
    Phase,
)
from .negotiation import FALLBACK_REASON, OrganizationNegotiation, default_conversation_config
from .orchestrator import NegotiationOrchestrator
from .prompts import ORGANIZATION_SYSTEM_PROMPT, format_file_size

__all__ = [
    "AnalysisResult",
    "CATCH_ALL_CATEGORY",
    "Clarification",
    "ClarificationNeeded",
    "ConversationResult",
    "FALLBACK_REASON",
    "FinalSuggestions",
    "NegotiationAborted",
    "NegotiationOrchestrator",
    "ORGANIZATION_SYSTEM_PROMPT",
    "OrganizationContext",
    "OrganizationFeedback",
    "OrganizationNegotiation",
    "Phase",
    "default_conversation_config",
    "format_file_size",
]
