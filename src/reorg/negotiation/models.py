"""Negotiation data models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from reorg.ingestion.models import FileDescriptor
from reorg.organization.models import Suggestion

CATCH_ALL_CATEGORY = "Unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Phase(str, Enum):
    """Coarse stage of an organization negotiation."""

    ANALYSIS = "analysis"
    CONVERSATION = "conversation"
    ORGANIZATION = "organization"
    COMPLETE = "complete"


class Clarification(BaseModel):
    """A question asked by the model and the user's answer."""

    id: str
    phase: Phase
    question: str
    answer: str
    context: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


class ClarificationNeeded(BaseModel):
    """Questions the model wants answered before continuing."""

    questions: List[str]
    reason: str = ""


class OrganizationFeedback(BaseModel):
    """User verdict on a set of suggestions.

    Attributes:
        approved: Whether the suggestions were accepted.
        feedback: Free-text explanation supplied by the user.
        specific_issues: Short issue descriptions.
        selected_suggestions: Suggestions the feedback refers to (rejected or approved).
        approved_patterns: Folder or naming patterns the user explicitly endorsed.
    """

    approved: bool = False
    feedback: Optional[str] = None
    specific_issues: List[str] = Field(default_factory=list)
    selected_suggestions: List[Suggestion] = Field(default_factory=list)
    approved_patterns: List[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Outcome of the analysis phase."""

    discovered_categories: Dict[str, List[str]] = Field(default_factory=dict)
    clarification_needed: Optional[ClarificationNeeded] = None
    reasoning: str = ""


class ConversationResult(BaseModel):
    """Outcome of one conversation turn."""

    reply: str
    discovered_categories: Optional[Dict[str, List[str]]] = None
    clarification_needed: Optional[ClarificationNeeded] = None
    reasoning: str = ""


class FinalSuggestions(BaseModel):
    """Exactly one suggestion per input file plus the model's reasoning.

    Attributes:
        suggestions: Suggestions in input-file order.
        reasoning: Overall strategy supplied by the model.
        fallback_count: Number of suggestions synthesized for files the model skipped.
        recovered: True when the reply had to be salvaged.
        clarification_needed: Questions that accompanied the suggestions, if any.
    """

    suggestions: List[Suggestion]
    reasoning: str = ""
    fallback_count: int = 0
    recovered: bool = False
    clarification_needed: Optional[ClarificationNeeded] = None


class OrganizationContext(BaseModel):
    """Everything the negotiation knows about the files and the user's wishes."""

    files: List[FileDescriptor]
    base_directory: Path
    intent: str
    phase: Phase = Phase.ANALYSIS
    rejected_suggestions: List[Suggestion] = Field(default_factory=list)
    approved_patterns: List[str] = Field(default_factory=list)
    pattern_hints: List[str] = Field(default_factory=list)
    discovered_categories: Dict[str, List[FileDescriptor]] = Field(default_factory=dict)
    clarifications: List[Clarification] = Field(default_factory=list)

    def category_names(self) -> Dict[str, List[str]]:
        """Return discovered categories with filenames instead of descriptors."""
        return {
            category: [descriptor.name for descriptor in members]
            for category, members in self.discovered_categories.items()
        }


__all__ = [
    "AnalysisResult",
    "CATCH_ALL_CATEGORY",
    "Clarification",
    "ClarificationNeeded",
    "ConversationResult",
    "FinalSuggestions",
    "OrganizationContext",
    "OrganizationFeedback",
    "Phase",
]
