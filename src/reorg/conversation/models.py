"""Conversation data models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from reorg.providers.base import Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Lifecycle(str, Enum):
    """Lifecycle of a conversation."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETE = "complete"
    FAILED = "failed"


class ConversationMessage(BaseModel):
    """One message in a conversation history."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: Optional[Dict[str, Any]] = None


class ConversationConfig(BaseModel):
    """Limits and sampling options for one conversation.

    Attributes:
        max_turns: Maximum number of prompt/reply round-trips.
        context_size_budget: Character budget for the retained history.
        temperature: Sampling temperature passed to the provider.
        system_prompt: Optional system prompt seeded into the history.
        max_tokens: Optional reply length cap passed to the provider.
    """

    max_turns: int = Field(default=10, ge=1)
    context_size_budget: int = Field(default=8_000, ge=1)
    temperature: float = 0.7
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None


class ConversationSnapshot(BaseModel):
    """Serializable export of a conversation."""

    id: str
    subject: str
    lifecycle: Lifecycle
    messages: List[ConversationMessage]
    turn_count: int
    config: ConversationConfig
    created_at: datetime
    updated_at: datetime


__all__ = [
    "ConversationConfig",
    "ConversationMessage",
    "ConversationSnapshot",
    "Lifecycle",
]
