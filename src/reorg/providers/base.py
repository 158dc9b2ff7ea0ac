"""Capability interface shared by every model backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]


class PromptMessage(BaseModel):
    """One chat message sent to a provider."""

    role: Role
    content: str


class PromptContext(BaseModel):
    """Everything a provider needs to produce the next reply.

    Attributes:
        messages: Conversation history in order, system messages included.
        temperature: Sampling temperature for this call.
        max_tokens: Optional cap on the reply length.
    """

    messages: List[PromptMessage] = Field(default_factory=list)
    temperature: float = 0.7
    max_tokens: Optional[int] = None

    def as_chat(self) -> List[Dict[str, str]]:
        """Return the messages as OpenAI-style role/content dictionaries."""
        return [{"role": message.role, "content": message.content} for message in self.messages]

    def system_text(self) -> str:
        """Return every system message joined by blank lines."""
        return "\n\n".join(m.content for m in self.messages if m.role == "system")

    def dialogue(self) -> List[Dict[str, str]]:
        """Return the non-system messages as role/content dictionaries."""
        return [
            {"role": message.role, "content": message.content}
            for message in self.messages
            if message.role != "system"
        ]


class ModelProvider(ABC):
    """A backend able to turn a prompt context into raw reply text."""

    name = "provider"

    @abstractmethod
    async def invoke(self, context: PromptContext) -> str:
        """Return the model's raw reply for ``context``.

        Raises:
            ProviderError: If the call fails or times out.
        """


__all__ = ["ModelProvider", "PromptContext", "PromptMessage", "Role"]
