"""Turn-bounded conversation state machine wrapping a model provider."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from reorg.providers.base import ModelProvider, PromptContext, PromptMessage, Role
from reorg.providers.errors import ProviderError

from .errors import StateViolation, TurnBudgetExceeded
from .models import (
    ConversationConfig,
    ConversationMessage,
    ConversationSnapshot,
    Lifecycle,
)

LOGGER = logging.getLogger(__name__)

_TRANSITIONS: Dict[Lifecycle, frozenset[Lifecycle]] = {
    Lifecycle.ACTIVE: frozenset({Lifecycle.PAUSED, Lifecycle.COMPLETE, Lifecycle.FAILED}),
    Lifecycle.PAUSED: frozenset({Lifecycle.ACTIVE}),
    Lifecycle.COMPLETE: frozenset(),
    Lifecycle.FAILED: frozenset(),
}


def _new_id() -> str:
    return f"conv_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class ConversationState:
    """Message history, turn budget, and lifecycle for one model conversation.

    Only one prompt may be in flight at a time; concurrent negotiations need
    separate instances.
    """

    def __init__(
        self,
        provider: ModelProvider,
        subject: str,
        config: Optional[ConversationConfig] = None,
        *,
        fail_on_provider_error: bool = True,
    ) -> None:
        """Create an active conversation.

        Args:
            provider: Backend used for every turn.
            subject: Topic label for logs and exports.
            config: Limits and sampling options.
            fail_on_provider_error: Move to ``failed`` when the provider raises. Callers
                that own a retry policy disable this and fail the conversation
                themselves once they give up.
        """
        self._provider = provider
        self.subject = subject
        self.config = config or ConversationConfig()
        self.fail_on_provider_error = fail_on_provider_error
        self.id = _new_id()
        self.created_at = datetime.now(timezone.utc)
        self.updated_at = self.created_at
        self._lifecycle = Lifecycle.ACTIVE
        self._messages: List[ConversationMessage] = []
        self._turn_count = 0
        self._lock = asyncio.Lock()

        if self.config.system_prompt:
            self.add_message("system", self.config.system_prompt)

    # ------------------------------------------------------------------ #
    # Accessors                                                          #
    # ------------------------------------------------------------------ #

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    @property
    def turn_count(self) -> int:
        return self._turn_count

    @property
    def messages(self) -> Tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    def messages_by_role(self, role: Role) -> List[ConversationMessage]:
        return [message for message in self._messages if message.role == role]

    def recent_messages(self, count: int) -> List[ConversationMessage]:
        return list(self._messages[-count:]) if count > 0 else []

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    def pause(self) -> None:
        self._transition(Lifecycle.PAUSED)

    def resume(self) -> None:
        self._transition(Lifecycle.ACTIVE)

    def complete(self) -> None:
        self._transition(Lifecycle.COMPLETE)

    def fail(self) -> None:
        self._transition(Lifecycle.FAILED)

    def _transition(self, target: Lifecycle) -> None:
        if target is self._lifecycle:
            return
        if target not in _TRANSITIONS[self._lifecycle]:
            raise StateViolation(
                f"Conversation {self.id} cannot move from {self._lifecycle.value} to {target.value}"
            )
        LOGGER.debug("Conversation %s: %s -> %s", self.id, self._lifecycle.value, target.value)
        self._lifecycle = target
        self._touch()

    # ------------------------------------------------------------------ #
    # History                                                            #
    # ------------------------------------------------------------------ #

    def add_message(
        self, role: Role, content: str, metadata: Optional[Dict[str, Any]] = None
    ) -> ConversationMessage:
        """Append a message, pruning old non-system messages beyond the size budget.

        Args:
            role: Message author.
            content: Message text.
            metadata: Optional annotations stored with the message.

        Returns:
            ConversationMessage: The appended message.
        """
        message = ConversationMessage(role=role, content=content, metadata=metadata)
        self._messages.append(message)
        self._touch()
        self._prune()
        return message

    def _prune(self) -> None:
        budget = self.config.context_size_budget
        total = sum(len(message.content) for message in self._messages)
        if total <= budget:
            return

        keep = {index for index, message in enumerate(self._messages) if message.role == "system"}
        used = sum(len(self._messages[index].content) for index in keep)
        newest = len(self._messages) - 1
        for index in range(newest, -1, -1):
            message = self._messages[index]
            if message.role == "system":
                continue
            if index != newest and used + len(message.content) > budget:
                break
            keep.add(index)
            used += len(message.content)

        pruned = len(self._messages) - len(keep)
        self._messages = [m for index, m in enumerate(self._messages) if index in keep]
        LOGGER.debug("Pruned %d message(s) from conversation %s", pruned, self.id)

    # ------------------------------------------------------------------ #
    # Turns                                                              #
    # ------------------------------------------------------------------ #

    async def continue_with_prompt(
        self, prompt: str, metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """Send ``prompt`` as the next user turn and return the raw reply.

        Args:
            prompt: User message for this turn.
            metadata: Optional annotations stored with the user message.

        Returns:
            str: Raw reply text, also appended as an assistant message.

        Raises:
            StateViolation: If the conversation is not active or a turn is in flight.
            TurnBudgetExceeded: If every turn has been used; the conversation fails.
            ProviderError: If the provider call fails.
        """
        if self._lock.locked():
            raise StateViolation(f"Conversation {self.id} already has a prompt in flight")

        async with self._lock:
            if self._lifecycle is not Lifecycle.ACTIVE:
                raise StateViolation(
                    f"Cannot continue conversation {self.id} in {self._lifecycle.value} state"
                )
            if self._turn_count >= self.config.max_turns:
                self._transition(Lifecycle.FAILED)
                raise TurnBudgetExceeded(
                    f"Conversation {self.id} exceeded its {self.config.max_turns} turn budget"
                )

            self._turn_count += 1
            user_message = self.add_message("user", prompt, metadata)
            context = PromptContext(
                messages=[
                    PromptMessage(role=message.role, content=message.content)
                    for message in self._messages
                ],
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )

            try:
                reply = await self._provider.invoke(context)
            except Exception as exc:
                self._handle_provider_failure(user_message)
                if isinstance(exc, ProviderError):
                    raise
                raise ProviderError(
                    f"Provider call failed: {exc}", provider=getattr(self._provider, "name", "unknown")
                ) from exc

            self.add_message("assistant", reply, {"turn": self._turn_count})
            return reply

    def _handle_provider_failure(self, user_message: ConversationMessage) -> None:
        if self.fail_on_provider_error:
            self._transition(Lifecycle.FAILED)
            return
        if self._messages and self._messages[-1] is user_message:
            self._messages.pop()
        LOGGER.debug(
            "Conversation %s: provider failed on turn %d; left active for retry",
            self.id,
            self._turn_count,
        )

    def reset(self, keep_system_prompt: bool = True) -> None:
        """Clear history (optionally keeping system messages) and start over."""
        self._messages = (
            [message for message in self._messages if message.role == "system"]
            if keep_system_prompt
            else []
        )
        self._turn_count = 0
        self._lifecycle = Lifecycle.ACTIVE
        self._touch()

    # ------------------------------------------------------------------ #
    # Export                                                             #
    # ------------------------------------------------------------------ #

    def snapshot(self) -> ConversationSnapshot:
        """Return a deep copy of the conversation suitable for serialization."""
        return ConversationSnapshot(
            id=self.id,
            subject=self.subject,
            lifecycle=self._lifecycle,
            messages=[message.model_copy(deep=True) for message in self._messages],
            turn_count=self._turn_count,
            config=self.config.model_copy(),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def restore(cls, snapshot: ConversationSnapshot, provider: ModelProvider) -> "ConversationState":
        """Rebuild a conversation from ``snapshot`` bound to ``provider``."""
        state = cls(provider, snapshot.subject, snapshot.config.model_copy(update={"system_prompt": None}))
        state.config = snapshot.config.model_copy()
        state.id = snapshot.id
        state.created_at = snapshot.created_at
        state.updated_at = snapshot.updated_at
        state._lifecycle = snapshot.lifecycle
        state._messages = [message.model_copy(deep=True) for message in snapshot.messages]
        state._turn_count = snapshot.turn_count
        return state

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


__all__ = ["ConversationState"]
