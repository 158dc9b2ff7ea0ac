"""Retry-bounded driver that runs a negotiation to completion."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from reorg.conversation import Lifecycle, StateViolation
from reorg.providers.errors import ProviderError
from reorg.recovery import ParseFailure

from .errors import NegotiationAborted
from .models import (
    ClarificationNeeded,
    ConversationResult,
    FinalSuggestions,
    OrganizationFeedback,
    Phase,
)
from .negotiation import AnswerCallback, OrganizationNegotiation
from .prompts import build_clarification_followup

LOGGER = logging.getLogger(__name__)

ReviewCallback = Callable[[FinalSuggestions], Awaitable[OrganizationFeedback]]
DiscussCallback = Callable[[Dict[str, List[str]]], Awaitable[Optional[str]]]
SleepCallback = Callable[[float], Awaitable[None]]


class NegotiationOrchestrator:
    """Run analysis, optional discussion, and review rounds with bounded retries.

    Provider and parse failures count against ``max_attempts`` and are retried
    after an exponential backoff; each retry re-runs the current phase and costs
    a conversation turn. State violations end the run immediately.
    """

    def __init__(
        self,
        negotiation: OrganizationNegotiation,
        *,
        answer_clarifications: AnswerCallback,
        review: Optional[ReviewCallback] = None,
        discuss: Optional[DiscussCallback] = None,
        max_attempts: int = 5,
        backoff_seconds: float = 0.5,
        sleep: SleepCallback = asyncio.sleep,
    ) -> None:
        """Configure the orchestrator.

        Args:
            negotiation: Negotiation to drive; it must still be in ``analysis``.
            answer_clarifications: Async callback receiving ``(questions, reason)``
                and returning answers, or ``None`` to skip.
            review: Async callback judging final suggestions. When omitted the
                first complete set of suggestions is accepted.
            discuss: Async callback shown the discovered categories; it returns a
                message for the model, or ``None`` to move on to organization.
            max_attempts: Failed attempts tolerated before aborting.
            backoff_seconds: Base delay before the first retry.
            sleep: Coroutine used for backoff delays.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.negotiation = negotiation
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._answer = answer_clarifications
        self._review = review
        self._discuss = discuss
        self._sleep = sleep
        self._failures = 0
        self._clarification_rounds = 0
        self._discussion_done = discuss is None
        self._pending_message: Optional[str] = None
        self._pending_feedback: Optional[OrganizationFeedback] = None

        negotiation.conversation.fail_on_provider_error = False

    @property
    def failures(self) -> int:
        """Return the number of failed attempts so far."""
        return self._failures

    async def run(self) -> FinalSuggestions:
        """Drive the negotiation until suggestions are accepted.

        Returns:
            FinalSuggestions: The accepted suggestions.

        Raises:
            NegotiationAborted: If ``max_attempts`` failures occur.
            StateViolation: On contract violations, including an exhausted turn budget.
        """
        while True:
            try:
                accepted = await self._step()
            except (ProviderError, ParseFailure) as exc:
                self._failures += 1
                if self._failures >= self.max_attempts:
                    self._abort()
                    raise NegotiationAborted(
                        f"Gave up after {self._failures} failed attempt(s): {exc}",
                        attempts=self._failures,
                    ) from exc
                delay = self.backoff_seconds * 2 ** (self._failures - 1)
                LOGGER.warning(
                    "Attempt %d/%d failed in %s phase (%s); retrying in %.2fs",
                    self._failures,
                    self.max_attempts,
                    self.negotiation.phase.value,
                    exc,
                    delay,
                )
                await self._sleep(delay)
                continue
            if accepted is not None:
                return accepted

    # ------------------------------------------------------------------ #
    # Steps                                                              #
    # ------------------------------------------------------------------ #

    async def _step(self) -> Optional[FinalSuggestions]:
        if self._pending_feedback is not None:
            result = await self.negotiation.process_feedback(self._pending_feedback)
            self._pending_feedback = None
            if isinstance(result, ConversationResult):
                await self._follow_up(result)
            return None

        phase = self.negotiation.phase
        if phase is Phase.ANALYSIS:
            await self._analyze()
            return None
        if phase is Phase.CONVERSATION:
            await self._converse()
            return None
        if phase is Phase.ORGANIZATION:
            return await self._organize()
        raise StateViolation("Negotiation is already complete")

    async def _analyze(self) -> None:
        result = await self.negotiation.start_analysis()
        if result.clarification_needed is None:
            return
        if await self._clarify(result.clarification_needed, Phase.ANALYSIS):
            return
        self.negotiation.skip_clarification()

    async def _converse(self) -> None:
        if self._pending_message is None and not self._discussion_done:
            categories = self.negotiation.context.category_names()
            self._pending_message = await self._discuss(categories)
            if self._pending_message is None:
                self._discussion_done = True

        if self._pending_message is None:
            self.negotiation.begin_organization()
            return

        result = await self.negotiation.continue_conversation(self._pending_message)
        self._pending_message = None
        await self._follow_up(result)

    async def _follow_up(self, result: ConversationResult) -> None:
        """Ask any questions the model raised and queue the answers as the next message."""
        needed = result.clarification_needed
        if needed is None:
            return
        known = len(self.negotiation.context.clarifications)
        if await self._clarify(needed, Phase.CONVERSATION):
            answered = self.negotiation.context.clarifications[known:]
            self._pending_message = build_clarification_followup(
                [item.question for item in answered], [item.answer for item in answered]
            )

    async def _organize(self) -> Optional[FinalSuggestions]:
        final = await self.negotiation.generate_final_suggestions()
        needed = final.clarification_needed
        if needed is not None and await self._clarify(needed, Phase.ORGANIZATION):
            return None

        if self._review is None:
            self.negotiation.finalize()
            return final

        feedback = await self._review(final)
        if feedback.approved:
            self.negotiation.finalize()
            return final

        LOGGER.debug("Suggestions rejected; returning to conversation")
        self._pending_feedback = feedback
        return None

    async def _clarify(self, needed: ClarificationNeeded, phase: Phase) -> bool:
        if self._clarification_rounds >= self.max_attempts:
            LOGGER.debug("Clarification limit reached; continuing without answers")
            return False
        self._clarification_rounds += 1
        return await self.negotiation.handle_clarification(
            needed.questions,
            phase,
            answer=self._answer,
            reason=needed.reason,
        )

    def _abort(self) -> None:
        conversation = self.negotiation.conversation
        if conversation.lifecycle is Lifecycle.ACTIVE:
            conversation.fail()


__all__ = ["DiscussCallback", "NegotiationOrchestrator", "ReviewCallback"]
