"""Phase-structured negotiation that turns a file list into suggestions."""

from __future__ import annotations

import logging
import time
from pathlib import Path, PurePosixPath
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from reorg.conversation import ConversationConfig, ConversationState, StateViolation
from reorg.ingestion.detectors import file_category
from reorg.ingestion.models import FileDescriptor
from reorg.organization.models import Suggestion
from reorg.providers.base import ModelProvider
from reorg.recovery import ParseFailure, ResponseRecovery
from reorg.recovery.schemas import ClarificationRequest

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
from .prompts import (
    ORGANIZATION_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_feedback_message,
    build_final_prompt,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_SUBJECT = "file-organization"
FALLBACK_DIRECTORY = "Organized"
FALLBACK_CONFIDENCE = 0.5
FALLBACK_REASON = "Fallback organization: the model returned no suggestion for this file"

AnswerCallback = Callable[[List[str], str], Awaitable[Optional[List[str]]]]

_PHASE_TRANSITIONS: Dict[Phase, frozenset[Phase]] = {
    Phase.ANALYSIS: frozenset({Phase.CONVERSATION}),
    Phase.CONVERSATION: frozenset({Phase.ORGANIZATION}),
    Phase.ORGANIZATION: frozenset({Phase.CONVERSATION, Phase.COMPLETE}),
    Phase.COMPLETE: frozenset(),
}


def default_conversation_config() -> ConversationConfig:
    """Return the conversation limits used for organization negotiations."""
    return ConversationConfig(
        max_turns=10,
        temperature=0.4,
        context_size_budget=15_000,
        system_prompt=ORGANIZATION_SYSTEM_PROMPT,
    )


class OrganizationNegotiation:
    """Drive a conversation through analysis, conversation, and organization.

    The negotiation owns an `OrganizationContext` and a `ConversationState`. Each
    public operation is valid only in specific phases and raises
    `StateViolation` otherwise, before touching any state.
    """

    def __init__(
        self,
        provider: ModelProvider,
        files: Sequence[FileDescriptor],
        base_directory: Path,
        intent: str,
        *,
        subject: str = DEFAULT_SUBJECT,
        config: Optional[ConversationConfig] = None,
        recovery: Optional[ResponseRecovery] = None,
    ) -> None:
        """Create a negotiation in the analysis phase.

        Args:
            provider: Backend used for every model turn.
            files: Files to organize; suggestion order follows this order.
            base_directory: Directory the files are organized within.
            intent: What the user wants out of the reorganization.
            subject: Conversation topic label.
            config: Conversation limits; organization defaults when omitted.
            recovery: Decoder for model replies.
        """
        self.context = OrganizationContext(
            files=list(files),
            base_directory=base_directory,
            intent=intent,
        )
        self.conversation = ConversationState(
            provider,
            subject,
            config or default_conversation_config(),
        )
        self._recovery = recovery or ResponseRecovery()

    @property
    def phase(self) -> Phase:
        return self.context.phase

    # ------------------------------------------------------------------ #
    # Phase operations                                                   #
    # ------------------------------------------------------------------ #

    async def start_analysis(self) -> AnalysisResult:
        """Ask the model to discover categories for the files.

        Returns:
            AnalysisResult: Reconciled categories and any clarification request.
            A reply that asks questions leaves the negotiation in ``analysis``.

        Raises:
            StateViolation: If called outside ``analysis``.
            ProviderError: If the provider call fails.
            ParseFailure: If the reply holds no usable JSON.
        """
        self._require(Phase.ANALYSIS, "start_analysis")

        raw = await self.conversation.continue_with_prompt(
            build_analysis_prompt(self.context), {"phase": Phase.ANALYSIS.value}
        )
        reply = self._recovery.decode(raw, "categories")

        if isinstance(reply, ClarificationRequest):
            if reply.categories:
                self._reconcile(reply.categories, merge=False)
            return AnalysisResult(
                discovered_categories=self.context.category_names(),
                clarification_needed=ClarificationNeeded(
                    questions=reply.questions, reason=reply.reason
                ),
                reasoning=reply.reasoning,
            )

        self._reconcile(reply.categories, merge=False)
        self._advance(Phase.CONVERSATION)
        return AnalysisResult(
            discovered_categories=self.context.category_names(),
            reasoning=reply.reasoning,
        )

    def skip_clarification(self) -> None:
        """Leave ``analysis`` with whatever categories are known so far."""
        self._require(Phase.ANALYSIS, "skip_clarification")
        self._reconcile({}, merge=True)
        self._advance(Phase.CONVERSATION)

    async def continue_conversation(self, message: str) -> ConversationResult:
        """Send a free-form user message and merge any categories in the reply.

        Replies without a JSON block are accepted as plain conversation.

        Raises:
            StateViolation: If called outside ``conversation``.
            ProviderError: If the provider call fails.
        """
        self._require(Phase.CONVERSATION, "continue_conversation")

        raw = await self.conversation.continue_with_prompt(
            message, {"phase": Phase.CONVERSATION.value}
        )
        try:
            reply = self._recovery.decode(raw, "categories")
        except ParseFailure:
            LOGGER.debug("Conversation reply carried no structured data")
            return ConversationResult(reply=raw)

        clarification = None
        if isinstance(reply, ClarificationRequest):
            clarification = ClarificationNeeded(questions=reply.questions, reason=reply.reason)

        categories = None
        if reply.categories:
            self._reconcile(reply.categories, merge=True)
            categories = self.context.category_names()

        return ConversationResult(
            reply=raw,
            discovered_categories=categories,
            clarification_needed=clarification,
            reasoning=reply.reasoning,
        )

    def begin_organization(self) -> None:
        """Move from ``conversation`` to ``organization``."""
        self._require(Phase.CONVERSATION, "begin_organization")
        self._advance(Phase.ORGANIZATION)

    async def generate_final_suggestions(self) -> FinalSuggestions:
        """Request one suggestion per file and guarantee full coverage.

        Returns:
            FinalSuggestions: Suggestions in input order, with fallbacks for any
            file the model skipped.

        Raises:
            StateViolation: If called outside ``organization``.
            ProviderError: If the provider call fails.
            ParseFailure: If nothing usable could be decoded.
        """
        self._require(Phase.ORGANIZATION, "generate_final_suggestions")

        raw = await self.conversation.continue_with_prompt(
            build_final_prompt(self.context), {"phase": Phase.ORGANIZATION.value}
        )
        reply = self._recovery.decode(raw, "suggestions")

        clarification = None
        recovered = False
        if isinstance(reply, ClarificationRequest):
            clarification = ClarificationNeeded(questions=reply.questions, reason=reply.reason)
        else:
            recovered = reply.recovered

        suggestions, fallback_count = self._bind(reply.suggestions)
        return FinalSuggestions(
            suggestions=suggestions,
            reasoning=reply.reasoning,
            fallback_count=fallback_count,
            recovered=recovered,
            clarification_needed=clarification,
        )

    async def process_feedback(
        self, feedback: OrganizationFeedback
    ) -> ConversationResult | FinalSuggestions:
        """Apply a user verdict.

        Approval records the approved patterns and regenerates final suggestions.
        Rejection records the selected suggestions as rejected and relays the
        feedback to the model, reopening ``conversation`` when needed.

        Raises:
            StateViolation: If the current phase cannot accept the feedback.
        """
        if feedback.approved:
            if self.phase is not Phase.ORGANIZATION:
                self._require(Phase.CONVERSATION, "process_feedback")
            self._record_approved(feedback)
            if self.phase is Phase.CONVERSATION:
                self._advance(Phase.ORGANIZATION)
            return await self.generate_final_suggestions()

        if self.phase is not Phase.ORGANIZATION:
            self._require(Phase.CONVERSATION, "process_feedback")
        for suggestion in feedback.selected_suggestions:
            if suggestion not in self.context.rejected_suggestions:
                self.context.rejected_suggestions.append(suggestion)
        message = build_feedback_message(
            feedback.feedback,
            feedback.specific_issues,
            [suggestion.suggested_path for suggestion in feedback.selected_suggestions],
        )
        if self.phase is Phase.ORGANIZATION:
            self._advance(Phase.CONVERSATION)
        return await self.continue_conversation(message)

    async def handle_clarification(
        self,
        questions: List[str],
        phase: Phase,
        context: str = "",
        *,
        answer: AnswerCallback,
        reason: str = "",
    ) -> bool:
        """Collect answers for ``questions`` and store them in the context.

        Args:
            questions: Questions asked by the model.
            phase: Phase the questions were asked in.
            context: Optional note stored with each clarification.
            answer: Async callback returning one answer per question, or ``None``
                when the user declines.
            reason: Why the model asked, forwarded to ``answer``.

        Returns:
            bool: True when at least one answer was recorded.
        """
        if not questions:
            return False
        answers = await answer(list(questions), reason)
        if not answers:
            return False

        stamp = int(time.time() * 1000)
        recorded = 0
        for index, (question, reply) in enumerate(zip(questions, answers)):
            reply = (reply or "").strip()
            if not reply:
                continue
            self.context.clarifications.append(
                Clarification(
                    id=f"{phase.value}_{stamp}_{index}",
                    phase=phase,
                    question=question,
                    answer=reply,
                    context=context or f"Asked during {phase.value}",
                )
            )
            recorded += 1
        LOGGER.debug("Recorded %d clarification(s) during %s", recorded, phase.value)
        return recorded > 0

    def add_pattern_hints(self, hints: Iterable[str]) -> None:
        """Append pattern hints that are not already known."""
        for hint in hints:
            if hint not in self.context.pattern_hints:
                self.context.pattern_hints.append(hint)

    def finalize(self) -> None:
        """Complete the negotiation and its conversation."""
        self._require(Phase.ORGANIZATION, "finalize")
        self._advance(Phase.COMPLETE)
        self.conversation.complete()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _require(self, phase: Phase, operation: str) -> None:
        if self.context.phase is not phase:
            raise StateViolation(
                f"{operation} requires the {phase.value} phase; "
                f"negotiation is in {self.context.phase.value}"
            )

    def _advance(self, target: Phase) -> None:
        current = self.context.phase
        if target not in _PHASE_TRANSITIONS[current]:
            raise StateViolation(f"Cannot move negotiation from {current.value} to {target.value}")
        LOGGER.debug("Negotiation phase: %s -> %s", current.value, target.value)
        self.context.phase = target

    def _files_by_name(self) -> Dict[str, List[FileDescriptor]]:
        by_name: Dict[str, List[FileDescriptor]] = {}
        for descriptor in self.context.files:
            by_name.setdefault(descriptor.name, []).append(descriptor)
        return by_name

    @staticmethod
    def _claim(
        name: str,
        by_name: Dict[str, List[FileDescriptor]],
        taken: Iterable[FileDescriptor],
    ) -> Optional[FileDescriptor]:
        candidates = by_name.get(name) or by_name.get(PurePosixPath(name).name) or []
        taken = set(taken)
        return next((candidate for candidate in candidates if candidate not in taken), None)

    def _reconcile(self, incoming: Dict[str, List[str]], *, merge: bool) -> None:
        categories: Dict[str, List[FileDescriptor]] = {}
        if merge:
            categories = {
                label: list(members)
                for label, members in self.context.discovered_categories.items()
                if label != CATCH_ALL_CATEGORY
            }
        assigned = {descriptor for members in categories.values() for descriptor in members}
        by_name = self._files_by_name()

        for label, names in incoming.items():
            if label == CATCH_ALL_CATEGORY:
                continue
            bucket = categories.setdefault(label, [])
            for name in names:
                descriptor = self._claim(name, by_name, assigned)
                if descriptor is None:
                    LOGGER.debug("Ignoring %r in category %r: unknown or already placed", name, label)
                    continue
                bucket.append(descriptor)
                assigned.add(descriptor)

        categories = {label: members for label, members in categories.items() if members}
        unassigned = [descriptor for descriptor in self.context.files if descriptor not in assigned]
        if unassigned:
            categories[CATCH_ALL_CATEGORY] = unassigned
        self.context.discovered_categories = categories

    def _bind(self, suggestions: List[Suggestion]) -> tuple[List[Suggestion], int]:
        by_name = self._files_by_name()
        bound: Dict[FileDescriptor, Suggestion] = {}
        for suggestion in suggestions:
            descriptor = self._claim(suggestion.file_name, by_name, bound)
            if descriptor is None:
                LOGGER.debug("Dropping suggestion for unknown file %r", suggestion.file_name)
                continue
            bound[descriptor] = suggestion.model_copy(
                update={"file": descriptor, "file_name": descriptor.name}
            )

        ordered: List[Suggestion] = []
        fallback_count = 0
        for descriptor in self.context.files:
            suggestion = bound.get(descriptor)
            if suggestion is None:
                LOGGER.warning("No suggestion for %s; using fallback organization", descriptor.name)
                suggestion = self._fallback(descriptor)
                fallback_count += 1
            ordered.append(suggestion)
        return ordered, fallback_count

    @staticmethod
    def _fallback(descriptor: FileDescriptor) -> Suggestion:
        return Suggestion(
            file=descriptor,
            file_name=descriptor.name,
            suggested_path=f"{FALLBACK_DIRECTORY}/{descriptor.name}",
            reason=FALLBACK_REASON,
            confidence=FALLBACK_CONFIDENCE,
            category=file_category(descriptor),
            fallback=True,
        )

    def _record_approved(self, feedback: OrganizationFeedback) -> None:
        patterns = list(feedback.approved_patterns)
        for suggestion in feedback.selected_suggestions:
            parent = PurePosixPath(suggestion.suggested_path).parent
            if str(parent) != ".":
                patterns.append(f"{parent}/")
        for pattern in patterns:
            if pattern not in self.context.approved_patterns:
                self.context.approved_patterns.append(pattern)


__all__ = [
    "DEFAULT_SUBJECT",
    "FALLBACK_CONFIDENCE",
    "FALLBACK_DIRECTORY",
    "FALLBACK_REASON",
    "OrganizationNegotiation",
    "default_conversation_config",
]
