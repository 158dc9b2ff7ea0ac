"""Tests for the retry-bounded negotiation orchestrator."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import pytest
from conftest import FakeProvider, categories_reply, make_descriptor, suggestions_reply

from reorg.conversation import ConversationConfig, Lifecycle, TurnBudgetExceeded
from reorg.negotiation import (
    FinalSuggestions,
    NegotiationAborted,
    NegotiationOrchestrator,
    OrganizationFeedback,
    OrganizationNegotiation,
    Phase,
)
from reorg.providers.errors import ProviderError


class _SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


async def _no_answers(questions: List[str], reason: str) -> Optional[List[str]]:
    return None


def _negotiation(provider: FakeProvider, names=("a.txt", "b.txt"), **config) -> OrganizationNegotiation:
    files = [make_descriptor(name) for name in names]
    conversation = ConversationConfig(**config) if config else None
    return OrganizationNegotiation(provider, files, Path("/data/inbox"), "tidy up", config=conversation)


@pytest.mark.asyncio
async def test_run_accepts_first_suggestions_without_review() -> None:
    provider = FakeProvider(
        [
            categories_reply({"Text": ["a.txt", "b.txt"]}),
            suggestions_reply([("a.txt", "Text/a.txt"), ("b.txt", "Text/b.txt")]),
        ]
    )
    negotiation = _negotiation(provider)
    orchestrator = NegotiationOrchestrator(negotiation, answer_clarifications=_no_answers)

    final = await orchestrator.run()

    assert [item.suggested_path for item in final.suggestions] == ["Text/a.txt", "Text/b.txt"]
    assert negotiation.phase is Phase.COMPLETE
    assert negotiation.conversation.lifecycle is Lifecycle.COMPLETE


@pytest.mark.asyncio
async def test_provider_errors_are_retried_with_exponential_backoff() -> None:
    provider = FakeProvider(
        [
            ProviderError("rate limited", provider="fake"),
            ProviderError("rate limited", provider="fake"),
            categories_reply({"Text": ["a.txt", "b.txt"]}),
            suggestions_reply([("a.txt", "Text/a.txt"), ("b.txt", "Text/b.txt")]),
        ]
    )
    sleep = _SleepRecorder()
    negotiation = _negotiation(provider)
    orchestrator = NegotiationOrchestrator(
        negotiation,
        answer_clarifications=_no_answers,
        backoff_seconds=0.5,
        sleep=sleep,
    )

    await orchestrator.run()

    assert sleep.delays == [0.5, 1.0]
    assert orchestrator.failures == 2
    assert negotiation.conversation.turn_count == 4
    user_messages = negotiation.conversation.messages_by_role("user")
    assert len(user_messages) == 2


@pytest.mark.asyncio
async def test_exhausted_attempts_abort_and_fail_conversation() -> None:
    provider = FakeProvider([ProviderError(f"down {index}", provider="fake") for index in range(3)])
    sleep = _SleepRecorder()
    negotiation = _negotiation(provider)
    orchestrator = NegotiationOrchestrator(
        negotiation,
        answer_clarifications=_no_answers,
        max_attempts=3,
        backoff_seconds=0.1,
        sleep=sleep,
    )

    with pytest.raises(NegotiationAborted) as excinfo:
        await orchestrator.run()

    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.__cause__, ProviderError)
    assert str(excinfo.value.__cause__) == "down 2"
    assert sleep.delays == pytest.approx([0.1, 0.2])
    assert negotiation.conversation.lifecycle is Lifecycle.FAILED


@pytest.mark.asyncio
async def test_parse_failures_count_as_attempts() -> None:
    provider = FakeProvider(
        [
            categories_reply({"Text": ["a.txt", "b.txt"]}),
            "no json here",
            suggestions_reply([("a.txt", "Text/a.txt"), ("b.txt", "Text/b.txt")]),
        ]
    )
    sleep = _SleepRecorder()
    orchestrator = NegotiationOrchestrator(
        _negotiation(provider), answer_clarifications=_no_answers, sleep=sleep
    )

    final = await orchestrator.run()

    assert orchestrator.failures == 1
    assert sleep.delays == [0.5]
    assert final.fallback_count == 0


@pytest.mark.asyncio
async def test_turn_budget_violation_terminates_immediately() -> None:
    provider = FakeProvider(["garbage"] * 5)
    sleep = _SleepRecorder()
    orchestrator = NegotiationOrchestrator(
        _negotiation(provider, max_turns=2),
        answer_clarifications=_no_answers,
        max_attempts=10,
        sleep=sleep,
    )

    with pytest.raises(TurnBudgetExceeded):
        await orchestrator.run()

    assert len(provider.contexts) == 2


@pytest.mark.asyncio
async def test_skipped_clarification_proceeds_with_partial_categories() -> None:
    clarification = json.dumps(
        {
            "discoveredCategories": {"Text": ["a.txt"]},
            "clarificationNeeded": {"questions": ["Keep drafts?"], "reason": "Unsure"},
        }
    )
    provider = FakeProvider(
        [clarification, suggestions_reply([("a.txt", "Text/a.txt"), ("b.txt", "Text/b.txt")])]
    )
    asked: List[List[str]] = []

    async def skip(questions: List[str], reason: str) -> Optional[List[str]]:
        asked.append(questions)
        return None

    negotiation = _negotiation(provider)
    final = await NegotiationOrchestrator(negotiation, answer_clarifications=skip).run()

    assert asked == [["Keep drafts?"]]
    assert negotiation.context.category_names() == {"Text": ["a.txt"], "Unknown": ["b.txt"]}
    assert len(final.suggestions) == 2


@pytest.mark.asyncio
async def test_answered_clarification_retries_analysis() -> None:
    clarification = json.dumps({"clarificationNeeded": {"questions": ["By year?"]}})
    provider = FakeProvider(
        [
            clarification,
            categories_reply({"Text": ["a.txt", "b.txt"]}),
            suggestions_reply([("a.txt", "2024/a.txt"), ("b.txt", "2024/b.txt")]),
        ]
    )

    async def answer(questions: List[str], reason: str) -> Optional[List[str]]:
        return ["yes"]

    negotiation = _negotiation(provider)
    await NegotiationOrchestrator(negotiation, answer_clarifications=answer).run()

    assert len(negotiation.context.clarifications) == 1
    assert "- Q: By year?\n  A: yes" in provider.contexts[1].messages[-1].content


@pytest.mark.asyncio
async def test_rejection_loops_back_until_approved() -> None:
    provider = FakeProvider(
        [
            categories_reply({"Text": ["a.txt", "b.txt"]}),
            suggestions_reply([("a.txt", "Misc/a.txt"), ("b.txt", "Misc/b.txt")]),
            "Got it, I will avoid Misc.",
            suggestions_reply([("a.txt", "Notes/a.txt"), ("b.txt", "Notes/b.txt")]),
        ]
    )
    reviews: List[FinalSuggestions] = []

    async def review(final: FinalSuggestions) -> OrganizationFeedback:
        reviews.append(final)
        if len(reviews) == 1:
            return OrganizationFeedback(
                approved=False,
                feedback="Misc is too vague",
                selected_suggestions=final.suggestions[:1],
            )
        return OrganizationFeedback(approved=True, selected_suggestions=final.suggestions)

    negotiation = _negotiation(provider)
    final = await NegotiationOrchestrator(
        negotiation, answer_clarifications=_no_answers, review=review
    ).run()

    assert [item.suggested_path for item in final.suggestions] == ["Notes/a.txt", "Notes/b.txt"]
    assert len(reviews) == 2
    assert provider.contexts[2].messages[-1].content == (
        "Misc is too vague I don't like how these files are organized: Misc/a.txt."
    )
    assert "- Rejected Approaches: Misc/a.txt" in provider.last_prompt
    assert negotiation.phase is Phase.COMPLETE


@pytest.mark.asyncio
async def test_clarification_raised_after_rejection_is_answered() -> None:
    question_reply = json.dumps({"clarificationNeeded": {"questions": ["Keep years?"]}})
    provider = FakeProvider(
        [
            categories_reply({"Text": ["a.txt", "b.txt"]}),
            suggestions_reply([("a.txt", "Misc/a.txt"), ("b.txt", "Misc/b.txt")]),
            question_reply,
            "Thanks, I will keep the years.",
            suggestions_reply([("a.txt", "2024/a.txt"), ("b.txt", "2024/b.txt")]),
        ]
    )
    asked: List[List[str]] = []

    async def answer(questions: List[str], reason: str) -> Optional[List[str]]:
        asked.append(list(questions))
        return ["yes"]

    async def review(final: FinalSuggestions) -> OrganizationFeedback:
        if final.suggestions[0].suggested_path.startswith("Misc/"):
            return OrganizationFeedback(approved=False, feedback="Misc is too vague")
        return OrganizationFeedback(approved=True, selected_suggestions=final.suggestions)

    negotiation = _negotiation(provider)
    final = await NegotiationOrchestrator(
        negotiation, answer_clarifications=answer, review=review
    ).run()

    assert asked == [["Keep years?"]]
    assert provider.contexts[3].messages[-1].content == (
        "Here are my answers to your questions:\n- Keep years? yes"
    )
    assert [item.suggested_path for item in final.suggestions] == ["2024/a.txt", "2024/b.txt"]
    assert negotiation.phase is Phase.COMPLETE


@pytest.mark.asyncio
async def test_discussion_messages_are_sent_before_organization() -> None:
    provider = FakeProvider(
        [
            categories_reply({"Text": ["a.txt", "b.txt"]}),
            categories_reply({"Drafts": ["b.txt"]}),
            suggestions_reply([("a.txt", "Text/a.txt"), ("b.txt", "Drafts/b.txt")]),
        ]
    )
    seen = []
    messages = ["Please split out drafts", None]

    async def discuss(categories):
        seen.append(categories)
        return messages.pop(0)

    negotiation = _negotiation(provider)
    await NegotiationOrchestrator(
        negotiation, answer_clarifications=_no_answers, discuss=discuss
    ).run()

    assert seen[0] == {"Text": ["a.txt", "b.txt"]}
    assert provider.contexts[1].messages[-1].content == "Please split out drafts"
    assert negotiation.context.category_names() == {"Text": ["a.txt", "b.txt"]}


def test_max_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        NegotiationOrchestrator(
            _negotiation(FakeProvider()), answer_clarifications=_no_answers, max_attempts=0
        )
