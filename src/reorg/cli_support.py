"""Helpers shared by CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from reorg.cache import CacheRegistry, config_fingerprint
from reorg.config import ReorgConfig
from reorg.conversation import ConversationConfig
from reorg.ingestion import DirectoryScanner, FileDescriptor, PatternAnalyzer
from reorg.negotiation import (
    ORGANIZATION_SYSTEM_PROMPT,
    NegotiationOrchestrator,
    OrganizationNegotiation,
)
from reorg.negotiation.negotiation import AnswerCallback
from reorg.negotiation.orchestrator import DiscussCallback, ReviewCallback
from reorg.organization import MovePlan, Suggestion, SuggestionPostProcessor, to_move_plan
from reorg.providers import ModelProvider, build_provider

LOGGER = logging.getLogger(__name__)

ProviderFactory = Callable[[ReorgConfig], ModelProvider]


@dataclass
class OrganizeOutcome:
    """Result of one `reorg organize` run.

    Attributes:
        directory: Directory that was organized.
        files: Files handed to the negotiation.
        suggestions: Post-processed suggestions.
        plan: Move plan derived from ``suggestions``.
        from_cache: Whether the suggestions came from the cache.
        reasoning: Strategy text supplied by the model.
        fallback_count: Files that received a fallback suggestion.
        filtered_count: Suggestions dropped by the confidence threshold.
    """

    directory: Path
    files: List[FileDescriptor]
    suggestions: List[Suggestion]
    plan: MovePlan
    from_cache: bool = False
    reasoning: str = ""
    fallback_count: int = 0
    filtered_count: int = 0


def build_scanner(config: ReorgConfig, *, recursive: bool = False) -> DirectoryScanner:
    """Return a scanner configured from ``config.scanning``."""
    options = config.scanning
    return DirectoryScanner(
        recursive=recursive or options.recursive,
        include_hidden=options.include_hidden,
        follow_symlinks=options.follow_symlinks,
        max_depth=options.max_depth,
        exclude_patterns=options.exclude_patterns,
        include_patterns=options.include_patterns,
    )


def conversation_config(config: ReorgConfig) -> ConversationConfig:
    """Translate configuration settings into conversation limits."""
    return ConversationConfig(
        max_turns=config.conversation.max_turns,
        context_size_budget=config.conversation.context_size_budget,
        temperature=config.conversation.temperature,
        system_prompt=ORGANIZATION_SYSTEM_PROMPT,
        max_tokens=config.llm.max_tokens,
    )


def project_groups(
    caches: CacheRegistry,
    directory: Path,
    files: Sequence[FileDescriptor],
    *,
    use_cache: bool = True,
) -> Dict[str, List[str]]:
    """Return detected project groups for ``files``, consulting the project cache first."""
    if use_cache:
        cached = caches.projects.get(directory, files)
        if cached is not None:
            return cached
    groups = PatternAnalyzer().project_groups(files)
    if use_cache:
        caches.projects.put(directory, files, groups)
    return groups


def pattern_hints(
    caches: CacheRegistry,
    directory: Path,
    files: Sequence[FileDescriptor],
    *,
    use_cache: bool = True,
) -> List[str]:
    """Return pattern hints for ``files``, consulting the pattern cache first.

    Project groups come from their own longer-lived cache, so a pattern cache
    miss does not repeat project detection.
    """
    if use_cache:
        cached = caches.patterns.get(directory, files)
        if cached is not None:
            return cached
    projects = project_groups(caches, directory, files, use_cache=use_cache)
    hints = PatternAnalyzer().hints(files, projects=projects)
    if use_cache:
        caches.patterns.put(directory, files, hints)
    return hints


async def run_organization(
    config: ReorgConfig,
    directory: Path,
    files: Sequence[FileDescriptor],
    intent: str,
    *,
    caches: CacheRegistry,
    answer_clarifications: AnswerCallback,
    review: Optional[ReviewCallback] = None,
    discuss: Optional[DiscussCallback] = None,
    use_cache: bool = True,
    provider_factory: ProviderFactory | None = None,
) -> OrganizeOutcome:
    """Produce organization suggestions for ``files`` in ``directory``.

    Cached suggestions are returned when the directory and configuration are
    unchanged; otherwise a negotiation is run and its post-processed result is
    cached.

    Args:
        config: Effective configuration.
        directory: Directory being organized.
        files: Scanned files.
        intent: User intent forwarded to the model.
        caches: Cache namespaces.
        answer_clarifications: Callback answering model questions.
        review: Optional callback reviewing final suggestions.
        discuss: Optional callback for free-form discussion after analysis.
        use_cache: Whether cached suggestions may be used and stored.
        provider_factory: Builds the model provider; defaults to `build_provider`.

    Returns:
        OrganizeOutcome: Suggestions and the derived move plan.

    Raises:
        NegotiationAborted: If the orchestrator gives up.
        StateViolation: If the negotiation is driven out of order.
    """
    use_cache = use_cache and config.cache.enabled
    files = list(files)
    fingerprint = config_fingerprint(config)

    if use_cache:
        cached = caches.suggestions.get(directory, files, fingerprint)
        if cached is not None:
            return OrganizeOutcome(
                directory=directory,
                files=files,
                suggestions=cached,
                plan=to_move_plan(cached, directory),
                from_cache=True,
            )

    factory = provider_factory or (lambda cfg: build_provider(cfg.llm))
    negotiation = OrganizationNegotiation(
        factory(config),
        files,
        directory,
        intent,
        config=conversation_config(config),
    )
    negotiation.add_pattern_hints(pattern_hints(caches, directory, files, use_cache=use_cache))

    orchestrator = NegotiationOrchestrator(
        negotiation,
        answer_clarifications=answer_clarifications,
        review=review,
        discuss=discuss,
        max_attempts=config.conversation.max_attempts,
        backoff_seconds=config.conversation.backoff_seconds,
    )
    final = await orchestrator.run()
    LOGGER.debug(
        "Negotiation finished after %d failed attempt(s) with %d fallback(s)",
        orchestrator.failures,
        final.fallback_count,
    )

    processor = SuggestionPostProcessor.from_options(config.organization)
    suggestions = processor.process(final.suggestions)
    if use_cache:
        caches.suggestions.put(directory, files, suggestions, fingerprint)

    return OrganizeOutcome(
        directory=directory,
        files=files,
        suggestions=suggestions,
        plan=to_move_plan(suggestions, directory),
        reasoning=final.reasoning,
        fallback_count=final.fallback_count,
        filtered_count=len(final.suggestions) - len(suggestions),
    )


def suggestion_to_record(suggestion: Suggestion, root: Path) -> dict[str, Any]:
    """Return a JSON-friendly record for ``suggestion``."""
    source = suggestion.file.path if suggestion.file else None
    return {
        "file": relative_to_root(source, root) if source else suggestion.file_name,
        "suggested_path": suggestion.suggested_path,
        "category": suggestion.category,
        "confidence": suggestion.confidence,
        "reason": suggestion.reason,
        "fallback": suggestion.fallback,
    }


def relative_to_root(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` when possible."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def compute_organize_counts(outcome: OrganizeOutcome) -> dict[str, int]:
    """Return summary counts for an organize run."""
    return {
        "files": len(outcome.files),
        "suggestions": len(outcome.suggestions),
        "moves": len(outcome.plan.moves),
        "skipped": len(outcome.plan.skipped),
        "fallbacks": outcome.fallback_count,
        "filtered": outcome.filtered_count,
    }


def build_json_payload(outcome: OrganizeOutcome, intent: str) -> dict[str, Any]:
    """Return the JSON document emitted by `reorg organize --json`."""
    root = outcome.directory
    return {
        "context": {
            "directory": root.as_posix(),
            "intent": intent,
            "from_cache": outcome.from_cache,
        },
        "counts": compute_organize_counts(outcome),
        "reasoning": outcome.reasoning,
        "suggestions": [suggestion_to_record(item, root) for item in outcome.suggestions],
        "plan": outcome.plan.model_dump(mode="json"),
    }


__all__ = [
    "OrganizeOutcome",
    "build_json_payload",
    "build_scanner",
    "compute_organize_counts",
    "conversation_config",
    "pattern_hints",
    "project_groups",
    "relative_to_root",
    "run_organization",
    "suggestion_to_record",
]
