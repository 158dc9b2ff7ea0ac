"""Named cache namespaces built from configuration."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Dict, List

from reorg.config.models import CacheSettings
from reorg.organization.models import Suggestion

from .models import CacheStats
from .store import TieredCache

SUGGESTIONS_NAMESPACE = "suggestions"
PATTERNS_NAMESPACE = "patterns"
PROJECTS_NAMESPACE = "projects"


class CacheRegistry:
    """Own the suggestion, pattern-hint and project-group caches for one process."""

    def __init__(
        self,
        settings: CacheSettings | None = None,
        *,
        root: Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        settings = settings or CacheSettings()
        base = (root or Path(settings.directory)).expanduser()
        self.settings = settings
        self.suggestions: TieredCache[List[Suggestion]] = TieredCache(
            SUGGESTIONS_NAMESPACE,
            root=base,
            ttl_seconds=settings.suggestion_ttl_minutes * 60,
            payload_type=List[Suggestion],
            use_config_hash=True,
            clock=clock,
        )
        self.patterns: TieredCache[List[str]] = TieredCache(
            PATTERNS_NAMESPACE,
            root=base,
            ttl_seconds=settings.pattern_ttl_minutes * 60,
            payload_type=List[str],
            file_prefix="patterns_",
            clock=clock,
        )
        self.projects: TieredCache[Dict[str, List[str]]] = TieredCache(
            PROJECTS_NAMESPACE,
            root=base,
            ttl_seconds=settings.project_ttl_minutes * 60,
            payload_type=Dict[str, List[str]],
            file_prefix="projects_",
            clock=clock,
        )

    def namespaces(self) -> Dict[str, TieredCache]:
        """Return every cache keyed by namespace."""
        return {
            SUGGESTIONS_NAMESPACE: self.suggestions,
            PATTERNS_NAMESPACE: self.patterns,
            PROJECTS_NAMESPACE: self.projects,
        }

    def invalidate(self, directory: str | Path | None = None) -> None:
        """Clear ``directory`` (or everything) across all namespaces."""
        for cache in self.namespaces().values():
            cache.invalidate(directory)

    def sweep_expired(self) -> Dict[str, int]:
        """Sweep expired entries in every namespace."""
        return {name: cache.sweep_expired() for name, cache in self.namespaces().items()}

    def stats(self) -> List[CacheStats]:
        """Return statistics for every namespace."""
        return [cache.stats() for cache in self.namespaces().values()]


__all__ = ["CacheRegistry", "PATTERNS_NAMESPACE", "PROJECTS_NAMESPACE", "SUGGESTIONS_NAMESPACE"]
