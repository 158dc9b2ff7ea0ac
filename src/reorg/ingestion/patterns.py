"""Filename pattern detection used to seed analysis prompts with hints."""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .models import FileDescriptor

_EPISODE_PATTERNS = (
    re.compile(r"(.+?)[-.\s_]+s(\d+)e(\d+)", re.IGNORECASE),
    re.compile(r"(.+?)[-.\s_]+season[-.\s_]*(\d+)[-.\s_]*episode[-.\s_]*(\d+)", re.IGNORECASE),
    re.compile(r"(.+?)[-.\s_]+(\d+)x(\d+)", re.IGNORECASE),
)
_VERSION_PATTERNS = (
    re.compile(r"(.+?)[-.\s_]*v(\d+)(?:\.(\d+))?", re.IGNORECASE),
    re.compile(r"(.+?)[-.\s_]*version[-.\s_]*(\d+)", re.IGNORECASE),
)
_DATE_PATTERNS = (
    (re.compile(r"(\d{4})[-._](\d{2})[-._](\d{2})"), "ymd"),
    (re.compile(r"(\d{2})[-._](\d{2})[-._](\d{4})"), "mdy"),
    (re.compile(r"(?<!\d)(\d{4})(\d{2})(\d{2})(?!\d)"), "ymd"),
)
_PROJECT_MARKERS = (
    "package.json",
    "requirements.txt",
    "pyproject.toml",
    "cargo.toml",
    "pom.xml",
    "makefile",
    "dockerfile",
    "readme.md",
    "readme.txt",
    ".gitignore",
)
_ARCHIVE_EXTENSIONS = frozenset({".zip", ".rar", ".7z", ".tar", ".gz", ".bz2"})


@dataclass(frozen=True)
class PatternMatch:
    """A single pattern recognized in one filename."""

    kind: str
    confidence: float
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class PatternGroup:
    """Files sharing a recognized pattern."""

    kind: str
    label: str
    files: List[FileDescriptor] = field(default_factory=list)


@dataclass
class PatternAnalysis:
    """Aggregated output of `PatternAnalyzer.analyze`."""

    matches: Dict[str, List[PatternMatch]]
    groups: List[PatternGroup]
    hints: List[str]
    structure_suggestions: List[str]


def _clean_series_name(raw: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[-._]", " ", raw)).strip().title()


def _match_episode(descriptor: FileDescriptor) -> Optional[PatternMatch]:
    for pattern in _EPISODE_PATTERNS:
        match = pattern.search(descriptor.name)
        if match:
            return PatternMatch(
                kind="episode_series",
                confidence=0.9,
                metadata={
                    "series": _clean_series_name(match.group(1)),
                    "season": str(int(match.group(2))),
                    "episode": str(int(match.group(3))),
                },
            )
    return None


def _match_version(descriptor: FileDescriptor) -> Optional[PatternMatch]:
    stem = descriptor.name[: -len(descriptor.extension)] if descriptor.extension else descriptor.name
    for pattern in _VERSION_PATTERNS:
        match = pattern.fullmatch(stem)
        if match:
            return PatternMatch(
                kind="version",
                confidence=0.8,
                metadata={"base_name": match.group(1).strip(), "version": match.group(2)},
            )
    return None


def _match_date(descriptor: FileDescriptor) -> Optional[PatternMatch]:
    for pattern, order in _DATE_PATTERNS:
        match = pattern.search(descriptor.name)
        if not match:
            continue
        if order == "ymd":
            year, month, day = match.group(1), match.group(2), match.group(3)
        else:
            month, day, year = match.group(1), match.group(2), match.group(3)
        if not 1 <= int(month) <= 12:
            continue
        return PatternMatch(
            kind="date",
            confidence=0.7,
            metadata={"year": year, "month": month, "day": day, "period": f"{year}-{month}"},
        )
    return None


def _match_project(descriptor: FileDescriptor) -> Optional[PatternMatch]:
    lowered = descriptor.name.lower()
    if lowered in _PROJECT_MARKERS:
        project = descriptor.path.parent.name or "Unknown Project"
        return PatternMatch(kind="project", confidence=0.9, metadata={"project": project})
    return None


def _match_archive(descriptor: FileDescriptor) -> Optional[PatternMatch]:
    if descriptor.extension.lower() in _ARCHIVE_EXTENSIONS:
        return PatternMatch(kind="archive", confidence=0.6)
    return None


Matcher = Callable[[FileDescriptor], Optional[PatternMatch]]

DEFAULT_MATCHERS: Sequence[Matcher] = (
    _match_episode,
    _match_version,
    _match_date,
    _match_project,
    _match_archive,
)


class PatternAnalyzer:
    """Recognize naming patterns (series, versions, dates, projects, archives)."""

    def __init__(self, matchers: Sequence[Matcher] = DEFAULT_MATCHERS) -> None:
        self._matchers = tuple(matchers)

    def analyze(
        self,
        files: Sequence[FileDescriptor],
        *,
        projects: Optional[Dict[str, List[str]]] = None,
    ) -> PatternAnalysis:
        """Run every matcher over ``files`` and derive groups and hints.

        Args:
            files: Descriptors to inspect.
            projects: Previously detected project groups (label to file names).
                When given they replace marker-based project grouping.

        Returns:
            PatternAnalysis: Per-file matches, multi-file groups, and prompt hints.
        """
        matches: Dict[str, List[PatternMatch]] = {}
        for descriptor in files:
            found = [result for result in (matcher(descriptor) for matcher in self._matchers) if result]
            if found:
                matches[descriptor.name] = found

        groups = self._group(files, matches, projects)
        return PatternAnalysis(
            matches=matches,
            groups=groups,
            hints=self._hints(matches, groups),
            structure_suggestions=self._structure_suggestions(groups),
        )

    def hints(
        self,
        files: Sequence[FileDescriptor],
        *,
        projects: Optional[Dict[str, List[str]]] = None,
    ) -> List[str]:
        """Return only the prompt hints for ``files``."""
        return self.analyze(files, projects=projects).hints

    def project_groups(self, files: Sequence[FileDescriptor]) -> Dict[str, List[str]]:
        """Return multi-file project groups as label to member file names."""
        return {
            group.label: [descriptor.name for descriptor in group.files]
            for group in self.analyze(files).groups
            if group.kind == "project"
        }

    @staticmethod
    def _group(
        files: Sequence[FileDescriptor],
        matches: Dict[str, List[PatternMatch]],
        projects: Optional[Dict[str, List[str]]] = None,
    ) -> List[PatternGroup]:
        buckets: "OrderedDict[tuple[str, str], PatternGroup]" = OrderedDict()
        claimed: set[str] = set()
        for kind, key in (("episode_series", "series"), ("project", "project"), ("date", "period")):
            if kind == "project" and projects is not None:
                by_name = {descriptor.name: descriptor for descriptor in files}
                for label, names in projects.items():
                    members = [
                        by_name[name] for name in names if name in by_name and name not in claimed
                    ]
                    if members:
                        buckets[(kind, label)] = PatternGroup(kind=kind, label=label, files=members)
                        claimed.update(descriptor.name for descriptor in members)
                continue
            for descriptor in files:
                if descriptor.name in claimed:
                    continue
                for match in matches.get(descriptor.name, []):
                    if match.kind != kind:
                        continue
                    label = match.metadata[key]
                    group = buckets.setdefault((kind, label), PatternGroup(kind=kind, label=label))
                    group.files.append(descriptor)
                    claimed.add(descriptor.name)
                    break
        return [group for group in buckets.values() if len(group.files) > 1]

    @staticmethod
    def _hints(matches: Dict[str, List[PatternMatch]], groups: List[PatternGroup]) -> List[str]:
        hints: List[str] = []
        series = [group for group in groups if group.kind == "episode_series"]
        if series:
            hints.append(f"Detected {len(series)} TV/movie series with episode patterns")
            hints.extend(f'Series "{group.label}" has {len(group.files)} files' for group in series)

        projects = [group for group in groups if group.kind == "project"]
        if projects:
            hints.append(f"Detected {len(projects)} potential code/document projects")
            hints.extend(f'Project "{group.label}" has {len(group.files)} files' for group in projects)

        if any(group.kind == "date" for group in groups):
            hints.append("Found files that could be organized by date/time periods")

        kinds = {match.kind for found in matches.values() for match in found}
        if "version" in kinds:
            hints.append("Some files appear to be different versions of the same content")
        if "archive" in kinds:
            hints.append(
                "Archive files detected - consider if they should be extracted or organized separately"
            )
        return hints

    @staticmethod
    def _structure_suggestions(groups: List[PatternGroup]) -> List[str]:
        suggestions: List[str] = []
        for group in groups:
            if group.kind == "episode_series":
                suggestions.append(
                    f'Consider organizing "{group.label}" files in TV Shows/{group.label}/'
                )
            elif group.kind == "project":
                suggestions.append(
                    f'Keep project "{group.label}" files together in Projects/{group.label}/'
                )
            elif group.kind == "date":
                suggestions.append(f"Files from {group.label} could be organized by date")
        return suggestions


__all__ = ["PatternAnalyzer", "PatternAnalysis", "PatternGroup", "PatternMatch"]
