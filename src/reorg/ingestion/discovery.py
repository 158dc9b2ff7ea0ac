"""File discovery utilities."""

from __future__ import annotations

import logging
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from .models import FileDescriptor

LOGGER = logging.getLogger(__name__)


def _is_hidden(relative: Path) -> bool:
    return any(part.startswith(".") for part in relative.parts if part not in (".", ".."))


def _matches(relative: Path, pattern: str) -> bool:
    posix = relative.as_posix()
    if fnmatch(posix, pattern) or fnmatch(relative.name, pattern):
        return True
    if pattern.endswith("/**"):
        return pattern[: -len("/**")] in relative.parts[:-1] or posix == pattern[: -len("/**")]
    return False


class DirectoryScanner:
    """Discover files within a directory tree subject to configuration filters."""

    def __init__(
        self,
        *,
        recursive: bool = False,
        include_hidden: bool = False,
        follow_symlinks: bool = False,
        max_depth: int | None = 5,
        exclude_patterns: Sequence[str] = (),
        include_patterns: Sequence[str] = (),
    ) -> None:
        self.recursive = recursive
        self.include_hidden = include_hidden
        self.follow_symlinks = follow_symlinks
        self.max_depth = max_depth
        self.exclude_patterns = list(exclude_patterns)
        self.include_patterns = list(include_patterns)

    def scan(self, root: Path) -> Iterator[FileDescriptor]:
        """Yield descriptors for files under ``root`` respecting configured filters.

        Args:
            root: Directory (or single file) to scan.

        Yields:
            FileDescriptor: One descriptor per accepted file.
        """
        root = root.expanduser().resolve()
        if not root.exists():
            return

        for path in self._iter_paths(root, root, depth=0):
            try:
                relative = path.relative_to(root)
            except ValueError:
                relative = Path(path.name)
            if not self._accepts(relative):
                continue
            try:
                yield FileDescriptor.from_path(path, follow_symlinks=self.follow_symlinks)
            except OSError as exc:
                LOGGER.debug("Skipping %s: %s", path, exc)

    def _accepts(self, relative: Path) -> bool:
        if not self.include_hidden and _is_hidden(relative):
            return False
        if any(_matches(relative, pattern) for pattern in self.exclude_patterns):
            return False
        if self.include_patterns:
            return any(_matches(relative, pattern) for pattern in self.include_patterns)
        return True

    def _iter_paths(self, root: Path, directory: Path, *, depth: int) -> Iterable[Path]:
        if directory.is_file():
            yield directory
            return

        try:
            children = sorted(directory.iterdir())
        except OSError as exc:
            LOGGER.debug("Unable to list %s: %s", directory, exc)
            return

        for child in children:
            if child.is_symlink() and not self.follow_symlinks:
                continue
            if child.is_dir():
                if not self.recursive:
                    continue
                if self.max_depth is not None and depth + 1 > self.max_depth:
                    continue
                relative = child.relative_to(root)
                if not self.include_hidden and _is_hidden(relative):
                    continue
                if any(
                    _matches(relative / "_", pattern) and pattern.endswith("/**")
                    for pattern in self.exclude_patterns
                ):
                    continue
                yield from self._iter_paths(root, child, depth=depth + 1)
            elif child.is_file():
                yield child


__all__ = ["DirectoryScanner"]
