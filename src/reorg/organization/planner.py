"""Translate suggestions into a move plan for the execution layer."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from .models import MoveOperation, MovePlan, Suggestion


class MovePlanner:
    """Derive move plans from bound suggestions."""

    def build_plan(self, suggestions: Iterable[Suggestion], base_directory: Path) -> MovePlan:
        """Produce a move plan rooted at ``base_directory``.

        Suggestions that are unbound, escape the base directory, or would leave the
        file where it already is are listed under ``skipped``. Destination collisions
        are left for the execution layer to resolve.

        Args:
            suggestions: Suggestions to translate.
            base_directory: Root the suggested paths are relative to.

        Returns:
            MovePlan: Planned moves plus skipped entries.
        """
        root = base_directory.expanduser().resolve()
        plan = MovePlan(base_directory=root)

        for suggestion in suggestions:
            label = suggestion.file.name if suggestion.file else suggestion.file_name
            if suggestion.file is None:
                plan.skipped.append(label)
                plan.notes.append(f"{label}: suggestion is not bound to a scanned file")
                continue

            destination = self._destination(root, suggestion.suggested_path)
            if destination is None:
                plan.skipped.append(label)
                plan.notes.append(
                    f"{label}: '{suggestion.suggested_path}' is outside {root}"
                )
                continue

            if destination == suggestion.file.path:
                plan.skipped.append(label)
                continue

            plan.moves.append(
                MoveOperation(
                    source=suggestion.file.path,
                    destination=destination,
                    reasoning=suggestion.reason or None,
                    confidence=suggestion.confidence,
                )
            )
        return plan

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _destination(root: Path, suggested_path: str) -> Optional[Path]:
        relative = PurePosixPath(suggested_path.replace("\\", "/").strip())
        if not relative.parts or relative.is_absolute() or ".." in relative.parts:
            return None
        return root.joinpath(*relative.parts)


def to_move_plan(suggestions: Iterable[Suggestion], base_directory: Path) -> MovePlan:
    """Shortcut for `MovePlanner().build_plan`."""
    return MovePlanner().build_plan(suggestions, base_directory)


__all__ = ["MovePlanner", "to_move_plan"]
