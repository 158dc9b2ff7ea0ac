"""Pure adjustments applied to negotiated suggestions."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Iterable, List

from reorg.config.models import OrganizationOptions

from .models import Suggestion

LOGGER = logging.getLogger(__name__)


class SuggestionPostProcessor:
    """Filter suggestions by confidence and optionally restore original filenames."""

    def __init__(
        self,
        confidence_threshold: float = 0.7,
        preserve_original_names: bool = False,
    ) -> None:
        """Configure the post-processing pass.

        Args:
            confidence_threshold: Suggestions strictly below this value are dropped.
            preserve_original_names: Keep the suggested folder but reuse the original filename.
        """
        self.confidence_threshold = confidence_threshold
        self.preserve_original_names = preserve_original_names

    @classmethod
    def from_options(cls, options: OrganizationOptions) -> "SuggestionPostProcessor":
        """Build a processor from the `organization` configuration section."""
        return cls(
            confidence_threshold=options.confidence_threshold,
            preserve_original_names=options.preserve_original_names,
        )

    def process(self, suggestions: Iterable[Suggestion]) -> List[Suggestion]:
        """Return new suggestions that pass the configured filters.

        Args:
            suggestions: Negotiated suggestions. They are not mutated.

        Returns:
            List[Suggestion]: Filtered, possibly renamed copies in input order.
        """
        kept: List[Suggestion] = []
        dropped = 0
        for suggestion in suggestions:
            if suggestion.confidence < self.confidence_threshold:
                dropped += 1
                continue
            if self.preserve_original_names:
                kept.append(self._with_original_name(suggestion))
            else:
                kept.append(suggestion.model_copy(deep=True))

        if dropped:
            LOGGER.debug(
                "Dropped %d suggestion(s) below confidence threshold %.2f",
                dropped,
                self.confidence_threshold,
            )
        return kept

    @staticmethod
    def _with_original_name(suggestion: Suggestion) -> Suggestion:
        original = suggestion.file.name if suggestion.file is not None else suggestion.file_name
        if not original:
            return suggestion.model_copy(deep=True)

        directory = PurePosixPath(suggestion.suggested_path.replace("\\", "/")).parent
        target = original if str(directory) in ("", ".") else str(directory / original)
        return suggestion.model_copy(update={"suggested_path": target}, deep=True)


__all__ = ["SuggestionPostProcessor"]
