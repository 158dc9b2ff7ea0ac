"""Coarse file-type categorization."""

from __future__ import annotations

import mimetypes

from .models import FileDescriptor

_EXTENSION_CATEGORIES: dict[str, frozenset[str]] = {
    "documents": frozenset({".pdf", ".doc", ".docx", ".txt", ".rtf", ".odt", ".md"}),
    "spreadsheets": frozenset({".xls", ".xlsx", ".csv", ".ods"}),
    "presentations": frozenset({".ppt", ".pptx", ".odp", ".key"}),
    "archives": frozenset({".zip", ".rar", ".7z", ".tar", ".gz", ".bz2", ".xz"}),
    "code": frozenset(
        {".js", ".ts", ".py", ".java", ".cpp", ".c", ".h", ".html", ".css", ".php", ".rb", ".go", ".rs"}
    ),
}

_MIME_PREFIXES = (("image/", "images"), ("video/", "videos"), ("audio/", "audio"))


class TypeDetector:
    """Map descriptors onto the coarse buckets used in prompts and fallbacks."""

    def detect(self, descriptor: FileDescriptor) -> tuple[str, str]:
        """Return the guessed MIME type and category for ``descriptor``.

        Args:
            descriptor: File to categorize.

        Returns:
            tuple[str, str]: MIME type (``application/octet-stream`` when unknown) and category.
        """
        mime_type, _ = mimetypes.guess_type(descriptor.name)
        mime_type = mime_type or "application/octet-stream"

        for prefix, category in _MIME_PREFIXES:
            if mime_type.startswith(prefix):
                return mime_type, category

        extension = descriptor.extension.lower()
        for category, extensions in _EXTENSION_CATEGORIES.items():
            if extension in extensions:
                return mime_type, category
        return mime_type, "misc"


def file_category(descriptor: FileDescriptor) -> str:
    """Return the coarse category for ``descriptor``."""
    return TypeDetector().detect(descriptor)[1]


__all__ = ["TypeDetector", "file_category"]
