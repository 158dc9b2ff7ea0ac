"""Errors raised while decoding model replies."""

from __future__ import annotations

EXCERPT_LIMIT = 500


class ParseFailure(Exception):
    """Raised when no usable structured data can be recovered from a reply.

    Attributes:
        excerpt: Leading portion of the raw reply, bounded for diagnostics.
    """

    def __init__(self, message: str, *, raw_text: str = "") -> None:
        self.excerpt = raw_text[:EXCERPT_LIMIT]
        suffix = f". Response: {self.excerpt}..." if self.excerpt else ""
        super().__init__(f"{message}{suffix}")


__all__ = ["EXCERPT_LIMIT", "ParseFailure"]
