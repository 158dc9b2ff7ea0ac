"""Deterministic digests used for cache keys and validity checks."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Iterable

from reorg.config.models import ReorgConfig
from reorg.ingestion.models import FileDescriptor


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8"), usedforsecurity=False).hexdigest()


def _canonical_json(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def directory_fingerprint(files: Iterable[FileDescriptor]) -> str:
    """Return a digest over the name, size, and mtime of ``files``.

    Enumeration order does not matter; any change to a name, size, or modification
    time (at millisecond resolution) produces a different digest.

    Args:
        files: Descriptors describing the directory contents.

    Returns:
        str: Hex-encoded md5 digest.
    """
    entries = sorted(
        (
            {"name": descriptor.name, "size": descriptor.size, "modified": descriptor.modified_ms}
            for descriptor in files
        ),
        key=lambda entry: (entry["name"], entry["size"], entry["modified"]),
    )
    return _md5(_canonical_json({"files": entries}))


def directory_key(directory: str | Path) -> str:
    """Return a fixed-width key for the canonical absolute form of ``directory``."""
    return _md5(str(Path(directory).expanduser().resolve()))


def config_fingerprint(config: ReorgConfig) -> str:
    """Return a digest over the settings that influence generated suggestions."""
    relevant = {
        "organization": {
            "confidence_threshold": config.organization.confidence_threshold,
            "preserve_original_names": config.organization.preserve_original_names,
        },
        "llm": {
            "provider": config.llm.provider,
            "model": config.llm.model,
            "temperature": config.llm.temperature,
        },
    }
    return _md5(_canonical_json(relevant))


__all__ = ["directory_fingerprint", "directory_key", "config_fingerprint"]
