"""Suggestion and move-plan data models."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from reorg.ingestion.models import FileDescriptor


class Suggestion(BaseModel):
    """A proposed destination for one file.

    Attributes:
        file: Descriptor the suggestion is bound to, ``None`` until resolved by name.
        file_name: Filename the model referred to.
        suggested_path: Destination path relative to the base directory.
        reason: Explanation supplied by the model (or the fallback).
        confidence: Confidence score clamped into ``[0, 1]``.
        category: Optional category label.
        metadata: Optional free-form metadata from the model.
        fallback: True when the suggestion was synthesized locally.
    """

    file: Optional[FileDescriptor] = None
    file_name: str = ""
    suggested_path: str
    reason: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    category: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    fallback: bool = False


class MoveOperation(BaseModel):
    """Represents moving a file to a new location.

    Attributes:
        source: Current file path.
        destination: Destination path.
        reasoning: Explanation carried over from the suggestion.
        confidence: Confidence carried over from the suggestion.
    """

    source: Path
    destination: Path
    reasoning: Optional[str] = None
    confidence: float = 0.0


class MovePlan(BaseModel):
    """Aggregated move plan handed to the execution layer."""

    base_directory: Path
    moves: List[MoveOperation] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)


__all__ = ["Suggestion", "MoveOperation", "MovePlan"]
