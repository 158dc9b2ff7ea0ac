"""Schemas for structured data embedded in model replies."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from reorg.organization.models import Suggestion

DEFAULT_CONFIDENCE = 0.5


class SuggestionPayload(BaseModel):
    """One suggestion object as emitted by the model."""

    model_config = ConfigDict(extra="ignore")

    file_name: str = Field(validation_alias=AliasChoices("fileName", "file", "file_name"))
    suggested_path: str = Field(validation_alias=AliasChoices("suggestedPath", "suggested_path"))
    reason: str = ""
    confidence: float = DEFAULT_CONFIDENCE
    category: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("file_name", "suggested_path")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("reason", mode="before")
    @classmethod
    def _coerce_reason(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        if isinstance(value, bool) or value is None:
            return DEFAULT_CONFIDENCE
        try:
            number = float(value)
        except (TypeError, ValueError):
            return DEFAULT_CONFIDENCE
        if number != number:
            return DEFAULT_CONFIDENCE
        return min(max(number, 0.0), 1.0)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _drop_non_mapping(cls, value: Any) -> Optional[Dict[str, Any]]:
        return value if isinstance(value, dict) else None

    def to_suggestion(self) -> Suggestion:
        """Return an unbound `Suggestion`; the caller binds the file by name."""
        return Suggestion(
            file=None,
            file_name=self.file_name,
            suggested_path=self.suggested_path,
            reason=self.reason,
            confidence=self.confidence,
            category=self.category,
            metadata=self.metadata,
        )


class ClarificationPayload(BaseModel):
    """The ``clarificationNeeded`` block of a reply."""

    model_config = ConfigDict(extra="ignore")

    questions: List[str] = Field(default_factory=list)
    reason: str = ""

    @field_validator("questions", mode="before")
    @classmethod
    def _clean_questions(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        return [str(item).strip() for item in value if str(item).strip()]

    @field_validator("reason", mode="before")
    @classmethod
    def _coerce_reason(cls, value: Any) -> str:
        return "" if value is None else str(value)


def normalize_category_map(raw: Any) -> Dict[str, List[str]]:
    """Coerce a ``discoveredCategories`` value into ``{category: [file names]}``.

    Entries may be plain names or objects carrying ``name``/``fileName``; anything
    else is ignored. Category order is preserved.
    """
    if not isinstance(raw, dict):
        return {}

    categories: Dict[str, List[str]] = {}
    for category, members in raw.items():
        label = str(category).strip()
        if not label:
            continue
        if isinstance(members, (str, dict)):
            members = [members]
        if not isinstance(members, list):
            continue
        names: List[str] = []
        for member in members:
            if isinstance(member, dict):
                member = member.get("name") or member.get("fileName") or member.get("file")
            if isinstance(member, str) and member.strip():
                names.append(member.strip())
        categories[label] = names
    return categories


class SuggestionBatch(BaseModel):
    """A list of per-file suggestions.

    Attributes:
        suggestions: Decoded suggestions with unbound file references.
        reasoning: Overall strategy text supplied by the model.
        recovered: True when the batch was salvaged from malformed or truncated output.
    """

    kind: Literal["suggestions"] = "suggestions"
    suggestions: List[Suggestion]
    reasoning: str = ""
    recovered: bool = False


class CategoryMap(BaseModel):
    """Categories discovered by the model, mapping names to filenames."""

    kind: Literal["categories"] = "categories"
    categories: Dict[str, List[str]] = Field(default_factory=dict)
    reasoning: str = ""


class ClarificationRequest(BaseModel):
    """The model asked questions before it can continue.

    Any categories or suggestions that accompanied the questions are kept so the
    caller can proceed if the user declines to answer.
    """

    kind: Literal["clarification"] = "clarification"
    questions: List[str]
    reason: str = ""
    categories: Dict[str, List[str]] = Field(default_factory=dict)
    suggestions: List[Suggestion] = Field(default_factory=list)
    reasoning: str = ""


ModelReply = Annotated[
    Union[SuggestionBatch, CategoryMap, ClarificationRequest],
    Field(discriminator="kind"),
]

REPLY_ADAPTER: TypeAdapter[ModelReply] = TypeAdapter(ModelReply)


__all__ = [
    "CategoryMap",
    "ClarificationPayload",
    "ClarificationRequest",
    "DEFAULT_CONFIDENCE",
    "ModelReply",
    "REPLY_ADAPTER",
    "SuggestionBatch",
    "SuggestionPayload",
    "normalize_category_map",
]
