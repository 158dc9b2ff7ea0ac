"""Decode raw model text into typed replies, salvaging partial output."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Literal, Optional, Tuple

from pydantic import ValidationError

from reorg.organization.models import Suggestion

from .errors import ParseFailure
from .schemas import (
    REPLY_ADAPTER,
    ClarificationPayload,
    ModelReply,
    SuggestionPayload,
    normalize_category_map,
)

LOGGER = logging.getLogger(__name__)

ExpectedReply = Literal["suggestions", "categories"]

_FENCE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)(?:```|\Z)", re.DOTALL)
_SUGGESTION_OBJECT = re.compile(r'\{[^{}]*"(?:fileName|file)"\s*:[^{}]*\}')
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_CATEGORY_KEYS = frozenset({"discoveredCategories", "categories"})
RECOVERED_REASONING = "Recovered from truncated response"


@dataclass(frozen=True)
class JsonSpan:
    """A candidate JSON object located inside free text.

    Attributes:
        text: The span, starting at its opening brace.
        closed: False when the text ended before the braces balanced.
    """

    text: str
    closed: bool


def iter_json_spans(text: str) -> Iterator[JsonSpan]:
    """Yield brace-balanced spans in ``text``, fenced blocks first.

    Scanning is string- and escape-aware, so braces inside JSON strings do not
    affect nesting. An unclosed span ends iteration for its source block.
    """
    sources = [match.group(1) for match in _FENCE.finditer(text)]
    sources.append(text)
    for source in sources:
        position = source.find("{")
        while position >= 0:
            span = _balanced_from(source, position)
            yield span
            if not span.closed:
                break
            position = source.find("{", position + len(span.text))


def _balanced_from(text: str, start: int) -> JsonSpan:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return JsonSpan(text[start : index + 1], closed=True)
    return JsonSpan(text[start:], closed=False)


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    for candidate in (text, _TRAILING_COMMA.sub(r"\1", text)):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


def _leading_array(text: str) -> Optional[List[Any]]:
    """Return a top-level JSON array from ``text`` when one precedes any object."""
    decoder = json.JSONDecoder()
    sources = [match.group(1) for match in _FENCE.finditer(text)]
    sources.append(text)
    for source in sources:
        start = source.find("[")
        brace = source.find("{")
        if start < 0 or 0 <= brace < start:
            continue
        for candidate in (source[start:], _TRAILING_COMMA.sub(r"\1", source[start:])):
            try:
                value, _ = decoder.raw_decode(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(value, list):
                return value
    return None


class ResponseRecovery:
    """Turn model replies into `SuggestionBatch`, `CategoryMap`, or `ClarificationRequest`.

    Decoding runs in two modes:

    1. Strict: the first brace-balanced JSON object (fenced blocks preferred) is
       parsed and validated. A bare top-level array of suggestions is accepted
       as well.
    2. Salvage: when no object parses, or the reply was cut off mid-object, flat
       per-suggestion objects are extracted and validated one at a time.
    """

    def decode(self, raw_text: str, expect: ExpectedReply) -> ModelReply:
        """Decode ``raw_text`` into the reply type the caller expects.

        Args:
            raw_text: Raw model output.
            expect: ``"suggestions"`` or ``"categories"``. A clarification request is
                accepted in either case.

        Returns:
            ModelReply: Validated reply.

        Raises:
            ParseFailure: If no usable data could be recovered.
        """
        document, truncated = self._extract_document(raw_text)

        if document is not None:
            reply = self._from_document(document, expect)
            if reply is not None:
                return reply

        if expect == "suggestions":
            listed = self._parse_suggestions(_leading_array(raw_text))
            if listed:
                return REPLY_ADAPTER.validate_python({"kind": "suggestions", "suggestions": listed})

            salvaged = self._salvage(raw_text)
            if salvaged:
                LOGGER.warning(
                    "Recovered %d suggestion(s) from %s response",
                    len(salvaged),
                    "truncated" if truncated else "malformed",
                )
                return REPLY_ADAPTER.validate_python(
                    {
                        "kind": "suggestions",
                        "suggestions": salvaged,
                        "reasoning": RECOVERED_REASONING,
                        "recovered": True,
                    }
                )
            raise ParseFailure("No suggestions could be recovered from the model reply", raw_text=raw_text)

        if truncated:
            raise ParseFailure("Model reply was truncated before the JSON block closed", raw_text=raw_text)
        raise ParseFailure("Model reply did not contain a JSON object", raw_text=raw_text)

    # ------------------------------------------------------------------ #
    # Strict mode                                                        #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _extract_document(raw_text: str) -> Tuple[Optional[Dict[str, Any]], bool]:
        truncated = False
        for span in iter_json_spans(raw_text):
            if not span.closed:
                truncated = True
                continue
            document = _loads_object(span.text)
            if document is not None:
                return document, truncated
        return None, truncated

    def _from_document(self, document: Dict[str, Any], expect: ExpectedReply) -> Optional[ModelReply]:
        reasoning = document.get("reasoning")
        reasoning = reasoning if isinstance(reasoning, str) else ""
        categories = normalize_category_map(
            document.get("discoveredCategories", document.get("categories"))
        )
        suggestions = self._parse_suggestions(document.get("suggestions"))

        clarification = self._clarification(document.get("clarificationNeeded"))
        if clarification is not None:
            return REPLY_ADAPTER.validate_python(
                {
                    "kind": "clarification",
                    "questions": clarification.questions,
                    "reason": clarification.reason,
                    "categories": categories,
                    "suggestions": suggestions,
                    "reasoning": reasoning,
                }
            )

        if expect == "suggestions":
            if not suggestions:
                return None
            return REPLY_ADAPTER.validate_python(
                {"kind": "suggestions", "suggestions": suggestions, "reasoning": reasoning}
            )

        if not _CATEGORY_KEYS.intersection(document):
            return None
        return REPLY_ADAPTER.validate_python(
            {"kind": "categories", "categories": categories, "reasoning": reasoning}
        )

    @staticmethod
    def _clarification(raw: Any) -> Optional[ClarificationPayload]:
        if not isinstance(raw, dict):
            return None
        try:
            payload = ClarificationPayload.model_validate(raw)
        except ValidationError:
            return None
        return payload if payload.questions else None

    @staticmethod
    def _parse_suggestions(raw: Any) -> List[Suggestion]:
        if not isinstance(raw, list):
            return []
        suggestions: List[Suggestion] = []
        for item in raw:
            try:
                suggestions.append(SuggestionPayload.model_validate(item).to_suggestion())
            except ValidationError as exc:
                LOGGER.debug("Skipping malformed suggestion: %s", exc)
        return suggestions

    # ------------------------------------------------------------------ #
    # Salvage mode                                                       #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _salvage(raw_text: str) -> List[Suggestion]:
        suggestions: List[Suggestion] = []
        for match in _SUGGESTION_OBJECT.finditer(raw_text):
            document = _loads_object(match.group(0))
            if document is None:
                LOGGER.debug("Skipping malformed suggestion fragment")
                continue
            try:
                suggestions.append(SuggestionPayload.model_validate(document).to_suggestion())
            except ValidationError as exc:
                LOGGER.debug("Skipping invalid suggestion fragment: %s", exc)
        return suggestions


__all__ = ["ExpectedReply", "JsonSpan", "ResponseRecovery", "iter_json_spans"]
