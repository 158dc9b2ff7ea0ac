"""Recovery of structured data from free-form model replies."""

from .errors import EXCERPT_LIMIT, ParseFailure
from .parser import ExpectedReply, ResponseRecovery
from .schemas import (
    CategoryMap,
    ClarificationRequest,
    ModelReply,
    SuggestionBatch,
    SuggestionPayload,
)

__all__ = [
    "CategoryMap",
    "ClarificationRequest",
    "EXCERPT_LIMIT",
    "ExpectedReply",
    "ModelReply",
    "ParseFailure",
    "ResponseRecovery",
    "SuggestionBatch",
    "SuggestionPayload",
]
