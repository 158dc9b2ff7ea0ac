"""Suggestion models, post-processing, and move planning."""

from .models import MoveOperation, MovePlan, Suggestion
from .planner import MovePlanner, to_move_plan
from .postprocess import SuggestionPostProcessor

__all__ = [
    "MoveOperation",
    "MovePlan",
    "MovePlanner",
    "Suggestion",
    "SuggestionPostProcessor",
    "to_move_plan",
]
