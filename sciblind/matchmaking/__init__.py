"""Matchmaking engine: which items a participant sees next."""

from sciblind.matchmaking.history import has_full_coverage
from sciblind.matchmaking.models import MatchPair, MatchPhase, MatchQuad
from sciblind.matchmaking.pairing import select_next_pair
from sciblind.matchmaking.quads import select_next_quad, select_next_quad_winners_only
from sciblind.matchmaking.targets import (
    calculate_recommended_comparisons,
    calculate_recommended_quad_comparisons,
    get_category_progress,
)

__all__ = [
    "MatchPair",
    "MatchPhase",
    "MatchQuad",
    "calculate_recommended_comparisons",
    "calculate_recommended_quad_comparisons",
    "get_category_progress",
    "has_full_coverage",
    "select_next_pair",
    "select_next_quad",
    "select_next_quad_winners_only",
]
