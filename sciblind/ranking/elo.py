"""Pure Elo rating calculations."""

import math
from functools import cmp_to_key
from typing import Literal

from pydantic import BaseModel

from sciblind.models import Item

# Games below which the adaptive K-factor is boosted
ADAPTIVE_K_GAMES = 32


class EloResult(BaseModel):
    """New ratings and deltas for one pairwise outcome."""
    winner_new_rating: float
    loser_new_rating: float
    winner_delta: float
    loser_delta: float


def expected_score(rating_a: float, rating_b: float) -> float:
    """Probability that A beats B under the logistic Elo model.

    Uses the standard formula: E_A = 1 / (1 + 10^((R_B - R_A) / 400))
    """
    return 1.0 / (1.0 + math.pow(10.0, (rating_b - rating_a) / 400.0))


def calculate_elo_change(
    winner_rating: float,
    loser_rating: float,
    k_factor: float = 32.0
) -> EloResult:
    """Calculate rating changes after a comparison.

    Ratings are not clamped. The caller persists both new ratings together
    with the comparison record.

    Args:
        winner_rating: Current rating of the winner
        loser_rating: Current rating of the loser
        k_factor: Sensitivity of rating changes

    Returns:
        EloResult with new ratings and deltas (zero-sum)
    """
    expected_winner = expected_score(winner_rating, loser_rating)
    expected_loser = 1.0 - expected_winner

    # R' = R + K * (S - E), S = 1 for the winner and 0 for the loser
    winner_delta = k_factor * (1.0 - expected_winner)
    loser_delta = k_factor * (0.0 - expected_loser)

    return EloResult(
        winner_new_rating=winner_rating + winner_delta,
        loser_new_rating=loser_rating + loser_delta,
        winner_delta=winner_delta,
        loser_delta=loser_delta,
    )


def calculate_adaptive_k(base_k: float, games_a: int, games_b: int) -> float:
    """K-factor boosted for items with few rated games.

    The less experienced item decides: K = base_k * max(1, 32 / games),
    with zero games treated as one.
    """
    games = max(1, min(games_a, games_b))
    return base_k * max(1.0, ADAPTIVE_K_GAMES / games)


def calculate_artist_boost(artist_rank: int) -> float:
    """Initial rating boost from an external artist ranking (1 = best, 10 = worst)."""
    if artist_rank < 1 or artist_rank > 10:
        return 0.0
    return (11 - artist_rank) * 20.0


def points_to_rank(points: int) -> int:
    """Convert jury points (10 = best) into a rank (1 = best). 0 when out of range."""
    if points < 1 or points > 10:
        return 0
    return 11 - points


def get_confidence_level(comparison_count: int) -> Literal["low", "medium", "high"]:
    if comparison_count < 5:
        return "low"
    if comparison_count < 15:
        return "medium"
    return "high"


def _win_rate(item: Item) -> float:
    return item.win_count / item.comparison_count if item.comparison_count > 0 else 0.0


def compare_items_for_ranking(a: Item, b: Item) -> float:
    """Sort comparator: negative when ``a`` ranks above ``b``.

    Order: Elo (higher first), artist rank (lower first, ranked before
    unranked), comparison count (more first), win rate (higher first).
    """
    if a.elo_rating != b.elo_rating:
        return b.elo_rating - a.elo_rating

    if a.artist_rank is not None and b.artist_rank is not None:
        if a.artist_rank != b.artist_rank:
            return a.artist_rank - b.artist_rank
    elif a.artist_rank is not None:
        return -1
    elif b.artist_rank is not None:
        return 1

    if a.comparison_count != b.comparison_count:
        return b.comparison_count - a.comparison_count

    return _win_rate(b) - _win_rate(a)


def rank_items(items: list[Item]) -> list[Item]:
    """Items sorted best first."""
    return sorted(items, key=cmp_to_key(compare_items_for_ranking))
