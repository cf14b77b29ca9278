"""Scoring terms for pair and quad selection. Lower scores are better.

The weights are a tuned heuristic; each term is a separate function so it
can be adjusted without touching the search loops.
"""

from sciblind.matchmaking.history import SessionHistory
from sciblind.models import Item

NEED_WEIGHT = 10
VARIETY_WEIGHT = 50
SESSION_FAIRNESS_WEIGHT = 5
PAIR_EXPOSURE_WEIGHT = 20
UNSEEN_PAIR_BONUS = -1000

QUAD_UNSEEN_BONUS = -1000
QUAD_GLOBAL_WEIGHT = 5
QUAD_SESSION_WEIGHT = 20
QUAD_RECENT_PENALTY = 100
QUAD_RECENT_WINDOW = 2


def comparison_need(item_a: Item, item_b: Item) -> float:
    """Under-compared items first (global comparison counts)."""
    return NEED_WEIGHT * (item_a.comparison_count + item_b.comparison_count)


def elo_difference(item_a: Item, item_b: Item) -> float:
    """Close ratings make the more informative comparison."""
    return abs(item_a.elo_rating - item_b.elo_rating)


def variety_penalty(item_a: Item, item_b: Item, history: SessionHistory) -> float:
    """50 / recency for each item shown in the last three comparisons."""
    penalty = 0.0
    for item in (item_a, item_b):
        recency = history.recency.get(item.id, 0)
        if recency > 0:
            penalty += VARIETY_WEIGHT / recency
    return penalty


def session_fairness(item_a: Item, item_b: Item, history: SessionHistory) -> float:
    return SESSION_FAIRNESS_WEIGHT * (
        history.session_counts[item_a.id] + history.session_counts[item_b.id]
    )


def pair_exposure_penalty(exposures: int) -> float:
    return PAIR_EXPOSURE_WEIGHT * exposures


def coverage_pair_score(item_a: Item, item_b: Item) -> float:
    """Two unseen items; the bonus outranks every fallback pair."""
    return UNSEEN_PAIR_BONUS + comparison_need(item_a, item_b) + elo_difference(item_a, item_b)


def coverage_fallback_score(unseen_item: Item, seen_item: Item) -> float:
    return comparison_need(unseen_item, seen_item) + elo_difference(unseen_item, seen_item)


def depth_pair_score(
    item_a: Item,
    item_b: Item,
    history: SessionHistory,
    exposures: int,
) -> float:
    return (
        comparison_need(item_a, item_b)
        + elo_difference(item_a, item_b)
        + variety_penalty(item_a, item_b, history)
        + session_fairness(item_a, item_b, history)
        + pair_exposure_penalty(exposures)
    )


def quad_item_score(item: Item, history: SessionHistory, recently_shown: set[str]) -> float:
    score = 0.0
    if not history.is_seen(item):
        score += QUAD_UNSEEN_BONUS
    score += QUAD_GLOBAL_WEIGHT * item.comparison_count
    score += QUAD_SESSION_WEIGHT * history.session_counts[item.id]
    if item.id in recently_shown:
        score += QUAD_RECENT_PENALTY
    return score
