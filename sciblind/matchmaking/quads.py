"""Quad selection: show four items, the participant picks one winner.

A quad vote is recorded as three pairwise wins (winner vs each loser).
Display order is a uniform random permutation; there is no left/right
balancing with four simultaneous slots.
"""

import random
from collections.abc import Sequence

from sciblind.errors import InsufficientItemsError
from sciblind.logging import get_logger
from sciblind.matchmaking.history import SessionHistory
from sciblind.matchmaking.models import MatchQuad
from sciblind.matchmaking.scoring import QUAD_RECENT_WINDOW, quad_item_score
from sciblind.models import Comparison, Item

log = get_logger(__name__)

QUAD_SIZE = 4
# Minimum distance of the fourth item from the mean rating of the first three
MIN_ELO_SPREAD = 50


def shuffle_positions(item_ids: Sequence[str], rng: random.Random | None = None) -> list[str]:
    """Fisher-Yates shuffle; every ordering equally likely."""
    source = rng if rng is not None else random
    result = list(item_ids)
    for i in range(len(result) - 1, 0, -1):
        j = source.randrange(i + 1)
        result[i], result[j] = result[j], result[i]
    return result


def _pick_four(ranked: list[Item]) -> list[Item]:
    """Take the four best-ranked items, keeping the fourth away from the others' mean rating."""
    selected: list[Item] = []
    used: set[str] = set()

    for index, item in enumerate(ranked):
        if len(selected) >= QUAD_SIZE:
            break
        if item.id in used:
            continue

        if len(selected) == QUAD_SIZE - 1 and index < len(ranked) - 1:
            average = sum(chosen.elo_rating for chosen in selected) / len(selected)
            if abs(item.elo_rating - average) < MIN_ELO_SPREAD:
                diverse = next(
                    (
                        other for other in ranked[index + 1:]
                        if other.id not in used
                        and abs(other.elo_rating - average) >= MIN_ELO_SPREAD
                    ),
                    None,
                )
                if diverse is not None:
                    selected.append(diverse)
                    used.add(diverse.id)
                    continue

        selected.append(item)
        used.add(item.id)

    return selected


def _build_quad(
    pool: Sequence[Item],
    history: SessionHistory,
    rng: random.Random | None,
) -> MatchQuad | None:
    recently_shown = history.recently_shown(QUAD_RECENT_WINDOW)
    ranked = sorted(pool, key=lambda item: quad_item_score(item, history, recently_shown))

    selected = _pick_four(ranked)
    if len(selected) < QUAD_SIZE:
        return None

    positions = shuffle_positions([item.id for item in selected], rng)
    return MatchQuad(items=tuple(selected), positions=tuple(positions))


def select_next_quad(
    items: Sequence[Item],
    session_comparisons: Sequence[Comparison],
    rng: random.Random | None = None,
) -> MatchQuad | None:
    """Select the next four items to show.

    Item score (lower is better): -1000 if unseen this session,
    +5 per global comparison, +20 per session appearance, +100 if shown in
    either of the last two comparisons.

    Raises:
        InsufficientItemsError: Fewer than four items
    """
    if len(items) < QUAD_SIZE:
        raise InsufficientItemsError(required=QUAD_SIZE, available=len(items))

    history = SessionHistory(items, session_comparisons)
    quad = _build_quad(items, history, rng)
    if quad is not None:
        log.debug("Selected quad", items=quad.item_ids, unseen=len(history.unseen(items)))
    return quad


def select_next_quad_winners_only(
    items: Sequence[Item],
    session_comparisons: Sequence[Comparison],
    rng: random.Random | None = None,
) -> MatchQuad | None:
    """Quad drawn only from items that won at least once this session.

    Used to refine the top of a category after coverage is complete.
    Returns None when fewer than four winners exist.
    """
    winners = {comp.winner_id for comp in session_comparisons}
    pool = [item for item in items if item.id in winners]
    if len(pool) < QUAD_SIZE:
        log.debug("Not enough session winners for a quad", winners=len(pool))
        return None

    history = SessionHistory(items, session_comparisons)
    return _build_quad(pool, history, rng)
