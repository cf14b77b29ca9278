"""Pair selection for pairwise comparison sessions.

Two phases, recomputed on every call from the current snapshot:

COVERAGE (some items unseen this session)
    Pair two unseen items (one vote covers two items), otherwise pair an
    unseen item with the seen item shown least this session.

DEPTH (every item seen)
    Score every untried pair on global need, rating closeness, recency,
    session fairness and cross-session pair exposure.

Both phases never repeat a pair within a session, honour the hard streak
limit (relaxed only when nothing else is left) and balance left/right
exposure when assigning display positions.
"""

import random
from collections import Counter
from collections.abc import Callable, Sequence

from sciblind.errors import InsufficientItemsError
from sciblind.logging import get_logger
from sciblind.matchmaking.history import SessionHistory, pair_exposure_counts
from sciblind.matchmaking.models import MatchPair, MatchPhase
from sciblind.matchmaking.scoring import (
    coverage_fallback_score,
    coverage_pair_score,
    depth_pair_score,
)
from sciblind.models import Comparison, Item, pair_key

log = get_logger(__name__)

# Categories up to this size get an exhaustive O(n^2) depth search
FULL_SEARCH_MAX_ITEMS = 100
# Row candidates (least compared first) for larger categories
SAMPLED_ROWS = 50

Candidate = tuple[Item, Item, float]


def determine_phase(items: Sequence[Item], history: SessionHistory) -> MatchPhase:
    if history.unseen(items):
        return MatchPhase.COVERAGE
    return MatchPhase.DEPTH


def _allowed_predicate(history: SessionHistory, phase: MatchPhase) -> Callable[[Item], bool]:
    """Streak filter; unseen items are exempt while coverage is incomplete."""

    def is_allowed(item: Item) -> bool:
        if phase is MatchPhase.COVERAGE and not history.is_seen(item):
            return True
        return item.id not in history.streak_blocked

    return is_allowed


def _by_global_count(items: Sequence[Item]) -> list[Item]:
    return sorted(items, key=lambda item: item.comparison_count)


def _select_coverage_pair(
    items: Sequence[Item],
    history: SessionHistory,
    is_allowed: Callable[[Item], bool],
) -> Candidate | None:
    unseen = _by_global_count(history.unseen(items))
    best: Candidate | None = None

    # Two unseen items
    for i, item_a in enumerate(unseen):
        for item_b in unseen[i + 1:]:
            if not is_allowed(item_a) or not is_allowed(item_b):
                continue
            if history.was_compared(item_a, item_b):
                continue
            score = coverage_pair_score(item_a, item_b)
            if best is None or score < best[2]:
                best = (item_a, item_b, score)

    if best is not None:
        return best

    # One unseen item with the least-shown seen item it can still meet
    seen = sorted(
        (item for item in items if history.is_seen(item)),
        key=lambda item: history.session_counts[item.id],
    )
    for unseen_item in unseen:
        for seen_item in seen:
            if not is_allowed(unseen_item) or not is_allowed(seen_item):
                continue
            if history.was_compared(unseen_item, seen_item):
                continue
            score = coverage_fallback_score(unseen_item, seen_item)
            if best is None or score < best[2]:
                best = (unseen_item, seen_item, score)
            break

    return best


def _select_depth_pair(
    items: Sequence[Item],
    history: SessionHistory,
    is_allowed: Callable[[Item], bool],
    exposures: Counter[tuple[str, str]],
) -> Candidate | None:
    by_need = _by_global_count(items)
    full_search = len(items) <= FULL_SEARCH_MAX_ITEMS

    # Large categories: only the least-compared rows, columns over the full
    # set in its given order. This can miss the global optimum.
    rows = by_need if full_search else by_need[:SAMPLED_ROWS]
    columns = by_need if full_search else list(items)

    best: Candidate | None = None
    for i, item_a in enumerate(rows):
        if not is_allowed(item_a):
            continue
        for item_b in columns[i + 1:]:
            if item_b.id == item_a.id or not is_allowed(item_b):
                continue
            key = pair_key(item_a.id, item_b.id)
            if key in history.compared_pairs:
                continue
            score = depth_pair_score(item_a, item_b, history, exposures[key])
            if best is None or score < best[2]:
                best = (item_a, item_b, score)

    return best


def distinct_pair_count(item_count: int) -> int:
    """Unordered pairs a session can compare in a category of ``item_count`` items."""
    return item_count * (item_count - 1) // 2 if item_count > 1 else 0


def pairs_exhausted(items: Sequence[Item], session_comparisons: Sequence[Comparison]) -> bool:
    """True when every pair of ``items`` was compared this session."""
    item_ids = {item.id for item in items}
    compared = {
        comp.pair_key for comp in session_comparisons
        if comp.item_a_id in item_ids and comp.item_b_id in item_ids
    }
    return len(compared) >= distinct_pair_count(len(items))


def _first_uncompared_pair(items: Sequence[Item], history: SessionHistory) -> Candidate | None:
    """Linear scan ignoring the streak limit; last resort."""
    for i, item_a in enumerate(items):
        for item_b in items[i + 1:]:
            if not history.was_compared(item_a, item_b):
                return (item_a, item_b, 0.0)
    return None


def assign_positions(
    item_a: Item,
    item_b: Item,
    rng: random.Random | None = None,
) -> tuple[str, str]:
    """Return ``(left_id, right_id)`` correcting cumulative position bias.

    The item with the larger left deficit goes left; equal balances are
    settled by a fair coin.
    """
    a_balance = item_a.position_balance
    b_balance = item_b.position_balance

    if a_balance < b_balance:
        return item_a.id, item_b.id
    if b_balance < a_balance:
        return item_b.id, item_a.id

    coin = rng if rng is not None else random
    if coin.random() < 0.5:
        return item_a.id, item_b.id
    return item_b.id, item_a.id


def select_next_pair(
    items: Sequence[Item],
    session_comparisons: Sequence[Comparison],
    global_comparisons: Sequence[Comparison] | None = None,
    rng: random.Random | None = None,
) -> MatchPair | None:
    """Select the next pair to show in a category.

    Args:
        items: All items in the category
        session_comparisons: This session's comparisons in the category, in vote order
        global_comparisons: Comparisons from all sessions, used only for the
            cross-session pair exposure term (session history when omitted)
        rng: Random source for position coin flips

    Returns:
        The next MatchPair, or None when every pair was compared this session

    Raises:
        InsufficientItemsError: Fewer than two items
    """
    if len(items) < 2:
        raise InsufficientItemsError(required=2, available=len(items))

    if pairs_exhausted(items, session_comparisons):
        log.debug("All pairs exhausted", items=len(items))
        return None

    history = SessionHistory(items, session_comparisons)
    session_phase = determine_phase(items, history)
    is_allowed = _allowed_predicate(history, session_phase)

    # The phase reported is the search that produced the pair
    phase = session_phase
    relaxed = False
    candidate = None
    if session_phase is MatchPhase.COVERAGE:
        candidate = _select_coverage_pair(items, history, is_allowed)

    if candidate is None:
        phase = MatchPhase.DEPTH
        exposure_source = global_comparisons if global_comparisons is not None else history.comparisons
        candidate = _select_depth_pair(items, history, is_allowed, pair_exposure_counts(exposure_source))

    if candidate is None:
        log.debug("Relaxing streak limit", blocked=sorted(history.streak_blocked))
        relaxed = True
        candidate = _first_uncompared_pair(items, history)

    if candidate is None:
        return None

    item_a, item_b, score = candidate
    left_id, right_id = assign_positions(item_a, item_b, rng)

    log.debug(
        "Selected pair",
        phase=phase.value,
        session_phase=session_phase.value,
        relaxed=relaxed,
        item_a=item_a.id,
        item_b=item_b.id,
        score=score,
    )

    return MatchPair(
        item_a=item_a,
        item_b=item_b,
        left_item_id=left_id,
        right_item_id=right_id,
        phase=phase,
        score=score,
        relaxed=relaxed,
    )
