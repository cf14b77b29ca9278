"""Per-session signals derived from the ordered comparison history."""

from collections import Counter
from collections.abc import Iterable, Sequence

from sciblind.models import Comparison, Item, pair_key

# An item shown in this many consecutive comparisons is blocked from the next one
STREAK_LIMIT = 2

# Comparisons considered by the variety penalty (1 = most recent)
RECENT_WINDOW = 3


def get_seen_item_ids(session_comparisons: Iterable[Comparison]) -> set[str]:
    seen = set()
    for comp in session_comparisons:
        seen.add(comp.item_a_id)
        seen.add(comp.item_b_id)
    return seen


def has_full_coverage(items: Iterable[Item], session_comparisons: Iterable[Comparison]) -> bool:
    """True when every item appeared at least once this session (vacuously for no items)."""
    seen = get_seen_item_ids(session_comparisons)
    return all(item.id in seen for item in items)


def get_streak_blocked_items(
    session_comparisons: Sequence[Comparison],
    streak_limit: int = STREAK_LIMIT,
) -> set[str]:
    """Items that appeared in each of the last ``streak_limit`` comparisons."""
    if len(session_comparisons) < streak_limit:
        return set()

    appearances: Counter[str] = Counter()
    for comp in session_comparisons[-streak_limit:]:
        appearances[comp.item_a_id] += 1
        appearances[comp.item_b_id] += 1

    return {item_id for item_id, count in appearances.items() if count >= streak_limit}


def pair_exposure_counts(comparisons: Iterable[Comparison]) -> Counter[tuple[str, str]]:
    """How many times each unordered pair has been compared."""
    return Counter(comp.pair_key for comp in comparisons)


class SessionHistory:
    """Snapshot of everything the selectors need from a session's history.

    Built once per selection call; nothing is carried between calls.
    """

    def __init__(self, items: Sequence[Item], session_comparisons: Sequence[Comparison]):
        self.comparisons = list(session_comparisons)
        self.seen_ids = get_seen_item_ids(self.comparisons)
        self.compared_pairs = {comp.pair_key for comp in self.comparisons}
        self.streak_blocked = get_streak_blocked_items(self.comparisons)

        self.session_counts: Counter[str] = Counter({item.id: 0 for item in items})
        for comp in self.comparisons:
            self.session_counts[comp.item_a_id] += 1
            self.session_counts[comp.item_b_id] += 1

        # item id -> recency, 1 = most recent comparison
        self.recency: dict[str, int] = {}
        for recency, comp in enumerate(reversed(self.comparisons[-RECENT_WINDOW:]), 1):
            self.recency.setdefault(comp.item_a_id, recency)
            self.recency.setdefault(comp.item_b_id, recency)

    def is_seen(self, item: Item) -> bool:
        return item.id in self.seen_ids

    def unseen(self, items: Iterable[Item]) -> list[Item]:
        return [item for item in items if item.id not in self.seen_ids]

    def was_compared(self, item_a: Item, item_b: Item) -> bool:
        return pair_key(item_a.id, item_b.id) in self.compared_pairs

    def recently_shown(self, window: int) -> set[str]:
        """Items in the last ``window`` comparisons."""
        shown = set()
        for comp in self.comparisons[-window:] if window > 0 else []:
            shown.add(comp.item_a_id)
            shown.add(comp.item_b_id)
        return shown
