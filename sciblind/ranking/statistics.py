"""Statistical sufficiency checks for comparison data.

Provides:
- Elo standard error estimation
- Comparison-graph connectivity (BFS over compared pairs)
- Circular triad (non-transitivity) detection
- The composite publishability threshold
"""

import math
from collections import defaultdict, deque
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, Field

from sciblind import config
from sciblind.logging import get_logger
from sciblind.models import Comparison, DataStatus, Item

log = get_logger(__name__)

# Sentinel for "transitivity not computed" (item set too large)
NOT_COMPUTED = -1

# Both ratios must reach this multiple of the bar for a "confirmation" verdict
CONFIRMATION_RATIO = 1.5

# Default total-comparison bar per item when the study leaves it unset
DEFAULT_COMPARISONS_PER_ITEM = 10


class ConnectivityResult(BaseModel):
    """Component analysis of the comparison graph."""
    connected: bool
    component_count: int
    component_sizes: list[int] = Field(default_factory=list)  # largest first
    largest_component: list[str] = Field(default_factory=list)
    isolated_items: list[str] = Field(default_factory=list)


class TransitivityResult(BaseModel):
    """Circular triad summary. All fields are -1 when not computed."""
    circular_triad_count: int
    transitivity_index: float
    total_triads: int

    @property
    def computed(self) -> bool:
        return self.total_triads != NOT_COMPUTED


class StudyThresholds(BaseModel):
    """Study-level publishability bar."""
    min_exposures_per_item: int = config.DEFAULT_MIN_EXPOSURES_PER_ITEM
    min_total_comparisons: int | None = None  # None = 10 x item count


class ExposureCondition(BaseModel):
    met: bool
    required: int
    min_observed: int
    items_below_threshold: int


class TotalComparisonsCondition(BaseModel):
    met: bool
    required: int
    observed: int


class ConnectivityCondition(BaseModel):
    met: bool
    connected: bool
    component_count: int


class ThresholdConditions(BaseModel):
    min_exposures: ExposureCondition
    total_comparisons: TotalComparisonsCondition
    graph_connectivity: ConnectivityCondition


class ThresholdResult(BaseModel):
    """Publishability verdict with per-condition details."""
    is_publishable: bool
    data_status: DataStatus
    conditions: ThresholdConditions


def calculate_elo_std_error(comparison_count: int) -> float:
    """Approximate standard error of an Elo rating.

    SE ~= 400 / (sqrt(n) * ln(10)), assuming opponents of similar strength.

    Args:
        comparison_count: Comparisons the item took part in

    Returns:
        Standard error in rating points, ``inf`` for zero comparisons
    """
    if comparison_count <= 0:
        return math.inf
    return 400.0 / (math.sqrt(comparison_count) * math.log(10))


def valid_comparisons(comparisons: Iterable[Comparison]) -> list[Comparison]:
    """Drop comparisons recorded by test sessions."""
    return [c for c in comparisons if not c.is_test]


def check_graph_connectivity(
    item_ids: Sequence[str],
    comparisons: Iterable[Comparison],
) -> ConnectivityResult:
    """Partition items into connected components of the comparison graph.

    Each item is a node; two items share an edge when they were compared at
    least once (multiplicity ignored). Comparisons touching items outside
    ``item_ids`` are ignored.

    Args:
        item_ids: All item ids in scope
        comparisons: Comparisons forming the edge set

    Returns:
        ConnectivityResult with components sorted largest first
    """
    if not item_ids:
        return ConnectivityResult(connected=True, component_count=0)

    adjacency: dict[str, set[str]] = {item_id: set() for item_id in item_ids}
    for comp in comparisons:
        if comp.item_a_id in adjacency and comp.item_b_id in adjacency:
            adjacency[comp.item_a_id].add(comp.item_b_id)
            adjacency[comp.item_b_id].add(comp.item_a_id)

    visited: set[str] = set()
    components: list[list[str]] = []
    isolated: list[str] = []

    for start in adjacency:
        if start in visited:
            continue

        component = []
        queue = deque([start])
        visited.add(start)
        while queue:
            node = queue.popleft()
            component.append(node)
            for neighbor in adjacency[node]:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        components.append(component)
        if not adjacency[start]:
            isolated.append(start)

    components.sort(key=len, reverse=True)

    return ConnectivityResult(
        connected=len(components) <= 1,
        component_count=len(components),
        component_sizes=[len(c) for c in components],
        largest_component=components[0],
        isolated_items=isolated,
    )


def detect_circular_triads(
    comparisons: Iterable[Comparison],
    max_items: int = config.TRANSITIVITY_MAX_ITEMS,
) -> TransitivityResult:
    """Count circular triads (A>B>C>A) in the comparison outcomes.

    Only triples whose three pairs were all compared are evaluated. Each
    edge points from the item that won the pair more often; a triple whose
    three edges rotate the same way is circular. A tied pair has no
    direction, so a triple containing one is never circular.

    The check is O(n^3). Above ``max_items`` distinct items it is skipped and
    every field is -1 ("not computed", not "no cycles").

    Args:
        comparisons: Valid comparisons
        max_items: Largest item count evaluated

    Returns:
        TransitivityResult; index = 1 - circular / evaluated, clamped to [0, 1]
    """
    wins: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    item_order: dict[str, None] = {}

    for comp in comparisons:
        item_order.setdefault(comp.item_a_id)
        item_order.setdefault(comp.item_b_id)
        wins[comp.winner_id][comp.loser_id] += 1

    items = list(item_order)
    n = len(items)

    if n > max_items:
        log.debug("Skipping circular triad detection", item_count=n, max_items=max_items)
        return TransitivityResult(
            circular_triad_count=NOT_COMPUTED,
            transitivity_index=NOT_COMPUTED,
            total_triads=NOT_COMPUTED,
        )

    def win_count(a: str, b: str) -> int:
        return wins[a][b] if a in wins and b in wins[a] else 0

    def direction(a: str, b: str) -> int | None:
        """1 if a dominates b, -1 if b dominates a, 0 if tied, None if never compared."""
        a_wins = win_count(a, b)
        b_wins = win_count(b, a)
        if a_wins + b_wins == 0:
            return None
        if a_wins == b_wins:
            return 0
        return 1 if a_wins > b_wins else -1

    circular = 0
    total = 0

    for i in range(n):
        for j in range(i + 1, n):
            ab = direction(items[i], items[j])
            if ab is None:
                continue
            for k in range(j + 1, n):
                bc = direction(items[j], items[k])
                ca = direction(items[k], items[i])
                if bc is None or ca is None:
                    continue

                total += 1
                # A>B>C>A or A<B<C<A
                if ab != 0 and ab == bc == ca:
                    circular += 1

    index = 1.0 - circular / (total if total > 0 else 1)

    return TransitivityResult(
        circular_triad_count=circular,
        transitivity_index=max(0.0, min(1.0, index)),
        total_triads=total,
    )


def is_publishable_threshold(
    items: Sequence[Item],
    comparisons: Iterable[Comparison],
    thresholds: StudyThresholds,
) -> ThresholdResult:
    """Check whether a category's data clears the publishable bar.

    Three conditions must all hold:
    1. every item has at least ``min_exposures_per_item`` valid exposures
    2. valid comparisons >= ``min_total_comparisons`` (default 10 x items)
    3. the comparison graph is connected

    Test-session comparisons are excluded before anything is counted.

    Args:
        items: All items in the category
        comparisons: All comparisons in the category, any session
        thresholds: Study-level bar

    Returns:
        ThresholdResult with ``insufficient``, ``publishable`` or
        ``confirmation`` status and per-condition details
    """
    required_exposures = thresholds.min_exposures_per_item
    required_total = thresholds.min_total_comparisons
    if required_total is None:
        required_total = len(items) * DEFAULT_COMPARISONS_PER_ITEM

    valid = valid_comparisons(comparisons)

    exposures = {item.id: 0 for item in items}
    for comp in valid:
        if comp.item_a_id in exposures:
            exposures[comp.item_a_id] += 1
        if comp.item_b_id in exposures:
            exposures[comp.item_b_id] += 1

    min_observed = min(exposures.values(), default=0)
    below = sum(1 for count in exposures.values() if count < required_exposures)
    exposures_met = below == 0

    total_met = len(valid) >= required_total

    connectivity = check_graph_connectivity([item.id for item in items], valid)

    is_publishable = exposures_met and total_met and connectivity.connected

    if not is_publishable:
        status = DataStatus.INSUFFICIENT
    else:
        if min_observed <= 0:
            exposure_ratio = 0.0
        elif required_exposures > 0:
            exposure_ratio = min_observed / required_exposures
        else:
            exposure_ratio = math.inf
        total_ratio = len(valid) / required_total if required_total > 0 else 0.0
        if exposure_ratio >= CONFIRMATION_RATIO and total_ratio >= CONFIRMATION_RATIO:
            status = DataStatus.CONFIRMATION
        else:
            status = DataStatus.PUBLISHABLE

    return ThresholdResult(
        is_publishable=is_publishable,
        data_status=status,
        conditions=ThresholdConditions(
            min_exposures=ExposureCondition(
                met=exposures_met,
                required=required_exposures,
                min_observed=min_observed,
                items_below_threshold=below,
            ),
            total_comparisons=TotalComparisonsCondition(
                met=total_met,
                required=required_total,
                observed=len(valid),
            ),
            graph_connectivity=ConnectivityCondition(
                met=connectivity.connected,
                connected=connectivity.connected,
                component_count=connectivity.component_count,
            ),
        ),
    )


def calculate_data_status(
    items: Sequence[Item],
    comparisons: Iterable[Comparison],
    thresholds: StudyThresholds,
) -> DataStatus:
    """Shortcut returning only the status of ``is_publishable_threshold``."""
    return is_publishable_threshold(items, comparisons, thresholds).data_status
