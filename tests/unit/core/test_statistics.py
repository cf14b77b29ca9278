"""Unit tests for statistical sufficiency checks."""

import math

import pytest

from sciblind.models import Comparison, DataStatus, FlagReason, Item
from sciblind.ranking.statistics import (
    NOT_COMPUTED,
    StudyThresholds,
    calculate_data_status,
    calculate_elo_std_error,
    check_graph_connectivity,
    detect_circular_triads,
    is_publishable_threshold,
)

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit

_counter = iter(range(1_000_000))


def make_comparison(winner: str, loser: str, test: bool = False) -> Comparison:
    return Comparison(
        id=f"c{next(_counter)}",
        item_a_id=winner,
        item_b_id=loser,
        winner_id=winner,
        left_item_id=winner,
        right_item_id=loser,
        is_flagged=test,
        flag_reason=FlagReason.TEST_SESSION if test else None,
    )


def round_robin(ids: list[str], rounds: int = 1) -> list[Comparison]:
    """Every pair compared ``rounds`` times, earlier id always winning."""
    comps = []
    for _ in range(rounds):
        for i, a in enumerate(ids):
            for b in ids[i + 1:]:
                comps.append(make_comparison(a, b))
    return comps


class TestEloStdError:

    def test_zero_comparisons_is_infinite(self):
        assert math.isinf(calculate_elo_std_error(0))

    def test_known_value(self):
        assert calculate_elo_std_error(25) == pytest.approx(400 / (5 * math.log(10)))

    def test_shrinks_with_more_comparisons(self):
        assert calculate_elo_std_error(100) < calculate_elo_std_error(10)


class TestConnectivity:
    """Tests for check_graph_connectivity."""

    def test_empty(self):
        result = check_graph_connectivity([], [])
        assert result.connected
        assert result.component_count == 0

    def test_single_item_is_connected(self):
        result = check_graph_connectivity(["a"], [])
        assert result.connected
        assert result.component_count == 1

    def test_chain_is_connected(self):
        comps = [make_comparison("a", "b"), make_comparison("c", "b"), make_comparison("c", "d")]
        result = check_graph_connectivity(["a", "b", "c", "d"], comps)
        assert result.connected
        assert result.component_sizes == [4]

    def test_two_components_and_isolated(self):
        comps = [make_comparison("a", "b"), make_comparison("b", "c"), make_comparison("d", "e")]
        result = check_graph_connectivity(["a", "b", "c", "d", "e", "f"], comps)

        assert not result.connected
        assert result.component_count == 3
        assert result.component_sizes == [3, 2, 1]
        assert sorted(result.largest_component) == ["a", "b", "c"]
        assert result.isolated_items == ["f"]

    def test_foreign_items_ignored(self):
        comps = [make_comparison("a", "zzz")]
        result = check_graph_connectivity(["a", "b"], comps)
        assert result.component_count == 2


class TestCircularTriads:
    """Tests for detect_circular_triads."""

    def test_cycle_detected(self):
        comps = [make_comparison("a", "b"), make_comparison("b", "c"), make_comparison("c", "a")]
        result = detect_circular_triads(comps)

        assert result.circular_triad_count == 1
        assert result.total_triads == 1
        assert result.transitivity_index == pytest.approx(0.0)

    def test_transitive_order(self):
        result = detect_circular_triads(round_robin(["a", "b", "c", "d"]))

        assert result.circular_triad_count == 0
        assert result.total_triads == 4
        assert result.transitivity_index == pytest.approx(1.0)

    def test_incomplete_triples_not_evaluated(self):
        result = detect_circular_triads([make_comparison("a", "b"), make_comparison("b", "c")])
        assert result.total_triads == 0
        assert result.transitivity_index == pytest.approx(1.0)

    def test_majority_decides_direction(self):
        comps = [
            make_comparison("a", "b"), make_comparison("a", "b"), make_comparison("b", "a"),
            make_comparison("b", "c"),
            make_comparison("c", "a"),
        ]
        assert detect_circular_triads(comps).circular_triad_count == 1

    def test_tied_pair_is_not_circular(self):
        comps = [
            make_comparison("a", "b"), make_comparison("b", "a"),
            make_comparison("b", "c"),
            make_comparison("c", "a"),
        ]
        result = detect_circular_triads(comps)
        assert result.total_triads == 1
        assert result.circular_triad_count == 0

    def test_skipped_above_max_items(self):
        ids = [f"i{n}" for n in range(5)]
        result = detect_circular_triads(round_robin(ids), max_items=4)

        assert not result.computed
        assert result.circular_triad_count == NOT_COMPUTED
        assert result.transitivity_index == NOT_COMPUTED
        assert result.total_triads == NOT_COMPUTED


class TestPublishability:
    """Tests for is_publishable_threshold."""

    def test_fresh_category_insufficient(self):
        items = [Item(id=x) for x in "abcd"]
        result = is_publishable_threshold(items, [], StudyThresholds())

        assert not result.is_publishable
        assert result.data_status == DataStatus.INSUFFICIENT
        assert result.conditions.total_comparisons.required == 40
        assert result.conditions.min_exposures.items_below_threshold == 4

    def test_publishable(self):
        ids = ["a", "b", "c", "d"]
        items = [Item(id=x) for x in ids]
        # 3 rounds: 18 comparisons, every item seen 9 times
        comps = round_robin(ids, rounds=3)
        thresholds = StudyThresholds(min_exposures_per_item=8, min_total_comparisons=15)

        result = is_publishable_threshold(items, comps, thresholds)

        assert result.is_publishable
        assert result.data_status == DataStatus.PUBLISHABLE
        assert result.conditions.min_exposures.min_observed == 9

    def test_confirmation_at_one_and_a_half_times(self):
        ids = ["a", "b", "c", "d"]
        items = [Item(id=x) for x in ids]
        comps = round_robin(ids, rounds=3)
        thresholds = StudyThresholds(min_exposures_per_item=6, min_total_comparisons=12)

        assert calculate_data_status(items, comps, thresholds) == DataStatus.CONFIRMATION

    def test_exactly_at_exposure_minimum(self):
        ids = [f"item-{i}" for i in range(10)]
        items = [Item(id=x) for x in ids]
        # Neighbours one and two apart plus the five diameters: 25 comparisons, 5 exposures each
        offsets = [(i, (i + 1) % 10) for i in range(10)] + [(i, (i + 2) % 10) for i in range(10)]
        offsets += [(i, i + 5) for i in range(5)]
        comps = [make_comparison(ids[a], ids[b]) for a, b in offsets]

        result = is_publishable_threshold(
            items, comps, StudyThresholds(min_exposures_per_item=5, min_total_comparisons=25)
        )

        assert result.conditions.min_exposures.met
        assert result.conditions.min_exposures.min_observed == 5
        assert result.conditions.min_exposures.items_below_threshold == 0
        assert result.conditions.graph_connectivity.met
        assert result.is_publishable
        assert result.data_status == DataStatus.PUBLISHABLE

        # Default total of 10 per item still applies on its own
        default_total = is_publishable_threshold(items, comps, StudyThresholds(min_exposures_per_item=5))
        assert default_total.conditions.min_exposures.met
        assert not default_total.conditions.total_comparisons.met

    def test_disconnected_graph_blocks(self):
        items = [Item(id=x) for x in "abcd"]
        comps = [make_comparison("a", "b")] * 5 + [make_comparison("c", "d")] * 5
        thresholds = StudyThresholds(min_exposures_per_item=5, min_total_comparisons=10)

        result = is_publishable_threshold(items, comps, thresholds)

        assert result.conditions.min_exposures.met
        assert result.conditions.total_comparisons.met
        assert not result.conditions.graph_connectivity.met
        assert not result.is_publishable

    def test_test_session_comparisons_excluded(self):
        ids = ["a", "b", "c"]
        items = [Item(id=x) for x in ids]
        comps = [
            make_comparison(w, l, test=True)
            for w, l in [("a", "b"), ("b", "c"), ("a", "c")] * 10
        ]
        thresholds = StudyThresholds(min_exposures_per_item=1, min_total_comparisons=1)

        result = is_publishable_threshold(items, comps, thresholds)

        assert result.conditions.total_comparisons.observed == 0
        assert not result.is_publishable
