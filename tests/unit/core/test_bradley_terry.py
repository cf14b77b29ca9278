"""Unit tests for Bradley-Terry estimation."""

import math

import pytest

from sciblind.models import Comparison
from sciblind.ranking.bradley_terry import (
    bt_ability_to_elo_scale,
    bt_win_probability,
    estimate_bradley_terry,
)

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


def make_results(outcomes: list[tuple[str, str]]) -> list[Comparison]:
    """Comparisons from (winner, loser) tuples."""
    return [
        Comparison(
            id=f"c{i}",
            item_a_id=winner,
            item_b_id=loser,
            winner_id=winner,
            left_item_id=winner,
            right_item_id=loser,
        )
        for i, (winner, loser) in enumerate(outcomes)
    ]


class TestEstimateBradleyTerry:

    def test_empty_input(self):
        result = estimate_bradley_terry([])
        assert result.abilities == {}
        assert result.converged
        assert result.iterations == 0

    def test_recovers_order(self):
        outcomes = (
            [("a", "b")] * 7 + [("b", "a")] * 3
            + [("b", "c")] * 7 + [("c", "b")] * 3
            + [("a", "c")] * 8 + [("c", "a")] * 2
        )
        result = estimate_bradley_terry(make_results(outcomes))

        assert result.converged
        assert result.abilities["a"] > result.abilities["b"] > result.abilities["c"]
        assert all(math.isfinite(se) and se > 0 for se in result.standard_errors.values())

    def test_abilities_centred(self):
        outcomes = [("a", "b")] * 6 + [("b", "a")] * 4
        result = estimate_bradley_terry(make_results(outcomes))

        assert sum(result.abilities.values()) == pytest.approx(0.0, abs=1e-6)
        # 60% win rate between two items: log-odds ln(1.5)
        assert result.abilities["a"] - result.abilities["b"] == pytest.approx(math.log(1.5), rel=1e-3)

    def test_log_likelihood_negative(self):
        outcomes = [("a", "b"), ("b", "a"), ("a", "b")]
        assert estimate_bradley_terry(make_results(outcomes)).log_likelihood < 0


class TestHelpers:

    def test_win_probability(self):
        assert bt_win_probability(0.0, 0.0) == pytest.approx(0.5)
        assert bt_win_probability(1.0, 0.0) == pytest.approx(1 / (1 + math.exp(-1)))

    def test_elo_scale(self):
        assert bt_ability_to_elo_scale(0.0) == pytest.approx(1500.0)
        # ln(10) in log-ability is 400 Elo points
        assert bt_ability_to_elo_scale(math.log(10)) == pytest.approx(1900.0)
