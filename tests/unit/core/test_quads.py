"""Unit tests for quad matchmaking."""

import random
from collections import Counter

import pytest

from sciblind.errors import InsufficientItemsError
from sciblind.matchmaking.history import has_full_coverage
from sciblind.matchmaking.models import MatchQuad
from sciblind.matchmaking.quads import (
    select_next_quad,
    select_next_quad_winners_only,
    shuffle_positions,
)
from sciblind.models import Comparison, Item

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


def make_items(n: int, elo: float = 1500.0) -> list[Item]:
    return [Item(id=f"q{i}", category_id="cat", elo_rating=elo) for i in range(n)]


def record_quad(quad: MatchQuad, winner_id: str, start: int) -> list[Comparison]:
    """Three winner-vs-loser comparisons, as recorded for a quad vote."""
    return [
        Comparison(
            id=f"c{start + i}",
            item_a_id=winner_id,
            item_b_id=loser_id,
            winner_id=winner_id,
            left_item_id=winner_id,
            right_item_id=loser_id,
            category_id="cat",
        )
        for i, loser_id in enumerate(item_id for item_id in quad.item_ids if item_id != winner_id)
    ]


class TestSelectNextQuad:

    def test_insufficient_items(self):
        with pytest.raises(InsufficientItemsError):
            select_next_quad(make_items(3), [])

    def test_four_distinct_items_and_permuted_positions(self):
        quad = select_next_quad(make_items(8), [], rng=random.Random(0))

        assert len(set(quad.item_ids)) == 4
        assert sorted(quad.positions) == sorted(quad.item_ids)

    def test_unseen_items_first(self):
        items = make_items(8)
        rng = random.Random(1)

        first = select_next_quad(items, [], rng=rng)
        comparisons = record_quad(first, first.item_ids[0], 0)
        second = select_next_quad(items, comparisons, rng=rng)

        assert not set(first.item_ids) & set(second.item_ids)
        assert has_full_coverage(items, comparisons + record_quad(second, second.item_ids[0], 3))

    def test_prefers_globally_under_compared(self):
        items = [
            Item(id=f"busy{i}", comparison_count=30, win_count=15, loss_count=15)
            for i in range(4)
        ] + [Item(id=f"fresh{i}") for i in range(4)]

        quad = select_next_quad(items, [])
        assert all(item_id.startswith("fresh") for item_id in quad.item_ids)

    def test_fourth_item_diverse_in_rating(self):
        items = [
            Item(id="a", elo_rating=1500),
            Item(id="b", elo_rating=1500),
            Item(id="c", elo_rating=1500),
            Item(id="d", elo_rating=1510),
            Item(id="e", elo_rating=1700, comparison_count=1, win_count=1),
        ]
        quad = select_next_quad(items, [])
        assert set(quad.item_ids) == {"a", "b", "c", "e"}

    def test_falls_back_when_no_diverse_item(self):
        items = make_items(5)
        quad = select_next_quad(items, [])
        assert quad.item_ids == ["q0", "q1", "q2", "q3"]


class TestWinnersOnly:

    def test_needs_four_winners(self):
        items = make_items(8)
        quad = select_next_quad(items, [], rng=random.Random(2))
        comparisons = record_quad(quad, quad.item_ids[0], 0)

        assert select_next_quad_winners_only(items, comparisons) is None

    def test_draws_from_session_winners(self):
        items = make_items(8)
        winners = ["q0", "q2", "q4", "q6"]
        comparisons = [
            Comparison(
                id=f"w{i}", item_a_id=w, item_b_id=f"q{int(w[1]) + 1}", winner_id=w,
                left_item_id=w, right_item_id=f"q{int(w[1]) + 1}", category_id="cat",
            )
            for i, w in enumerate(winners)
        ]
        quad = select_next_quad_winners_only(items, comparisons, rng=random.Random(3))
        assert sorted(quad.item_ids) == winners


class TestShufflePositions:

    def test_is_permutation(self):
        ids = ["a", "b", "c", "d"]
        assert sorted(shuffle_positions(ids, random.Random(7))) == ids

    def test_all_orderings_reachable(self):
        rng = random.Random(11)
        orderings = Counter(tuple(shuffle_positions(["a", "b", "c", "d"], rng)) for _ in range(2400))

        assert len(orderings) == 24
        # Roughly uniform: expected 100 each
        assert min(orderings.values()) > 50
