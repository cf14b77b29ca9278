"""Unit tests for core domain models."""

import pytest
from pydantic import ValidationError

from sciblind.errors import (
    DuplicateComparisonError,
    InsufficientItemsError,
    InvalidVoteError,
    SciblindError,
    UnknownCategoryError,
)
from sciblind.models import (
    Comparison,
    FlagReason,
    Item,
    Session,
    StudySettings,
    pair_key,
)

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


def make_comparison(
    item_a: str = "a",
    item_b: str = "b",
    winner: str | None = None,
    category_id: str | None = "cat",
    **kwargs,
) -> Comparison:
    return Comparison(
        id=f"{item_a}-{item_b}",
        item_a_id=item_a,
        item_b_id=item_b,
        winner_id=winner or item_a,
        left_item_id=item_a,
        right_item_id=item_b,
        category_id=category_id,
        **kwargs,
    )


class TestFlagReason:

    def test_values(self):
        assert FlagReason.TOO_FAST.value == "too_fast"
        assert FlagReason.TOO_SLOW.value == "too_slow"
        assert FlagReason.TEST_SESSION.value == "test_session"


class TestItem:
    """Tests for Item model."""

    def test_defaults(self):
        item = Item(id="x")
        assert item.elo_rating == 1500.0
        assert item.comparison_count == 0
        assert item.position_balance == 0
        assert item.artist_rank is None

    def test_counters_must_add_up(self):
        with pytest.raises(ValidationError):
            Item(id="x", comparison_count=3, win_count=1, loss_count=1)

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            Item(id="x", left_count=-1)

    def test_position_balance(self):
        item = Item(id="x", left_count=5, right_count=2)
        assert item.position_balance == 3

    def test_frozen(self):
        item = Item(id="x")
        with pytest.raises(ValidationError):
            item.elo_rating = 2000.0


class TestComparison:
    """Tests for Comparison model."""

    def test_loser_and_pair_key(self):
        comp = make_comparison("b", "a", winner="a")
        assert comp.loser_id == "b"
        assert comp.pair_key == ("a", "b")

    def test_winner_must_be_compared(self):
        with pytest.raises(ValidationError):
            make_comparison("a", "b", winner="c")

    def test_items_must_differ(self):
        with pytest.raises(ValidationError):
            make_comparison("a", "a")

    def test_positions_must_match_items(self):
        with pytest.raises(ValidationError):
            Comparison(
                id="c", item_a_id="a", item_b_id="b", winner_id="a",
                left_item_id="a", right_item_id="c",
            )

    def test_is_test(self):
        assert make_comparison(is_flagged=True, flag_reason=FlagReason.TEST_SESSION).is_test
        assert not make_comparison(is_flagged=True, flag_reason=FlagReason.TOO_FAST).is_test
        assert not make_comparison().is_test


class TestSession:

    def test_comparisons_in_category(self):
        session = Session(id="s", comparisons=(
            make_comparison("a", "b", category_id="one"),
            make_comparison("c", "d", category_id="two"),
            make_comparison("a", "c", category_id="one"),
        ))
        assert session.comparison_count == 3
        assert len(session.comparisons_in("one")) == 2
        assert len(session.comparisons_in(None)) == 3


class TestStudySettings:

    def test_defaults(self):
        study = StudySettings()
        assert study.k_factor == 32
        assert study.comparison_mode == "pair"
        assert study.min_exposures_per_item == 5
        assert study.min_total_comparisons is None
        assert study.expected_reviewers == 5
        assert study.min_response_time_ms == 500
        assert study.max_response_time_ms == 300000

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValidationError):
            StudySettings(comparison_mode="triple")

    def test_reviewers_must_be_positive(self):
        with pytest.raises(ValidationError):
            StudySettings(expected_reviewers=0)


class TestPairKey:

    def test_order_independent(self):
        assert pair_key("b", "a") == pair_key("a", "b") == ("a", "b")


class TestErrors:
    """Tests for the exception hierarchy."""

    def test_details_in_message(self):
        error = InsufficientItemsError(required=2, available=1)
        assert isinstance(error, SciblindError)
        assert isinstance(error, ValueError)
        assert error.required == 2
        assert "available" in str(error)

    def test_duplicate_is_invalid_vote(self):
        error = DuplicateComparisonError("a", "b")
        assert isinstance(error, InvalidVoteError)
        assert error.details == {"item_a_id": "a", "item_b_id": "b"}

    def test_unknown_category_message_not_quoted(self):
        error = UnknownCategoryError("paintings")
        assert isinstance(error, KeyError)
        assert str(error).startswith("Unknown category: paintings")
