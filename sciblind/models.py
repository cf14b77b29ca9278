"""Core entities for blind comparison studies.

All snapshots are frozen: the core reads them and returns new values or
decisions, it never mutates what the host passed in.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from sciblind import config


class FlagReason(str, Enum):
    """Why a comparison was flagged."""
    TOO_FAST = "too_fast"
    TOO_SLOW = "too_slow"
    TEST_SESSION = "test_session"


class DataStatus(str, Enum):
    """Publishability verdict for a category's data."""
    INSUFFICIENT = "insufficient"
    PUBLISHABLE = "publishable"
    CONFIRMATION = "confirmation"  # well past the bar, more votes only sharpen precision


class Category(BaseModel):
    """A group of items ranked independently of the others."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    slug: str = ""
    display_order: int = 0


class Item(BaseModel):
    """Read snapshot of a rankable item (an artwork, a text, ...)."""
    model_config = ConfigDict(frozen=True)

    id: str
    category_id: str | None = None
    label: str | None = None
    elo_rating: float = config.DEFAULT_INITIAL_ELO
    elo_games: int = Field(default=0, ge=0)  # rating updates actually applied
    comparison_count: int = Field(default=0, ge=0)
    win_count: int = Field(default=0, ge=0)
    loss_count: int = Field(default=0, ge=0)
    left_count: int = Field(default=0, ge=0)
    right_count: int = Field(default=0, ge=0)
    # External prior, fixed at seeding time
    artist_rank: int | None = None
    artist_elo_boost: float = 0.0

    @model_validator(mode="after")
    def _check_counters(self) -> "Item":
        if self.comparison_count != self.win_count + self.loss_count:
            raise ValueError(
                f"comparison_count ({self.comparison_count}) must equal "
                f"win_count + loss_count ({self.win_count} + {self.loss_count})"
            )
        return self

    @property
    def position_balance(self) -> int:
        """Left appearances minus right appearances."""
        return self.left_count - self.right_count


class Comparison(BaseModel):
    """One recorded pairwise outcome. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str
    item_a_id: str
    item_b_id: str
    winner_id: str
    left_item_id: str
    right_item_id: str
    category_id: str | None = None
    session_id: str | None = None
    response_time_ms: int | None = None
    is_flagged: bool = False
    flag_reason: FlagReason | None = None

    @model_validator(mode="after")
    def _check_outcome(self) -> "Comparison":
        if self.item_a_id == self.item_b_id:
            raise ValueError("A comparison needs two distinct items")
        if self.winner_id not in (self.item_a_id, self.item_b_id):
            raise ValueError("Winner must be one of the compared items")
        if {self.left_item_id, self.right_item_id} != {self.item_a_id, self.item_b_id}:
            raise ValueError("Left/right positions must be the compared items")
        return self

    @property
    def loser_id(self) -> str:
        return self.item_b_id if self.winner_id == self.item_a_id else self.item_a_id

    @property
    def pair_key(self) -> tuple[str, str]:
        return pair_key(self.item_a_id, self.item_b_id)

    @property
    def is_test(self) -> bool:
        """Test-session comparisons never count towards statistics."""
        return self.is_flagged and self.flag_reason == FlagReason.TEST_SESSION


class Session(BaseModel):
    """One participant's run through one study."""
    model_config = ConfigDict(frozen=True)

    id: str
    study_id: str | None = None
    comparisons: tuple[Comparison, ...] = ()  # in vote order
    is_completed: bool = False
    is_test_session: bool = False
    is_flagged: bool = False
    flag_reason: FlagReason | None = None
    avg_response_time_ms: int | None = None
    category_progress: dict[str, int] = Field(default_factory=dict)

    @property
    def comparison_count(self) -> int:
        return len(self.comparisons)

    def comparisons_in(self, category_id: str | None) -> list[Comparison]:
        """Session comparisons for one category (all of them when ``None``)."""
        if category_id is None:
            return list(self.comparisons)
        return [c for c in self.comparisons if c.category_id == category_id]


class StudySettings(BaseModel):
    """Per-study configuration consumed by the orchestrator."""
    model_config = ConfigDict(frozen=True)

    k_factor: float = Field(default=config.DEFAULT_K_FACTOR, gt=0)
    adaptive_k_factor: bool = False
    comparison_mode: Literal["pair", "quad"] = "pair"

    # Publishability thresholds
    min_exposures_per_item: int = Field(default=config.DEFAULT_MIN_EXPOSURES_PER_ITEM, ge=0)
    min_total_comparisons: int | None = None  # None = 10 x item count
    allow_continued_voting: bool = False

    # Fraud detection
    min_response_time_ms: int = config.DEFAULT_MIN_RESPONSE_TIME_MS
    max_response_time_ms: int = config.DEFAULT_MAX_RESPONSE_TIME_MS
    exclude_flagged_from_elo: bool = False

    # Targets
    expected_reviewers: int = Field(default=config.DEFAULT_EXPECTED_REVIEWERS, ge=1)
    transitivity_max_items: int = Field(default=config.TRANSITIVITY_MAX_ITEMS, ge=3)


def pair_key(item_a_id: str, item_b_id: str) -> tuple[str, str]:
    """Order-independent key for an unordered pair of item ids."""
    if item_a_id <= item_b_id:
        return (item_a_id, item_b_id)
    return (item_b_id, item_a_id)
