"""Ranking tables derived from item snapshots."""

from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel

from sciblind.models import Item
from sciblind.ranking.elo import get_confidence_level, rank_items
from sciblind.ranking.statistics import calculate_elo_std_error

# Overall left share (percent) considered free of position bias
BIAS_GOOD_RANGE = (45, 55)


class RankingEntry(BaseModel):
    """One row of a published ranking."""
    rank: int
    id: str
    label: str | None = None
    category_id: str | None = None
    elo_rating: float
    elo_std_error: float
    artist_rank: int | None = None
    artist_elo_boost: float = 0.0
    comparison_count: int
    win_count: int
    loss_count: int
    win_rate: int  # percent
    left_count: int
    right_count: int
    position_bias: int  # percent of appearances on the left
    confidence: Literal["low", "medium", "high"]


class PositionBiasSummary(BaseModel):
    left_share: int  # percent
    status: Literal["good", "warning"]


def _percent(part: int, whole: int, default: int) -> int:
    return round(part / whole * 100) if whole > 0 else default


def build_rankings(items: Sequence[Item], top_n: int = 0) -> list[RankingEntry]:
    """Rank items best first; ``top_n`` > 0 truncates the table."""
    ranked = rank_items(list(items))
    if top_n > 0:
        ranked = ranked[:top_n]

    return [
        RankingEntry(
            rank=position,
            id=item.id,
            label=item.label,
            category_id=item.category_id,
            elo_rating=round(item.elo_rating, 1),
            elo_std_error=calculate_elo_std_error(item.comparison_count),
            artist_rank=item.artist_rank,
            artist_elo_boost=item.artist_elo_boost,
            comparison_count=item.comparison_count,
            win_count=item.win_count,
            loss_count=item.loss_count,
            win_rate=_percent(item.win_count, item.comparison_count, 0),
            left_count=item.left_count,
            right_count=item.right_count,
            position_bias=_percent(item.left_count, item.left_count + item.right_count, 50),
            confidence=get_confidence_level(item.comparison_count),
        )
        for position, item in enumerate(ranked, 1)
    ]


def position_bias_summary(items: Sequence[Item]) -> PositionBiasSummary:
    """Aggregate left/right balance across all items."""
    left = sum(item.left_count for item in items)
    right = sum(item.right_count for item in items)
    share = _percent(left, left + right, 50)
    low, high = BIAS_GOOD_RANGE
    return PositionBiasSummary(
        left_share=share,
        status="good" if low <= share <= high else "warning",
    )
