"""Per-reviewer comparison targets and category progress."""

import math
from collections.abc import Iterable

from pydantic import BaseModel

from sciblind import config
from sciblind.models import Comparison

# Each comparison shows two items; aim for ~10 appearances per item overall
APPEARANCES_PER_ITEM = 5
# Upper bound on pairwise comparisons per reviewer per category
MAX_PAIR_COMPARISONS = 75
# Upper bound on quads per reviewer per category
MAX_QUAD_COMPARISONS = 40
# A quad yields three pairwise results; keep some redundancy
QUAD_EQUIVALENCE = 2.5
# Extra winners-only quads appended after coverage
TOURNAMENT_QUADS = 4
# Comparison records written per quad vote
RECORDS_PER_QUAD = 3


class CategoryCount(BaseModel):
    completed: int
    target: int
    percentage: int
    target_reached: bool


def _check_reviewers(reviewer_count: int) -> None:
    if reviewer_count < 1:
        raise ValueError(f"reviewer_count must be at least 1, got {reviewer_count}")


def calculate_recommended_comparisons(
    item_count: int,
    reviewer_count: int = config.DEFAULT_EXPECTED_REVIEWERS,
) -> int:
    """Pairwise comparisons each reviewer should make in a category.

    Coverage needs at least ceil(n/2) comparisons; the target asks for n
    (each item about twice) or the statistical share per reviewer, whichever
    is larger, capped at max(75, n) to limit fatigue.
    """
    _check_reviewers(reviewer_count)

    coverage_minimum = item_count
    statistical_target = math.ceil(item_count * APPEARANCES_PER_ITEM / reviewer_count)
    recommended = max(coverage_minimum, statistical_target)

    upper = max(MAX_PAIR_COMPARISONS, item_count)
    lower = math.ceil(item_count / 2)

    return max(lower, min(upper, recommended))


def calculate_recommended_quad_comparisons(
    item_count: int,
    reviewer_count: int = config.DEFAULT_EXPECTED_REVIEWERS,
) -> int:
    """Quads each reviewer should judge in a category (tournament quads excluded)."""
    _check_reviewers(reviewer_count)

    coverage_minimum = math.ceil(item_count / 4)
    pairwise_target = calculate_recommended_comparisons(item_count, reviewer_count)
    statistical_target = math.ceil(pairwise_target / QUAD_EQUIVALENCE)
    recommended = max(coverage_minimum, statistical_target)

    upper = max(MAX_QUAD_COMPARISONS, math.ceil(item_count / 2))

    return max(coverage_minimum, min(upper, recommended))


def count_completed_quads(raw_comparison_count: int) -> int:
    """Quad votes represented by a category's comparison records.

    Records not in multiples of three mean legacy pairwise votes are mixed
    in; those count as half a quad each.
    """
    if raw_comparison_count <= 0:
        return 0
    quads = raw_comparison_count // RECORDS_PER_QUAD
    if raw_comparison_count % RECORDS_PER_QUAD:
        return max(quads, math.ceil(raw_comparison_count / 2))
    return quads


def get_category_progress(
    session_comparisons: Iterable[Comparison],
    category_id: str | None,
    target: int,
) -> CategoryCount:
    completed = sum(
        1 for comp in session_comparisons
        if category_id is None or comp.category_id == category_id
    )
    return progress_count(completed, target)


def progress_count(completed: int, target: int) -> CategoryCount:
    percentage = min(100, round(completed / target * 100)) if target > 0 else 100
    return CategoryCount(
        completed=completed,
        target=target,
        percentage=percentage,
        target_reached=completed >= target,
    )
