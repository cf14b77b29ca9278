"""Rating engine, statistics and ranking summaries."""

from sciblind.ranking.elo import (
    EloResult,
    calculate_adaptive_k,
    calculate_elo_change,
    expected_score,
    rank_items,
)
from sciblind.ranking.statistics import (
    ConnectivityResult,
    StudyThresholds,
    ThresholdResult,
    TransitivityResult,
    calculate_elo_std_error,
    check_graph_connectivity,
    detect_circular_triads,
    is_publishable_threshold,
)

__all__ = [
    "ConnectivityResult",
    "EloResult",
    "StudyThresholds",
    "ThresholdResult",
    "TransitivityResult",
    "calculate_adaptive_k",
    "calculate_elo_change",
    "calculate_elo_std_error",
    "check_graph_connectivity",
    "detect_circular_triads",
    "expected_score",
    "is_publishable_threshold",
    "rank_items",
]
