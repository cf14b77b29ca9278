"""Simulated study runs.

Reviewers with noisy judgment vote on items with hidden strengths, going
through the same orchestrator a real host uses. The resulting rankings are
compared with the hidden order, which makes the harness useful both as a
demo and as an end-to-end check of matchmaking, rating and statistics.
"""

import argparse
import math
import random
import sys
from collections.abc import Sequence

import numpy as np
from pydantic import BaseModel, Field

from sciblind import config
from sciblind.display import console, create_category_report, create_progress_table
from sciblind.events import EventHandler
from sciblind.logging import configure_logging, get_logger, session_context
from sciblind.models import Category, Comparison, Item, Session, StudySettings
from sciblind.orchestrator import (
    CategoryProgress,
    NextMatchStatus,
    SessionOrchestrator,
    VoteOutcome,
    apply_item_update,
)
from sciblind.ranking.bradley_terry import estimate_bradley_terry
from sciblind.ranking.elo import rank_items
from sciblind.ranking.rankings import (
    PositionBiasSummary,
    RankingEntry,
    build_rankings,
    position_bias_summary,
)
from sciblind.ranking.statistics import (
    ThresholdResult,
    TransitivityResult,
    detect_circular_triads,
    valid_comparisons,
)

log = get_logger(__name__)

# Typical response window of an attentive reviewer
RESPONSE_TIME_RANGE_MS = (1500, 8000)


class CategoryReport(BaseModel):
    """Outcome of a simulated study for one category."""
    category_id: str | None
    rankings: list[RankingEntry]
    threshold: ThresholdResult
    transitivity: TransitivityResult
    position_bias: PositionBiasSummary
    elo_correlation: float  # rank correlation with the hidden order
    bt_correlation: float
    comparison_count: int


class StudyReport(BaseModel):
    categories: list[CategoryReport]
    sessions: list[Session] = Field(default_factory=list)
    final_progress: list[CategoryProgress] = Field(default_factory=list)

    @property
    def completed_sessions(self) -> int:
        return sum(1 for session in self.sessions if session.is_completed)


class SimulatedReviewer:
    """Picks winners by Bradley-Terry odds on hidden strengths.

    ``left_bias`` adds log-odds in favour of whatever is shown on the left
    (first position for quads); ``fast_vote_rate`` is the share of votes
    submitted faster than any attentive reviewer could.
    """

    def __init__(
        self,
        strengths: dict[str, float],
        rng: random.Random,
        left_bias: float = 0.0,
        fast_vote_rate: float = 0.0,
    ):
        self.strengths = strengths
        self.rng = rng
        self.left_bias = left_bias
        self.fast_vote_rate = fast_vote_rate

    def response_time(self) -> int:
        if self.rng.random() < self.fast_vote_rate:
            return self.rng.randint(50, 300)
        return self.rng.randint(*RESPONSE_TIME_RANGE_MS)

    def choose(self, ordered_ids: Sequence[str]) -> str:
        """Sample a winner from items in display order."""
        weights = []
        for position, item_id in enumerate(ordered_ids):
            logit = self.strengths[item_id] + (self.left_bias if position == 0 else 0.0)
            weights.append(math.exp(logit))
        return self.rng.choices(list(ordered_ids), weights=weights, k=1)[0]


def build_study(
    item_count: int,
    category_count: int,
    spread: float,
    rng: random.Random,
) -> tuple[list[Category], dict[str | None, list[Item]], dict[str, float]]:
    """Create categories, fresh items and their hidden strengths."""
    categories = [
        Category(id=f"cat-{c + 1}", name=f"Category {c + 1}", slug=f"category-{c + 1}", display_order=c)
        for c in range(category_count)
    ]
    items_by_category: dict[str | None, list[Item]] = {}
    strengths: dict[str, float] = {}

    for category in categories:
        items = []
        for i in range(item_count):
            item_id = f"{category.id}-item-{i + 1:03d}"
            items.append(Item(id=item_id, category_id=category.id, label=f"Item {i + 1}"))
            strengths[item_id] = rng.gauss(0.0, spread)
        items_by_category[category.id] = items

    return categories, items_by_category, strengths


def rank_correlation(ranked_ids: Sequence[str], strengths: dict[str, float]) -> float:
    """Spearman correlation between an estimated order and the hidden one."""
    if len(ranked_ids) < 2:
        return 1.0
    true_order = sorted(ranked_ids, key=lambda item_id: strengths[item_id], reverse=True)
    true_rank = {item_id: rank for rank, item_id in enumerate(true_order)}
    estimated = np.arange(len(ranked_ids), dtype=float)
    actual = np.array([true_rank[item_id] for item_id in ranked_ids], dtype=float)
    return float(np.corrcoef(estimated, actual)[0, 1])


def _apply_outcome(items: list[Item], outcome: VoteOutcome) -> list[Item]:
    updates = {update.item_id: update for update in outcome.item_updates}
    return [
        apply_item_update(item, updates[item.id]) if item.id in updates else item
        for item in items
    ]


def run_session(
    orchestrator: SessionOrchestrator,
    session: Session,
    items_by_category: dict[str | None, list[Item]],
    global_comparisons: list[Comparison],
    reviewer: SimulatedReviewer,
) -> Session:
    """Let one reviewer vote through every category until each is done.

    ``items_by_category`` and ``global_comparisons`` are updated in place,
    standing in for the host's database.
    """
    for category_id in orchestrator.category_ids():
        with session_context(session.id, category_id=category_id):
            while True:
                items = items_by_category[category_id]
                match = orchestrator.next_match(
                    session, category_id, items, global_comparisons, rng=reviewer.rng
                )
                if match.status is not NextMatchStatus.MATCH:
                    break

                if match.pair is not None:
                    pair = match.pair
                    by_id = {pair.item_a.id: pair.item_a, pair.item_b.id: pair.item_b}
                    winner_id = reviewer.choose([pair.left_item_id, pair.right_item_id])
                    outcome = orchestrator.record_vote(
                        session,
                        by_id[pair.left_item_id],
                        by_id[pair.right_item_id],
                        winner_id,
                        pair.left_item_id,
                        pair.right_item_id,
                        response_time_ms=reviewer.response_time(),
                    )
                else:
                    quad = match.quad
                    winner_id = reviewer.choose(quad.positions)
                    outcome = orchestrator.record_quad_vote(
                        session,
                        list(quad.items),
                        winner_id,
                        list(quad.positions),
                        response_time_ms=reviewer.response_time(),
                    )

                session = outcome.session
                items_by_category[category_id] = _apply_outcome(items, outcome)
                global_comparisons.extend(outcome.comparisons)

    return session


def simulate_study(
    settings: StudySettings | None = None,
    item_count: int = 12,
    category_count: int = 1,
    reviewers: int = 5,
    spread: float = 1.0,
    left_bias: float = 0.0,
    fast_vote_rate: float = 0.0,
    seed: int | None = None,
    event_handler: EventHandler | None = None,
) -> StudyReport:
    """Run a full simulated study and summarise every category.

    Args:
        settings: Study configuration (defaults if None)
        item_count: Items per category
        category_count: Number of categories
        reviewers: Sessions to run, one after another
        spread: Standard deviation of hidden log-strengths
        left_bias: Extra log-odds for the first displayed item
        fast_vote_rate: Share of suspiciously fast votes
        seed: Random seed for reproducible runs
        event_handler: Receives orchestrator events

    Returns:
        StudyReport with per-category rankings and quality checks
    """
    settings = settings or StudySettings()
    rng = random.Random(seed)

    categories, items_by_category, strengths = build_study(item_count, category_count, spread, rng)
    orchestrator = SessionOrchestrator(settings, categories, event_handler)
    global_comparisons: list[Comparison] = []
    sessions: list[Session] = []
    final_progress: list[CategoryProgress] = []

    for r in range(reviewers):
        reviewer = SimulatedReviewer(strengths, rng, left_bias, fast_vote_rate)
        session = Session(id=f"session-{r + 1}", study_id="simulated-study")
        with session_context(session.id, study_id=session.study_id):
            session = run_session(orchestrator, session, items_by_category, global_comparisons, reviewer)
            result = orchestrator.evaluate_session(session, items_by_category, global_comparisons)
            sessions.append(result.session)
            final_progress = result.categories
            log.info(
                "Reviewer finished",
                comparisons=session.comparison_count,
                completed=result.is_completed,
            )

    reports = []
    for category in categories:
        items = items_by_category[category.id]
        scoped = [comp for comp in global_comparisons if comp.category_id == category.id]
        valid = valid_comparisons(scoped)

        elo_order = [item.id for item in rank_items(items)]
        bt = estimate_bradley_terry(valid)
        bt_order = sorted(
            (item.id for item in items),
            key=lambda item_id: bt.abilities.get(item_id, 0.0),
            reverse=True,
        )

        reports.append(CategoryReport(
            category_id=category.id,
            rankings=build_rankings(items),
            threshold=orchestrator.check_threshold(items, scoped, category.id),
            transitivity=detect_circular_triads(valid, settings.transitivity_max_items),
            position_bias=position_bias_summary(items),
            elo_correlation=rank_correlation(elo_order, strengths),
            bt_correlation=rank_correlation(bt_order, strengths),
            comparison_count=len(scoped),
        ))

    return StudyReport(categories=reports, sessions=sessions, final_progress=final_progress)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sciblind-simulate",
        description="Simulate reviewers voting in a blind comparison study.",
    )
    parser.add_argument("--items", type=int, default=12, help="Items per category (default: 12)")
    parser.add_argument("--categories", type=int, default=1, help="Number of categories (default: 1)")
    parser.add_argument("--reviewers", type=int, default=config.DEFAULT_EXPECTED_REVIEWERS,
                        help="Sessions to simulate")
    parser.add_argument("--mode", choices=["pair", "quad"], default="pair", help="Comparison mode")
    parser.add_argument("--spread", type=float, default=1.0, help="Spread of hidden item strengths")
    parser.add_argument("--left-bias", type=float, default=0.0, help="Log-odds bonus for the left item")
    parser.add_argument("--fast-vote-rate", type=float, default=0.0,
                        help="Share of votes submitted too fast (flagged)")
    parser.add_argument("--k-factor", type=float, default=config.DEFAULT_K_FACTOR, help="Elo K-factor")
    parser.add_argument("--adaptive-k", action="store_true", help="Use the adaptive K-factor")
    parser.add_argument("--exclude-flagged", action="store_true",
                        help="Skip rating updates for flagged votes")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--top", type=int, default=10, help="Rows shown per ranking table (0 = all)")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level (default: INFO)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(cli_mode=True, log_level=args.log_level)

    minimum = 4 if args.mode == "quad" else 2
    if args.items < minimum:
        console.print(f"[red]{args.mode} mode needs at least {minimum} items per category[/red]")
        return 2

    settings = StudySettings(
        k_factor=args.k_factor,
        adaptive_k_factor=args.adaptive_k,
        comparison_mode=args.mode,
        exclude_flagged_from_elo=args.exclude_flagged,
        expected_reviewers=max(1, args.reviewers),
    )

    report = simulate_study(
        settings=settings,
        item_count=args.items,
        category_count=args.categories,
        reviewers=args.reviewers,
        spread=args.spread,
        left_bias=args.left_bias,
        fast_vote_rate=args.fast_vote_rate,
        seed=args.seed,
    )

    if args.json:
        print(report.model_dump_json(indent=2))
        return 0

    console.print(create_progress_table(report.final_progress))
    console.print(f"[dim]Completed sessions: {report.completed_sessions}/{len(report.sessions)}[/dim]\n")
    for category in report.categories:
        console.print(create_category_report(
            category.category_id or "all",
            category.rankings,
            category.threshold,
            category.transitivity,
            category.position_bias,
            top_n=args.top,
        ))
        console.print(
            f"Rank correlation with hidden order: Elo [yellow]{category.elo_correlation:.3f}[/yellow]"
            f" | Bradley-Terry [yellow]{category.bt_correlation:.3f}[/yellow]\n"
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
