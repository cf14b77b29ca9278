"""Session orchestrator tying matchmaking, rating and statistics together.

The orchestrator never touches storage. It reads snapshots supplied by the
host and returns decisions: which match to show next, how a vote changes
item counters and ratings, and whether a category or the whole session is
complete. The host applies ``ItemUpdate``s and appends the new comparisons
in one atomic unit.
"""

import random
import uuid
from collections.abc import Mapping, Sequence
from enum import Enum

from pydantic import BaseModel, Field

from sciblind.errors import (
    DuplicateComparisonError,
    InvalidVoteError,
    SessionCompletedError,
    UnknownCategoryError,
)
from sciblind.events import EventHandler, NullEventHandler
from sciblind.logging import get_logger
from sciblind.matchmaking.history import has_full_coverage
from sciblind.matchmaking.models import MatchPair, MatchQuad
from sciblind.matchmaking.pairing import distinct_pair_count, pairs_exhausted, select_next_pair
from sciblind.matchmaking.quads import QUAD_SIZE, select_next_quad, select_next_quad_winners_only
from sciblind.matchmaking.targets import (
    TOURNAMENT_QUADS,
    calculate_recommended_comparisons,
    calculate_recommended_quad_comparisons,
    count_completed_quads,
    progress_count,
)
from sciblind.models import Category, Comparison, FlagReason, Item, Session, StudySettings, pair_key
from sciblind.ranking.elo import calculate_adaptive_k, calculate_elo_change
from sciblind.ranking.statistics import StudyThresholds, ThresholdResult, is_publishable_threshold

log = get_logger(__name__)


class NextMatchStatus(str, Enum):
    MATCH = "match"
    CATEGORY_COMPLETE = "category_complete"
    SESSION_COMPLETE = "session_complete"
    EXHAUSTED = "exhausted"  # every pair already compared this session


class CategoryProgress(BaseModel):
    """A session's standing in one category."""
    category_id: str | None
    item_count: int
    completed: int  # comparisons, or quads in quad mode
    target: int
    percentage: int
    coverage_achieved: bool
    is_complete: bool
    threshold: ThresholdResult | None = None  # evaluated once complete
    allow_continued_voting: bool = False


class SessionProgress(BaseModel):
    session: Session
    categories: list[CategoryProgress]
    is_completed: bool


class NextMatch(BaseModel):
    status: NextMatchStatus
    category_id: str | None = None
    pair: MatchPair | None = None
    quad: MatchQuad | None = None
    progress: CategoryProgress | None = None
    tournament: bool = False  # winners-only quad refinement


class ItemUpdate(BaseModel):
    """One atomic change the persistence layer applies to an item."""
    item_id: str
    elo_delta: float = 0.0
    elo_games: int = 0
    comparison_count: int = 0
    win_count: int = 0
    loss_count: int = 0
    left_count: int = 0
    right_count: int = 0

    def merged(self, other: "ItemUpdate") -> "ItemUpdate":
        if other.item_id != self.item_id:
            raise ValueError("Cannot merge updates for different items")
        return ItemUpdate(
            item_id=self.item_id,
            elo_delta=self.elo_delta + other.elo_delta,
            elo_games=self.elo_games + other.elo_games,
            comparison_count=self.comparison_count + other.comparison_count,
            win_count=self.win_count + other.win_count,
            loss_count=self.loss_count + other.loss_count,
            left_count=self.left_count + other.left_count,
            right_count=self.right_count + other.right_count,
        )


class VoteOutcome(BaseModel):
    """Everything a vote produces: records, item updates, the new session."""
    comparisons: list[Comparison]
    item_updates: list[ItemUpdate] = Field(default_factory=list)
    session: Session
    flag_reason: FlagReason | None = None

    @property
    def comparison(self) -> Comparison:
        return self.comparisons[0]

    @property
    def flagged(self) -> bool:
        return self.flag_reason is not None


def apply_item_update(item: Item, update: ItemUpdate) -> Item:
    """New item snapshot with ``update`` applied."""
    if update.item_id != item.id:
        raise ValueError(f"Update for {update.item_id} applied to {item.id}")
    return item.model_copy(update={
        "elo_rating": item.elo_rating + update.elo_delta,
        "elo_games": item.elo_games + update.elo_games,
        "comparison_count": item.comparison_count + update.comparison_count,
        "win_count": item.win_count + update.win_count,
        "loss_count": item.loss_count + update.loss_count,
        "left_count": item.left_count + update.left_count,
        "right_count": item.right_count + update.right_count,
    })


class SessionOrchestrator:
    """Drives one study's sessions: next match, vote recording, completion.

    Stateless apart from the study configuration; every call recomputes
    from the snapshots it is given.
    """

    def __init__(
        self,
        settings: StudySettings | None = None,
        categories: Sequence[Category] | None = None,
        event_handler: EventHandler | None = None
    ):
        """Initialize the orchestrator.

        Args:
            settings: Study configuration (defaults if None)
            categories: Study categories; none means a single implicit
                category addressed as ``None``
            event_handler: Receives lifecycle events (NullEventHandler if None)
        """
        self.settings = settings or StudySettings()
        self.categories = sorted(categories or [], key=lambda c: c.display_order)
        self.event_handler = event_handler or NullEventHandler()
        self.thresholds = StudyThresholds(
            min_exposures_per_item=self.settings.min_exposures_per_item,
            min_total_comparisons=self.settings.min_total_comparisons,
        )

    @property
    def is_quad_mode(self) -> bool:
        return self.settings.comparison_mode == "quad"

    def category_ids(self) -> list[str | None]:
        """Category ids in display order."""
        if not self.categories:
            return [None]
        return [category.id for category in self.categories]

    def _check_category(self, category_id: str | None) -> None:
        if category_id not in self.category_ids():
            raise UnknownCategoryError(str(category_id))

    # ==================== Progress ====================

    def base_target(self, item_count: int) -> int:
        reviewers = self.settings.expected_reviewers
        if self.is_quad_mode:
            return calculate_recommended_quad_comparisons(item_count, reviewers)
        return calculate_recommended_comparisons(item_count, reviewers)

    def category_target(self, item_count: int) -> int:
        """Per-session target; quad mode includes the tournament quads.

        In pair mode a session never repeats a pair, so the target is capped
        at the number of distinct pairs in the category.
        """
        target = self.base_target(item_count)
        if self.is_quad_mode:
            return target + TOURNAMENT_QUADS
        return min(target, distinct_pair_count(item_count))

    def _completed(self, session_comparisons: Sequence[Comparison]) -> int:
        if self.is_quad_mode:
            return count_completed_quads(len(session_comparisons))
        return len(session_comparisons)

    @staticmethod
    def _scoped(comparisons: Sequence[Comparison], category_id: str | None) -> list[Comparison]:
        if category_id is None:
            return list(comparisons)
        return [comp for comp in comparisons if comp.category_id == category_id]

    def check_threshold(
        self,
        items: Sequence[Item],
        global_comparisons: Sequence[Comparison],
        category_id: str | None = None,
    ) -> ThresholdResult:
        return is_publishable_threshold(
            items, self._scoped(global_comparisons, category_id), self.thresholds
        )

    def category_progress(
        self,
        session: Session,
        category_id: str | None,
        items: Sequence[Item],
        global_comparisons: Sequence[Comparison] = (),
    ) -> CategoryProgress:
        """Completion needs the target AND full coverage of the category.

        In pair mode a category whose every pair was compared this session is
        complete as well, whatever its target.

        Once complete, the publishability verdict over ``global_comparisons``
        (all sessions) decides whether continued voting is offered.
        """
        session_comparisons = session.comparisons_in(category_id)
        target = self.category_target(len(items))
        counts = progress_count(self._completed(session_comparisons), target)
        coverage = has_full_coverage(items, session_comparisons)
        is_complete = counts.target_reached and coverage
        if not self.is_quad_mode and not is_complete:
            is_complete = pairs_exhausted(items, session_comparisons)

        threshold = None
        allow_continued = False
        if is_complete:
            threshold = self.check_threshold(items, global_comparisons, category_id)
            allow_continued = self.settings.allow_continued_voting and not threshold.is_publishable

        return CategoryProgress(
            category_id=category_id,
            item_count=len(items),
            completed=counts.completed,
            target=target,
            percentage=counts.percentage,
            coverage_achieved=coverage,
            is_complete=is_complete,
            threshold=threshold,
            allow_continued_voting=allow_continued,
        )

    def evaluate_session(
        self,
        session: Session,
        items_by_category: Mapping[str | None, Sequence[Item]],
        global_comparisons: Sequence[Comparison] = (),
    ) -> SessionProgress:
        """Progress for every category; completes the session when all are done.

        Completion is terminal: the returned session has ``is_completed`` set
        and later votes are rejected.
        """
        progress = [
            self.category_progress(
                session, category_id, items_by_category.get(category_id, []), global_comparisons
            )
            for category_id in self.category_ids()
        ]
        all_complete = all(p.is_complete for p in progress)

        updated = session.model_copy(update={
            "category_progress": {
                p.category_id or "": p.completed for p in progress
            },
            "is_completed": session.is_completed or all_complete,
        })
        result = SessionProgress(session=updated, categories=progress, is_completed=updated.is_completed)

        if all_complete and not session.is_completed:
            log.info(
                "Session completed",
                session_id=session.id,
                comparisons=session.comparison_count,
                categories=len(progress),
            )
            self.event_handler.on_session_complete(session=updated, progress=result)

        return result

    # ==================== Matchmaking ====================

    def next_match(
        self,
        session: Session,
        category_id: str | None,
        items: Sequence[Item],
        global_comparisons: Sequence[Comparison] = (),
        continue_voting: bool = False,
        rng: random.Random | None = None,
    ) -> NextMatch:
        """Decide what the participant sees next in a category.

        Args:
            session: Current session snapshot
            category_id: Category being voted on (``None`` without categories)
            items: All items of the category
            global_comparisons: Comparisons from all sessions; used for the
                publishability check and cross-session pair exposure
            continue_voting: Participant asked to keep voting past the target
            rng: Random source for display positions

        Returns:
            NextMatch with a pair or quad, or the reason none is offered
        """
        self._check_category(category_id)

        if session.is_completed:
            return NextMatch(status=NextMatchStatus.SESSION_COMPLETE, category_id=category_id)

        progress = self.category_progress(session, category_id, items, global_comparisons)
        self.event_handler.on_progress(
            current=progress.completed,
            total=progress.target,
            message="Category progress",
            category_id=category_id,
        )

        if progress.is_complete and not (continue_voting and progress.allow_continued_voting):
            log.info(
                "Category completed",
                session_id=session.id,
                category_id=category_id,
                completed=progress.completed,
                target=progress.target,
                threshold_met=progress.threshold.is_publishable if progress.threshold else None,
            )
            self.event_handler.on_category_complete(progress=progress, session_id=session.id)
            return NextMatch(
                status=NextMatchStatus.CATEGORY_COMPLETE,
                category_id=category_id,
                progress=progress,
            )

        session_comparisons = session.comparisons_in(category_id)

        if self.is_quad_mode:
            tournament = (
                progress.coverage_achieved
                and self.base_target(len(items)) <= progress.completed < progress.target
            )
            quad = None
            if tournament:
                quad = select_next_quad_winners_only(items, session_comparisons, rng)
            if quad is None:
                tournament = False
                quad = select_next_quad(items, session_comparisons, rng)
            if quad is None:
                return NextMatch(status=NextMatchStatus.EXHAUSTED, category_id=category_id, progress=progress)
            return NextMatch(
                status=NextMatchStatus.MATCH,
                category_id=category_id,
                quad=quad,
                progress=progress,
                tournament=tournament,
            )

        scoped_global = self._scoped(global_comparisons, category_id)
        pair = select_next_pair(items, session_comparisons, scoped_global or None, rng)
        if pair is None:
            log.info("No more pairs", session_id=session.id, category_id=category_id)
            return NextMatch(status=NextMatchStatus.EXHAUSTED, category_id=category_id, progress=progress)

        return NextMatch(status=NextMatchStatus.MATCH, category_id=category_id, pair=pair, progress=progress)

    # ==================== Votes ====================

    def _flag_for(self, response_time_ms: int | None) -> FlagReason | None:
        """Response-time window check; test sessions are tagged separately."""
        if response_time_ms is None:
            return None
        if response_time_ms < self.settings.min_response_time_ms:
            return FlagReason.TOO_FAST
        if response_time_ms > self.settings.max_response_time_ms:
            return FlagReason.TOO_SLOW
        return None

    def _k_factor(self, winner: Item, loser: Item) -> float:
        if self.settings.adaptive_k_factor:
            return calculate_adaptive_k(self.settings.k_factor, winner.elo_games, loser.elo_games)
        return self.settings.k_factor

    def _rating_updates(
        self,
        winner: Item,
        loser: Item,
        flag: FlagReason | None,
        winner_side: dict[str, int],
        loser_side: dict[str, int],
    ) -> list[ItemUpdate]:
        """Counter and rating changes for one winner/loser record."""
        rated = not (flag is not None and self.settings.exclude_flagged_from_elo)
        winner_delta = loser_delta = 0.0
        if rated:
            result = calculate_elo_change(winner.elo_rating, loser.elo_rating, self._k_factor(winner, loser))
            winner_delta, loser_delta = result.winner_delta, result.loser_delta

        games = 1 if rated else 0
        return [
            ItemUpdate(
                item_id=winner.id, elo_delta=winner_delta, elo_games=games,
                comparison_count=1, win_count=1, **winner_side,
            ),
            ItemUpdate(
                item_id=loser.id, elo_delta=loser_delta, elo_games=games,
                comparison_count=1, loss_count=1, **loser_side,
            ),
        ]

    def _updated_session(
        self,
        session: Session,
        comparisons: list[Comparison],
        response_time_ms: int | None,
        flag: FlagReason | None,
    ) -> Session:
        previous = session.comparison_count
        new_count = previous + len(comparisons)

        avg = session.avg_response_time_ms
        if response_time_ms is not None and response_time_ms > 0:
            if avg:
                avg = round((avg * previous + response_time_ms) / new_count)
            else:
                avg = response_time_ms

        return session.model_copy(update={
            "comparisons": session.comparisons + tuple(comparisons),
            "avg_response_time_ms": avg,
            "is_flagged": session.is_flagged or flag is not None,
            "flag_reason": session.flag_reason or flag,
        })

    def _emit_recorded(self, comparisons: list[Comparison], flag: FlagReason | None) -> None:
        for comp in comparisons:
            self.event_handler.on_vote_recorded(comparison=comp)
            if flag is not None:
                self.event_handler.on_vote_flagged(comparison=comp, reason=flag.value)

    def record_vote(
        self,
        session: Session,
        item_a: Item,
        item_b: Item,
        winner_id: str,
        left_item_id: str,
        right_item_id: str,
        response_time_ms: int | None = None,
        comparison_id: str | None = None,
    ) -> VoteOutcome:
        """Turn a pairwise vote into a comparison record and item updates.

        Raises:
            SessionCompletedError: The session is in its terminal state
            InvalidVoteError: Winner or positions do not match the pair, or
                the items belong to different categories
            DuplicateComparisonError: The pair was already compared this session
        """
        if session.is_completed:
            raise SessionCompletedError(session.id)
        if item_a.id == item_b.id:
            raise InvalidVoteError("A vote needs two distinct items", {"item_id": item_a.id})
        if winner_id not in (item_a.id, item_b.id):
            raise InvalidVoteError(
                "Winner must be one of the compared items",
                {"winner_id": winner_id, "item_a_id": item_a.id, "item_b_id": item_b.id},
            )
        if {left_item_id, right_item_id} != {item_a.id, item_b.id}:
            raise InvalidVoteError(
                "Left/right positions must be the compared items",
                {"left_item_id": left_item_id, "right_item_id": right_item_id},
            )
        if item_a.category_id != item_b.category_id:
            raise InvalidVoteError(
                "Items must be from the same category",
                {"item_a_category": item_a.category_id, "item_b_category": item_b.category_id},
            )
        key = pair_key(item_a.id, item_b.id)
        if any(comp.pair_key == key for comp in session.comparisons):
            raise DuplicateComparisonError(item_a.id, item_b.id)

        flag = self._flag_for(response_time_ms)
        stored_flag = FlagReason.TEST_SESSION if session.is_test_session else flag

        comparison = Comparison(
            id=comparison_id or uuid.uuid4().hex,
            session_id=session.id,
            category_id=item_a.category_id,
            item_a_id=item_a.id,
            item_b_id=item_b.id,
            winner_id=winner_id,
            left_item_id=left_item_id,
            right_item_id=right_item_id,
            response_time_ms=response_time_ms,
            is_flagged=stored_flag is not None,
            flag_reason=stored_flag,
        )

        updates: list[ItemUpdate] = []
        if not session.is_test_session:
            winner, loser = (item_a, item_b) if winner_id == item_a.id else (item_b, item_a)

            def side(item: Item) -> dict[str, int]:
                return {"left_count": int(item.id == left_item_id), "right_count": int(item.id == right_item_id)}

            updates = self._rating_updates(winner, loser, flag, side(winner), side(loser))

        if flag is not None:
            log.warning(
                "Vote flagged",
                session_id=session.id,
                comparison_id=comparison.id,
                reason=flag.value,
                response_time_ms=response_time_ms,
            )

        self._emit_recorded([comparison], flag)

        return VoteOutcome(
            comparisons=[comparison],
            item_updates=updates,
            session=self._updated_session(session, [comparison], response_time_ms, flag),
            flag_reason=flag,
        )

    def record_quad_vote(
        self,
        session: Session,
        items: Sequence[Item],
        winner_id: str,
        positions: Sequence[str],
        response_time_ms: int | None = None,
    ) -> VoteOutcome:
        """Record a best-of-four vote as three winner-vs-loser comparisons.

        Losers are not compared with each other. All three winner deltas are
        computed from the pre-vote snapshot and summed; left/right of each
        record follows the display order. Only the first record carries the
        response time.

        Raises:
            SessionCompletedError: The session is in its terminal state
            InvalidVoteError: Not four distinct same-category items, winner
                not among them, or positions not a permutation of them
        """
        if session.is_completed:
            raise SessionCompletedError(session.id)

        ids = [item.id for item in items]
        if len(items) != QUAD_SIZE or len(set(ids)) != QUAD_SIZE:
            raise InvalidVoteError("Must provide exactly 4 distinct items", {"item_ids": ids})
        if winner_id not in ids:
            raise InvalidVoteError("Winner must be one of the shown items", {"winner_id": winner_id})
        if sorted(positions) != sorted(ids):
            raise InvalidVoteError("Positions must be a permutation of the items", {"positions": list(positions)})
        if len({item.category_id for item in items}) != 1:
            raise InvalidVoteError("Items must be from the same category", {"item_ids": ids})

        flag = self._flag_for(response_time_ms)
        stored_flag = FlagReason.TEST_SESSION if session.is_test_session else flag

        winner = next(item for item in items if item.id == winner_id)
        losers = [item for item in items if item.id != winner_id]
        order = {item_id: index for index, item_id in enumerate(positions)}

        comparisons: list[Comparison] = []
        merged: dict[str, ItemUpdate] = {}
        no_side = {"left_count": 0, "right_count": 0}

        for index, loser in enumerate(losers):
            winner_first = order[winner.id] < order[loser.id]
            comparisons.append(Comparison(
                id=uuid.uuid4().hex,
                session_id=session.id,
                category_id=winner.category_id,
                item_a_id=winner.id,
                item_b_id=loser.id,
                winner_id=winner.id,
                left_item_id=winner.id if winner_first else loser.id,
                right_item_id=loser.id if winner_first else winner.id,
                response_time_ms=response_time_ms if index == 0 else None,
                is_flagged=stored_flag is not None,
                flag_reason=stored_flag,
            ))

            if session.is_test_session:
                continue
            for update in self._rating_updates(winner, loser, flag, no_side, no_side):
                previous = merged.get(update.item_id)
                merged[update.item_id] = previous.merged(update) if previous else update

        if flag is not None:
            log.warning(
                "Quad vote flagged",
                session_id=session.id,
                reason=flag.value,
                response_time_ms=response_time_ms,
            )

        self._emit_recorded(comparisons, flag)

        return VoteOutcome(
            comparisons=comparisons,
            item_updates=list(merged.values()),
            session=self._updated_session(session, comparisons, response_time_ms, flag),
            flag_reason=flag,
        )
