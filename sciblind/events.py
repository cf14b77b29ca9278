"""Event system for decoupling the session core from its host.

The orchestrator emits events without knowing whether the host writes them
to an activity log, a dashboard or nowhere at all. Hosts subscribe by
passing an object implementing ``EventHandler``.
"""

from typing import TYPE_CHECKING, Any, Protocol

from sciblind.models import Comparison, Session

if TYPE_CHECKING:
    from sciblind.orchestrator import CategoryProgress, SessionProgress


class EventHandler(Protocol):
    """Protocol for handlers receiving session lifecycle events."""

    def on_progress(
        self,
        current: int,
        total: int,
        message: str,
        **kwargs: Any
    ) -> None:
        """Called when a category's progress changes.

        Args:
            current: Comparisons (or quads) completed in the category
            total: Target for the category
            message: Progress message
            **kwargs: Additional context
        """
        ...

    def on_vote_recorded(
        self,
        comparison: Comparison,
        **kwargs: Any
    ) -> None:
        """Called for every comparison record produced by a vote."""
        ...

    def on_vote_flagged(
        self,
        comparison: Comparison,
        **kwargs: Any
    ) -> None:
        """Called when a comparison was flagged by fraud detection."""
        ...

    def on_category_complete(
        self,
        progress: "CategoryProgress",
        **kwargs: Any
    ) -> None:
        """Called when a session satisfies a category's completion predicate."""
        ...

    def on_session_complete(
        self,
        session: Session,
        progress: "SessionProgress",
        **kwargs: Any
    ) -> None:
        """Called once when a session reaches its terminal state."""
        ...


class NullEventHandler:
    """Event handler that does nothing.

    Default when the host does not care about events.
    """

    def on_progress(self, *args: Any, **kwargs: Any) -> None:
        pass

    def on_vote_recorded(self, *args: Any, **kwargs: Any) -> None:
        pass

    def on_vote_flagged(self, *args: Any, **kwargs: Any) -> None:
        pass

    def on_category_complete(self, *args: Any, **kwargs: Any) -> None:
        pass

    def on_session_complete(self, *args: Any, **kwargs: Any) -> None:
        pass


class RecordingEventHandler(NullEventHandler):
    """Keeps every event in memory as ``(name, payload)`` tuples.

    Handy for the simulation harness and for tests.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def on_progress(self, current: int, total: int, message: str, **kwargs: Any) -> None:
        self.events.append(("progress", {"current": current, "total": total, "message": message, **kwargs}))

    def on_vote_recorded(self, comparison: Comparison, **kwargs: Any) -> None:
        self.events.append(("vote_recorded", {"comparison": comparison, **kwargs}))

    def on_vote_flagged(self, comparison: Comparison, **kwargs: Any) -> None:
        self.events.append(("vote_flagged", {"comparison": comparison, **kwargs}))

    def on_category_complete(self, progress: "CategoryProgress", **kwargs: Any) -> None:
        self.events.append(("category_complete", {"progress": progress, **kwargs}))

    def on_session_complete(self, session: Session, progress: "SessionProgress", **kwargs: Any) -> None:
        self.events.append(("session_complete", {"session": session, "progress": progress, **kwargs}))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]
