"""
Exception types for SciBLIND.

Normal edge cases (exhausted categories, skipped transitivity checks,
undefined standard errors) are encoded as return values. Exceptions are
reserved for caller contract violations that would corrupt rating updates
if silently tolerated.
"""

from __future__ import annotations

from typing import Any


class SciblindError(Exception):
    """Base exception for all SciBLIND errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class InsufficientItemsError(SciblindError, ValueError):
    """Raised when a selector is given fewer items than a match needs."""

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient items: need at least {required}, got {available}",
            {"required": required, "available": available},
        )
        self.required = required
        self.available = available


class InvalidVoteError(SciblindError, ValueError):
    """Raised when a submitted vote does not describe a valid outcome."""

    pass


class DuplicateComparisonError(InvalidVoteError):
    """Raised when a pair has already been compared in the session."""

    def __init__(self, item_a_id: str, item_b_id: str):
        super().__init__(
            "This pair has already been compared",
            {"item_a_id": item_a_id, "item_b_id": item_b_id},
        )


class SessionCompletedError(SciblindError):
    """Raised when a vote is submitted to a session in its terminal state."""

    def __init__(self, session_id: str):
        super().__init__(f"Session already completed: {session_id}", {"session_id": session_id})
        self.session_id = session_id


class UnknownCategoryError(SciblindError, KeyError):
    """Raised when a category id is not part of the study."""

    def __init__(self, category_id: str):
        super().__init__(f"Unknown category: {category_id}", {"category_id": category_id})
        self.category_id = category_id

    def __str__(self) -> str:
        return SciblindError.__str__(self)
