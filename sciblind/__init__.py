"""Matchmaking, rating and statistical sufficiency core for blind comparison studies."""

from sciblind.models import Category, Comparison, Item, Session, StudySettings
from sciblind.orchestrator import SessionOrchestrator

__all__ = [
    "Category",
    "Comparison",
    "Item",
    "Session",
    "SessionOrchestrator",
    "StudySettings",
]
