"""Ephemeral match proposals returned by the selectors."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from sciblind.models import Item


class MatchPhase(str, Enum):
    """Search that produced a pair."""
    COVERAGE = "coverage"  # some items not yet seen this session
    DEPTH = "depth"        # every item seen, optimise for precision


class MatchPair(BaseModel):
    """Two items to compare plus their display positions."""
    model_config = ConfigDict(frozen=True)

    item_a: Item
    item_b: Item
    left_item_id: str
    right_item_id: str
    phase: MatchPhase
    score: float = 0.0
    relaxed: bool = False  # found only by ignoring the streak limit


class MatchQuad(BaseModel):
    """Four items to compare; ``positions`` is the display order of their ids."""
    model_config = ConfigDict(frozen=True)

    items: tuple[Item, Item, Item, Item]
    positions: tuple[str, str, str, str]

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]
