"""Partial collection tracking for the items placed on one side's board."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from .models import Item

logger = logging.getLogger(__name__)


class CollectionStatus(Enum):
    """Outcome of shooting a cell that missed every ship."""

    NO_ITEM = "no_item"
    NEUTRAL = "neutral"
    COLLECTED = "collected"


@dataclass(frozen=True)
class Collection:
    status: CollectionStatus
    item_id: int | None = None
    fully_collected: bool = False

    @property
    def collected(self) -> bool:
        return self.status is CollectionStatus.COLLECTED


NO_ITEM = Collection(CollectionStatus.NO_ITEM)


class ItemCollector:
    """Counts collected parts per item, independently of ship damage.

    Items are indexed on a ``[y, x]`` grid holding ``index + 1`` (0 means no
    item), so the lookup done on every miss is constant time.
    """

    def __init__(self, width: int, height: int, items: Sequence[Item] = ()) -> None:
        self.width = width
        self.height = height
        self.items: tuple[Item, ...] = tuple(items)
        self._grid = np.zeros((height, width), dtype=np.int16)
        self._counts = [0] * len(self.items)
        self._fully_collected: set[int] = set()
        self._index_by_id: dict[int, int] = {}
        for index, item in enumerate(self.items):
            self._index_by_id.setdefault(_identity(item, index), index)
            for cell in item.cells():
                self._grid[cell.y, cell.x] = index + 1

    def item_index_at(self, x: int, y: int) -> int | None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            return None
        value = int(self._grid[y, x])
        return value - 1 if value else None

    def item_at(self, x: int, y: int) -> Item | None:
        index = self.item_index_at(x, y)
        return None if index is None else self.items[index]

    def attempt_collect(self, x: int, y: int) -> Collection:
        """Count one part of the item under ``(x, y)``, if any."""
        index = self.item_index_at(x, y)
        if index is None:
            return NO_ITEM
        item = self.items[index]
        item_id = _identity(item, index)
        if index in self._fully_collected:
            return Collection(CollectionStatus.NEUTRAL, item_id=item_id)

        self._counts[index] += 1
        fully_collected = self._counts[index] == item.part
        if fully_collected:
            self._fully_collected.add(index)
            logger.info("item_fully_collected", extra={"item_id": item_id, "part": item.part})
        return Collection(CollectionStatus.COLLECTED, item_id=item_id, fully_collected=fully_collected)

    def collected_count(self, item_id: int) -> int:
        return self._counts[self._index_of(item_id)]

    def is_fully_collected(self, item_id: int) -> bool:
        return self._index_of(item_id) in self._fully_collected

    def fully_collected_ids(self) -> frozenset[int]:
        return frozenset(_identity(self.items[index], index) for index in self._fully_collected)

    def counts(self) -> dict[int, int]:
        """Collected parts keyed by item identity."""
        return {_identity(item, index): self._counts[index] for index, item in enumerate(self.items)}

    def _index_of(self, item_id: int) -> int:
        try:
            return self._index_by_id[item_id]
        except KeyError:
            raise KeyError(f"Unknown item id {item_id}.") from None


def _identity(item: Item, index: int) -> int:
    return item.item_id if item.item_id is not None else index
