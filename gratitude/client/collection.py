"""Ordered, id-addressable rows belonging to one parent (a photo, a group)."""
from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

from .entities import Entity, as_utc


@dataclass(frozen=True, slots=True)
class SortOrder:
    name: str
    key: Callable[[Entity], Any]


def _chronological_key(entity: Entity) -> Any:
    return as_utc(entity.created_at)


def _photo_feed_key(entity: Entity) -> Any:
    order = entity.order
    return (order is None, order if order is not None else 0, -as_utc(entity.created_at).timestamp())


CHRONOLOGICAL = SortOrder("chronological", _chronological_key)
PHOTO_FEED = SortOrder("photo_feed", _photo_feed_key)


class Collection:
    """Rows kept sorted by ``order``; ties keep their arrival order."""

    def __init__(self, parent_id: str, order: SortOrder = CHRONOLOGICAL) -> None:
        self.parent_id = parent_id
        self._order = order
        self._items: list[Entity] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Entity]:
        return iter(tuple(self._items))

    def __contains__(self, item_id: object) -> bool:
        return self.index_of(item_id) is not None  # type: ignore[arg-type]

    @property
    def order(self) -> SortOrder:
        return self._order

    @property
    def items(self) -> tuple[Entity, ...]:
        return tuple(self._items)

    def ids(self) -> list[str]:
        return [item.id for item in self._items]

    def index_of(self, item_id: str) -> int | None:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return None

    def get(self, item_id: str) -> Entity | None:
        index = self.index_of(item_id)
        return None if index is None else self._items[index]

    def find(self, predicate: Callable[[Entity], bool]) -> Entity | None:
        for item in self._items:
            if predicate(item):
                return item
        return None

    def insert(self, entity: Entity) -> int:
        index = bisect.bisect_right(self._items, self._order.key(entity), key=self._order.key)
        self._items.insert(index, entity)
        return index

    def replace(self, item_id: str, entity: Entity) -> bool:
        """Swap ``item_id`` for ``entity`` in place, moving it only if its sort key demands."""

        index = self.index_of(item_id)
        if index is None:
            return False
        self._items[index] = entity
        if not self._in_order(index):
            self._items.pop(index)
            self.insert(entity)
        return True

    def remove(self, item_id: str) -> tuple[int, Entity] | None:
        index = self.index_of(item_id)
        if index is None:
            return None
        return index, self._items.pop(index)

    def restore(self, index: int, entity: Entity) -> int:
        """Put a previously removed row back where it was, falling back to sorted insertion."""

        index = max(0, min(index, len(self._items)))
        self._items.insert(index, entity)
        if self._in_order(index):
            return index
        self._items.pop(index)
        return self.insert(entity)

    def reset(self, entities: Iterable[Entity]) -> None:
        self._items = sorted(entities, key=self._order.key)

    def _in_order(self, index: int) -> bool:
        key = self._order.key
        current = key(self._items[index])
        if index > 0 and key(self._items[index - 1]) > current:
            return False
        if index + 1 < len(self._items) and current > key(self._items[index + 1]):
            return False
        return True


__all__ = ["CHRONOLOGICAL", "PHOTO_FEED", "Collection", "SortOrder"]
