"""Boundary between the reconciler and whatever stores the rows."""
from __future__ import annotations

from typing import Any, Callable, Protocol

from .entities import Confirmed

InsertHandler = Callable[[Confirmed], None]
DeleteHandler = Callable[[str], None]
ClosedHandler = Callable[[], None]


class Subscription(Protocol):
    async def close(self) -> None:
        """Stop delivering events. Safe to call more than once."""


class CollectionBackend(Protocol):
    """Authoritative reads, writes and the push feed for one kind of collection.

    Failed calls raise :class:`gratitude.client.errors.BackendError`.
    ``on_closed`` fires once when the push feed ends without ``close()``
    having been called.
    """

    async def list(self, parent_id: str) -> list[Confirmed]: ...

    async def create(self, parent_id: str, content: str, *, client_token: str, **fields: Any) -> Confirmed: ...

    async def delete(self, item_id: str) -> None: ...

    async def subscribe(
        self,
        parent_id: str,
        on_insert: InsertHandler,
        on_delete: DeleteHandler,
        on_closed: ClosedHandler | None = None,
    ) -> Subscription: ...


class LikesBackend(Protocol):
    """Like state of a single photo."""

    async def set_liked(self, photo_id: str, liked: bool) -> tuple[bool, int]:
        """Persist the viewer's like and return ``(viewer_has_liked, like_count)``."""
        ...

    async def subscribe(self, photo_id: str, on_count: Callable[[int], None]) -> Subscription: ...


__all__ = ["ClosedHandler", "CollectionBackend", "DeleteHandler", "InsertHandler", "LikesBackend", "Subscription"]
