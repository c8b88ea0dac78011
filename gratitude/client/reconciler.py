"""Optimistic mutation reconciler for one collection.

Three sources mutate the collection: local user actions, the responses to the
authoritative writes those actions trigger, and the push feed carrying
changes made by any client. Every callback runs to completion on the event
loop, so no locking is needed; ordering problems are handled by matching rows
on their server id, the echoed correlation token, or, when the backend does
not echo one, by author, parent, content and a time window.

Row lifecycle: ``pending -> confirmed``, ``pending -> removed``,
``confirmed -> removed``. A confirmed row never becomes pending again.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import OrderedDict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import TracebackType
from typing import Any, Callable, Mapping

from .backend import CollectionBackend, Subscription
from .collection import CHRONOLOGICAL, Collection, SortOrder
from .entities import (
    Confirmed,
    CorrelationIds,
    Entity,
    OperationKind,
    Pending,
    PendingOperation,
    as_utc,
    is_correlation_id,
    is_pending,
    utcnow,
)
from .errors import BackendError, NotFound
from .feedback import FeedbackBus

logger = logging.getLogger(__name__)

Validator = Callable[[str, Mapping[str, Any]], bool]
ChangeListener = Callable[[tuple[Entity, ...]], None]

_TOMBSTONE_LIMIT = 512


def require_text(content: str, fields: Mapping[str, Any]) -> bool:
    return bool(content.strip())


@dataclass(frozen=True, slots=True)
class FeedbackCopy:
    """Wording of the notices a feed shows for each outcome."""

    created: str = "Saved"
    create_failed: str = "Could not save. Please try again."
    deleted: str = "Deleted"
    delete_failed: str = "Could not delete. Please try again."
    load_failed: str = "Could not load the latest items."
    live_unavailable: str = "Live updates are unavailable right now."
    announce_success: bool = True


@dataclass(frozen=True, slots=True)
class RemovedItem:
    index: int
    entity: Confirmed


class OptimisticReconciler:
    def __init__(
        self,
        parent_id: str,
        backend: CollectionBackend,
        *,
        author_id: str,
        feedback: FeedbackBus | None = None,
        order: SortOrder = CHRONOLOGICAL,
        dedup_window: timedelta = timedelta(seconds=10),
        undo_depth: int = 5,
        correlation_ids: CorrelationIds | None = None,
        validator: Validator = require_text,
        copy: FeedbackCopy | None = None,
        clock: Callable[[], datetime] = utcnow,
        reconnect_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
    ) -> None:
        if undo_depth < 1:
            raise ValueError("undo_depth must be at least 1")
        self.parent_id = parent_id
        self.author_id = author_id
        self.collection = Collection(parent_id, order)
        self.feedback = feedback or FeedbackBus()
        self.loading = False
        self._backend = backend
        self._dedup_window = dedup_window
        self._ids = correlation_ids or CorrelationIds()
        self._validator = validator
        self._copy = copy or FeedbackCopy()
        self._clock = clock
        self._operations: dict[str, PendingOperation] = {}
        self._undo: deque[RemovedItem] = deque(maxlen=undo_depth)
        self._cancelled: set[str] = set()
        self._tombstones: OrderedDict[str, None] = OrderedDict()
        self._listeners: list[ChangeListener] = []
        self._subscription: Subscription | None = None
        self._reconnect_delay = reconnect_delay
        self._reconnect_max_delay = reconnect_max_delay
        self._reconnect_task: asyncio.Task[None] | None = None
        self._mounted = False
        self._closed = False

    # lifecycle

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def items(self) -> tuple[Entity, ...]:
        return self.collection.items

    @property
    def pending_operations(self) -> dict[str, PendingOperation]:
        return dict(self._operations)

    @property
    def sending(self) -> bool:
        return any(op.kind is OperationKind.CREATE for op in self._operations.values())

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def mount(self) -> None:
        """Subscribe to the push feed, then load the current rows.

        Subscribing first means nothing published during the initial fetch is
        lost; fetched rows are merged with whatever has already arrived.
        """

        if self._closed:
            raise RuntimeError("A closed reconciler cannot be mounted again")
        if self._mounted:
            return
        self._mounted = True
        self.loading = True
        try:
            await self._open_subscription()
            if self._mounted:
                await self._load()
        finally:
            self.loading = False

    async def close(self) -> None:
        """Tear down the push feed; anything resolving afterwards is ignored."""

        if self._closed:
            return
        self._closed = True
        self._mounted = False
        self._listeners.clear()
        reconnect, self._reconnect_task = self._reconnect_task, None
        if reconnect is not None and not reconnect.done() and reconnect is not asyncio.current_task():
            reconnect.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reconnect
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

    async def __aenter__(self) -> "OptimisticReconciler":
        await self.mount()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def refresh(self) -> None:
        """Re-read the collection; confirmed rows the server no longer has are dropped.

        Only rows that were already confirmed when the fetch started can be
        dropped; anything confirmed while it was in flight is newer than the
        server's answer.
        """

        if not self._mounted:
            return
        known = {entity.id for entity in self.collection.items if not is_pending(entity)}
        try:
            rows = await self._backend.list(self.parent_id)
        except BackendError:
            logger.warning("Refreshing %s failed", self.parent_id, exc_info=True)
            if self._mounted:
                self.feedback.error("Error", self._copy.load_failed, operation="refresh")
            return
        if not self._mounted:
            return
        server_ids = {row.id for row in rows}
        for stale in known - server_ids:
            entity = self.collection.get(stale)
            if entity is not None and not is_pending(entity):
                self.collection.remove(stale)
        for row in rows:
            self._absorb(row)
        self._notify()

    # local writes

    async def submit_create(self, content: str, **fields: Any) -> Confirmed | None:
        """Show ``content`` immediately, then reconcile it with the server's answer.

        Returns the confirmed row, or ``None`` when validation failed, the
        write was rejected, the pending row was cancelled, or the reconciler
        was closed before the answer arrived.
        """

        if not self._mounted:
            logger.debug("Ignoring create on unmounted collection %s", self.parent_id)
            return None
        text = content.strip()
        if not self._validator(text, fields):
            return None

        correlation_id = self._ids.next()
        submitted_at = self._clock()
        pending = Pending(
            id=correlation_id,
            parent_id=self.parent_id,
            author_id=self.author_id,
            content=text,
            created_at=submitted_at,
            extra=dict(fields),
        )
        self._operations[correlation_id] = PendingOperation(correlation_id, OperationKind.CREATE, submitted_at)
        self.collection.insert(pending)
        self._notify()

        try:
            confirmed = await self._backend.create(self.parent_id, text, client_token=correlation_id, **fields)
        except asyncio.CancelledError:
            self._operations.pop(correlation_id, None)
            self._cancelled.discard(correlation_id)
            if self._mounted and self._drop_pending(correlation_id):
                self._notify()
            raise
        except BackendError:
            self._operations.pop(correlation_id, None)
            self._cancelled.discard(correlation_id)
            if not self._mounted:
                return None
            if self._drop_pending(correlation_id):
                logger.warning("Create in %s rejected; rolled back %s", self.parent_id, correlation_id, exc_info=True)
                self._notify()
                self.feedback.error("Error", self._copy.create_failed, operation="create", item_id=correlation_id)
            return None

        self._operations.pop(correlation_id, None)
        if not self._mounted:
            return None
        return await self._settle_create(correlation_id, confirmed)

    async def submit_delete(self, item_id: str) -> bool:
        """Remove ``item_id`` immediately; put it back if the backend refuses."""

        if not self._mounted:
            return False
        entity = self.collection.get(item_id)
        if entity is None:
            return False

        if is_pending(entity):
            # Cancel locally; a create that still succeeds is deleted on arrival.
            self.collection.remove(item_id)
            if item_id in self._operations:
                self._cancelled.add(item_id)
            self._notify()
            return True

        index = self.collection.index_of(item_id)
        self.collection.remove(item_id)
        self._undo.append(RemovedItem(index or 0, entity))
        self._operations[item_id] = PendingOperation(item_id, OperationKind.DELETE, self._clock())
        self._notify()

        try:
            await self._backend.delete(item_id)
        except NotFound:
            logger.info("Row %s was already gone from %s", item_id, self.parent_id)
        except BackendError:
            self._operations.pop(item_id, None)
            if not self._mounted:
                return False
            if item_id in self._tombstones:
                logger.info("Delete of %s failed but the row was removed elsewhere", item_id)
                return True
            undo = self._take_undo(item_id)
            if undo is not None and item_id not in self.collection:
                self.collection.restore(undo.index, undo.entity)
                self._notify()
            logger.warning("Delete of %s rejected; restored", item_id, exc_info=True)
            self.feedback.error("Error", self._copy.delete_failed, operation="delete", item_id=item_id)
            return False

        self._operations.pop(item_id, None)
        self._take_undo(item_id)
        self._bury(item_id)
        if self._mounted and self._copy.announce_success:
            self.feedback.success("Deleted", self._copy.deleted, operation="delete", item_id=item_id)
        return True

    # push feed

    def on_remote_insert(self, entity: Confirmed) -> None:
        if not self._mounted:
            return
        if self._absorb(entity):
            self._notify()

    def on_remote_delete(self, item_id: str) -> None:
        if not self._mounted or is_correlation_id(item_id):
            return
        self._bury(item_id)
        self._take_undo(item_id)
        if self.collection.remove(item_id) is not None:
            self._notify()

    # internals

    async def _open_subscription(self) -> None:
        try:
            subscription = await self._subscribe()
        except BackendError:
            logger.warning("Push feed for %s unavailable", self.parent_id, exc_info=True)
            if self._mounted:
                self.feedback.error("Offline", self._copy.live_unavailable, operation="subscribe")
            return
        if not self._mounted:
            # Closed while connecting: the handle is ours to release.
            await subscription.close()
            return
        self._subscription = subscription

    async def _subscribe(self) -> Subscription:
        return await self._backend.subscribe(
            self.parent_id,
            self.on_remote_insert,
            self.on_remote_delete,
            self._on_feed_closed,
        )

    def _on_feed_closed(self) -> None:
        if not self._mounted:
            return
        logger.warning("Push feed for %s dropped; reconnecting", self.parent_id)
        lost, self._subscription = self._subscription, None
        self.feedback.error("Offline", self._copy.live_unavailable, operation="subscribe")
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect(lost), name=f"reconnect:{self.parent_id}")

    async def _reconnect(self, lost: Subscription | None) -> None:
        """Reopen the push feed with exponential backoff, then catch up with ``refresh()``."""

        if lost is not None:
            await lost.close()
        delay = self._reconnect_delay
        while self._mounted:
            await asyncio.sleep(delay)
            if not self._mounted:
                return
            try:
                subscription = await self._subscribe()
            except BackendError:
                delay = min(delay * 2, self._reconnect_max_delay)
                logger.info("Push feed for %s still unavailable; retrying in %.1fs", self.parent_id, delay, exc_info=True)
                continue
            if not self._mounted:
                await subscription.close()
                return
            self._subscription = subscription
            logger.info("Push feed for %s restored", self.parent_id)
            await self.refresh()
            return

    async def _load(self) -> None:
        try:
            rows = await self._backend.list(self.parent_id)
        except BackendError:
            logger.warning("Loading %s failed", self.parent_id, exc_info=True)
            if self._mounted:
                self.feedback.error("Error", self._copy.load_failed, operation="load")
            return
        if not self._mounted:
            return
        changed = False
        for row in rows:
            changed = self._absorb(row) or changed
        if changed:
            self._notify()

    async def _settle_create(self, correlation_id: str, confirmed: Confirmed) -> Confirmed | None:
        if correlation_id in self._cancelled:
            self._cancelled.discard(correlation_id)
            await self._discard_cancelled(confirmed)
            return None

        if confirmed.id in self.collection:
            # The push echo won the race.
            self.collection.replace(confirmed.id, confirmed)
            self._drop_pending(correlation_id)
        elif not self.collection.replace(correlation_id, confirmed):
            if confirmed.id in self._tombstones or self._is_deleting(confirmed.id):
                self._notify()
                return None
            self.collection.insert(confirmed)
        self._notify()
        if self._copy.announce_success:
            self.feedback.success("Done", self._copy.created, operation="create", item_id=confirmed.id)
        return confirmed

    async def _discard_cancelled(self, confirmed: Confirmed) -> None:
        """Delete a row whose pending placeholder the user cancelled mid-flight."""

        if confirmed.id in self.collection:
            self.collection.remove(confirmed.id)
            self._notify()
        self._operations[confirmed.id] = PendingOperation(confirmed.id, OperationKind.DELETE, self._clock())
        try:
            await self._backend.delete(confirmed.id)
        except NotFound:
            pass
        except BackendError:
            self._operations.pop(confirmed.id, None)
            if not self._mounted:
                return
            logger.warning("Could not discard cancelled row %s", confirmed.id, exc_info=True)
            if confirmed.id not in self.collection and confirmed.id not in self._tombstones:
                self.collection.insert(confirmed)
                self._notify()
            self.feedback.error("Error", self._copy.delete_failed, operation="delete", item_id=confirmed.id)
            return
        self._operations.pop(confirmed.id, None)
        self._bury(confirmed.id)

    def _absorb(self, entity: Confirmed) -> bool:
        """Merge a server row arriving from the feed or a fetch; return whether anything changed."""

        if entity.id in self.collection:
            return False
        if entity.id in self._tombstones or self._is_deleting(entity.id):
            return False
        token = entity.client_token
        if token and token in self._cancelled:
            return False
        if token:
            current = self.collection.get(token)
            if current is not None and is_pending(current):
                return self.collection.replace(token, entity)
        else:
            match = self._match_pending(entity)
            if match is not None:
                return self.collection.replace(match.id, entity)
        self.collection.insert(entity)
        return True

    def _match_pending(self, entity: Confirmed) -> Pending | None:
        created_at = as_utc(entity.created_at)

        def _same_write(candidate: Entity) -> bool:
            return (
                isinstance(candidate, Pending)
                and candidate.author_id == entity.author_id
                and candidate.parent_id == entity.parent_id
                and candidate.content == entity.content
                and abs(as_utc(candidate.created_at) - created_at) <= self._dedup_window
            )

        match = self.collection.find(_same_write)
        return match if isinstance(match, Pending) else None

    def _drop_pending(self, correlation_id: str) -> bool:
        current = self.collection.get(correlation_id)
        if current is None or not is_pending(current):
            return False
        self.collection.remove(correlation_id)
        return True

    def _is_deleting(self, item_id: str) -> bool:
        operation = self._operations.get(item_id)
        return operation is not None and operation.kind is OperationKind.DELETE

    def _take_undo(self, item_id: str) -> RemovedItem | None:
        for removed in self._undo:
            if removed.entity.id == item_id:
                self._undo.remove(removed)
                return removed
        return None

    def _bury(self, item_id: str) -> None:
        self._tombstones[item_id] = None
        self._tombstones.move_to_end(item_id)
        while len(self._tombstones) > _TOMBSTONE_LIMIT:
            self._tombstones.popitem(last=False)

    def _notify(self) -> None:
        snapshot = self.collection.items
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Collection listener failed for %s", self.parent_id)


__all__ = ["ChangeListener", "FeedbackCopy", "OptimisticReconciler", "RemovedItem", "Validator", "require_text"]
