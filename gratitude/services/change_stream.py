"""WebSocket channel manager fanning out row changes to subscribers."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from uuid import UUID

from fastapi import WebSocket

from ..schemas import DeleteEvent, EngagementEvent, InsertEvent

logger = logging.getLogger(__name__)


class ChangeStreamManager:
    """Track per-channel WebSocket connections and broadcast change events."""

    def __init__(self) -> None:
        self._channels: dict[str, set[WebSocket]] = {}
        self._connections: dict[WebSocket, str] = {}
        self._lock = asyncio.Lock()

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            group = self._channels.setdefault(channel, set())
            group.add(websocket)
            self._connections[websocket] = channel

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            channel = self._connections.pop(websocket, None)
            if not channel:
                return
            group = self._channels.get(channel)
            if group is None:
                return
            group.discard(websocket)
            if not group:
                self._channels.pop(channel, None)

    def subscriber_count(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))

    async def broadcast(self, channel: str | None, payload: dict[str, Any]) -> None:
        if not channel:
            return
        serialized = json.dumps(payload, default=str)
        async with self._lock:
            targets = list(self._channels.get(channel, ()))
        for connection in targets:
            try:
                await connection.send_text(serialized)
            except Exception:
                logger.info("Dropping unreachable subscriber on %s", channel)
                await self.disconnect(connection)

    async def publish_insert(self, channel: str, entity: dict[str, Any]) -> None:
        event = InsertEvent(channel=channel, entity=entity)
        await self.broadcast(channel, event.model_dump(mode="json"))

    async def publish_delete(self, channel: str, item_id: UUID | str) -> None:
        event = DeleteEvent(channel=channel, id=str(item_id))
        await self.broadcast(channel, event.model_dump(mode="json"))

    async def publish_engagement(self, channel: str, photo_id: UUID, like_count: int) -> None:
        event = EngagementEvent(channel=channel, photo_id=photo_id, like_count=like_count)
        await self.broadcast(channel, event.model_dump(mode="json"))


change_stream_manager = ChangeStreamManager()


async def safe_publish(coro_factory, *args: Any) -> None:
    """Run a publish call, logging instead of failing the originating request."""

    try:
        await coro_factory(*args)
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Failed to broadcast change event")


__all__ = ["change_stream_manager", "ChangeStreamManager", "safe_publish"]
