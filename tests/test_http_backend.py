"""HTTP and WebSocket adapters, exercised against mock transports."""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from websockets.exceptions import ConnectionClosed
from websockets.frames import Close

from gratitude.client import (
    COMMENTS,
    GROUP_MESSAGES,
    PERSONAL_PHOTOS,
    PHOTOS,
    BackendUnavailable,
    GratitudeClient,
    HttpCollectionBackend,
    HttpLikesBackend,
    NotFound,
    WriteRejected,
)

COMMENT_ROW = {
    "id": "7b1f7a40-0000-4000-8000-000000000001",
    "photo_id": "P123",
    "user_id": "u1",
    "user_display_name": "Layla",
    "content": "شكرا",
    "client_token": "temp-s-1",
    "created_at": "2024-05-01T12:00:00",
}


class FakeConnection:
    def __init__(self, *frames: dict) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self.queue.put_nowait(json.dumps(frame))
        self.closed = 0

    def push(self, frame: dict) -> None:
        self.queue.put_nowait(json.dumps(frame))

    def drop(self) -> None:
        self.queue.put_nowait(None)

    async def recv(self) -> str:
        return await self.queue.get()

    def __aiter__(self) -> "FakeConnection":
        return self

    async def __anext__(self) -> str:
        raw = await self.queue.get()
        if raw is None:
            raise ConnectionClosed(Close(1011, "server restart"), None)
        return raw

    async def close(self) -> None:
        self.closed += 1


def _client(client_settings, handler=None, connection=None, urls=None) -> GratitudeClient:
    async def _connect(url: str):
        if urls is not None:
            urls.append(url)
        return connection

    transport = httpx.MockTransport(handler) if handler else None
    return GratitudeClient(client_settings, token="tok", user_id="u1", transport=transport, connect=_connect)


@pytest.mark.asyncio
async def test_status_codes_map_to_backend_errors(client_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/comments/missing":
            return httpx.Response(404, json={"detail": "Comment not found"})
        if request.url.path == "/comments/locked":
            return httpx.Response(403, json={"detail": "Not allowed to delete this comment"})
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(client_settings, handler)
    backend = HttpCollectionBackend(client, COMMENTS)

    with pytest.raises(NotFound):
        await backend.delete("missing")
    with pytest.raises(WriteRejected) as rejected:
        await backend.delete("locked")
    assert rejected.value.status_code == 403
    assert rejected.value.detail == "Not allowed to delete this comment"
    with pytest.raises(BackendUnavailable):
        await backend.list("P123")
    await client.close()


@pytest.mark.asyncio
async def test_comment_round_trip_uses_rest_routes(client_settings):
    seen: list[tuple[str, str, dict | None, str | None]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body, request.headers.get("authorization")))
        if request.method == "GET":
            return httpx.Response(200, json={"items": [COMMENT_ROW]})
        if request.method == "POST":
            return httpx.Response(201, json=COMMENT_ROW)
        return httpx.Response(204)

    async with _client(client_settings, handler) as client:
        backend = HttpCollectionBackend(client, COMMENTS)
        rows = await backend.list("P123")
        created = await backend.create("P123", "شكرا", client_token="temp-s-1", user_display_name="Layla")
        await backend.delete(created.id)

    assert rows[0].content == "شكرا"
    assert rows[0].created_at.tzinfo is not None
    assert created.client_token == "temp-s-1"
    assert created.extra["user_display_name"] == "Layla"
    assert seen[0][:2] == ("GET", "/photos/P123/comments")
    assert seen[1][:3] == ("POST", "/photos/P123/comments", {"content": "شكرا", "client_token": "temp-s-1"})
    assert seen[2][:2] == ("DELETE", f"/comments/{COMMENT_ROW['id']}")
    assert all(auth == "Bearer tok" for *_, auth in seen)


@pytest.mark.asyncio
async def test_personal_photos_post_without_group(client_settings):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        payload = json.loads(request.content)
        return httpx.Response(
            201,
            json={
                "id": "p-1",
                "user_id": "u1",
                "group_id": payload["group_id"],
                "image_url": payload["image_url"],
                "caption": payload["caption"],
                "hashtags": payload["hashtags"],
                "order": None,
                "client_token": payload["client_token"],
                "created_at": "2024-05-01T12:00:00Z",
                "like_count": 0,
                "comment_count": 0,
            },
        )

    async with _client(client_settings, handler) as client:
        backend = HttpCollectionBackend(client, PHOTOS)
        photo = await backend.create(
            PERSONAL_PHOTOS,
            "tea",
            client_token="temp-s-2",
            image_url="https://cdn.example/tea.jpg",
            hashtags=["#calm"],
            like_count=0,
        )

    body = json.loads(seen[0].content)
    assert body["group_id"] is None
    assert "like_count" not in body
    assert photo.parent_id == PERSONAL_PHOTOS
    assert photo.extra["hashtags"] == ["#calm"]


@pytest.mark.asyncio
async def test_subscription_dispatches_channel_frames(client_settings):
    channel = "group:G1:messages"
    connection = FakeConnection({"type": "ready", "channel": channel})
    urls: list[str] = []
    inserted, deleted = [], []

    client = _client(client_settings, connection=connection, urls=urls)
    backend = HttpCollectionBackend(client, GROUP_MESSAGES)
    subscription = await backend.subscribe("G1", inserted.append, deleted.append)

    connection.push(
        {
            "type": "insert",
            "channel": channel,
            "entity": {
                "id": "m-1",
                "group_id": "G1",
                "user_id": "u2",
                "user_name": "Omar",
                "content": "hello",
                "created_at": "2024-05-01T12:00:00+00:00",
            },
        }
    )
    connection.push({"type": "insert", "channel": "group:OTHER:messages", "entity": {}})
    connection.push({"type": "insert", "channel": channel, "entity": {"id": "broken"}})
    connection.push({"type": "delete", "channel": channel, "id": "m-0"})
    for _ in range(5):
        await asyncio.sleep(0)

    assert urls == ["ws://testserver/ws/group:G1:messages?token=tok"]
    assert [row.id for row in inserted] == ["m-1"]
    assert inserted[0].extra["user_name"] == "Omar"
    assert deleted == ["m-0"]

    await subscription.close()
    await subscription.close()
    assert connection.closed == 1
    await client.close()


@pytest.mark.asyncio
async def test_refused_subscription_raises_write_rejected(client_settings):
    class RefusedConnection(FakeConnection):
        async def recv(self) -> str:
            raise ConnectionClosed(Close(1008, "policy violation"), None)

    client = _client(client_settings, connection=RefusedConnection())
    with pytest.raises(WriteRejected):
        await client.subscribe("group:G1:messages", lambda frame: None)
    await client.close()


@pytest.mark.asyncio
async def test_likes_backend_posts_and_listens(client_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        liked = request.method == "POST"
        return httpx.Response(
            200,
            json={"photo_id": "p-1", "like_count": 3 if liked else 2, "comment_count": 0, "viewer_has_liked": liked},
        )

    channel = "photo:p-1:likes"
    connection = FakeConnection({"type": "ready", "channel": channel})
    counts: list[int] = []
    client = _client(client_settings, handler, connection=connection)
    likes = HttpLikesBackend(client)

    assert await likes.set_liked("p-1", True) == (True, 3)
    assert await likes.set_liked("p-1", False) == (False, 2)

    subscription = await likes.subscribe("p-1", counts.append)
    connection.push({"type": "engagement", "channel": channel, "photo_id": "p-1", "like_count": 11})
    for _ in range(5):
        await asyncio.sleep(0)
    assert counts == [11]

    await subscription.close()
    await client.close()


@pytest.mark.asyncio
async def test_server_close_is_reported_once(client_settings):
    channel = "photo:P123:comments"
    connection = FakeConnection({"type": "ready", "channel": channel})
    dropped: list[str] = []

    client = _client(client_settings, connection=connection)
    backend = HttpCollectionBackend(client, COMMENTS)
    subscription = await backend.subscribe("P123", lambda row: None, lambda item_id: None, lambda: dropped.append(channel))

    connection.drop()
    for _ in range(5):
        await asyncio.sleep(0)
    assert dropped == [channel]

    await subscription.close()
    assert dropped == [channel]
    assert connection.closed == 1
    await client.close()


@pytest.mark.asyncio
async def test_client_close_does_not_report_drop(client_settings):
    channel = "photo:P123:comments"
    connection = FakeConnection({"type": "ready", "channel": channel})
    dropped: list[str] = []

    client = _client(client_settings, connection=connection)
    subscription = await client.subscribe(channel, lambda frame: None, lambda: dropped.append(channel))
    await subscription.close()
    for _ in range(3):
        await asyncio.sleep(0)

    assert dropped == []
    await client.close()
