"""HTTP + WebSocket adapters connecting feeds to the Gratitude API."""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import quote

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from ..config import ClientSettings, get_client_settings
from .backend import ClosedHandler, DeleteHandler, InsertHandler
from .entities import Confirmed, as_utc
from .errors import BackendError, BackendUnavailable, NotFound, WriteRejected

logger = logging.getLogger(__name__)

PERSONAL_PHOTOS = "personal"

FrameHandler = Callable[[dict[str, Any]], None]
Connector = Callable[[str], Awaitable[Any]]


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def _error_detail(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return body["detail"]
    return body


def decode_comment(row: Mapping[str, Any]) -> Confirmed:
    return Confirmed(
        id=str(row["id"]),
        parent_id=str(row["photo_id"]),
        author_id=str(row["user_id"]),
        content=row["content"],
        created_at=_parse_timestamp(row["created_at"]),
        client_token=row.get("client_token"),
        extra={"user_display_name": row.get("user_display_name")},
    )


def decode_group_message(row: Mapping[str, Any]) -> Confirmed:
    return Confirmed(
        id=str(row["id"]),
        parent_id=str(row["group_id"]),
        author_id=str(row["user_id"]),
        content=row["content"],
        created_at=_parse_timestamp(row["created_at"]),
        client_token=row.get("client_token"),
        extra={"user_name": row.get("user_name"), "user_avatar": row.get("user_avatar")},
    )


def decode_photo(row: Mapping[str, Any]) -> Confirmed:
    group_id = row.get("group_id")
    return Confirmed(
        id=str(row["id"]),
        parent_id=str(group_id) if group_id else PERSONAL_PHOTOS,
        author_id=str(row["user_id"]),
        content=row.get("caption") or "",
        created_at=_parse_timestamp(row["created_at"]),
        client_token=row.get("client_token"),
        order=row.get("order"),
        extra={
            "image_url": row["image_url"],
            "hashtags": list(row.get("hashtags") or []),
            "like_count": int(row.get("like_count") or 0),
            "comment_count": int(row.get("comment_count") or 0),
            "viewer_has_liked": bool(row.get("viewer_has_liked")),
        },
    )


@dataclass(frozen=True, slots=True)
class Resource:
    """Where one kind of collection lives on the API and how its rows look."""

    name: str
    list_path: Callable[[str], str]
    list_key: str
    create_path: Callable[[str], str]
    create_body: Callable[[str, str, str, Mapping[str, Any]], dict[str, Any]]
    delete_path: Callable[[str], str]
    channel: Callable[[str, str | None], str]
    decode: Callable[[Mapping[str, Any]], Confirmed]
    list_params: Callable[[str], dict[str, Any]] = lambda parent_id: {}


def _photo_body(parent_id: str, content: str, client_token: str, fields: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "image_url": fields["image_url"],
        "caption": content,
        "hashtags": list(fields.get("hashtags") or []),
        "order": fields.get("order"),
        "group_id": None if parent_id == PERSONAL_PHOTOS else parent_id,
        "client_token": client_token,
    }


def _photos_channel(parent_id: str, viewer_id: str | None) -> str:
    if parent_id == PERSONAL_PHOTOS:
        if viewer_id is None:
            raise BackendError("Personal photo updates require a signed-in client")
        return f"user:{viewer_id}:photos"
    return f"group:{parent_id}:photos"


COMMENTS = Resource(
    name="comments",
    list_path=lambda photo_id: f"/photos/{photo_id}/comments",
    list_key="items",
    create_path=lambda photo_id: f"/photos/{photo_id}/comments",
    create_body=lambda parent_id, content, token, fields: {"content": content, "client_token": token},
    delete_path=lambda comment_id: f"/comments/{comment_id}",
    channel=lambda photo_id, viewer_id: f"photo:{photo_id}:comments",
    decode=decode_comment,
)

GROUP_MESSAGES = Resource(
    name="group_messages",
    list_path=lambda group_id: f"/groups/{group_id}/messages",
    list_key="messages",
    create_path=lambda group_id: f"/groups/{group_id}/messages",
    create_body=lambda parent_id, content, token, fields: {"content": content, "client_token": token},
    delete_path=lambda message_id: f"/groups/messages/{message_id}",
    channel=lambda group_id, viewer_id: f"group:{group_id}:messages",
    decode=decode_group_message,
)

PHOTOS = Resource(
    name="photos",
    list_path=lambda parent_id: "/photos",
    list_key="items",
    create_path=lambda parent_id: "/photos",
    create_body=_photo_body,
    delete_path=lambda photo_id: f"/photos/{photo_id}",
    channel=_photos_channel,
    decode=decode_photo,
    list_params=lambda parent_id: {} if parent_id == PERSONAL_PHOTOS else {"group_id": parent_id},
)


class WebSocketSubscription:
    """Reads frames from one channel socket until closed.

    ``on_closed`` runs once if the server ends the stream before :meth:`close`.
    """

    def __init__(
        self,
        channel: str,
        connection: Any,
        on_frame: FrameHandler,
        on_closed: ClosedHandler | None = None,
    ) -> None:
        self.channel = channel
        self._connection = connection
        self._on_frame = on_frame
        self._on_closed = on_closed
        self._closed = False
        self._task = asyncio.create_task(self._read(), name=f"changes:{channel}")

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        await self._connection.close()

    async def _read(self) -> None:
        try:
            async for raw in self._connection:
                self.dispatch(raw)
        except ConnectionClosed as exc:
            logger.debug("Change stream %s ended: %s", self.channel, exc)
        if self._closed:
            return
        logger.info("Change stream %s closed by server", self.channel)
        if self._on_closed is not None:
            try:
                self._on_closed()
            except Exception:
                logger.exception("Close handler failed on %s", self.channel)

    def dispatch(self, raw: str | bytes) -> None:
        if self._closed:
            return
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning("Discarding malformed frame on %s", self.channel)
            return
        if not isinstance(frame, dict) or frame.get("channel", self.channel) != self.channel:
            return
        try:
            self._on_frame(frame)
        except Exception:
            logger.exception("Frame handler failed on %s", self.channel)


class GratitudeClient:
    """Authenticated access to the REST API and the change stream."""

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        token: str | None = None,
        user_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        connect: Connector | None = None,
    ) -> None:
        self.settings = settings or get_client_settings()
        self.token = token
        self.user_id = user_id
        self._http = httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.request_timeout,
            transport=transport,
        )
        self._connect = connect or websockets.connect

    async def __aenter__(self) -> "GratitudeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def login(self, username: str, password: str) -> str:
        data = await self.request("POST", "/auth/login", json={"username": username, "password": password})
        self.token = data["access_token"]
        self.user_id = str(data["user_id"])
        return self.token

    async def register(self, username: str, password: str, display_name: str | None = None) -> str:
        payload = {"username": username, "password": password, "display_name": display_name}
        data = await self.request("POST", "/auth/register", json=payload)
        self.token = data["access_token"]
        self.user_id = str(data["user_id"])
        return self.token

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.TransportError as exc:
            raise BackendUnavailable(f"{method} {path} failed: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFound(response.status_code, _error_detail(response))
        if response.is_error:
            raise WriteRejected(response.status_code, _error_detail(response))
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return None
        return response.json()

    async def subscribe(
        self,
        channel: str,
        on_frame: FrameHandler,
        on_closed: ClosedHandler | None = None,
    ) -> WebSocketSubscription:
        """Open ``channel`` and wait for the server's ready frame before returning."""

        url = f"{self.settings.resolved_ws_base_url}/ws/{quote(channel, safe=':')}?token={self.token or ''}"
        try:
            connection = await asyncio.wait_for(self._connect(url), timeout=self.settings.request_timeout)
        except InvalidStatus as exc:
            raise WriteRejected(exc.response.status_code, f"Subscription to {channel} refused") from exc
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise BackendUnavailable(f"Could not open {channel}: {exc}") from exc

        try:
            first = await asyncio.wait_for(connection.recv(), timeout=self.settings.request_timeout)
        except ConnectionClosed as exc:
            raise WriteRejected(403, f"Subscription to {channel} refused") from exc
        except asyncio.TimeoutError as exc:
            await connection.close()
            raise BackendUnavailable(f"No ready frame on {channel}") from exc

        subscription = WebSocketSubscription(channel, connection, on_frame, on_closed)
        with contextlib.suppress(ValueError, TypeError):
            if json.loads(first).get("type") != "ready":
                subscription.dispatch(first)
        return subscription


class HttpCollectionBackend:
    def __init__(self, client: GratitudeClient, resource: Resource) -> None:
        self.client = client
        self.resource = resource

    async def list(self, parent_id: str) -> list[Confirmed]:
        data = await self.client.request(
            "GET",
            self.resource.list_path(parent_id),
            params=self.resource.list_params(parent_id),
        )
        return [self.resource.decode(row) for row in data[self.resource.list_key]]

    async def create(self, parent_id: str, content: str, *, client_token: str, **fields: Any) -> Confirmed:
        body = self.resource.create_body(parent_id, content, client_token, fields)
        data = await self.client.request("POST", self.resource.create_path(parent_id), json=body)
        return self.resource.decode(data)

    async def delete(self, item_id: str) -> None:
        await self.client.request("DELETE", self.resource.delete_path(item_id))

    async def subscribe(
        self,
        parent_id: str,
        on_insert: InsertHandler,
        on_delete: DeleteHandler,
        on_closed: ClosedHandler | None = None,
    ) -> WebSocketSubscription:
        decode = self.resource.decode

        def _handle(frame: dict[str, Any]) -> None:
            kind = frame.get("type")
            if kind == "insert":
                try:
                    entity = decode(frame["entity"])
                except (KeyError, TypeError, ValueError):
                    logger.warning("Undecodable %s insert frame", self.resource.name, exc_info=True)
                    return
                on_insert(entity)
            elif kind == "delete" and frame.get("id"):
                on_delete(str(frame["id"]))

        channel = self.resource.channel(parent_id, self.client.user_id)
        return await self.client.subscribe(channel, _handle, on_closed)


class HttpLikesBackend:
    def __init__(self, client: GratitudeClient) -> None:
        self.client = client

    async def set_liked(self, photo_id: str, liked: bool) -> tuple[bool, int]:
        method = "POST" if liked else "DELETE"
        data = await self.client.request(method, f"/photos/{photo_id}/likes")
        return bool(data["viewer_has_liked"]), int(data["like_count"])

    async def subscribe(self, photo_id: str, on_count: Callable[[int], None]) -> WebSocketSubscription:
        def _handle(frame: dict[str, Any]) -> None:
            if frame.get("type") == "engagement" and "like_count" in frame:
                on_count(int(frame["like_count"]))

        return await self.client.subscribe(f"photo:{photo_id}:likes", _handle)


__all__ = [
    "COMMENTS",
    "GROUP_MESSAGES",
    "PERSONAL_PHOTOS",
    "PHOTOS",
    "GratitudeClient",
    "HttpCollectionBackend",
    "HttpLikesBackend",
    "Resource",
    "WebSocketSubscription",
    "decode_comment",
    "decode_group_message",
    "decode_photo",
]
