"""Shared fixtures: environment, in-memory backends and row factories."""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_gratitude.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from gratitude.client.entities import Confirmed  # noqa: E402
from gratitude.config import ClientSettings  # noqa: E402
from gratitude.database import Base, SessionLocal, engine  # noqa: E402
from gratitude.main import app  # noqa: E402
from gratitude.models import (  # noqa: E402
    Comment,
    Group,
    GroupInvitation,
    GroupMessage,
    Notification,
    Photo,
    PhotoLike,
    User,
    group_members,
)
from gratitude.services import get_current_user  # noqa: E402

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class CreateCall:
    parent_id: str
    content: str
    client_token: str
    fields: dict[str, Any]
    future: asyncio.Future


@dataclass
class DeleteCall:
    item_id: str
    future: asyncio.Future


@dataclass
class FakeSubscription:
    close_calls: int = 0

    async def close(self) -> None:
        self.close_calls += 1


@dataclass
class FakeBackend:
    """Collection backend whose writes stay in flight until a test settles them."""

    rows: list[Confirmed] = field(default_factory=list)
    list_error: Exception | None = None
    list_gate: asyncio.Event | None = None
    subscribe_error: Exception | None = None
    creates: list[CreateCall] = field(default_factory=list)
    deletes: list[DeleteCall] = field(default_factory=list)
    subscriptions: list[FakeSubscription] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    on_insert: Callable[[Confirmed], None] | None = None
    on_delete: Callable[[str], None] | None = None
    on_closed: Callable[[], None] | None = None

    async def list(self, parent_id: str) -> list[Confirmed]:
        self.calls.append("list")
        if self.list_error is not None:
            raise self.list_error
        snapshot = [row for row in self.rows if row.parent_id == parent_id]
        if self.list_gate is not None:
            await self.list_gate.wait()
        return snapshot

    async def create(self, parent_id: str, content: str, *, client_token: str, **fields: Any) -> Confirmed:
        self.calls.append("create")
        future = asyncio.get_running_loop().create_future()
        self.creates.append(CreateCall(parent_id, content, client_token, fields, future))
        return await future

    async def delete(self, item_id: str) -> None:
        self.calls.append("delete")
        future = asyncio.get_running_loop().create_future()
        self.deletes.append(DeleteCall(item_id, future))
        await future

    async def subscribe(self, parent_id: str, on_insert, on_delete, on_closed=None) -> FakeSubscription:
        self.calls.append("subscribe")
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.on_insert, self.on_delete, self.on_closed = on_insert, on_delete, on_closed
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        return subscription


@dataclass
class FakeLikesBackend:
    calls: list[tuple[str, bool]] = field(default_factory=list)
    futures: list[asyncio.Future] = field(default_factory=list)
    on_count: Callable[[int], None] | None = None
    subscriptions: list[FakeSubscription] = field(default_factory=list)

    async def set_liked(self, photo_id: str, liked: bool) -> tuple[bool, int]:
        self.calls.append((photo_id, liked))
        future = asyncio.get_running_loop().create_future()
        self.futures.append(future)
        return await future

    async def subscribe(self, photo_id: str, on_count: Callable[[int], None]) -> FakeSubscription:
        self.on_count = on_count
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        return subscription


def make_confirmed(
    item_id: str,
    content: str,
    *,
    parent_id: str = "P123",
    author_id: str = "u1",
    created_at: datetime | None = None,
    client_token: str | None = None,
    order: int | None = None,
    **extra: Any,
) -> Confirmed:
    return Confirmed(
        id=item_id,
        parent_id=parent_id,
        author_id=author_id,
        content=content,
        created_at=created_at or BASE_TIME,
        client_token=client_token,
        order=order,
        extra=extra,
    )


async def settle() -> None:
    """Let scheduled tasks run up to their next suspension point."""

    for _ in range(3):
        await asyncio.sleep(0)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def likes_backend() -> FakeLikesBackend:
    return FakeLikesBackend()


@pytest.fixture
def row() -> Callable[..., Confirmed]:
    return make_confirmed


@pytest.fixture
def client_settings() -> ClientSettings:
    return ClientSettings(
        api_base_url="http://testserver",
        dedup_window_seconds=10.0,
        undo_depth=5,
        request_timeout=2.0,
    )


@pytest.fixture
def flush() -> Callable[[], Any]:
    return settle


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


def _wipe() -> None:
    with SessionLocal() as session:
        for table in (Notification, PhotoLike, Comment, Photo, GroupMessage, GroupInvitation, group_members, Group, User):
            session.execute(delete(table))
        session.commit()


@pytest.fixture
def database() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    _wipe()
    yield
    _wipe()


@pytest.fixture
def user_factory(database) -> Callable[..., User]:
    def _factory(username: str, display_name: str | None = None) -> User:
        with SessionLocal() as session:
            user = User(username=username, display_name=display_name, hashed_password="test-hash")
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
    return _factory


@pytest.fixture
def authed_client(database) -> Iterator[Callable[[User], TestClient]]:
    with TestClient(app) as client:
        def _with_user(user: User) -> TestClient:
            def _override() -> User:
                return user
            app.dependency_overrides[get_current_user] = _override
            return client
        yield _with_user
    app.dependency_overrides.clear()
