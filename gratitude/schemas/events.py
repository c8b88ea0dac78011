"""Frames pushed to subscribers of a change channel."""
from __future__ import annotations

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel


class InsertEvent(BaseModel):
    type: Literal["insert"] = "insert"
    channel: str
    entity: dict[str, Any]


class DeleteEvent(BaseModel):
    type: Literal["delete"] = "delete"
    channel: str
    id: str


class EngagementEvent(BaseModel):
    type: Literal["engagement"] = "engagement"
    channel: str
    photo_id: UUID
    like_count: int


def photo_comments_channel(photo_id: UUID | str) -> str:
    return f"photo:{photo_id}:comments"


def photo_likes_channel(photo_id: UUID | str) -> str:
    return f"photo:{photo_id}:likes"


def group_messages_channel(group_id: UUID | str) -> str:
    return f"group:{group_id}:messages"


def photos_channel(group_id: UUID | str | None, owner_id: UUID | str) -> str:
    """Group photos share one channel; personal photos stream to their owner only."""

    if group_id is None:
        return f"user:{owner_id}:photos"
    return f"group:{group_id}:photos"


def user_notifications_channel(user_id: UUID | str) -> str:
    return f"user:{user_id}:notifications"


__all__ = [
    "InsertEvent",
    "DeleteEvent",
    "EngagementEvent",
    "photo_comments_channel",
    "photo_likes_channel",
    "group_messages_channel",
    "photos_channel",
    "user_notifications_channel",
]
