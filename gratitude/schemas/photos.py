"""Pydantic schemas for photo resources."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PhotoCreate(BaseModel):
    """Register an already uploaded image in the journal."""

    image_url: str = Field(..., min_length=1, max_length=2048)
    caption: str = Field(default="", max_length=2000)
    hashtags: list[str] = Field(default_factory=list)
    group_id: UUID | None = None
    order: int | None = None
    client_token: str | None = Field(None, max_length=128)


class PhotoUpdate(BaseModel):
    caption: str | None = Field(None, max_length=2000)
    hashtags: list[str] | None = None
    order: int | None = None


class PhotoResponse(BaseModel):
    id: UUID
    user_id: UUID
    group_id: UUID | None = None
    image_url: str
    caption: str
    hashtags: list[str] = Field(default_factory=list)
    order: int | None = None
    client_token: str | None = None
    created_at: datetime
    like_count: int = 0
    comment_count: int = 0
    viewer_has_liked: bool = False


class PhotoFeedResponse(BaseModel):
    items: list[PhotoResponse]


class PhotoEngagementResponse(BaseModel):
    """Like/comment counters used by interactive clients."""

    photo_id: UUID
    like_count: int
    comment_count: int
    viewer_has_liked: bool


__all__ = ["PhotoCreate", "PhotoUpdate", "PhotoResponse", "PhotoFeedResponse", "PhotoEngagementResponse"]
