"""Schemas used by photo comment endpoints."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    client_token: str | None = Field(None, max_length=128, description="Correlation id echoed back to the author")


class CommentResponse(BaseModel):
    id: UUID
    photo_id: UUID
    user_id: UUID
    user_display_name: str | None = None
    content: str
    client_token: str | None = None
    created_at: datetime


class CommentListResponse(BaseModel):
    items: list[CommentResponse]


__all__ = ["CommentCreate", "CommentResponse", "CommentListResponse"]
