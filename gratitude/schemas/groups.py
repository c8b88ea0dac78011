"""Schemas used by group (shared space) and group chat endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str | None = Field(None, max_length=2000)
    welcome_message: str | None = Field(None, max_length=2000)
    members: List[str] = Field(default_factory=list, description="Usernames to add alongside the owner")


class GroupMembersRequest(BaseModel):
    members: List[str] = Field(..., min_length=1)


class GroupUpdate(BaseModel):
    name: str | None = Field(None, max_length=120)
    description: str | None = Field(None, max_length=2000)
    welcome_message: str | None = Field(None, max_length=2000)


class GroupInviteResponse(BaseModel):
    group_id: UUID
    token: str
    expires_at: datetime


class GroupJoinRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)


class GroupResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    welcome_message: str | None = None
    owner_id: UUID
    owner: str
    members: List[str]
    created_at: datetime


class GroupMessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    client_token: str | None = Field(None, max_length=128)


class GroupMessageResponse(BaseModel):
    id: UUID
    group_id: UUID
    user_id: UUID
    user_name: str | None = None
    user_avatar: str | None = None
    content: str
    client_token: str | None = None
    created_at: datetime


class GroupMessageListResponse(BaseModel):
    group_id: UUID
    messages: List[GroupMessageResponse]


__all__ = [
    "GroupCreate",
    "GroupInviteResponse",
    "GroupJoinRequest",
    "GroupMembersRequest",
    "GroupResponse",
    "GroupUpdate",
    "GroupMessageCreate",
    "GroupMessageResponse",
    "GroupMessageListResponse",
]
