"""Convenience exports for schema layer."""
from .auth import AuthResponse, LoginRequest, RegisterRequest
from .comments import CommentCreate, CommentListResponse, CommentResponse
from .events import DeleteEvent, EngagementEvent, InsertEvent
from .groups import (
    GroupCreate,
    GroupInviteResponse,
    GroupJoinRequest,
    GroupMembersRequest,
    GroupMessageCreate,
    GroupMessageListResponse,
    GroupMessageResponse,
    GroupResponse,
    GroupUpdate,
)
from .notifications import NotificationListResponse, NotificationResponse
from .photos import PhotoCreate, PhotoEngagementResponse, PhotoFeedResponse, PhotoResponse, PhotoUpdate

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "RegisterRequest",
    "CommentCreate",
    "CommentListResponse",
    "CommentResponse",
    "DeleteEvent",
    "EngagementEvent",
    "InsertEvent",
    "GroupCreate",
    "GroupInviteResponse",
    "GroupJoinRequest",
    "GroupMembersRequest",
    "GroupMessageCreate",
    "GroupMessageListResponse",
    "GroupMessageResponse",
    "GroupResponse",
    "GroupUpdate",
    "NotificationListResponse",
    "NotificationResponse",
    "PhotoCreate",
    "PhotoEngagementResponse",
    "PhotoFeedResponse",
    "PhotoResponse",
    "PhotoUpdate",
]
