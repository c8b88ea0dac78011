"""Convenience exports for ORM models."""
from .associations import group_members
from .group import Group, GroupInvitation
from .group_message import GroupMessage
from .notification import Notification
from .photo import Comment, Photo, PhotoLike
from .user import User

__all__ = [
    "group_members",
    "Comment",
    "Group",
    "GroupInvitation",
    "GroupMessage",
    "Notification",
    "Photo",
    "PhotoLike",
    "User",
]
