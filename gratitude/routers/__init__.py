"""Aggregate router exports."""
from .auth import router as auth_router
from .comments import router as comments_router
from .groups import router as groups_router
from .notifications import router as notifications_router
from .photos import router as photos_router
from .realtime import router as realtime_router

__all__ = [
    "auth_router",
    "comments_router",
    "groups_router",
    "notifications_router",
    "photos_router",
    "realtime_router",
]
