"""In-app notification storage and fanout."""
from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models import Notification, User
from ..schemas import NotificationResponse
from ..schemas.events import user_notifications_channel
from .change_stream import change_stream_manager

logger = logging.getLogger(__name__)


class NotificationType(StrEnum):
    NEW_PHOTO = "new_photo"
    NEW_MESSAGE = "new_message"
    MEMBER_JOINED = "member_joined"
    LIKE = "like"
    COMMENT = "comment"
    GROUP_INVITE = "group_invite"


def list_notifications(db: Session, user_id: UUID) -> list[Notification]:
    """Return notifications for the supplied recipient ordered newest first."""

    stmt = select(Notification).where(Notification.recipient_id == user_id).order_by(Notification.created_at.desc())
    return list(db.scalars(stmt))


def count_unread_notifications(db: Session, user_id: UUID) -> int:
    stmt = (
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == user_id, Notification.read.is_(False))
    )
    return int(db.scalar(stmt) or 0)


def add_notification(
    db: Session,
    *,
    recipient_id: UUID,
    sender_id: UUID,
    content: str,
    type_: NotificationType | str,
    payload: dict[str, Any] | None = None,
) -> Notification | None:
    """Persist a notification and push it to the recipient's channel.

    Notifying yourself is a no-op. Storage failures are logged and swallowed
    because a notification never blocks the write that triggered it.
    """

    if recipient_id == sender_id:
        return None

    notification = Notification(
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=str(type_),
        content=content,
        payload=payload,
    )
    try:
        db.add(notification)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to store notification for %s", recipient_id)
        return None

    db.refresh(notification)
    _broadcast_notification(notification)
    return notification


def notify_members(
    db: Session,
    *,
    recipients: Iterable[User],
    sender: User,
    type_: NotificationType,
    content: str,
    payload: dict[str, Any] | None = None,
) -> int:
    """Notify every recipient except the sender, returning how many were stored."""

    delivered = 0
    for member in recipients:
        if member.id == sender.id:
            continue
        if add_notification(
            db,
            recipient_id=member.id,
            sender_id=sender.id,
            content=content,
            type_=type_,
            payload=payload,
        ):
            delivered += 1
    return delivered


def preview_text(text: str) -> str:
    limit = get_settings().notification_preview_chars
    trimmed = text.strip()
    if len(trimmed) <= limit:
        return trimmed
    return f"{trimmed[:limit]}..."


def mark_all_read(db: Session, recipient_id: UUID) -> None:
    stmt = (
        update(Notification)
        .where(Notification.recipient_id == recipient_id, Notification.read.is_(False))
        .values(read=True)
    )
    db.execute(stmt)
    db.commit()


def _broadcast_notification(notification: Notification) -> None:
    entity = NotificationResponse.model_validate(notification).model_dump(mode="json")
    channel = user_notifications_channel(notification.recipient_id)
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    loop.create_task(change_stream_manager.publish_insert(channel, entity))


__all__ = [
    "NotificationType",
    "add_notification",
    "count_unread_notifications",
    "list_notifications",
    "mark_all_read",
    "notify_members",
    "preview_text",
]
