"""Comments left on photos."""
from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..models import Comment, User
from .notification_service import NotificationType, add_notification, preview_text
from .photo_service import ensure_photo_access, get_photo_or_404


def list_comments(db: Session, *, photo_id: UUID, viewer: User) -> list[Comment]:
    photo = get_photo_or_404(db, photo_id)
    ensure_photo_access(db, photo, viewer)
    stmt = (
        select(Comment)
        .where(Comment.photo_id == photo.id)
        .options(selectinload(Comment.author))
        .order_by(Comment.created_at.asc())
    )
    return list(db.scalars(stmt))


def create_comment(
    db: Session,
    *,
    photo_id: UUID,
    author: User,
    content: str,
    client_token: str | None = None,
) -> Comment:
    photo = get_photo_or_404(db, photo_id)
    ensure_photo_access(db, photo, author)

    text = (content or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Comment cannot be empty")

    comment = Comment(photo_id=photo.id, user_id=author.id, content=text, client_token=client_token)
    db.add(comment)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to add comment") from exc

    db.refresh(comment)
    add_notification(
        db,
        recipient_id=photo.user_id,
        sender_id=author.id,
        content=f"{author.public_name} commented: {preview_text(text)}",
        type_=NotificationType.COMMENT,
        payload={"photo_id": str(photo.id), "comment_id": str(comment.id)},
    )
    return comment


def delete_comment(db: Session, *, comment_id: UUID, requester: User) -> Comment:
    """Delete a comment when the requester wrote it or owns the photo."""

    comment = db.get(Comment, comment_id)
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    photo = get_photo_or_404(db, comment.photo_id)
    if requester.id not in {comment.user_id, photo.user_id}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this comment")

    try:
        db.delete(comment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete comment") from exc
    return comment


__all__ = ["create_comment", "delete_comment", "list_comments"]
