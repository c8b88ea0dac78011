"""Business logic for photos and their like state."""
from __future__ import annotations

import re
from typing import Any, Iterable
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Comment, Group, Photo, PhotoLike, User
from ..schemas import PhotoCreate, PhotoUpdate
from .group_service import get_group
from .notification_service import NotificationType, add_notification, notify_members

_HASHTAG_PATTERN = re.compile(r"^#\w+$")


def normalize_hashtags(values: Iterable[str] | None) -> list[str]:
    """Keep well-formed ``#tags`` once each, preserving their first position."""

    tags: list[str] = []
    for raw in values or ():
        tag = (raw or "").strip()
        if tag and not tag.startswith("#"):
            tag = f"#{tag}"
        if _HASHTAG_PATTERN.match(tag) and tag not in tags:
            tags.append(tag)
    return tags


def get_photo_or_404(db: Session, photo_id: UUID) -> Photo:
    photo = db.get(Photo, photo_id)
    if photo is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    return photo


def ensure_photo_access(db: Session, photo: Photo, user: User) -> None:
    """Group photos are restricted to members; personal photos are public to signed-in users."""

    if photo.group_id is None:
        return
    group = db.get(Group, photo.group_id)
    if group is None or not group.has_member(user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")


def create_photo(db: Session, *, owner: User, payload: PhotoCreate) -> Photo:
    image_url = payload.image_url.strip()
    if not image_url:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="image_url is required")

    group: Group | None = None
    if payload.group_id is not None:
        group = get_group(db, group_id=payload.group_id, requester=owner)

    photo = Photo(
        user_id=owner.id,
        group_id=group.id if group else None,
        image_url=image_url,
        caption=(payload.caption or "").strip(),
        hashtags=normalize_hashtags(payload.hashtags),
        order=payload.order,
        client_token=payload.client_token,
    )
    try:
        db.add(photo)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create photo") from exc

    db.refresh(photo)

    if group is not None:
        notify_members(
            db,
            recipients=group.members,
            sender=owner,
            type_=NotificationType.NEW_PHOTO,
            content=f"{owner.public_name} shared a new photo in {group.name}.",
            payload={"group_id": str(group.id), "photo_id": str(photo.id)},
        )
    return photo


def list_photos(db: Session, *, viewer: User, group_id: UUID | None = None) -> list[Photo]:
    """List a group's photos, or the viewer's personal photos when no group is given."""

    stmt = select(Photo)
    if group_id is not None:
        group = get_group(db, group_id=group_id, requester=viewer)
        stmt = stmt.where(Photo.group_id == group.id)
    else:
        stmt = stmt.where(Photo.group_id.is_(None), Photo.user_id == viewer.id)
    stmt = stmt.order_by(Photo.order.is_(None), Photo.order.asc(), Photo.created_at.desc())
    return list(db.scalars(stmt))


def update_photo(db: Session, *, photo_id: UUID, requester: User, payload: PhotoUpdate) -> Photo:
    photo = get_photo_or_404(db, photo_id)
    if photo.user_id != requester.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner can edit this photo")

    changed = False
    if payload.caption is not None:
        photo.caption = payload.caption.strip()
        changed = True
    if payload.hashtags is not None:
        photo.hashtags = normalize_hashtags(payload.hashtags)
        changed = True
    if payload.order is not None:
        photo.order = payload.order
        changed = True
    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes provided")

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update photo") from exc

    db.refresh(photo)
    return photo


def delete_photo(db: Session, *, photo_id: UUID, requester: User) -> Photo:
    photo = get_photo_or_404(db, photo_id)
    if photo.user_id != requester.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this photo")
    try:
        db.delete(photo)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete photo") from exc
    return photo


def photo_engagement_snapshot(db: Session, photo_id: UUID, viewer_id: UUID | None) -> dict[str, Any]:
    like_count = db.scalar(select(func.count(PhotoLike.id)).where(PhotoLike.photo_id == photo_id)) or 0
    comment_count = db.scalar(select(func.count(Comment.id)).where(Comment.photo_id == photo_id)) or 0
    viewer_has_liked = False
    if viewer_id is not None:
        viewer_has_liked = (
            db.scalar(select(PhotoLike.id).where(PhotoLike.photo_id == photo_id, PhotoLike.user_id == viewer_id).limit(1))
            is not None
        )
    return {
        "photo_id": photo_id,
        "like_count": int(like_count),
        "comment_count": int(comment_count),
        "viewer_has_liked": viewer_has_liked,
    }


def set_photo_like_state(db: Session, *, photo_id: UUID, user: User, should_like: bool) -> dict[str, Any]:
    photo = get_photo_or_404(db, photo_id)
    ensure_photo_access(db, photo, user)

    existing = db.scalar(select(PhotoLike).where(PhotoLike.photo_id == photo_id, PhotoLike.user_id == user.id))
    created = False
    if should_like and existing is None:
        db.add(PhotoLike(photo_id=photo_id, user_id=user.id))
        created = True
    elif not should_like and existing is not None:
        db.delete(existing)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update like") from exc

    if created:
        add_notification(
            db,
            recipient_id=photo.user_id,
            sender_id=user.id,
            content=f"{user.public_name} liked your photo.",
            type_=NotificationType.LIKE,
            payload={"photo_id": str(photo.id)},
        )
    return photo_engagement_snapshot(db, photo_id, user.id)


__all__ = [
    "create_photo",
    "delete_photo",
    "ensure_photo_access",
    "get_photo_or_404",
    "list_photos",
    "normalize_hashtags",
    "photo_engagement_snapshot",
    "set_photo_like_state",
    "update_photo",
]
