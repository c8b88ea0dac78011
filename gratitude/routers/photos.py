"""Photo API routes: journal entries, ordering and likes."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Photo, User
from ..schemas import PhotoCreate, PhotoEngagementResponse, PhotoFeedResponse, PhotoResponse, PhotoUpdate
from ..schemas.events import photo_likes_channel, photos_channel
from ..services import (
    change_stream_manager,
    create_photo,
    delete_photo,
    get_current_user,
    list_photos,
    photo_engagement_snapshot,
    safe_publish,
    set_photo_like_state,
    update_photo,
)

router = APIRouter(prefix="/photos", tags=["photos"])

logger = logging.getLogger(__name__)


def _to_photo_response(db: Session, photo: Photo, viewer: User) -> PhotoResponse:
    snapshot = photo_engagement_snapshot(db, photo.id, viewer.id)
    return PhotoResponse(
        id=photo.id,
        user_id=photo.user_id,
        group_id=photo.group_id,
        image_url=photo.image_url,
        caption=photo.caption or "",
        hashtags=list(photo.hashtags or []),
        order=photo.order,
        client_token=photo.client_token,
        created_at=photo.created_at,
        like_count=snapshot["like_count"],
        comment_count=snapshot["comment_count"],
        viewer_has_liked=snapshot["viewer_has_liked"],
    )


async def _broadcast_like_count(snapshot: dict[str, Any]) -> None:
    photo_id = snapshot["photo_id"]
    await safe_publish(
        change_stream_manager.publish_engagement,
        photo_likes_channel(photo_id),
        photo_id,
        int(snapshot.get("like_count") or 0),
    )


@router.post("", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def create_photo_endpoint(
    payload: PhotoCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PhotoResponse:
    photo = create_photo(db, owner=current_user, payload=payload)
    response = _to_photo_response(db, photo, current_user)
    # Viewer-specific flags are meaningless to other subscribers.
    entity = response.model_dump(mode="json", exclude={"viewer_has_liked"})
    await safe_publish(change_stream_manager.publish_insert, photos_channel(photo.group_id, photo.user_id), entity)
    return response


@router.get("", response_model=PhotoFeedResponse)
async def list_photos_endpoint(
    group_id: UUID | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PhotoFeedResponse:
    photos = list_photos(db, viewer=current_user, group_id=group_id)
    return PhotoFeedResponse(items=[_to_photo_response(db, photo, current_user) for photo in photos])


@router.patch("/{photo_id}", response_model=PhotoResponse)
async def update_photo_endpoint(
    photo_id: UUID,
    payload: PhotoUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PhotoResponse:
    photo = update_photo(db, photo_id=photo_id, requester=current_user, payload=payload)
    return _to_photo_response(db, photo, current_user)


@router.delete("/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo_endpoint(
    photo_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Response:
    photo = delete_photo(db, photo_id=photo_id, requester=current_user)
    await safe_publish(change_stream_manager.publish_delete, photos_channel(photo.group_id, photo.user_id), photo.id)
    logger.info("Photo %s deleted by %s", photo.id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{photo_id}/likes", response_model=PhotoEngagementResponse)
async def like_photo_endpoint(
    photo_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PhotoEngagementResponse:
    snapshot = set_photo_like_state(db, photo_id=photo_id, user=current_user, should_like=True)
    await _broadcast_like_count(snapshot)
    return PhotoEngagementResponse(**snapshot)


@router.delete("/{photo_id}/likes", response_model=PhotoEngagementResponse)
async def unlike_photo_endpoint(
    photo_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PhotoEngagementResponse:
    snapshot = set_photo_like_state(db, photo_id=photo_id, user=current_user, should_like=False)
    await _broadcast_like_count(snapshot)
    return PhotoEngagementResponse(**snapshot)


__all__ = ["router"]
