"""Photo comment API routes."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Comment, User
from ..schemas import CommentCreate, CommentListResponse, CommentResponse
from ..schemas.events import photo_comments_channel
from ..services import change_stream_manager, create_comment, delete_comment, get_current_user, list_comments, safe_publish

router = APIRouter(tags=["comments"])

logger = logging.getLogger(__name__)


def _to_comment_response(comment: Comment) -> CommentResponse:
    author = comment.author
    return CommentResponse(
        id=comment.id,
        photo_id=comment.photo_id,
        user_id=comment.user_id,
        user_display_name=author.public_name if author else None,
        content=comment.content,
        client_token=comment.client_token,
        created_at=comment.created_at,
    )


@router.get("/photos/{photo_id}/comments", response_model=CommentListResponse)
async def list_comments_endpoint(
    photo_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> CommentListResponse:
    items = list_comments(db, photo_id=photo_id, viewer=current_user)
    return CommentListResponse(items=[_to_comment_response(item) for item in items])


@router.post("/photos/{photo_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment_endpoint(
    photo_id: UUID,
    payload: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> CommentResponse:
    comment = create_comment(
        db,
        photo_id=photo_id,
        author=current_user,
        content=payload.content,
        client_token=payload.client_token,
    )
    response = _to_comment_response(comment)
    await safe_publish(
        change_stream_manager.publish_insert,
        photo_comments_channel(photo_id),
        response.model_dump(mode="json"),
    )
    return response


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment_endpoint(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Response:
    comment = delete_comment(db, comment_id=comment_id, requester=current_user)
    await safe_publish(change_stream_manager.publish_delete, photo_comments_channel(comment.photo_id), comment.id)
    logger.info("Comment %s removed by %s", comment.id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
