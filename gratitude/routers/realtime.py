"""WebSocket endpoint streaming row changes for a single channel."""
from __future__ import annotations

import json
import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from ..database import create_session
from ..models import Group, User
from ..services import change_stream_manager, decode_access_token, ensure_photo_access, get_photo_or_404

router = APIRouter()
logger = logging.getLogger(__name__)

_PHOTO_TOPICS = {"comments", "likes"}
_GROUP_TOPICS = {"messages", "photos"}
_USER_TOPICS = {"notifications", "photos"}


def user_can_subscribe(db: Session, channel: str, user_id: UUID) -> bool:
    """Return whether ``user_id`` may receive the events published on ``channel``."""

    parts = channel.split(":")
    if len(parts) != 3:
        return False
    scope, raw_id, topic = parts
    try:
        target_id = UUID(raw_id)
    except ValueError:
        return False

    if scope == "user" and topic in _USER_TOPICS:
        return target_id == user_id
    if scope == "group" and topic in _GROUP_TOPICS:
        group = db.get(Group, target_id)
        return group is not None and group.has_member(user_id)
    if scope == "photo" and topic in _PHOTO_TOPICS:
        user = db.get(User, user_id)
        if user is None:
            return False
        try:
            ensure_photo_access(db, get_photo_or_404(db, target_id), user)
        except HTTPException:
            return False
        return True
    return False


@router.websocket("/ws/{channel}")
async def change_stream_socket(
    websocket: WebSocket,
    channel: str,
    token: str = Query(..., alias="token"),
) -> None:
    """Push insert/delete frames for ``channel`` until the client disconnects."""

    try:
        user_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    with create_session() as db:
        allowed = user_can_subscribe(db, channel, user_id)
    if not allowed:
        logger.info("Rejected subscription of %s to %s", user_id, channel)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await change_stream_manager.connect(channel, websocket)
    await websocket.send_text(json.dumps({"type": "ready", "channel": channel}))
    try:
        while True:
            try:
                payload = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            if payload.strip().lower() == "ping":
                await websocket.send_text(json.dumps({"type": "pong", "channel": channel}))
    finally:
        await change_stream_manager.disconnect(websocket)


__all__ = ["router", "user_can_subscribe"]
