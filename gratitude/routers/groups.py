"""Group (shared space) and group chat API routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Group, GroupMessage, User
from ..schemas import (
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
from ..schemas.events import group_messages_channel
from ..services import (
    add_group_members,
    change_stream_manager,
    create_group,
    create_group_invite,
    delete_group,
    delete_group_message,
    get_current_user,
    get_group,
    join_group_by_token,
    list_group_messages,
    list_groups,
    safe_publish,
    send_group_message,
    update_group,
)

router = APIRouter(prefix="/groups", tags=["groups"])


def _to_group_response(group: Group) -> GroupResponse:
    owner_username = group.owner.username if group.owner else ""
    members: list[str] = []
    for member in group.members:
        if member.username not in members:
            members.append(member.username)
    if owner_username:
        if owner_username in members:
            members.remove(owner_username)
        members.insert(0, owner_username)
    return GroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        welcome_message=group.welcome_message,
        owner_id=group.owner_id,
        owner=owner_username,
        members=members,
        created_at=group.created_at,
    )


def _to_message_response(message: GroupMessage) -> GroupMessageResponse:
    author = message.author
    return GroupMessageResponse(
        id=message.id,
        group_id=message.group_id,
        user_id=message.user_id,
        user_name=author.public_name if author else None,
        user_avatar=author.avatar_url if author else None,
        content=message.content,
        client_token=message.client_token,
        created_at=message.created_at,
    )


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group_endpoint(
    payload: GroupCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> GroupResponse:
    return _to_group_response(create_group(db, current_user, payload))


@router.get("", response_model=list[GroupResponse])
async def list_groups_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> list[GroupResponse]:
    return [_to_group_response(group) for group in list_groups(db, user=current_user)]


@router.post("/join", response_model=GroupResponse)
async def join_group_endpoint(
    payload: GroupJoinRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> GroupResponse:
    return _to_group_response(join_group_by_token(db, token=payload.token, user=current_user))


@router.get("/{group_id}", response_model=GroupResponse)
async def group_detail_endpoint(
    group_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> GroupResponse:
    return _to_group_response(get_group(db, group_id=group_id, requester=current_user))


@router.patch("/{group_id}", response_model=GroupResponse)
async def update_group_endpoint(
    group_id: UUID,
    payload: GroupUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> GroupResponse:
    return _to_group_response(update_group(db, group_id=group_id, requester=current_user, payload=payload))


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group_endpoint(
    group_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Response:
    delete_group(db, group_id=group_id, requester=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/invites", response_model=GroupInviteResponse, status_code=status.HTTP_201_CREATED)
async def create_group_invite_endpoint(
    group_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> GroupInviteResponse:
    invitation = create_group_invite(db, group_id=group_id, requester=current_user)
    return GroupInviteResponse(group_id=invitation.group_id, token=invitation.token, expires_at=invitation.expires_at)


@router.post("/{group_id}/members", response_model=GroupResponse)
async def add_group_members_endpoint(
    group_id: UUID,
    payload: GroupMembersRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> GroupResponse:
    group = add_group_members(db, group_id=group_id, requester=current_user, usernames=payload.members)
    return _to_group_response(group)


@router.get("/{group_id}/messages", response_model=GroupMessageListResponse)
async def list_group_messages_endpoint(
    group_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> GroupMessageListResponse:
    messages = list_group_messages(db, group_id=group_id, requester=current_user)
    return GroupMessageListResponse(group_id=group_id, messages=[_to_message_response(item) for item in messages])


@router.post("/{group_id}/messages", response_model=GroupMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_group_message_endpoint(
    group_id: UUID,
    payload: GroupMessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> GroupMessageResponse:
    message = send_group_message(
        db,
        group_id=group_id,
        sender=current_user,
        content=payload.content,
        client_token=payload.client_token,
    )
    response = _to_message_response(message)
    await safe_publish(
        change_stream_manager.publish_insert,
        group_messages_channel(group_id),
        response.model_dump(mode="json"),
    )
    return response


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group_message_endpoint(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Response:
    message = delete_group_message(db, message_id=message_id, requester=current_user)
    await safe_publish(change_stream_manager.publish_delete, group_messages_channel(message.group_id), message.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
