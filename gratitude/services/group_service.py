"""Shared spaces (groups) and group chat services."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence, cast
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..models import Group, GroupInvitation, GroupMessage, User
from ..models.base import utcnow
from ..schemas import GroupCreate, GroupUpdate
from .notification_service import NotificationType, notify_members, preview_text


def create_group(db: Session, owner: User, payload: GroupCreate) -> Group:
    """Create a group owned by ``owner`` and attach the requested members."""

    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Group name cannot be empty")

    usernames = _collect_unique_usernames(owner.username, payload.members)
    members = _load_members_by_username(db, usernames)

    group = Group(
        name=name,
        description=_clean_text(payload.description),
        welcome_message=_clean_text(payload.welcome_message),
        owner_id=owner.id,
    )
    group.members = members

    try:
        db.add(group)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create group") from exc

    db.refresh(group)
    return group


def list_groups(db: Session, *, user: User) -> list[Group]:
    stmt = (
        select(Group)
        .where(Group.members.any(User.id == user.id))
        .options(selectinload(Group.members), selectinload(Group.owner))
        .order_by(Group.created_at.desc())
    )
    return list(db.scalars(stmt))


def get_group(db: Session, *, group_id: UUID, requester: User) -> Group:
    """Return the group when ``requester`` belongs to it, 404 otherwise."""

    group = db.get(Group, group_id)
    if group is None or not group.has_member(requester.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    return group


def add_group_members(db: Session, *, group_id: UUID, requester: User, usernames: Sequence[str]) -> Group:
    normalized = [username.strip() for username in usernames if username and username.strip()]
    if not normalized:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one username is required")

    group = _require_owner(db, group_id=group_id, requester=requester)

    existing_ids = {member.id for member in group.members}
    added: list[User] = []
    for user in _load_members_by_username(db, normalized):
        if user.id in existing_ids:
            continue
        group.members.append(user)
        existing_ids.add(user.id)
        added.append(user)

    if not added:
        return group

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update group members") from exc

    db.refresh(group)
    notify_members(
        db,
        recipients=added,
        sender=requester,
        type_=NotificationType.GROUP_INVITE,
        content=f"{requester.public_name} added you to {group.name}.",
        payload={"group_id": str(group.id)},
    )
    return group


def update_group(db: Session, *, group_id: UUID, requester: User, payload: GroupUpdate) -> Group:
    """Owner-only edit of the group's name, description and welcome message."""

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes supplied")

    group = _require_owner(db, group_id=group_id, requester=requester)
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Group name cannot be empty")
        group.name = name
    if "description" in changes:
        group.description = _clean_text(changes["description"])
    if "welcome_message" in changes:
        group.welcome_message = _clean_text(changes["welcome_message"])

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update group") from exc

    db.refresh(group)
    return group


def delete_group(db: Session, *, group_id: UUID, requester: User) -> None:
    """Delete the group with its messages, photos and invitations."""

    group = _require_owner(db, group_id=group_id, requester=requester)
    try:
        db.delete(group)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete group") from exc


def create_group_invite(db: Session, *, group_id: UUID, requester: User) -> GroupInvitation:
    group = get_group(db, group_id=group_id, requester=requester)
    ttl = timedelta(hours=get_settings().group_invite_ttl_hours)
    invitation = GroupInvitation(group_id=group.id, invited_by=requester.id, expires_at=utcnow() + ttl)

    try:
        db.add(invitation)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create invitation") from exc

    db.refresh(invitation)
    return invitation


def join_group_by_token(db: Session, *, token: str, user: User) -> Group:
    """Add ``user`` to the group behind an active invitation; joining twice is a no-op."""

    stmt = select(GroupInvitation).where(
        GroupInvitation.token == (token or "").strip(),
        GroupInvitation.status == "active",
    )
    invitation = db.scalar(stmt)
    if invitation is None or _as_utc(invitation.expires_at) <= utcnow():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation is invalid or has expired")

    group = invitation.group
    if group is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    if group.has_member(user.id):
        return group

    group.members.append(user)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to join group") from exc

    db.refresh(group)
    notify_members(
        db,
        recipients=group.members,
        sender=user,
        type_=NotificationType.MEMBER_JOINED,
        content=f"{user.public_name} joined {group.name}.",
        payload={"group_id": str(group.id)},
    )
    return group


def send_group_message(
    db: Session,
    *,
    group_id: UUID,
    sender: User,
    content: str,
    client_token: str | None = None,
) -> GroupMessage:
    """Persist a chat message and notify the other members."""

    text = (content or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Message cannot be empty")

    group = get_group(db, group_id=group_id, requester=sender)
    message = GroupMessage(group_id=group.id, user_id=sender.id, content=text, client_token=client_token)

    try:
        db.add(message)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to persist message") from exc

    db.refresh(message)

    notify_members(
        db,
        recipients=group.members,
        sender=sender,
        type_=NotificationType.NEW_MESSAGE,
        content=f"{sender.public_name}: {preview_text(text)}",
        payload={"group_id": str(group.id), "message_id": str(message.id)},
    )
    return message


def list_group_messages(db: Session, *, group_id: UUID, requester: User) -> list[GroupMessage]:
    """Return messages for the group ordered chronologically."""

    group = get_group(db, group_id=group_id, requester=requester)
    stmt = (
        select(GroupMessage)
        .where(GroupMessage.group_id == group.id)
        .options(selectinload(GroupMessage.author))
        .order_by(GroupMessage.created_at.asc())
    )
    return list(db.scalars(stmt))


def delete_group_message(db: Session, *, message_id: UUID, requester: User) -> GroupMessage:
    message = db.get(GroupMessage, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if cast(UUID, message.user_id) != requester.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own messages")

    try:
        db.delete(message)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete message") from exc

    return message


def _require_owner(db: Session, *, group_id: UUID, requester: User) -> Group:
    group = get_group(db, group_id=group_id, requester=requester)
    if group.owner_id != requester.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Group owner permissions required")
    return group


def _clean_text(value: str | None) -> str | None:
    return (value or "").strip() or None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _collect_unique_usernames(owner_username: str | None, extras: Sequence[str] | None) -> list[str]:
    candidates: list[str] = []
    ordered_source: list[str] = [owner_username or ""]
    if extras:
        ordered_source.extend(extras)
    for raw in ordered_source:
        username = (raw or "").strip()
        if username and username not in candidates:
            candidates.append(username)
    return candidates


def _load_members_by_username(db: Session, usernames: Sequence[str]) -> list[User]:
    members: list[User] = []
    for username in usernames:
        user = db.scalar(select(User).where(User.username == username))
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User '{username}' not found")
        members.append(user)
    return members


__all__ = [
    "add_group_members",
    "create_group",
    "create_group_invite",
    "delete_group",
    "delete_group_message",
    "get_group",
    "join_group_by_token",
    "list_group_messages",
    "list_groups",
    "send_group_message",
    "update_group",
]
