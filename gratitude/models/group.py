"""SQLAlchemy ORM models for shared spaces (groups) and their invitations."""
from __future__ import annotations

import secrets
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from gratitude.database import Base
from .associations import group_members
from .base import created_at_column


def _generate_invite_token() -> str:
    return secrets.token_hex(24)


class Group(Base):
    __tablename__ = "groups"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    welcome_message = Column(Text, nullable=True)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = created_at_column()

    owner = relationship("User", back_populates="owned_groups")
    members = relationship("User", secondary=group_members, back_populates="group_memberships")
    messages = relationship("GroupMessage", back_populates="group", cascade="all, delete-orphan")
    photos = relationship("Photo", back_populates="group", cascade="all, delete-orphan")
    invitations = relationship("GroupInvitation", back_populates="group", cascade="all, delete-orphan")

    def has_member(self, user_id: uuid.UUID | None) -> bool:
        if user_id is None:
            return False
        return any(member.id == user_id for member in self.members)


class GroupInvitation(Base):
    """Shareable link token that lets any signed-in user join a group until it expires."""

    __tablename__ = "group_invitations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    invited_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(64), nullable=False, unique=True, index=True, default=_generate_invite_token)
    status = Column(String(16), nullable=False, default="active")
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = created_at_column()

    group = relationship("Group", back_populates="invitations")
    inviter = relationship("User")


__all__ = ["Group", "GroupInvitation"]
