"""SQLAlchemy ORM model for application users."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship

from gratitude.database import Base
from .associations import group_members
from .base import created_at_column


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(150), unique=True, nullable=False, index=True)
    display_name = Column(String(150), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    avatar_url = Column(String(1024), nullable=True)
    created_at = created_at_column()

    photos = relationship("Photo", back_populates="owner", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="author", cascade="all, delete-orphan")
    photo_likes = relationship("PhotoLike", back_populates="user", cascade="all, delete-orphan")
    group_messages = relationship("GroupMessage", back_populates="author", cascade="all, delete-orphan")
    owned_groups = relationship("Group", back_populates="owner", cascade="all, delete-orphan")
    group_memberships = relationship("Group", secondary=group_members, back_populates="members")
    notifications_received = relationship(
        "Notification",
        foreign_keys="Notification.recipient_id",
        back_populates="recipient",
        cascade="all, delete-orphan",
    )

    @property
    def public_name(self) -> str:
        return self.display_name or self.username


__all__ = ["User"]
