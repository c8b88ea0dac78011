"""SQLAlchemy ORM models for photos, their likes and comments."""
from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from gratitude.database import Base
from .base import created_at_column


class Photo(Base):
    __tablename__ = "photos"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=True, index=True)
    image_url = Column(String(2048), nullable=False)
    caption = Column(Text, nullable=False, default="")
    hashtags = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    order = Column("display_order", Integer, nullable=True)
    client_token = Column(String(128), nullable=True)
    created_at = created_at_column()

    owner = relationship("User", back_populates="photos")
    group = relationship("Group", back_populates="photos")
    likes = relationship("PhotoLike", back_populates="photo", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="photo", cascade="all, delete-orphan")


class PhotoLike(Base):
    __tablename__ = "photo_likes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    photo_id = Column(Uuid(as_uuid=True), ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = created_at_column()

    photo = relationship("Photo", back_populates="likes")
    user = relationship("User", back_populates="photo_likes")

    __table_args__ = (UniqueConstraint("photo_id", "user_id", name="uq_photo_likes_photo_user"),)


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    photo_id = Column(Uuid(as_uuid=True), ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    client_token = Column(String(128), nullable=True)
    created_at = created_at_column()

    photo = relationship("Photo", back_populates="comments")
    author = relationship("User", back_populates="comments")


__all__ = ["Photo", "PhotoLike", "Comment"]
