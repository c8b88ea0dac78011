"""SQLAlchemy ORM model for group chat messages."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from gratitude.database import Base
from .base import created_at_column


class GroupMessage(Base):
    __tablename__ = "group_messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    client_token = Column(String(128), nullable=True)
    created_at = created_at_column()

    group = relationship("Group", back_populates="messages")
    author = relationship("User", back_populates="group_messages")


__all__ = ["GroupMessage"]
