"""
ORM tables: users own chats, chats own messages.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base

UNTITLED = "Untitled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageType(str, enum.Enum):
    """Kind of a chat turn."""
    prompt = "prompt"
    response = "response"
    error = "error"


class UserRecord(Base):
    __tablename__ = "users"

    id              = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username        = Column(String(50), unique=True, nullable=False, index=True)
    email           = Column(String(255), nullable=True)
    full_name       = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active       = Column(Boolean, default=True, nullable=False)
    created_at      = Column(DateTime, default=_utcnow, nullable=False)
    updated_at      = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    chats = relationship("ChatRecord", back_populates="user",
                         cascade="all, delete-orphan")


class ChatRecord(Base):
    __tablename__ = "chats"

    id         = Column(Integer, primary_key=True, index=True)
    # Nullable for ephemeral chats; those are never written in practice
    user_id    = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"),
                        nullable=True, index=True)
    title      = Column(String(255), default=UNTITLED, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    user     = relationship("UserRecord", back_populates="chats")
    messages = relationship("MessageRecord", back_populates="chat",
                            cascade="all, delete-orphan",
                            order_by=lambda: [MessageRecord.created_at, MessageRecord.id])


class MessageRecord(Base):
    __tablename__ = "messages"

    id         = Column(Integer, primary_key=True, index=True)
    chat_id    = Column(Integer, ForeignKey("chats.id", ondelete="CASCADE"),
                        nullable=False, index=True)
    type       = Column(Enum(MessageType, name="message_types"), nullable=False)
    content    = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    chat = relationship("ChatRecord", back_populates="messages")
