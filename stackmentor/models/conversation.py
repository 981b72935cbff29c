"""Conversation, message and read receipt models."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)

from stackmentor.models.base import Base, utcnow

MAX_MESSAGE_LENGTH = 10000


class ConversationType(str, Enum):
    """Kind of conversation."""

    PRIVATE = "private"
    GROUP = "group"


# ========== SQLAlchemy ORM Models ==========


class ConversationDB(Base):
    """SQLAlchemy model for conversations table."""

    __tablename__ = "conversations"

    conversation_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_type = Column("type", String(10), nullable=False)
    group_id = Column(
        Uuid, ForeignKey("groups.group_id", ondelete="CASCADE"), nullable=True, unique=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            f"type IN ('{ConversationType.PRIVATE.value}', '{ConversationType.GROUP.value}')",
            name="conversations_type_check",
        ),
        CheckConstraint(
            f"(type = '{ConversationType.GROUP.value}') = (group_id IS NOT NULL)",
            name="conversations_group_id_check",
        ),
    )


class DirectConversationParticipantDB(Base):
    """SQLAlchemy model for direct_conversation_participants table."""

    __tablename__ = "direct_conversation_participants"

    conversation_id = Column(
        Uuid, ForeignKey("conversations.conversation_id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (Index("idx_direct_participants_user", "user_id"),)


class MessageDB(Base):
    """SQLAlchemy model for messages table."""

    __tablename__ = "messages"

    message_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid, ForeignKey("conversations.conversation_id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(Uuid, ForeignKey("users.user_id"), nullable=False)
    content = Column(Text, nullable=False)
    media_urls = Column(JSON, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            f"length(content) <= {MAX_MESSAGE_LENGTH}", name="messages_content_length_check"
        ),
        Index("idx_conversation_messages", "conversation_id", "sent_at"),
    )


class MessageReadStatusDB(Base):
    """SQLAlchemy model for message_read_status table."""

    __tablename__ = "message_read_status"

    message_id = Column(
        Uuid, ForeignKey("messages.message_id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    read_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


# ========== Pydantic Models ==========


class CreatePrivateConversationRequest(BaseModel):
    """Open (or reuse) a one-to-one conversation."""

    user_id: uuid.UUID


class SendMessageRequest(BaseModel):
    """Payload for posting a message."""

    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    media_urls: list[str] = Field(default_factory=list, max_length=10)


class EditMessageRequest(BaseModel):
    """Payload for editing a message."""

    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)


class Conversation(BaseModel):
    """Conversation summary."""

    conversation_id: uuid.UUID
    conversation_type: ConversationType
    group_id: uuid.UUID | None = None
    created_at: datetime
    participant_ids: list[uuid.UUID] = Field(default_factory=list)
    unread_count: int = 0


class Message(BaseModel):
    """Message as seen by one viewer."""

    message_id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    sender_name: str
    content: str
    media_urls: list[str] = Field(default_factory=list)
    sent_at: datetime
    edited_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    is_read: bool = False
