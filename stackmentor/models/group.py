"""Group and group membership models."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import (
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


class GroupMemberType(str, Enum):
    """Role of a user inside a group."""

    ADMIN = "admin"
    MEMBER = "member"


# ========== SQLAlchemy ORM Models ==========


class GroupDB(Base):
    """SQLAlchemy model for groups table."""

    __tablename__ = "groups"

    group_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_name = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(Uuid, ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class GroupMemberDB(Base):
    """SQLAlchemy model for group_members table."""

    __tablename__ = "group_members"

    group_id = Column(
        Uuid, ForeignKey("groups.group_id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    role = Column(String(15), nullable=False, default=GroupMemberType.MEMBER.value)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            f"role IN ('{GroupMemberType.ADMIN.value}', '{GroupMemberType.MEMBER.value}')",
            name="group_members_role_check",
        ),
        Index("idx_group_members_user", "user_id"),
    )


# ========== Pydantic Models ==========


class CreateGroupRequest(BaseModel):
    """Payload for creating a group."""

    group_name: str = Field(..., min_length=1, max_length=50)
    description: str | None = Field(None, max_length=2000)
    member_ids: list[uuid.UUID] = Field(default_factory=list)

    @field_validator("group_name")
    @classmethod
    def validate_group_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Group name is required")
        return v.strip()


class AddGroupMemberRequest(BaseModel):
    """Payload for adding a user to a group."""

    user_id: uuid.UUID
    role: GroupMemberType = GroupMemberType.MEMBER


class GroupMember(BaseModel):
    """Member entry as returned with a group."""

    user_id: uuid.UUID
    name: str
    role: GroupMemberType
    joined_at: datetime


class Group(BaseModel):
    """Group with its members."""

    group_id: uuid.UUID
    group_name: str
    description: str | None = None
    created_by: uuid.UUID
    created_at: datetime
    members: list[GroupMember] = Field(default_factory=list)
