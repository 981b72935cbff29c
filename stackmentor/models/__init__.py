"""Data models for the StackMentor backend."""

# Import SQLAlchemy ORM models to register them with Base.metadata
# This ensures all tables are known when create_tables() is called
from stackmentor.models.conversation import (  # noqa: F401
    Conversation,
    ConversationDB,
    ConversationType,
    DirectConversationParticipantDB,
    Message,
    MessageDB,
    MessageReadStatusDB,
)
from stackmentor.models.group import (  # noqa: F401
    Group,
    GroupDB,
    GroupMember,
    GroupMemberDB,
    GroupMemberType,
)
from stackmentor.models.user import (  # noqa: F401
    PositionType,
    RegisterUserRequest,
    RoleType,
    UserDB,
    UserProfile,
    VerificationTokenDB,
)

__all__ = [
    # User models
    "RegisterUserRequest",
    "RoleType",
    "PositionType",
    "UserProfile",
    # Group models
    "Group",
    "GroupMember",
    "GroupMemberType",
    # Conversation models
    "Conversation",
    "ConversationType",
    "Message",
]
