"""Private and group conversations, messages and read receipts."""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.models.base import utcnow
from stackmentor.models.conversation import (
    Conversation,
    ConversationDB,
    ConversationType,
    DirectConversationParticipantDB,
    Message,
    MessageDB,
    MessageReadStatusDB,
)
from stackmentor.models.group import GroupDB, GroupMemberDB
from stackmentor.models.user import UserDB
from stackmentor.services.errors import ConflictError, InvalidRequestError, NotFoundError
from stackmentor.services.realtime import ConnectionManager, connection_manager

logger = structlog.get_logger(__name__)

MESSAGE_CREATED = "message.created"
MESSAGE_UPDATED = "message.updated"
MESSAGE_DELETED = "message.deleted"


class MessageService:
    """Conversation and messaging operations.

    Every change to a message is pushed to the live connections of all
    conversation participants through the connection manager.
    """

    def __init__(self, db_session: AsyncSession, broker: ConnectionManager | None = None):
        """Initialize message service.

        Args:
            db_session: Database session for persistence
            broker: Live connection registry (defaults to the global one)
        """
        self.db_session = db_session
        self.broker = broker or connection_manager

    # ========== Conversations ==========

    async def _get_conversation_db(self, conversation_id: uuid.UUID) -> ConversationDB:
        conversation = await self.db_session.get(ConversationDB, conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    async def participant_ids(self, conversation: ConversationDB) -> list[uuid.UUID]:
        """Users taking part in a conversation."""
        if conversation.conversation_type == ConversationType.GROUP.value:
            query = select(GroupMemberDB.user_id).where(GroupMemberDB.group_id == conversation.group_id)
        else:
            query = select(DirectConversationParticipantDB.user_id).where(
                DirectConversationParticipantDB.conversation_id == conversation.conversation_id
            )
        result = await self.db_session.execute(query)
        return list(result.scalars().all())

    async def _require_participant(self, conversation: ConversationDB, user_id: uuid.UUID) -> None:
        if user_id not in await self.participant_ids(conversation):
            raise PermissionError("You are not a participant of this conversation")

    async def _to_conversation(self, conversation: ConversationDB, viewer_id: uuid.UUID) -> Conversation:
        return Conversation(
            conversation_id=conversation.conversation_id,
            conversation_type=conversation.conversation_type,
            group_id=conversation.group_id,
            created_at=conversation.created_at,
            participant_ids=await self.participant_ids(conversation),
            unread_count=await self.unread_count(conversation.conversation_id, viewer_id),
        )

    async def get_or_create_private_conversation(
        self, user_id: uuid.UUID, other_user_id: uuid.UUID
    ) -> Conversation:
        """Return the one-to-one conversation between two users, creating it if needed.

        Raises:
            InvalidRequestError: If both ids are the same user
            NotFoundError: If the other user does not exist
        """
        if user_id == other_user_id:
            raise InvalidRequestError("Cannot start a private conversation with yourself")
        if await self.db_session.get(UserDB, other_user_id) is None:
            raise NotFoundError(f"User {other_user_id} not found")

        existing = (
            select(DirectConversationParticipantDB.conversation_id)
            .join(
                ConversationDB,
                ConversationDB.conversation_id == DirectConversationParticipantDB.conversation_id,
            )
            .where(
                ConversationDB.conversation_type == ConversationType.PRIVATE.value,
                DirectConversationParticipantDB.user_id.in_([user_id, other_user_id]),
            )
            .group_by(DirectConversationParticipantDB.conversation_id)
            .having(func.count(func.distinct(DirectConversationParticipantDB.user_id)) == 2)
        )
        result = await self.db_session.execute(existing)
        conversation_id = result.scalars().first()
        if conversation_id is not None:
            return await self._to_conversation(await self._get_conversation_db(conversation_id), user_id)

        conversation = ConversationDB(
            conversation_id=uuid.uuid4(),
            conversation_type=ConversationType.PRIVATE.value,
            created_at=utcnow(),
        )
        self.db_session.add(conversation)
        await self.db_session.flush()
        for participant in (user_id, other_user_id):
            self.db_session.add(
                DirectConversationParticipantDB(
                    conversation_id=conversation.conversation_id,
                    user_id=participant,
                )
            )
        await self.db_session.commit()

        logger.info("private_conversation_created", conversation_id=str(conversation.conversation_id))
        return await self._to_conversation(conversation, user_id)

    async def get_group_conversation(self, group_id: uuid.UUID, viewer_id: uuid.UUID) -> Conversation:
        """Return the group's conversation, creating it on first use.

        Raises:
            NotFoundError: If the group does not exist
        """
        if await self.db_session.get(GroupDB, group_id) is None:
            raise NotFoundError(f"Group {group_id} not found")

        result = await self.db_session.execute(
            select(ConversationDB).where(ConversationDB.group_id == group_id)
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            conversation = ConversationDB(
                conversation_id=uuid.uuid4(),
                conversation_type=ConversationType.GROUP.value,
                group_id=group_id,
                created_at=utcnow(),
            )
            self.db_session.add(conversation)
            await self.db_session.commit()

        return await self._to_conversation(conversation, viewer_id)

    async def list_conversations(self, user_id: uuid.UUID) -> list[Conversation]:
        """Private and group conversations the user takes part in, newest first."""
        private_ids = select(DirectConversationParticipantDB.conversation_id).where(
            DirectConversationParticipantDB.user_id == user_id
        )
        group_ids = select(GroupMemberDB.group_id).where(GroupMemberDB.user_id == user_id)
        query = (
            select(ConversationDB)
            .where(
                ConversationDB.conversation_id.in_(private_ids)
                | ConversationDB.group_id.in_(group_ids)
            )
            .order_by(ConversationDB.created_at.desc())
        )
        result = await self.db_session.execute(query)
        return [await self._to_conversation(c, user_id) for c in result.scalars().all()]

    # ========== Messages ==========

    def _to_message(self, message: MessageDB, sender: UserDB, is_read: bool) -> Message:
        return Message(
            message_id=message.message_id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            sender_name=sender.full_name,
            content="" if message.is_deleted else message.content,
            media_urls=[] if message.is_deleted else list(message.media_urls or []),
            sent_at=message.sent_at,
            edited_at=message.edited_at,
            is_deleted=bool(message.is_deleted),
            deleted_at=message.deleted_at,
            is_read=is_read,
        )

    async def send_message(
        self,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
        media_urls: list[str] | None = None,
    ) -> Message:
        """Post a message and push it to all participants.

        Raises:
            NotFoundError: If the conversation does not exist
            PermissionError: If the sender does not take part in it
            InvalidRequestError: If the content is blank
        """
        if content is None or not content.strip():
            raise InvalidRequestError("Message content must not be empty")

        conversation = await self._get_conversation_db(conversation_id)
        participants = await self.participant_ids(conversation)
        if sender_id not in participants:
            raise PermissionError("You are not a participant of this conversation")

        sender = await self.db_session.get(UserDB, sender_id)
        now = utcnow()
        message = MessageDB(
            message_id=uuid.uuid4(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            media_urls=list(media_urls or []),
            sent_at=now,
            is_deleted=False,
        )
        self.db_session.add(message)
        await self.db_session.flush()
        self.db_session.add(
            MessageReadStatusDB(message_id=message.message_id, user_id=sender_id, read_at=now)
        )
        await self.db_session.commit()

        logger.info(
            "message_sent",
            message_id=str(message.message_id),
            conversation_id=str(conversation_id),
            sender_id=str(sender_id),
        )

        payload = self._to_message(message, sender, is_read=False)
        await self.broker.send_to_users(participants, MESSAGE_CREATED, payload.model_dump())
        return payload.model_copy(update={"is_read": True})

    async def _read_message_ids(self, user_id: uuid.UUID, message_ids: list[uuid.UUID]) -> set[uuid.UUID]:
        if not message_ids:
            return set()
        result = await self.db_session.execute(
            select(MessageReadStatusDB.message_id).where(
                MessageReadStatusDB.user_id == user_id,
                MessageReadStatusDB.message_id.in_(message_ids),
            )
        )
        return set(result.scalars().all())

    async def get_conversation_messages(
        self,
        conversation_id: uuid.UUID,
        viewer_id: uuid.UUID,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[Message]:
        """Messages of a conversation in chronological order.

        Args:
            conversation_id: Conversation to read
            viewer_id: User reading; determines ``is_read``
            limit: Maximum messages (most recent first selected)
            before: Only messages sent strictly before this time

        Raises:
            NotFoundError: If the conversation does not exist
            PermissionError: If the viewer does not take part in it
        """
        conversation = await self._get_conversation_db(conversation_id)
        await self._require_participant(conversation, viewer_id)

        query = (
            select(MessageDB, UserDB)
            .join(UserDB, UserDB.user_id == MessageDB.sender_id)
            .where(MessageDB.conversation_id == conversation_id)
        )
        if before is not None:
            query = query.where(MessageDB.sent_at < before)
        query = query.order_by(MessageDB.sent_at.desc()).limit(limit)

        result = await self.db_session.execute(query)
        rows = list(result.all())
        # Reverse to get chronological order
        rows.reverse()

        read_ids = await self._read_message_ids(viewer_id, [message.message_id for message, _ in rows])
        return [
            self._to_message(message, sender, is_read=message.message_id in read_ids)
            for message, sender in rows
        ]

    def _unread_query(self, conversation_id: uuid.UUID, user_id: uuid.UUID):
        read_by_user = select(MessageReadStatusDB.message_id).where(MessageReadStatusDB.user_id == user_id)
        return select(MessageDB.message_id).where(
            MessageDB.conversation_id == conversation_id,
            MessageDB.is_deleted.is_(False),
            MessageDB.message_id.not_in(read_by_user),
        )

    async def unread_count(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> int:
        """Number of live messages in the conversation the user has not read."""
        unread = self._unread_query(conversation_id, user_id).subquery()
        result = await self.db_session.execute(select(func.count()).select_from(unread))
        return result.scalar_one()

    async def mark_conversation_read(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> int:
        """Record read receipts for every unread message.

        Returns:
            Number of messages newly marked as read
        """
        conversation = await self._get_conversation_db(conversation_id)
        await self._require_participant(conversation, user_id)

        result = await self.db_session.execute(self._unread_query(conversation_id, user_id))
        unread_ids = list(result.scalars().all())
        now = utcnow()
        for message_id in unread_ids:
            self.db_session.add(MessageReadStatusDB(message_id=message_id, user_id=user_id, read_at=now))
        await self.db_session.commit()

        if unread_ids:
            logger.info(
                "conversation_marked_read",
                conversation_id=str(conversation_id),
                user_id=str(user_id),
                count=len(unread_ids),
            )
        return len(unread_ids)

    async def _get_own_message(self, message_id: uuid.UUID, user_id: uuid.UUID) -> MessageDB:
        message = await self.db_session.get(MessageDB, message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        if message.sender_id != user_id:
            raise PermissionError("Only the sender can change this message")
        return message

    async def edit_message(self, message_id: uuid.UUID, user_id: uuid.UUID, content: str) -> Message:
        """Replace the content of one's own message.

        Raises:
            NotFoundError: If the message does not exist
            PermissionError: If the user did not send it
            ConflictError: If the message was deleted
            InvalidRequestError: If the new content is blank
        """
        if content is None or not content.strip():
            raise InvalidRequestError("Message content must not be empty")

        message = await self._get_own_message(message_id, user_id)
        if message.is_deleted:
            raise ConflictError("Deleted messages cannot be edited")

        message.content = content
        message.edited_at = utcnow()
        await self.db_session.commit()

        return await self._publish_change(message, user_id, MESSAGE_UPDATED)

    async def delete_message(self, message_id: uuid.UUID, user_id: uuid.UUID) -> Message:
        """Soft-delete one's own message. Deleting twice is a no-op.

        Raises:
            NotFoundError: If the message does not exist
            PermissionError: If the user did not send it
        """
        message = await self._get_own_message(message_id, user_id)
        if message.is_deleted:
            sender = await self.db_session.get(UserDB, user_id)
            return self._to_message(message, sender, is_read=True)

        message.is_deleted = True
        message.deleted_at = utcnow()
        await self.db_session.commit()

        logger.info("message_deleted", message_id=str(message_id), user_id=str(user_id))
        return await self._publish_change(message, user_id, MESSAGE_DELETED)

    async def _publish_change(self, message: MessageDB, user_id: uuid.UUID, event: str) -> Message:
        sender = await self.db_session.get(UserDB, user_id)
        conversation = await self._get_conversation_db(message.conversation_id)
        payload = self._to_message(message, sender, is_read=False)
        await self.broker.send_to_users(await self.participant_ids(conversation), event, payload.model_dump())
        return payload.model_copy(update={"is_read": True})
