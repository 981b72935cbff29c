"""Integration tests for conversations, messages and read receipts."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.models.base import utcnow
from stackmentor.models.group import CreateGroupRequest
from stackmentor.services.errors import ConflictError, InvalidRequestError, NotFoundError
from stackmentor.services.group_service import GroupService
from stackmentor.services.message_service import (
    MESSAGE_CREATED,
    MESSAGE_DELETED,
    MESSAGE_UPDATED,
    MessageService,
)


class RecordingBroker:
    """Stands in for the connection manager and records published events."""

    def __init__(self):
        self.events: list[tuple[set[uuid.UUID], str, dict]] = []

    async def send_to_users(self, user_ids, event: str, data: dict) -> int:
        self.events.append((set(user_ids), event, data))
        return len(set(user_ids))


@pytest.fixture
def broker() -> RecordingBroker:
    return RecordingBroker()


@pytest.fixture
def message_service(async_db_session: AsyncSession, broker: RecordingBroker) -> MessageService:
    return MessageService(async_db_session, broker)


@pytest.fixture
async def pair(make_user):
    """Two verified users."""
    ada = await make_user(first_name="Ada", last_name="Lovelace")
    alan = await make_user(first_name="Alan", last_name="Turing")
    return ada, alan


@pytest.mark.integration
@pytest.mark.asyncio
class TestPrivateConversations:
    """One-to-one conversations."""

    async def test_created_once_per_pair(self, message_service: MessageService, pair) -> None:
        """Test that opening the same pair twice, from either side, reuses the conversation."""
        ada, alan = pair

        first = await message_service.get_or_create_private_conversation(ada.user_id, alan.user_id)
        again = await message_service.get_or_create_private_conversation(alan.user_id, ada.user_id)

        assert first.conversation_id == again.conversation_id
        assert first.conversation_type == "private"
        assert set(first.participant_ids) == {ada.user_id, alan.user_id}

    async def test_distinct_pairs_get_distinct_conversations(
        self, message_service: MessageService, pair, make_user
    ) -> None:
        """Test that sharing one participant does not merge conversations."""
        ada, alan = pair
        grace = await make_user(first_name="Grace", last_name="Hopper")

        with_alan = await message_service.get_or_create_private_conversation(ada.user_id, alan.user_id)
        with_grace = await message_service.get_or_create_private_conversation(ada.user_id, grace.user_id)

        assert with_alan.conversation_id != with_grace.conversation_id

    async def test_conversation_with_self_rejected(self, message_service: MessageService, pair) -> None:
        """Test that a user cannot open a conversation with themselves."""
        ada, _ = pair

        with pytest.raises(InvalidRequestError):
            await message_service.get_or_create_private_conversation(ada.user_id, ada.user_id)

    async def test_conversation_with_unknown_user(self, message_service: MessageService, pair) -> None:
        """Test that the other user must exist."""
        ada, _ = pair

        with pytest.raises(NotFoundError):
            await message_service.get_or_create_private_conversation(ada.user_id, uuid.uuid4())


@pytest.mark.integration
@pytest.mark.asyncio
class TestMessaging:
    """Sending, reading, editing and deleting messages."""

    @pytest.fixture
    async def conversation(self, message_service: MessageService, pair):
        ada, alan = pair
        return await message_service.get_or_create_private_conversation(ada.user_id, alan.user_id)

    async def test_send_message_is_broadcast(
        self, message_service: MessageService, broker: RecordingBroker, conversation, pair
    ) -> None:
        """Test that a sent message reaches both participants and counts as read by the sender."""
        ada, alan = pair

        message = await message_service.send_message(
            conversation.conversation_id, ada.user_id, "Hello Alan", ["https://img.example.com/1.png"]
        )

        assert message.sender_name == "Ada Lovelace"
        assert message.is_read is True
        assert message.media_urls == ["https://img.example.com/1.png"]
        recipients, event, data = broker.events[-1]
        assert recipients == {ada.user_id, alan.user_id}
        assert event == MESSAGE_CREATED
        assert data["content"] == "Hello Alan"
        assert data["is_read"] is False

    async def test_outsider_cannot_send(
        self, message_service: MessageService, conversation, make_user
    ) -> None:
        """Test that non-participants cannot post."""
        outsider = await make_user(first_name="Grace", last_name="Hopper")

        with pytest.raises(PermissionError):
            await message_service.send_message(conversation.conversation_id, outsider.user_id, "Hi")

    async def test_blank_message_rejected(self, message_service: MessageService, conversation, pair) -> None:
        """Test that whitespace-only content is rejected."""
        ada, _ = pair

        with pytest.raises(InvalidRequestError):
            await message_service.send_message(conversation.conversation_id, ada.user_id, "   ")

    async def test_unknown_conversation(self, message_service: MessageService, pair) -> None:
        """Test that posting to an unknown conversation is reported."""
        ada, _ = pair

        with pytest.raises(NotFoundError):
            await message_service.send_message(uuid.uuid4(), ada.user_id, "Hi")

    async def test_history_unread_and_mark_read(
        self, message_service: MessageService, conversation, pair
    ) -> None:
        """Test chronological history, unread counts and read receipts."""
        ada, alan = pair
        cid = conversation.conversation_id
        for text in ("one", "two", "three"):
            await message_service.send_message(cid, ada.user_id, text)

        history = await message_service.get_conversation_messages(cid, alan.user_id)
        assert [m.content for m in history] == ["one", "two", "three"]
        assert not any(m.is_read for m in history)
        assert await message_service.unread_count(cid, alan.user_id) == 3
        assert await message_service.unread_count(cid, ada.user_id) == 0

        assert await message_service.mark_conversation_read(cid, alan.user_id) == 3
        assert await message_service.mark_conversation_read(cid, alan.user_id) == 0
        assert await message_service.unread_count(cid, alan.user_id) == 0
        history = await message_service.get_conversation_messages(cid, alan.user_id)
        assert all(m.is_read for m in history)

    async def test_history_limit_and_before(self, message_service: MessageService, conversation, pair) -> None:
        """Test paging back through history."""
        ada, alan = pair
        cid = conversation.conversation_id
        for text in ("one", "two", "three", "four"):
            await message_service.send_message(cid, ada.user_id, text)

        latest = await message_service.get_conversation_messages(cid, alan.user_id, limit=2)
        assert [m.content for m in latest] == ["three", "four"]

        older = await message_service.get_conversation_messages(
            cid, alan.user_id, limit=10, before=latest[0].sent_at
        )
        assert [m.content for m in older] == ["one", "two"]

        assert await message_service.get_conversation_messages(
            cid, alan.user_id, before=utcnow() - timedelta(days=1)
        ) == []

    async def test_outsider_cannot_read(self, message_service: MessageService, conversation, make_user) -> None:
        """Test that non-participants cannot read history."""
        outsider = await make_user(first_name="Grace", last_name="Hopper")

        with pytest.raises(PermissionError):
            await message_service.get_conversation_messages(conversation.conversation_id, outsider.user_id)

    async def test_edit_message(
        self, message_service: MessageService, broker: RecordingBroker, conversation, pair
    ) -> None:
        """Test that the sender can edit and participants are told."""
        ada, _ = pair
        sent = await message_service.send_message(conversation.conversation_id, ada.user_id, "Helo")

        edited = await message_service.edit_message(sent.message_id, ada.user_id, "Hello")

        assert edited.content == "Hello"
        assert edited.edited_at is not None
        assert broker.events[-1][1] == MESSAGE_UPDATED

    async def test_only_sender_can_edit(self, message_service: MessageService, conversation, pair) -> None:
        """Test that other participants cannot edit."""
        ada, alan = pair
        sent = await message_service.send_message(conversation.conversation_id, ada.user_id, "Hi")

        with pytest.raises(PermissionError):
            await message_service.edit_message(sent.message_id, alan.user_id, "Hijacked")

    async def test_delete_is_soft_and_idempotent(
        self, message_service: MessageService, broker: RecordingBroker, conversation, pair
    ) -> None:
        """Test that deleted messages keep their place but lose their content."""
        ada, alan = pair
        cid = conversation.conversation_id
        sent = await message_service.send_message(cid, ada.user_id, "Oops", ["https://img.example.com/x.png"])

        deleted = await message_service.delete_message(sent.message_id, ada.user_id)
        events_after_first_delete = len(broker.events)
        again = await message_service.delete_message(sent.message_id, ada.user_id)

        assert deleted.is_deleted and deleted.deleted_at is not None
        assert again.is_deleted
        assert broker.events[-1][1] == MESSAGE_DELETED
        assert len(broker.events) == events_after_first_delete

        history = await message_service.get_conversation_messages(cid, alan.user_id)
        assert [(m.content, m.media_urls, m.is_deleted) for m in history] == [("", [], True)]
        assert await message_service.unread_count(cid, alan.user_id) == 0

        with pytest.raises(ConflictError):
            await message_service.edit_message(sent.message_id, ada.user_id, "Back")

    async def test_delete_unknown_message(self, message_service: MessageService, pair) -> None:
        """Test that deleting an unknown message is reported."""
        ada, _ = pair

        with pytest.raises(NotFoundError):
            await message_service.delete_message(uuid.uuid4(), ada.user_id)


@pytest.mark.integration
@pytest.mark.asyncio
class TestGroupConversations:
    """Conversations shared by group members."""

    async def test_group_members_share_conversation(
        self,
        message_service: MessageService,
        async_db_session: AsyncSession,
        broker: RecordingBroker,
        pair,
        make_user,
    ) -> None:
        """Test that all members receive group messages and later joiners see the history."""
        ada, alan = pair
        grace = await make_user(first_name="Grace", last_name="Hopper")
        groups = GroupService(async_db_session)
        group = await groups.create_group(
            CreateGroupRequest(group_name="Study", member_ids=[alan.user_id]), ada
        )

        conversation = await message_service.get_group_conversation(group.group_id, ada.user_id)
        await message_service.send_message(conversation.conversation_id, alan.user_id, "Hi all")

        assert broker.events[-1][0] == {ada.user_id, alan.user_id}
        with pytest.raises(PermissionError):
            await message_service.send_message(conversation.conversation_id, grace.user_id, "Me too")

        await groups.add_user_to_group(group.group_id, grace.user_id)
        history = await message_service.get_conversation_messages(conversation.conversation_id, grace.user_id)
        assert [m.content for m in history] == ["Hi all"]

    async def test_list_conversations(
        self, message_service: MessageService, async_db_session: AsyncSession, pair, make_user
    ) -> None:
        """Test that the list covers private and group conversations with unread counts."""
        ada, alan = pair
        grace = await make_user(first_name="Grace", last_name="Hopper")
        group = await GroupService(async_db_session).create_group(
            CreateGroupRequest(group_name="Study", member_ids=[alan.user_id]), ada
        )
        private = await message_service.get_or_create_private_conversation(ada.user_id, alan.user_id)
        await message_service.send_message(private.conversation_id, ada.user_id, "Ping")

        listed = {c.conversation_id: c for c in await message_service.list_conversations(alan.user_id)}

        assert private.conversation_id in listed
        assert listed[private.conversation_id].unread_count == 1
        assert any(c.group_id == group.group_id for c in listed.values())
        assert await message_service.list_conversations(grace.user_id) == []
