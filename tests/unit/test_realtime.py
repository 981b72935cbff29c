"""Unit tests for the WebSocket connection manager."""

import uuid

import pytest
from starlette.websockets import WebSocketDisconnect

from stackmentor.services.realtime import ConnectionManager


class FakeWebSocket:
    """Records frames sent to it; optionally fails like a closed socket."""

    def __init__(self, error: Exception | None = None):
        self.sent: list[dict] = []
        self.error = error

    async def send_json(self, data: dict) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(data)


@pytest.mark.unit
class TestConnectionManager:
    """Registration and fan-out of live events."""

    async def test_event_reaches_every_connection_of_a_user(self) -> None:
        """Test that all tabs of a user receive the event."""
        manager = ConnectionManager()
        user_id = uuid.uuid4()
        first, second = FakeWebSocket(), FakeWebSocket()
        manager.register(user_id, first)
        manager.register(user_id, second)

        delivered = await manager.send_to_user(user_id, "message.created", {"content": "hi"})

        assert delivered == 2
        assert first.sent == [{"type": "message.created", "data": {"content": "hi"}}]
        assert second.sent == first.sent

    async def test_payload_is_json_encoded(self) -> None:
        """Test that UUIDs in the payload are sent as strings."""
        manager = ConnectionManager()
        user_id = uuid.uuid4()
        socket = FakeWebSocket()
        manager.register(user_id, socket)

        await manager.send_to_user(user_id, "message.created", {"message_id": user_id})

        assert socket.sent[0]["data"]["message_id"] == str(user_id)

    async def test_failed_connection_is_dropped(self) -> None:
        """Test that a socket that fails on send is unregistered."""
        manager = ConnectionManager()
        user_id = uuid.uuid4()
        healthy = FakeWebSocket()
        broken = FakeWebSocket(error=WebSocketDisconnect(code=1006))
        manager.register(user_id, healthy)
        manager.register(user_id, broken)

        delivered = await manager.send_to_user(user_id, "message.created", {})

        assert delivered == 1
        assert manager.connections[user_id] == {healthy}

    async def test_send_to_users_deduplicates(self) -> None:
        """Test that a user listed twice gets the event once."""
        manager = ConnectionManager()
        alice, bob = uuid.uuid4(), uuid.uuid4()
        alice_socket, bob_socket = FakeWebSocket(), FakeWebSocket()
        manager.register(alice, alice_socket)
        manager.register(bob, bob_socket)

        delivered = await manager.send_to_users([alice, bob, alice], "message.deleted", {})

        assert delivered == 2
        assert len(alice_socket.sent) == 1

    async def test_offline_user_gets_nothing(self) -> None:
        """Test that sending to a user without connections is a no-op."""
        manager = ConnectionManager()

        assert await manager.send_to_user(uuid.uuid4(), "message.created", {}) == 0

    def test_unregister_last_connection_marks_offline(self) -> None:
        """Test presence tracking across register and unregister."""
        manager = ConnectionManager()
        user_id = uuid.uuid4()
        socket = FakeWebSocket()

        manager.register(user_id, socket)
        assert manager.is_online(user_id)

        manager.unregister(user_id, socket)
        assert not manager.is_online(user_id)
        assert user_id not in manager.connections

        # Unregistering twice is harmless
        manager.unregister(user_id, socket)
