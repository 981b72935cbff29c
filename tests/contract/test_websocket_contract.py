"""Contract tests for the live messaging WebSocket.

The application runs with its real lifespan here, so the database is
initialized from DATABASE_URL exactly as in production.
"""

import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from starlette.websockets import WebSocketDisconnect

from stackmentor.api.main import app
from stackmentor.api.middleware.auth import get_token_validator
from stackmentor.api.routes import websocket as websocket_routes
from stackmentor.models.conversation import ConversationDB, DirectConversationParticipantDB
from stackmentor.services.database import DatabaseManager


async def _seed(database_url: str, users) -> uuid.UUID:
    """Create the schema, the users and a private conversation between the first two."""
    manager = DatabaseManager(database_url)
    await manager.initialize_async()
    await manager.create_tables()
    conversation_id = uuid.uuid4()
    async with manager.get_async_session() as session:
        for user in users:
            session.add(user)
        await session.flush()
        session.add(ConversationDB(conversation_id=conversation_id, conversation_type="private"))
        await session.flush()
        for user in users[:2]:
            session.add(DirectConversationParticipantDB(conversation_id=conversation_id, user_id=user.user_id))
    await manager.close()
    return conversation_id


@pytest.fixture
def live_app(tmp_path, monkeypatch, user_builder):
    """Seeded database plus a client running the app lifespan."""
    database_url = f"sqlite:///{tmp_path}/ws.db"
    ada = user_builder(first_name="Ada", last_name="Lovelace")
    alan = user_builder(first_name="Alan", last_name="Turing")
    grace = user_builder(first_name="Grace", last_name="Hopper")
    unverified = user_builder(first_name="Ned", last_name="Unverified", is_verified=False)
    conversation_id = asyncio.run(_seed(database_url, [ada, alan, grace, unverified]))

    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("LOG_FORMAT", "console")
    validator = get_token_validator()

    def token_for(user) -> str:
        return validator.create_access_token(user.user_id, user.email)

    with TestClient(app) as client:
        yield {
            "client": client,
            "conversation_id": conversation_id,
            "users": {"ada": ada, "alan": alan, "grace": grace, "unverified": unverified},
            "token_for": token_for,
        }


@pytest.mark.contract
class TestWebSocketAuth:
    """Handshake authentication."""

    def test_missing_token_closes_with_policy_violation(self, live_app) -> None:
        """Test that connecting without a token is refused with 1008."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with live_app["client"].websocket_connect("/ws"):
                pass

        assert exc_info.value.code == 1008

    def test_invalid_token_closes_with_policy_violation(self, live_app) -> None:
        """Test that a forged token is refused with 1008."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with live_app["client"].websocket_connect("/ws?token=forged.token.value"):
                pass

        assert exc_info.value.code == 1008

    def test_unverified_user_refused(self, live_app) -> None:
        """Test that unverified accounts cannot connect."""
        token = live_app["token_for"](live_app["users"]["unverified"])

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with live_app["client"].websocket_connect(f"/ws?token={token}"):
                pass

        assert exc_info.value.code == 1008


@pytest.mark.contract
class TestWebSocketActions:
    """Client actions over an authenticated socket."""

    def test_ping(self, live_app) -> None:
        """Test the keepalive round trip."""
        token = live_app["token_for"](live_app["users"]["ada"])

        with live_app["client"].websocket_connect(f"/ws?token={token}") as ws:
            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_send_message_reaches_both_participants(self, live_app) -> None:
        """Test that a message sent over the socket is pushed to sender and recipient."""
        client = live_app["client"]
        users = live_app["users"]
        conversation_id = str(live_app["conversation_id"])

        with client.websocket_connect(f"/ws?token={live_app['token_for'](users['alan'])}") as alan_ws:
            with client.websocket_connect(f"/ws?token={live_app['token_for'](users['ada'])}") as ada_ws:
                # Both sockets answer a ping once registered
                alan_ws.send_json({"action": "ping"})
                assert alan_ws.receive_json() == {"type": "pong"}
                ada_ws.send_json({"action": "ping"})
                assert ada_ws.receive_json() == {"type": "pong"}

                ada_ws.send_json(
                    {"action": "send_message", "conversation_id": conversation_id, "content": "Hello Alan"}
                )

                event = ada_ws.receive_json()
                assert event["type"] == "message.created"
                assert event["data"]["content"] == "Hello Alan"
                assert event["data"]["sender_name"] == "Ada Lovelace"

                ack = ada_ws.receive_json()
                assert ack["type"] == "ack"
                assert ack["data"]["message_id"] == event["data"]["message_id"]

                pushed = alan_ws.receive_json()
                assert pushed["type"] == "message.created"
                assert pushed["data"]["conversation_id"] == conversation_id

                alan_ws.send_json({"action": "mark_read", "conversation_id": conversation_id})
                read = alan_ws.receive_json()
                assert read == {
                    "type": "ack",
                    "action": "mark_read",
                    "data": {"conversation_id": conversation_id, "marked": 1},
                }

    def test_errors_keep_socket_open(self, live_app) -> None:
        """Test that bad frames get error replies without closing the socket."""
        users = live_app["users"]
        token = live_app["token_for"](users["grace"])
        conversation_id = str(live_app["conversation_id"])

        with live_app["client"].websocket_connect(f"/ws?token={token}") as ws:
            ws.send_json({"action": "dance"})
            assert ws.receive_json() == {"type": "error", "message": "Unknown action: dance"}

            ws.send_json({"action": "send_message", "conversation_id": "nope", "content": "Hi"})
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"action": "send_message", "conversation_id": conversation_id, "content": "Hi"})
            assert ws.receive_json() == {
                "type": "error",
                "message": "You are not a participant of this conversation",
            }

            ws.send_json({"action": "mark_read", "conversation_id": str(uuid.uuid4())})
            assert ws.receive_json()["type"] == "error"

            ws.send_text("not json")
            assert ws.receive_json() == {"type": "error", "message": "Frames must be JSON objects"}

            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_binary_frame_keeps_socket_open(self, live_app) -> None:
        """Test that a binary frame is answered with an error instead of closing the socket."""
        token = live_app["token_for"](live_app["users"]["ada"])

        with live_app["client"].websocket_connect(f"/ws?token={token}") as ws:
            ws.send_bytes(b"\x00\x01")
            assert ws.receive_json() == {"type": "error", "message": "Frames must be JSON objects"}

            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_unexpected_failure_keeps_socket_open(self, live_app, monkeypatch) -> None:
        """Test that a database failure during an action is reported and the socket survives."""
        token = live_app["token_for"](live_app["users"]["ada"])
        real_handle_frame = websocket_routes.handle_frame

        async def failing_handle_frame(user_id, frame):
            if frame.get("action") == "mark_read":
                raise OperationalError("UPDATE message_read_status", {}, Exception("database is locked"))
            return await real_handle_frame(user_id, frame)

        monkeypatch.setattr(websocket_routes, "handle_frame", failing_handle_frame)

        with live_app["client"].websocket_connect(f"/ws?token={token}") as ws:
            ws.send_json({"action": "mark_read", "conversation_id": str(live_app["conversation_id"])})
            assert ws.receive_json() == {
                "type": "error",
                "message": "An unexpected error occurred. Please try again later.",
            }

            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"type": "pong"}
