"""WebSocket endpoint for live messaging."""

import uuid

import structlog
from fastapi import APIRouter, Query, WebSocket, status
from pydantic import ValidationError
from starlette.websockets import WebSocketDisconnect

from stackmentor.api.middleware.auth import auth_middleware
from stackmentor.models.conversation import SendMessageRequest
from stackmentor.models.user import UserDB
from stackmentor.services.database import get_db_manager
from stackmentor.services.errors import StackMentorError
from stackmentor.services.message_service import MessageService
from stackmentor.services.realtime import connection_manager

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["websocket"])


def _error(message: str) -> dict:
    return {"type": "error", "message": message}


async def authenticate_socket(token: str | None) -> uuid.UUID | None:
    """Resolve the ``token`` query parameter to a verified user id."""
    if not token:
        return None
    claims = auth_middleware.token_validator.decode_access_token(token)
    if not claims:
        return None

    db_manager = get_db_manager()
    if db_manager is None:
        logger.warning("websocket_rejected_no_database")
        return None

    async with db_manager.get_async_session() as session:
        user = await session.get(UserDB, claims["user_id"])
    if user is None or not user.is_verified:
        return None
    return user.user_id


async def handle_frame(user_id: uuid.UUID, frame) -> dict | None:
    """Run one client action and build the reply frame.

    Each action gets its own database session; events for other
    participants go out through the shared connection manager.
    """
    if not isinstance(frame, dict):
        return _error("Frames must be JSON objects")

    action = frame.get("action")
    if action == "ping":
        return {"type": "pong"}
    if action not in ("send_message", "mark_read"):
        return _error(f"Unknown action: {action}")

    try:
        conversation_id = uuid.UUID(str(frame.get("conversation_id")))
    except ValueError:
        return _error("conversation_id must be a valid UUID")

    db_manager = get_db_manager()
    if db_manager is None:
        return _error("Service unavailable")

    try:
        async with db_manager.get_async_session() as session:
            service = MessageService(session, connection_manager)
            if action == "send_message":
                request = SendMessageRequest(
                    content=frame.get("content"),
                    media_urls=frame.get("media_urls") or [],
                )
                message = await service.send_message(
                    conversation_id, user_id, request.content, request.media_urls
                )
                return {
                    "type": "ack",
                    "action": action,
                    "data": {"message_id": str(message.message_id)},
                }

            marked = await service.mark_conversation_read(conversation_id, user_id)
            return {
                "type": "ack",
                "action": action,
                "data": {"conversation_id": str(conversation_id), "marked": marked},
            }
    except ValidationError as e:
        first = e.errors()[0]
        return _error(str(first.get("msg", "Invalid message")).removeprefix("Value error, "))
    except StackMentorError as e:
        return _error(e.message)
    except PermissionError as e:
        return _error(str(e))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = Query(None)):
    """Live event stream for one authenticated user.

    The socket is closed with 1008 before the handshake completes when the
    token is missing, invalid or belongs to an unverified account.
    """
    user_id = await authenticate_socket(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection_manager.register(user_id, websocket)
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except (KeyError, TypeError, ValueError):
                # Binary frames carry no text; text frames may not be JSON
                await websocket.send_json(_error("Frames must be JSON objects"))
                continue
            try:
                reply = await handle_frame(user_id, frame)
            except Exception:
                logger.exception("websocket_frame_failed", user_id=str(user_id))
                reply = _error("An unexpected error occurred. Please try again later.")
            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        logger.info("websocket_disconnected", user_id=str(user_id))
    finally:
        connection_manager.unregister(user_id, websocket)
