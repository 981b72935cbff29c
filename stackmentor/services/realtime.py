"""In-process fan-out of live events to connected WebSocket clients."""

import uuid
from collections import defaultdict
from collections.abc import Iterable

import structlog
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from starlette.websockets import WebSocketDisconnect

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Tracks open WebSocket connections per user.

    A user may hold several connections (tabs, devices); every event for the
    user goes to all of them. Connections that fail on send are dropped.
    """

    def __init__(self):
        self.connections: dict[uuid.UUID, set[WebSocket]] = defaultdict(set)

    def register(self, user_id: uuid.UUID, websocket: WebSocket) -> None:
        self.connections[user_id].add(websocket)
        logger.info("websocket_registered", user_id=str(user_id), open=len(self.connections[user_id]))

    def unregister(self, user_id: uuid.UUID, websocket: WebSocket) -> None:
        sockets = self.connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.connections[user_id]
        logger.info("websocket_unregistered", user_id=str(user_id))

    def is_online(self, user_id: uuid.UUID) -> bool:
        return bool(self.connections.get(user_id))

    async def send_to_user(self, user_id: uuid.UUID, event: str, data: dict) -> int:
        """Send one event to every connection of a user.

        Returns:
            Number of connections the event reached
        """
        frame = {"type": event, "data": jsonable_encoder(data)}
        delivered = 0
        for websocket in list(self.connections.get(user_id, ())):
            try:
                await websocket.send_json(frame)
                delivered += 1
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.info("websocket_send_failed", user_id=str(user_id), error=str(exc))
                self.unregister(user_id, websocket)
        return delivered

    async def send_to_users(self, user_ids: Iterable[uuid.UUID], event: str, data: dict) -> int:
        """Send one event to several users; duplicates are sent once."""
        delivered = 0
        for user_id in set(user_ids):
            delivered += await self.send_to_user(user_id, event, data)
        return delivered


# Global broker shared by the HTTP routes and the WebSocket endpoint
connection_manager = ConnectionManager()
