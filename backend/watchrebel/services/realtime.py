"""Live delivery of direct-message events over WebSocket.

One socket per user; a newer connection replaces the older one. The
registry is owned by the application (``app.state.connections``) and
passed to whoever needs it.
"""

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class JsonSocket(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry:
    def __init__(self):
        self._sockets: dict[str, JsonSocket] = {}

    def register(self, user_id: str, socket: JsonSocket):
        self._sockets[user_id] = socket
        logger.info(f"WebSocket authenticated: user {user_id}")

    def unregister(self, user_id: str, socket: JsonSocket):
        """Drop the user's socket, unless it was already replaced by a newer one."""
        if self._sockets.get(user_id) is socket:
            del self._sockets[user_id]
            logger.info(f"WebSocket disconnected: user {user_id}")

    @property
    def active_connections(self) -> int:
        return len(self._sockets)

    async def send_new_message(self, user_id: str, message: dict) -> bool:
        return await self._send(user_id, {"type": "new_message", "message": message})

    async def send_messages_read(self, user_id: str, conversation_id: str) -> bool:
        return await self._send(user_id, {"type": "messages_read", "conversationId": conversation_id})

    async def _send(self, user_id: str, payload: dict) -> bool:
        socket = self._sockets.get(user_id)
        if socket is None:
            return False
        try:
            await socket.send_json(payload)
        except Exception as e:
            logger.warning(f"WebSocket send to {user_id} failed, dropping connection: {e}")
            self.unregister(user_id, socket)
            return False
        return True
