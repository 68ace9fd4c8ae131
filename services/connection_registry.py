"""
Connection Registry
Tracks authenticated WebSocket connections per user and pushes live updates
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol


logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class ConnectionRegistry:
    """
    Registry of one live connection per user.

    Created in the application lifespan and stored on app.state; closing
    the registry disconnects everyone and rejects further registrations.
    """

    def __init__(self):
        self._connections: Dict[int, Connection] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._connections

    async def register(self, user_id: int, connection: Connection) -> None:
        """Register a connection, replacing (and closing) any previous one of the user"""
        if self._closed:
            raise RuntimeError("Connection registry is closed")

        async with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = connection

        if previous is not None and previous is not connection:
            await self._safe_close(user_id, previous)
        logger.info(f"User {user_id} connected ({len(self._connections)} live)")

    async def unregister(self, user_id: int, connection: Optional[Connection] = None) -> bool:
        """
        Remove a user's connection. When connection is given, only remove it
        if it is still the registered one.
        """
        async with self._lock:
            current = self._connections.get(user_id)
            if current is None or (connection is not None and current is not connection):
                return False
            del self._connections[user_id]

        logger.info(f"User {user_id} disconnected")
        return True

    def get(self, user_id: int) -> Optional[Connection]:
        return self._connections.get(user_id)

    def connected_users(self) -> List[int]:
        return list(self._connections)

    async def send_to_user(self, user_id: int, message_type: str, data: Any) -> bool:
        """Send {"type", "data"} to one user; a failed send drops the connection"""
        connection = self._connections.get(user_id)
        if connection is None:
            return False
        try:
            await connection.send_json({"type": message_type, "data": data})
            return True
        except Exception:
            logger.exception(f"Failed to push {message_type} to user {user_id}")
            await self.unregister(user_id, connection)
            return False

    async def broadcast(self, user_ids: Iterable[int], message_type: str, data: Any) -> int:
        """Send to every connected user among user_ids; returns how many got it"""
        delivered = 0
        for user_id in set(user_ids):
            if await self.send_to_user(user_id, message_type, data):
                delivered += 1
        return delivered

    async def close_all(self) -> None:
        self._closed = True
        async with self._lock:
            connections = list(self._connections.items())
            self._connections.clear()
        for user_id, connection in connections:
            await self._safe_close(user_id, connection)
        logger.info(f"Connection registry closed ({len(connections)} connections)")

    async def _safe_close(self, user_id: int, connection: Connection) -> None:
        try:
            await connection.close()
        except Exception:
            logger.warning(f"Error closing connection of user {user_id}", exc_info=True)
