"""
Fan-out Broadcaster.

broadcast() serializes one {type, data} envelope and writes the identical
text to every open connection of a room (players + host, de-duplicated).
send() is the single-recipient path for private payloads and error replies.
"""
import json
import logging
from typing import Any, Dict, Iterable, Optional

from models.game import Room

logger = logging.getLogger(__name__)


def encode(msg_type: str, data: Optional[Dict[str, Any]] = None) -> str:
    return json.dumps({"type": msg_type, "data": data or {}}, separators=(",", ":"))


class Broadcaster:
    async def _deliver(self, connection: Any, text: str) -> bool:
        if connection is None or not connection.is_open:
            return False
        try:
            await connection.send_text(text)
            return True
        except Exception as exc:
            # Closed between the state check and the write; cleanup happens
            # when its receive loop sees the disconnect.
            logger.warning("send to %s failed: %s", getattr(connection, "id", "?"), exc)
            return False

    async def send(self, connection: Any, msg_type: str, data: Optional[Dict[str, Any]] = None) -> bool:
        """Send a private message to a single connection."""
        return await self._deliver(connection, encode(msg_type, data))

    async def send_many(
        self, connections: Iterable[Any], msg_type: str, data: Optional[Dict[str, Any]] = None
    ) -> int:
        text = encode(msg_type, data)
        delivered = 0
        seen = set()
        for conn in connections:
            if id(conn) in seen:
                continue
            seen.add(id(conn))
            if await self._deliver(conn, text):
                delivered += 1
        return delivered

    async def broadcast(self, room: Room, msg_type: str, data: Optional[Dict[str, Any]] = None) -> int:
        """Deliver one message to every participant of a room. Returns the delivered count."""
        delivered = await self.send_many(room.connections(), msg_type, data)
        logger.debug("[%s] broadcast %s → %d", room.code, msg_type, delivered)
        return delivered

    async def broadcast_room_update(self, room: Room) -> int:
        return await self.broadcast(room, "room_update", room.to_public())
