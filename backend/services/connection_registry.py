"""
Connection Registry — ephemeral identities for live transport connections.

Each connection gets "p1", "p2", ... on accept. Once a connection creates or
joins a room its (room_code, role) binding is fixed until it closes.
"""
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from models.game import Role

logger = logging.getLogger(__name__)


@dataclass
class Binding:
    connection: Any
    room_code: Optional[str] = None
    role: Optional[Role] = None


class ConnectionRegistry:
    def __init__(self):
        self._counter = itertools.count(1)
        self._bindings: Dict[str, Binding] = {}

    def register(self, connection: Any) -> str:
        conn_id = f"p{next(self._counter)}"
        connection.id = conn_id
        self._bindings[conn_id] = Binding(connection=connection)
        logger.debug("Connection %s registered (%d live)", conn_id, len(self._bindings))
        return conn_id

    def bind(self, conn_id: str, room_code: str, role: Role) -> None:
        binding = self._bindings[conn_id]
        if binding.room_code is not None:
            raise ValueError(f"{conn_id} is already bound to room {binding.room_code}")
        binding.room_code = room_code
        binding.role = role

    def unbind(self, conn_id: str) -> None:
        """Drop the room binding (room was closed under this connection)."""
        binding = self._bindings.get(conn_id)
        if binding:
            binding.room_code = None
            binding.role = None

    def get(self, conn_id: str) -> Optional[Binding]:
        return self._bindings.get(conn_id)

    def unregister(self, conn_id: str) -> Optional[Binding]:
        """Forget the connection. Returns its last binding, or None if already gone."""
        return self._bindings.pop(conn_id, None)

    def connections(self) -> List[Any]:
        return [b.connection for b in self._bindings.values()]

    def __len__(self) -> int:
        return len(self._bindings)
