"""
Room Store — process-wide map of room code → Room.

Owns the Room lifecycle:
  create_room   — fresh unique code, host connection attached
  add_player    — lobby-only join, capacity enforced
  remove_player — drops a player and purges every reference to it
  close_room    — host gone: room deleted (connections are left open)

Created once per app in the lifespan; never a module-level global.
"""
import logging
import random
from typing import Any, Dict, List, Optional

from config import settings
from models.errors import PreconditionFailed, RoomNotFound
from models.game import Phase, Player, Room
from services.code_generator import generate_room_code, normalize_room_code

logger = logging.getLogger(__name__)


class RoomStore:
    def __init__(
        self,
        capacity: Optional[int] = None,
        min_players: Optional[int] = None,
        code_length: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.capacity = capacity or settings.room_capacity
        self.min_players = min_players or settings.min_players
        self.code_length = code_length or settings.room_code_length
        self._rng = rng or random.Random()
        self._rooms: Dict[str, Room] = {}

    # ── Lookup ────────────────────────────────────────────────────────────────

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(normalize_room_code(code))

    def require(self, code: Optional[str]) -> Room:
        room = self._rooms.get(code) if code else None
        if room is None:
            raise RoomNotFound()
        return room

    def __contains__(self, code: str) -> bool:
        return code in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def create_room(self, host: Any = None) -> Room:
        code = generate_room_code(
            self._rooms,
            length=self.code_length,
            rng=self._rng,
            taken_count=len(self._rooms),
        )
        room = Room(
            code=code,
            host=host,
            capacity=self.capacity,
            min_players=self.min_players,
        )
        self._rooms[code] = room
        logger.info("[%s] Room created (%d live)", code, len(self._rooms))
        return room

    def add_player(self, room: Room, player_id: str, name: str, connection: Any = None) -> Player:
        if room.phase != Phase.LOBBY:
            raise PreconditionFailed("game_already_started", "Game already started")
        if len(room.players) >= room.capacity:
            raise PreconditionFailed("room_full", "Room is full")
        if room.has_player(player_id):
            raise PreconditionFailed("already_in_room", "Already in this room")
        player = Player(id=player_id, name=name, connection=connection)
        room.players.append(player)
        logger.info("[%s] %s joined as %s (%d/%d)", room.code, name, player_id, len(room.players), room.capacity)
        return player

    def remove_player(self, room: Room, player_id: str) -> bool:
        """
        Remove a player and purge its hints, votes (cast and received) and
        accusations. Clears chameleon_id if the chameleon left; the round is
        then stalled until the host resets. Deletes the room when it is empty
        and hostless. Returns True if the room was deleted.
        """
        player = room.get_player(player_id)
        if player is None:
            return False
        room.players.remove(player)
        room.hints.pop(player_id, None)
        room.votes = {
            voter: target for voter, target in room.votes.items()
            if voter != player_id and target != player_id
        }
        room.accusations = [
            (accuser, accused) for accuser, accused in room.accusations
            if player_id not in (accuser, accused)
        ]
        if room.chameleon_id == player_id:
            room.chameleon_id = None
            logger.warning("[%s] Chameleon %s left mid-round, round stalled", room.code, player_id)
        logger.info("[%s] Player %s left (%d remaining)", room.code, player_id, len(room.players))

        if not room.players and room.host is None:
            self.delete(room.code)
            return True
        return False

    def close_room(self, room: Room) -> List[Any]:
        """Delete a room whose host is gone. Returns the connections to notify."""
        host = room.host
        recipients = [
            p.connection for p in room.players
            if p.connection is not None and p.connection is not host
        ]
        room.host = None
        self.delete(room.code)
        logger.info("[%s] Host left, room closed (%d players notified)", room.code, len(recipients))
        return recipients

    def delete(self, code: str) -> bool:
        if self._rooms.pop(code, None) is not None:
            logger.info("[%s] Room deleted (%d live)", code, len(self._rooms))
            return True
        return False
