"""
Game Hub — routes decoded client messages to the Game Master and fans out
the results.

Client → server message types:
  create_room       — caller becomes host of a new room
  join_room         — {code, name}; lobby only
  host_start_game   — host only; deals category, coordinate and chameleon
  submit_hint       — {hint}; hint phase
  accuse            — {accusedId}; accusation phase
  vote              — {targetId}; voting phase
  chameleon_guess   — {guess}; chameleon only, after being caught
  host_reset        — host only; back to lobby from any phase
  ping / pong       — keep-alive; pong acknowledges a liveness probe

Every handler that touches a room runs under that room's lock, so a
check-then-advance (e.g. "last hint in → accusation") is atomic per room
and outbound messages for one room never interleave.
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from config import settings
from engine.game_master import GameMaster
from models.errors import GameError, InvalidPayload, MalformedMessage, RoomNotFound, UnknownMessageType
from models.game import (
    AccuseData, ChameleonGuessData, JoinRoomData, Phase, Role, Room,
    SubmitHintData, VoteData, WSMessage,
)
from services.broadcaster import Broadcaster
from services.code_generator import normalize_room_code
from services.connection_registry import Binding, ConnectionRegistry
from services.room_store import RoomStore

logger = logging.getLogger(__name__)


def _parse(model: Type[BaseModel], data: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        raise InvalidPayload(message=f"Missing or invalid field: {fields}" if fields else "")


class GameHub:
    def __init__(
        self,
        store: Optional[RoomStore] = None,
        registry: Optional[ConnectionRegistry] = None,
        game_master: Optional[GameMaster] = None,
        broadcaster: Optional[Broadcaster] = None,
    ):
        self.store = store if store is not None else RoomStore()
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.game_master = game_master or GameMaster()
        self.broadcaster = broadcaster or Broadcaster()

    # ── Connection lifecycle ──────────────────────────────────────────────────

    async def connect(self, connection: Any) -> str:
        conn_id = self.registry.register(connection)
        connection.is_alive = True
        await self.broadcaster.send(connection, "connected", {"id": conn_id})
        return conn_id

    async def disconnect(self, connection: Any) -> None:
        """
        Cleanup for a closed connection. Graceful close and liveness
        termination both land here. Safe to call more than once.
        """
        binding = self.registry.unregister(connection.id)
        if binding is None or binding.room_code is None:
            return
        room = self.store.get(binding.room_code)
        if room is None:
            return

        async with room.lock:
            if self.store.get(room.code) is not room:
                return
            if binding.role == Role.HOST:
                recipients = self.store.close_room(room)
                for conn in recipients:
                    self.registry.unbind(conn.id)
                await self.broadcaster.send_many(recipients, "room_closed", {})
            else:
                deleted = self.store.remove_player(room, connection.id)
                if not deleted:
                    await self.broadcaster.broadcast_room_update(room)

    # ── Inbound ───────────────────────────────────────────────────────────────

    async def handle_text(self, connection: Any, raw: str) -> None:
        msg_type = ""
        try:
            try:
                body = json.loads(raw)
            except json.JSONDecodeError:
                raise MalformedMessage("invalid_json", "Invalid JSON")
            if not isinstance(body, dict):
                raise MalformedMessage()
            if body.get("data") is None:
                body["data"] = {}
            try:
                msg = WSMessage.model_validate(body)
            except ValidationError:
                raise MalformedMessage()
            msg_type = msg.type
            await self._dispatch(connection, msg)
        except GameError as exc:
            logger.debug("%s rejected (type=%s): %s", connection.id, msg_type, exc)
            await self.broadcaster.send(connection, "error", exc.to_wire())
        except Exception:
            logger.exception("Unhandled error in handle_text (conn=%s, type=%s)", connection.id, msg_type)
            await self.broadcaster.send(connection, "error", {
                "code": "server_error", "message": "Internal server error",
            })

    async def _dispatch(self, connection: Any, msg: WSMessage) -> None:
        binding = self.registry.get(connection.id)
        if binding is None:
            # Unregistered mid-flight (terminated by the liveness monitor)
            return
        msg_type, data = msg.type, msg.data

        if msg_type == "pong":
            connection.is_alive = True

        elif msg_type == "ping":
            await self.broadcaster.send(connection, "pong", {})

        elif msg_type == "create_room":
            await self._on_create_room(connection, binding)

        elif msg_type == "join_room":
            await self._on_join_room(connection, binding, data)

        elif msg_type == "host_start_game":
            await self._on_start_game(connection, binding)

        elif msg_type == "submit_hint":
            await self._on_submit_hint(connection, binding, data)

        elif msg_type == "accuse":
            await self._on_accuse(connection, binding, data)

        elif msg_type == "vote":
            await self._on_vote(connection, binding, data)

        elif msg_type == "chameleon_guess":
            await self._on_chameleon_guess(connection, binding, data)

        elif msg_type == "host_reset":
            await self._on_host_reset(connection, binding)

        else:
            raise UnknownMessageType(message=f"Unknown message type: '{msg_type}'")

    @asynccontextmanager
    async def _locked_room(self, code: Optional[str]) -> AsyncIterator[Room]:
        room = self.store.require(code)
        async with room.lock:
            # The room may have been closed while we waited for the lock
            if self.store.get(room.code) is not room:
                raise RoomNotFound()
            yield room

    @staticmethod
    def _bound_code(binding: Binding) -> str:
        if binding.room_code is None:
            raise RoomNotFound("not_in_room", "Join or create a room first")
        return binding.room_code

    # ── Handlers ──────────────────────────────────────────────────────────────

    async def _on_create_room(self, connection: Any, binding: Binding) -> None:
        if binding.room_code is not None:
            raise GameError("already_in_room", f"Already in room {binding.room_code}")
        room = self.store.create_room(host=connection)
        self.registry.bind(connection.id, room.code, Role.HOST)
        async with room.lock:
            await self.broadcaster.send(connection, "room_created", {"code": room.code})
            await self.broadcaster.broadcast_room_update(room)

    async def _on_join_room(self, connection: Any, binding: Binding, data: Dict) -> None:
        payload = _parse(JoinRoomData, data)
        code = normalize_room_code(payload.code)
        name = payload.name.strip()
        if not code or not name:
            raise InvalidPayload("missing_code_or_name", "Room code and name are required")
        if len(name) > settings.max_name_length:
            raise InvalidPayload(message=f"Name must be at most {settings.max_name_length} characters")
        # A host may also play in its own room; nobody can sit in two rooms
        if binding.room_code is not None and not (
            binding.role == Role.HOST and binding.room_code == code
        ):
            raise GameError("already_in_room", f"Already in room {binding.room_code}")

        async with self._locked_room(code) as room:
            self.store.add_player(room, connection.id, name, connection)
            if binding.room_code is None:
                self.registry.bind(connection.id, room.code, Role.PLAYER)
            await self.broadcaster.broadcast_room_update(room)

    async def _on_start_game(self, connection: Any, binding: Binding) -> None:
        async with self._locked_room(self._bound_code(binding)) as room:
            self.game_master.start_round(room, is_host=binding.role == Role.HOST)

            coord = room.coordinate.to_wire()
            for p in room.players:
                if p.id == room.chameleon_id:
                    await self.broadcaster.send(p.connection, "game_start_player", {"role": "chameleon"})
                else:
                    await self.broadcaster.send(p.connection, "game_start_player", {
                        "role": "not_chameleon",
                        "coord": coord,
                        "grid": room.category.grid,
                        "category": room.category.name,
                    })
            # A host that also plays only gets its player view
            if room.host is not None and not room.has_player(room.host.id):
                await self.broadcaster.send(room.host, "game_start_host", {
                    "coord": coord,
                    "grid": room.category.grid,
                    "category": room.category.name,
                    "chameleonId": room.chameleon_id,
                })
            await self.broadcaster.broadcast_room_update(room)

    async def _on_submit_hint(self, connection: Any, binding: Binding, data: Dict) -> None:
        payload = _parse(SubmitHintData, data)
        async with self._locked_room(self._bound_code(binding)) as room:
            phase = self.game_master.submit_hint(room, connection.id, payload.hint)
            if phase == Phase.HINT:
                await self.broadcaster.broadcast(room, "hint_progress", {
                    "submitted": len(room.hints),
                    "total": len(room.players),
                })
            else:
                await self.broadcaster.broadcast(room, "hints_revealed", {"hints": dict(room.hints)})
                await self.broadcaster.broadcast_room_update(room)

    async def _on_accuse(self, connection: Any, binding: Binding, data: Dict) -> None:
        payload = _parse(AccuseData, data)
        async with self._locked_room(self._bound_code(binding)) as room:
            self.game_master.accuse(room, connection.id, payload.accusedId)
            accuser_id, accused_id = room.accusations[-1]
            await self.broadcaster.broadcast(room, "voting_start", {
                "accusedId": accused_id,
                "accuserId": accuser_id,
            })
            await self.broadcaster.broadcast_room_update(room)

    async def _on_vote(self, connection: Any, binding: Binding, data: Dict) -> None:
        payload = _parse(VoteData, data)
        async with self._locked_room(self._bound_code(binding)) as room:
            phase = self.game_master.vote(room, connection.id, payload.targetId)
            if phase == Phase.VOTING:
                await self.broadcaster.broadcast(room, "vote_progress", {
                    "submitted": len(room.votes),
                    "total": len(room.players),
                })
                return
            if phase == Phase.CHAMELEON_GUESS:
                await self.broadcaster.broadcast(room, "chameleon_caught", {
                    "accusedId": room.accused_id,
                    "chameleonId": room.chameleon_id,
                })
            else:
                await self.broadcaster.broadcast(room, "round_result", room.outcome.to_wire())
            await self.broadcaster.broadcast_room_update(room)

    async def _on_chameleon_guess(self, connection: Any, binding: Binding, data: Dict) -> None:
        payload = _parse(ChameleonGuessData, data)
        async with self._locked_room(self._bound_code(binding)) as room:
            result = self.game_master.chameleon_guess(room, connection.id, payload.guess)
            await self.broadcaster.broadcast(room, "round_result", result.to_wire())
            await self.broadcaster.broadcast_room_update(room)

    async def _on_host_reset(self, connection: Any, binding: Binding) -> None:
        async with self._locked_room(self._bound_code(binding)) as room:
            self.game_master.reset(room, is_host=binding.role == Role.HOST)
            await self.broadcaster.broadcast_room_update(room)
