import json
import random
from typing import Any, Dict, List, Optional, Sequence

import pytest

from engine.game_master import GameMaster
from models.categories import CATEGORIES
from models.game import Player, Room
from services.broadcaster import Broadcaster
from services.connection_registry import ConnectionRegistry
from services.game_hub import GameHub
from services.room_store import RoomStore


class ScriptedRandom(random.Random):
    """
    Random source that replays scripted picks before falling back to a seeded RNG.

    choices: each entry is an index into the sequence, or the element itself.
    ranges:  values returned by randrange().
    """

    def __init__(self, choices: Sequence[Any] = (), ranges: Sequence[int] = ()):
        super().__init__(1234)
        self._choices = list(choices)
        self._ranges = list(ranges)

    def choice(self, seq):
        if self._choices:
            pick = self._choices.pop(0)
            if isinstance(pick, int):
                return seq[pick]
            assert pick in seq, f"{pick!r} not in {seq!r}"
            return pick
        return super().choice(seq)

    def randrange(self, *args, **kwargs):
        if self._ranges:
            return self._ranges.pop(0)
        return super().randrange(*args, **kwargs)


class FakeConnection:
    def __init__(self):
        self.id = ""
        self.is_alive = True
        self.is_open = True
        self.closed = False
        self.raw: List[str] = []

    async def send_text(self, text: str) -> None:
        self.raw.append(text)

    async def close(self, code: int = 1001) -> None:
        self.is_open = False
        self.closed = True

    @property
    def sent(self) -> List[Dict[str, Any]]:
        return [json.loads(t) for t in self.raw]

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]

    def of_type(self, msg_type: str) -> List[Dict[str, Any]]:
        return [m["data"] for m in self.sent if m["type"] == msg_type]

    def last(self, msg_type: str) -> Optional[Dict[str, Any]]:
        found = self.of_type(msg_type)
        return found[-1] if found else None

    def clear(self) -> None:
        self.raw.clear()


FRUITS = next(c for c in CATEGORIES if c.name == "Fruits")


def make_room(n_players: int = 3, capacity: int = 8, min_players: int = 3) -> Room:
    room = Room(code="TEST", capacity=capacity, min_players=min_players)
    for i in range(n_players):
        room.players.append(Player(id=f"p{i + 1}", name=f"Player {i + 1}"))
    return room


def make_game_master(chameleon: int = 0, row: int = 1, col: int = 2, accusation_phase: bool = True) -> GameMaster:
    """Game master that always deals Fruits at (row, col) with players[chameleon] as chameleon."""
    return GameMaster(
        rng=ScriptedRandom(choices=[0, chameleon], ranges=[row, col]),
        categories=[FRUITS],
        accusation_phase=accusation_phase,
    )


def make_hub(
    chameleon: int = 0,
    row: int = 1,
    col: int = 2,
    accusation_phase: bool = True,
    capacity: int = 8,
    code: str = "K7PQ",
) -> GameHub:
    return GameHub(
        store=RoomStore(capacity=capacity, min_players=3, code_length=4, rng=ScriptedRandom(choices=list(code))),
        registry=ConnectionRegistry(),
        game_master=make_game_master(chameleon, row, col, accusation_phase),
        broadcaster=Broadcaster(),
    )


async def send(hub: GameHub, conn: FakeConnection, msg_type: str, data: Optional[Dict[str, Any]] = None) -> None:
    body: Dict[str, Any] = {"type": msg_type}
    if data is not None:
        body["data"] = data
    await hub.handle_text(conn, json.dumps(body))


async def setup_room(hub: GameHub, names: Sequence[str]):
    """Host creates a room and every name joins it. Returns (host, players, code)."""
    host = FakeConnection()
    await hub.connect(host)
    await send(hub, host, "create_room")
    code = host.last("room_created")["code"]
    players = []
    for name in names:
        conn = FakeConnection()
        await hub.connect(conn)
        await send(hub, conn, "join_room", {"code": code, "name": name})
        players.append(conn)
    return host, players, code


@pytest.fixture
def room():
    return make_room()


@pytest.fixture
def hub():
    return make_hub()
