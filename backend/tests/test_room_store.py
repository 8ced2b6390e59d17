import pytest

from conftest import FakeConnection, ScriptedRandom
from models.errors import PreconditionFailed, RoomNotFound
from models.game import Phase
from services.code_generator import ROOM_CODE_ALPHABET, generate_room_code, normalize_room_code
from services.connection_registry import ConnectionRegistry
from services.room_store import RoomStore


# ── Code generator ────────────────────────────────────────────────────────────

def test_alphabet_has_no_confusable_characters():
    for ch in "0O1IL":
        assert ch not in ROOM_CODE_ALPHABET
    assert len(set(ROOM_CODE_ALPHABET)) == len(ROOM_CODE_ALPHABET)


def test_generator_resamples_on_collision():
    rng = ScriptedRandom(choices=list("AAAA") + list("AAAA") + list("BCDE"))
    assert generate_room_code({"AAAA"}, length=4, rng=rng) == "BCDE"


def test_generator_fails_when_every_code_is_taken():
    with pytest.raises(RuntimeError):
        generate_room_code(set(), length=1, taken_count=len(ROOM_CODE_ALPHABET))


def test_normalize_room_code():
    assert normalize_room_code("  k7pq ") == "K7PQ"


def test_live_rooms_never_share_a_code():
    store = RoomStore(code_length=1)
    codes = [store.create_room().code for _ in range(len(ROOM_CODE_ALPHABET))]
    assert len(set(codes)) == len(codes)
    with pytest.raises(RuntimeError):
        store.create_room()


def test_codes_reused_after_room_is_destroyed():
    store = RoomStore(rng=ScriptedRandom(choices=list("K7PQ") + list("K7PQ")))
    first = store.create_room()
    assert store.delete(first.code)
    assert store.create_room().code == "K7PQ"


# ── Joining ───────────────────────────────────────────────────────────────────

def test_ninth_join_is_rejected_and_count_stays_at_capacity():
    store = RoomStore(capacity=8)
    room = store.create_room(host=FakeConnection())
    for i in range(8):
        store.add_player(room, f"p{i}", f"P{i}")
    with pytest.raises(PreconditionFailed) as exc:
        store.add_player(room, "p9", "Late")
    assert exc.value.code == "room_full"
    assert len(room.players) == 8


def test_join_rejected_once_game_started():
    store = RoomStore()
    room = store.create_room()
    room.phase = Phase.HINT
    with pytest.raises(PreconditionFailed) as exc:
        store.add_player(room, "p1", "Ann")
    assert exc.value.code == "game_already_started"
    assert room.players == []


def test_lookup_is_case_insensitive_and_require_raises():
    store = RoomStore(rng=ScriptedRandom(choices=list("K7PQ")))
    room = store.create_room()
    assert store.get("k7pq") is room
    with pytest.raises(RoomNotFound):
        store.require("ZZZZ")
    with pytest.raises(RoomNotFound):
        store.require(None)


# ── Leaving ───────────────────────────────────────────────────────────────────

def test_remove_player_purges_every_reference():
    store = RoomStore()
    room = store.create_room(host=FakeConnection())
    for pid in ("p1", "p2", "p3", "p4"):
        store.add_player(room, pid, pid.upper())
    room.phase = Phase.VOTING
    room.chameleon_id = "p1"
    room.hints = {"p1": "a", "p2": "b", "p3": "c", "p4": "d"}
    room.votes = {"p2": "p3", "p3": "p1", "p4": "p2"}
    room.accusations = [("p2", "p4"), ("p3", "p1")]

    assert store.remove_player(room, "p2") is False
    assert room.player_ids() == ["p1", "p3", "p4"]
    assert "p2" not in room.hints
    assert room.votes == {"p3": "p1"}
    assert room.accusations == [("p3", "p1")]
    assert room.chameleon_id == "p1"
    assert not room.is_stalled()


def test_chameleon_leaving_stalls_the_round():
    store = RoomStore()
    room = store.create_room(host=FakeConnection())
    for pid in ("p1", "p2", "p3"):
        store.add_player(room, pid, pid)
    room.phase = Phase.HINT
    room.chameleon_id = "p3"
    store.remove_player(room, "p3")
    assert room.chameleon_id is None
    assert room.is_stalled()
    assert room.to_public()["stalled"] is True


def test_hostless_room_is_deleted_when_empty():
    store = RoomStore()
    room = store.create_room(host=None)
    store.add_player(room, "p1", "Ann")
    assert store.remove_player(room, "p1") is True
    assert room.code not in store


def test_hosted_room_survives_when_empty():
    store = RoomStore()
    room = store.create_room(host=FakeConnection())
    store.add_player(room, "p1", "Ann")
    assert store.remove_player(room, "p1") is False
    assert room.code in store


def test_close_room_returns_player_connections_and_leaves_them_open():
    store = RoomStore()
    host = FakeConnection()
    room = store.create_room(host=host)
    conns = [FakeConnection() for _ in range(3)]
    for i, conn in enumerate(conns):
        store.add_player(room, f"p{i}", f"P{i}", conn)
    store.add_player(room, "h", "Host", host)  # host also playing

    recipients = store.close_room(room)
    assert recipients == conns
    assert room.code not in store
    assert all(not c.closed for c in conns + [host])


# ── Connection registry ───────────────────────────────────────────────────────

def test_registry_ids_are_unique_and_bindings_fixed():
    registry = ConnectionRegistry()
    a, b = FakeConnection(), FakeConnection()
    assert registry.register(a) == "p1"
    assert registry.register(b) == "p2"
    assert a.id == "p1"

    registry.bind("p1", "K7PQ", "host")
    with pytest.raises(ValueError):
        registry.bind("p1", "ZZZZ", "player")

    binding = registry.unregister("p1")
    assert binding.room_code == "K7PQ"
    assert registry.unregister("p1") is None
    assert len(registry) == 1
