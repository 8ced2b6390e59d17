import asyncio
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum
from datetime import datetime, timezone


def _utcnow() -> datetime:
    """Timezone-aware UTC datetime (replaces deprecated datetime.utcnow)."""
    return datetime.now(timezone.utc)


class Phase(str, Enum):
    LOBBY = "lobby"
    HINT = "hint"
    ACCUSATION = "accusation"
    VOTING = "voting"
    CHAMELEON_GUESS = "chameleon_guess"
    REVEAL = "reveal"
    FINISHED = "finished"


# Phases in which a round is under way (hint through guess)
ROUND_PHASES = (Phase.HINT, Phase.ACCUSATION, Phase.VOTING, Phase.CHAMELEON_GUESS)


class Role(str, Enum):
    HOST = "host"
    PLAYER = "player"


class ResultReason(str, Enum):
    NO_CONSENSUS = "no_consensus"
    WRONG_ACCUSATION = "wrong_accusation"
    CHAMELEON_CAUGHT = "chameleon_caught"            # short graph: caught = group win
    CHAMELEON_GUESSED_WORD = "chameleon_guessed_word"
    CHAMELEON_GUESS_WRONG = "chameleon_guess_wrong"


class Category(BaseModel):
    name: str
    grid: List[List[str]]

    def word_at(self, coord: "Coordinate") -> str:
        return self.grid[coord.row][coord.col]


class Coordinate(BaseModel):
    row: int
    col: int

    def to_wire(self) -> Dict[str, int]:
        return {"r": self.row, "c": self.col}


class RoundResult(BaseModel):
    success: bool  # True = the group caught the chameleon
    secret_word: str
    chameleon_id: str
    accused_id: Optional[str] = None
    reason: ResultReason
    guess: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "secretWord": self.secret_word,
            "chameleonId": self.chameleon_id,
            "accusedId": self.accused_id,
            "reason": self.reason.value,
        }
        if self.guess is not None:
            payload["guess"] = self.guess
        return payload


class Player(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    name: str
    # Routing pointer only; the room never closes it
    connection: Any = Field(default=None, exclude=True, repr=False)
    joined_at: datetime = Field(default_factory=_utcnow)

    def to_public(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


class Room(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    code: str
    players: List[Player] = []
    host: Any = Field(default=None, exclude=True, repr=False)
    phase: Phase = Phase.LOBBY
    capacity: int = 8
    min_players: int = 3
    category: Optional[Category] = None
    coordinate: Optional[Coordinate] = None
    chameleon_id: Optional[str] = None
    hints: Dict[str, str] = {}
    votes: Dict[str, str] = {}
    accusations: List[Tuple[str, str]] = []  # (accuser_id, accused_id), in order
    accused_id: Optional[str] = None
    outcome: Optional[RoundResult] = None
    created_at: datetime = Field(default_factory=_utcnow)
    lock: asyncio.Lock = Field(default_factory=asyncio.Lock, exclude=True, repr=False)

    # ── Lookups ───────────────────────────────────────────────────────────────

    def player_ids(self) -> List[str]:
        return [p.id for p in self.players]

    def get_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def has_player(self, player_id: Optional[str]) -> bool:
        return player_id is not None and self.get_player(player_id) is not None

    @property
    def secret_word(self) -> Optional[str]:
        if self.category is None or self.coordinate is None:
            return None
        return self.category.word_at(self.coordinate)

    def connections(self) -> List[Any]:
        """Player connections plus the host, each once, in display order."""
        seen: List[Any] = []
        for conn in [p.connection for p in self.players] + [self.host]:
            if conn is not None and not any(conn is s for s in seen):
                seen.append(conn)
        return seen

    # ── Round bookkeeping ─────────────────────────────────────────────────────

    def clear_round(self) -> None:
        self.hints = {}
        self.votes = {}
        self.accusations = []
        self.accused_id = None
        self.outcome = None

    def is_stalled(self) -> bool:
        """True when the chameleon left a running round; only a reset recovers it."""
        return self.phase in ROUND_PHASES and self.chameleon_id is None

    def to_public(self) -> Dict[str, Any]:
        """Payload of room_update; never includes the secret or the chameleon."""
        return {
            "code": self.code,
            "players": [p.to_public() for p in self.players],
            "state": self.phase.value,
            "category": self.category.name if self.category else None,
            "playerCount": len(self.players),
            "stalled": self.is_stalled(),
        }


# ── WebSocket message shapes ──────────────────────────────────────────────────

class WSMessage(BaseModel):
    type: str
    data: Dict[str, Any] = {}


class JoinRoomData(BaseModel):
    code: str
    name: str


class SubmitHintData(BaseModel):
    hint: str


class AccuseData(BaseModel):
    accusedId: str


class VoteData(BaseModel):
    targetId: str


class ChameleonGuessData(BaseModel):
    guess: str
