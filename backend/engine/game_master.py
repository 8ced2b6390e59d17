"""
Game Master — pure deterministic Python, no I/O.

Responsibilities:
- Round setup (category, coordinate, chameleon) from an injectable RNG
- Phase transitions and their guards:
    lobby → hint → accusation → voting → (chameleon_guess) → reveal → finished
  and host reset back to lobby from any phase
- Vote tallying and tie-breaking
- Final outcome, including the chameleon's last-chance guess

Every rejected action raises a GameError before touching the room, so a
failed call leaves the room exactly as it was. Callers hold the room lock.
"""
import logging
import random
from collections import Counter
from typing import Dict, List, Optional

from config import settings
from models.categories import CATEGORIES
from models.errors import InvalidPayload, PhaseViolation, PreconditionFailed, RoleViolation
from models.game import Category, Coordinate, Phase, ResultReason, Room, RoundResult

logger = logging.getLogger(__name__)


def normalize_word(word: str) -> str:
    return word.strip().casefold()


class GameMaster:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        categories: Optional[List[Category]] = None,
        accusation_phase: Optional[bool] = None,
        max_hint_length: Optional[int] = None,
    ):
        self.rng = rng or random.Random(settings.random_seed)
        self.categories = categories or CATEGORIES
        self.accusation_phase = settings.accusation_phase if accusation_phase is None else accusation_phase
        self.max_hint_length = max_hint_length or settings.max_hint_length

    # ── Guards ────────────────────────────────────────────────────────────────

    @staticmethod
    def _require_phase(room: Room, phase: Phase, message: str) -> None:
        if room.phase != phase:
            raise PhaseViolation(message=message)

    @staticmethod
    def _require_player(room: Room, player_id: str) -> None:
        if not room.has_player(player_id):
            raise RoleViolation("not_player", "Only players in this round can do that")

    @staticmethod
    def _require_live_round(room: Room) -> None:
        if room.chameleon_id is None:
            raise PreconditionFailed("round_stalled", "The chameleon left; the host must reset the room")

    def _require_target(self, room: Room, target_id: str) -> str:
        target_id = (target_id or "").strip()
        if not target_id:
            raise InvalidPayload(message="A target player is required")
        if not room.has_player(target_id):
            raise InvalidPayload("invalid_target", f"'{target_id}' is not a player in this room")
        return target_id

    # ── Round start ───────────────────────────────────────────────────────────

    def start_round(self, room: Room, is_host: bool) -> None:
        if not is_host:
            raise RoleViolation(message="Only the host can start the game")
        if room.phase != Phase.LOBBY:
            raise PreconditionFailed("game_already_started", "Game already started, reset first")
        if len(room.players) < room.min_players:
            raise PreconditionFailed(
                "not_enough_players",
                f"Need at least {room.min_players} players (have {len(room.players)})",
            )

        category = self.rng.choice(self.categories)
        room.category = category
        room.coordinate = Coordinate(
            row=self.rng.randrange(len(category.grid)),
            col=self.rng.randrange(len(category.grid[0])),
        )
        room.chameleon_id = self.rng.choice(room.players).id
        room.clear_round()
        room.phase = Phase.HINT
        logger.info(
            "[%s] Round started: category=%s chameleon=%s",
            room.code, category.name, room.chameleon_id,
        )

    # ── Hints ─────────────────────────────────────────────────────────────────

    def submit_hint(self, room: Room, player_id: str, hint: str) -> Phase:
        """Record (or overwrite) a hint; advance once every player has one in."""
        self._require_phase(room, Phase.HINT, "Hints can only be submitted during the hint phase")
        self._require_player(room, player_id)
        self._require_live_round(room)
        text = (hint or "").strip() if isinstance(hint, str) else ""
        if not text:
            raise InvalidPayload("invalid_hint", "Hint must be a non-empty string")
        if len(text) > self.max_hint_length:
            raise InvalidPayload("invalid_hint", f"Hint must be at most {self.max_hint_length} characters")

        room.hints[player_id] = text
        if len(room.hints) == len(room.players):
            room.phase = Phase.ACCUSATION if self.accusation_phase else Phase.VOTING
            room.votes = {}
            logger.info("[%s] All %d hints in → %s", room.code, len(room.hints), room.phase.value)
        return room.phase

    # ── Accusation ────────────────────────────────────────────────────────────

    def accuse(self, room: Room, player_id: str, accused_id: str) -> Phase:
        self._require_phase(room, Phase.ACCUSATION, "Accusations are only allowed during the accusation phase")
        self._require_player(room, player_id)
        self._require_live_round(room)
        accused_id = self._require_target(room, accused_id)

        room.accusations.append((player_id, accused_id))
        room.votes = {}
        room.phase = Phase.VOTING
        logger.info("[%s] %s accused %s → voting", room.code, player_id, accused_id)
        return room.phase

    # ── Voting ────────────────────────────────────────────────────────────────

    def vote(self, room: Room, player_id: str, target_id: str) -> Phase:
        """Record (or overwrite) a vote; resolve once every player has voted."""
        self._require_phase(room, Phase.VOTING, "Votes can only be cast during the voting phase")
        self._require_player(room, player_id)
        self._require_live_round(room)
        target_id = self._require_target(room, target_id)

        room.votes[player_id] = target_id
        if len(room.votes) == len(room.players):
            return self.resolve_votes(room)
        return room.phase

    @staticmethod
    def tally(votes: Dict[str, str]) -> Dict[str, int]:
        return dict(Counter(votes.values()))

    def pick_accused(self, room: Room) -> Optional[str]:
        """
        First recorded accusation wins; otherwise the single most-voted player.
        A tie at the top means no consensus (None).
        """
        if room.accusations:
            return room.accusations[0][1]
        tally = self.tally(room.votes)
        if not tally:
            return None
        highest = max(tally.values())
        winners = [pid for pid, count in tally.items() if count == highest]
        return winners[0] if len(winners) == 1 else None

    def resolve_votes(self, room: Room) -> Phase:
        accused_id = self.pick_accused(room)
        room.accused_id = accused_id
        secret_word = room.secret_word or ""
        logger.info("[%s] Votes resolved: tally=%s accused=%s", room.code, self.tally(room.votes), accused_id)

        if accused_id is None:
            self._finish(room, RoundResult(
                success=False,
                secret_word=secret_word,
                chameleon_id=room.chameleon_id,
                accused_id=None,
                reason=ResultReason.NO_CONSENSUS,
            ))
        elif accused_id == room.chameleon_id:
            if self.accusation_phase:
                room.phase = Phase.CHAMELEON_GUESS
                logger.info("[%s] Chameleon %s caught → awaiting guess", room.code, accused_id)
            else:
                self._finish(room, RoundResult(
                    success=True,
                    secret_word=secret_word,
                    chameleon_id=room.chameleon_id,
                    accused_id=accused_id,
                    reason=ResultReason.CHAMELEON_CAUGHT,
                ))
        else:
            self._finish(room, RoundResult(
                success=False,
                secret_word=secret_word,
                chameleon_id=room.chameleon_id,
                accused_id=accused_id,
                reason=ResultReason.WRONG_ACCUSATION,
            ))
        return room.phase

    # ── Chameleon's last chance ───────────────────────────────────────────────

    def chameleon_guess(self, room: Room, player_id: str, guess: str) -> RoundResult:
        self._require_phase(room, Phase.CHAMELEON_GUESS, "No guess is expected right now")
        self._require_live_round(room)
        if player_id != room.chameleon_id:
            raise RoleViolation("not_chameleon", "Only the chameleon may guess the secret word")
        text = guess.strip() if isinstance(guess, str) else ""
        if not text:
            raise InvalidPayload(message="Guess must be a non-empty string")

        secret_word = room.secret_word or ""
        correct = normalize_word(text) == normalize_word(secret_word)
        return self._finish(room, RoundResult(
            success=not correct,
            secret_word=secret_word,
            chameleon_id=room.chameleon_id,
            accused_id=room.accused_id,
            reason=ResultReason.CHAMELEON_GUESSED_WORD if correct else ResultReason.CHAMELEON_GUESS_WRONG,
            guess=text,
        ))

    def _finish(self, room: Room, result: RoundResult) -> RoundResult:
        room.phase = Phase.REVEAL
        room.outcome = result
        room.phase = Phase.FINISHED
        logger.info(
            "[%s] Round over (%s): %s",
            room.code, result.reason.value,
            "group wins" if result.success else "chameleon wins",
        )
        return result

    # ── Reset ─────────────────────────────────────────────────────────────────

    def reset(self, room: Room, is_host: bool) -> None:
        if not is_host:
            raise RoleViolation(message="Only the host can reset the room")
        room.category = None
        room.coordinate = None
        room.chameleon_id = None
        room.clear_round()
        room.phase = Phase.LOBBY
        logger.info("[%s] Reset to lobby (%d players kept)", room.code, len(room.players))
