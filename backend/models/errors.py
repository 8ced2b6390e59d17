"""
Game errors — every rejected action maps to one of these.

The hub turns a GameError into a single {"type": "error"} reply to the
sender; the room is left exactly as it was.
"""
from typing import Dict, Any


class GameError(Exception):
    code = "error"
    message = "Request rejected"

    def __init__(self, code: str = "", message: str = ""):
        self.code = code or self.code
        self.message = message or self.message
        super().__init__(f"{self.code}: {self.message}")

    def to_wire(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class MalformedMessage(GameError):
    code = "invalid_message"
    message = "Message must be a JSON object with a string 'type'"


class UnknownMessageType(GameError):
    code = "unknown_type"
    message = "Unknown message type"


class RoomNotFound(GameError):
    code = "room_not_found"
    message = "Room not found"


class RoleViolation(GameError):
    code = "not_host"
    message = "Only the host can do that"


class PhaseViolation(GameError):
    code = "wrong_phase"
    message = "Action not allowed in the current phase"


class PreconditionFailed(GameError):
    code = "precondition_failed"
    message = "Room is not ready for that action"


class InvalidPayload(GameError):
    code = "invalid_payload"
    message = "Missing or invalid field"
