"""
Room HTTP endpoints (read-only; all game actions go through the WebSocket).

Routes:
  GET /api/rooms/{code}   — Public room state (same payload as room_update)
"""
import logging

from fastapi import APIRouter, HTTPException, Request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])


@router.get("/rooms/{code}")
async def get_room(code: str, request: Request):
    """
    Public room state.
    Never includes the secret word, the coordinate or the chameleon.
    """
    room = request.app.state.hub.store.get(code)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room.to_public()
