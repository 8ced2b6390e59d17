"""
WebSocket endpoint — one socket per participant.

URL: /ws

Connection flow:
  1. Accept → register with the hub, which sends {"type": "connected", "data": {"id"}}
  2. Message loop: every text frame goes to GameHub.handle_text
  3. On disconnect: GameHub.disconnect (host → room closed, player → room_update)

Frames are JSON objects {"type": str, "data": {...}} in both directions.
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from services.game_hub import GameHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


class WebSocketConnection:
    """Transport handle the hub routes to; `id` is set by the registry."""

    def __init__(self, ws: WebSocket):
        self.ws = ws
        self.id = ""
        self.is_alive = True

    @property
    def is_open(self) -> bool:
        return (
            self.ws.client_state == WebSocketState.CONNECTED
            and self.ws.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        await self.ws.send_text(text)

    async def close(self, code: int = 1001) -> None:
        if self.ws.application_state != WebSocketState.DISCONNECTED:
            await self.ws.close(code=code)

    def __repr__(self) -> str:
        return f"<WebSocketConnection {self.id or '?'}>"


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    hub: GameHub = ws.app.state.hub

    await ws.accept()
    conn = WebSocketConnection(ws)
    conn_id = await hub.connect(conn)
    logger.debug("%s connected", conn_id)

    try:
        while conn.is_open:
            raw = await ws.receive_text()
            await hub.handle_text(conn, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(conn)
        logger.debug("%s disconnected", conn_id)
