"""
Liveness Monitor — drops connections that stop answering probes.

Every `interval` seconds, for each registered connection:
  - no "pong" since the last probe → terminate it through GameHub.disconnect
    (the same path as a normal close), then close the socket
  - otherwise clear its is_alive flag and send a fresh {"type": "ping"}
"""
import asyncio
import logging
from contextlib import suppress
from typing import Optional

from config import settings
from services.game_hub import GameHub

logger = logging.getLogger(__name__)


class LivenessMonitor:
    def __init__(self, hub: GameHub, interval: Optional[float] = None):
        self.hub = hub
        self.interval = interval or settings.liveness_interval_sec
        self._task: Optional[asyncio.Task] = None

    async def sweep(self) -> int:
        """One probe round. Returns the number of connections terminated."""
        terminated = 0
        for conn in self.hub.registry.connections():
            if not getattr(conn, "is_alive", False):
                logger.info("Connection %s missed a liveness probe, terminating", conn.id)
                await self.terminate(conn)
                terminated += 1
                continue
            conn.is_alive = False
            await self.hub.broadcaster.send(conn, "ping", {})
        return terminated

    async def terminate(self, conn) -> None:
        await self.hub.disconnect(conn)
        try:
            await conn.close()
        except Exception as exc:
            logger.debug("close of %s failed: %s", conn.id, exc)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Liveness sweep failed")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
