import asyncio
import logging
from typing import Optional

from roomrelay.utils.rooms import RoomManager

log = logging.getLogger(__name__)


class Reaper:
    """Sweeps empty rooms out of the registry every `interval` seconds."""

    def __init__(self, rooms: RoomManager, interval: float = 30.0):
        self.rooms = rooms
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run(), name="room-reaper")
            log.info("reaper started interval=%ss", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("reaper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                reaped = await self.rooms.sweep()
            except Exception:
                log.exception("sweep failed")
                continue
            if reaped:
                log.info("sweep removed %d room(s), %d left", len(reaped), len(self.rooms.rooms))
