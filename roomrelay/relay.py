## Process-wide relay state: registry, dispatcher, reaper and the set of open sessions.

import asyncio
import logging
import time
from typing import Callable, Set

from roomrelay.config import RelaySettings
from roomrelay.errors import CLOSE_GOING_AWAY
from roomrelay.i18n.messages import tr
from roomrelay.utils.dispatcher import Dispatcher
from roomrelay.utils.reaper import Reaper
from roomrelay.utils.rooms import RoomManager
from roomrelay.utils.session import ClientSession, Transport

log = logging.getLogger(__name__)


class Relay:
    def __init__(self, settings: RelaySettings, clock: Callable[[], float] = time.monotonic):
        self.settings = settings
        self.clock = clock
        self.rooms = RoomManager(grace_sec=settings.room_grace_sec, clock=clock)
        self.dispatcher = Dispatcher(self.rooms)
        self.reaper = Reaper(self.rooms, interval=settings.reaper_interval_sec)
        self.sessions: Set[ClientSession] = set()
        self.accepting = True

    def open_session(self, transport: Transport, lang: str = "en") -> ClientSession:
        session = ClientSession(
            transport,
            queue_depth=self.settings.outbound_queue_depth,
            drain_timeout=self.settings.shutdown_drain_sec,
            error_limit=self.settings.protocol_error_limit,
            error_window=self.settings.protocol_error_window_sec,
            lang=lang,
            on_close=self._session_closed,
            clock=self.clock,
        )
        self.sessions.add(session)
        session.start()
        return session

    async def _session_closed(self, session: ClientSession) -> None:
        self.sessions.discard(session)
        await self.dispatcher.leave(session)

    async def start(self) -> None:
        self.accepting = True
        self.reaper.start()
        log.info("relay started")

    async def shutdown(self) -> None:
        """Stop accepting, stop the reaper, then close every session within the drain deadline."""
        self.accepting = False
        await self.reaper.stop()
        sessions = list(self.sessions)
        if sessions:
            log.info("closing %d session(s)", len(sessions))
            closing = [
                asyncio.ensure_future(s.close(CLOSE_GOING_AWAY, tr("error.shutdown"), flush=True))
                for s in sessions
            ]
            ## each close is bounded by the drain deadline on its own; this caps the total
            _, pending = await asyncio.wait(closing, timeout=self.settings.shutdown_drain_sec * 2 + 1)
            for task in pending:
                task.cancel()
        log.info("relay stopped")
