## One ClientSession per WebSocket: bound identity, bounded outbound queue, send loop.
## Producers (dispatcher, peers) call send() which never blocks; a full queue drops the session.

import asyncio
import logging
import secrets
import time
from collections import deque
from enum import Enum
from typing import Awaitable, Callable, Deque, Optional, Protocol

from roomrelay.errors import CLOSE_NORMAL, PolicyError, ProtocolError, RelayError, TransportError
from roomrelay.utils.codec import error_envelope

log = logging.getLogger(__name__)


class Transport(Protocol):
    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None: ...


class Liveness(str, Enum):
    ALIVE = "alive"
    DRAINING = "draining"
    CLOSED = "closed"


class ClientSession:
    def __init__(
        self,
        transport: Transport,
        *,
        queue_depth: int = 64,
        drain_timeout: float = 5.0,
        error_limit: int = 10,
        error_window: float = 30.0,
        lang: str = "en",
        on_close: Optional[Callable[["ClientSession"], Awaitable[None]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.id = secrets.token_hex(4)
        self.transport = transport
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_depth)
        self.lang = lang
        self.room_id: Optional[str] = None
        self.client_id: Optional[str] = None
        self.state = Liveness.ALIVE
        self.drain_timeout = drain_timeout
        self.error_limit = error_limit
        self.error_window = error_window
        self._clock = clock
        self.connected_at = clock()
        self.last_seen = self.connected_at
        self._on_close = on_close
        self._errors: Deque[float] = deque()
        self._send_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._closing = asyncio.Event()
        self._closed = asyncio.Event()

    def __repr__(self):
        return f"<ClientSession {self.id} client={self.client_id} room={self.room_id} {self.state.value}>"

    @property
    def joined(self) -> bool:
        return self.client_id is not None

    @property
    def alive(self) -> bool:
        return self.state is Liveness.ALIVE

    @property
    def closing(self) -> bool:
        return self._closing.is_set()

    def bind(self, room_id: str, client_id: str) -> None:
        self.room_id = room_id
        self.client_id = client_id

    def touch(self) -> None:
        self.last_seen = self._clock()

    def start(self) -> None:
        if self._send_task is None:
            self._send_task = asyncio.get_running_loop().create_task(
                self._send_loop(), name=f"session-send-{self.id}"
            )

    def send(self, frame: str) -> bool:
        """Enqueue an encoded envelope. Returns False if the frame was dropped.

        The frame being written by the send loop has already left the queue, so a
        stalled writer holds up to queue depth + 1 frames before the session drops.
        """
        if self.state is not Liveness.ALIVE:
            return False
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            log.warning("outbound queue full session=%s client=%s room=%s, dropping",
                        self.id, self.client_id, self.room_id)
            self.drop(PolicyError("queue_overflow"))
            return False
        return True

    def protocol_error(self, error: ProtocolError) -> None:
        """Reply with an error envelope; escalate to a policy error past the rate limit."""
        now = self._clock()
        self._errors.append(now)
        while self._errors and now - self._errors[0] > self.error_window:
            self._errors.popleft()
        log.info("protocol error session=%s client=%s: %s", self.id, self.client_id, error)
        self.send(error_envelope(error.message(self.lang)))
        if len(self._errors) > self.error_limit:
            raise PolicyError("too_many_errors")

    def drop(self, error: RelayError) -> None:
        ## called from synchronous producers; the close runs in its own task
        if self._closing.is_set() or self._close_task is not None:
            return
        self.state = Liveness.DRAINING
        log.info("dropping session=%s client=%s room=%s: %s", self.id, self.client_id, self.room_id, error)
        self._close_task = asyncio.get_running_loop().create_task(
            self.close(error.close_code, error.reason), name=f"session-close-{self.id}"
        )

    async def wait_closing(self) -> None:
        await self._closing.wait()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "", flush: bool = False) -> None:
        """Idempotent. Detaches from the room, releases the transport, discards what is left queued."""
        if self._closing.is_set():
            await self._closed.wait()
            return
        self._closing.set()

        flush = flush and self.state is Liveness.ALIVE and self._sending()
        if self.state is Liveness.ALIVE:
            self.state = Liveness.DRAINING
        if flush:
            try:
                await asyncio.wait_for(self.queue.join(), timeout=self.drain_timeout)
            except asyncio.TimeoutError:
                log.info("drain deadline passed session=%s pending=%d", self.id, self.queue.qsize())

        self._discard_pending()
        await self._stop_send_loop()

        if self._on_close is not None:
            try:
                await self._on_close(self)
            except Exception:
                log.exception("close callback failed session=%s", self.id)

        try:
            await asyncio.wait_for(self.transport.close(code=code, reason=reason), timeout=max(self.drain_timeout, 0.1))
        except Exception as e:
            log.debug("transport close session=%s: %r", self.id, e)

        self.state = Liveness.CLOSED
        self._closed.set()
        log.debug("closed session=%s code=%s reason=%s", self.id, code, reason)

    def _sending(self) -> bool:
        return self._send_task is not None and not self._send_task.done()

    def _discard_pending(self) -> None:
        while True:
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self.queue.task_done()

    async def _stop_send_loop(self) -> None:
        task = self._send_task
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _send_loop(self) -> None:
        while True:
            frame = await self.queue.get()
            try:
                await self.transport.send_text(frame)
            except Exception as e:
                log.info("write failed session=%s client=%s: %r", self.id, self.client_id, e)
                self.drop(TransportError("write_failed"))
                return
            finally:
                self.queue.task_done()
