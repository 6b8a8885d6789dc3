from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

from roomrelay.relay import Relay
from roomrelay.utils.codec import decode_frame


class FakeTransport:
    """In-memory stand-in for a WebSocket: records frames written and the close call."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed: Optional[tuple[int, Any]] = None
        self.fail = False
        self.gate: Optional[asyncio.Event] = None

    async def send_text(self, data: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Any = None) -> None:
        self.closed = (code, reason)

    @property
    def envelopes(self) -> list[dict]:
        return [json.loads(t) for t in self.sent]

    def of_type(self, msg_type: str) -> list[dict]:
        return [e for e in self.envelopes if e.get("type") == msg_type]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def settle(*sessions) -> None:
    """Let scheduled tasks run and wait until the given sessions have written everything queued."""
    for _ in range(5):
        await asyncio.sleep(0)
    live = [s for s in sessions if not s.closing]
    if live:
        await asyncio.wait_for(asyncio.gather(*(s.queue.join() for s in live)), timeout=1)
    for _ in range(5):
        await asyncio.sleep(0)


async def dispatch(relay: Relay, session, **envelope) -> None:
    frame = decode_frame(json.dumps(envelope), relay.settings.max_frame_bytes)
    await relay.dispatcher.dispatch(session, frame)


async def join(relay: Relay, session, room_id: str, client_id: str) -> None:
    await dispatch(relay, session, type="join-room", roomId=room_id, clientId=client_id)
