from __future__ import annotations

import pytest

from roomrelay.config import RelaySettings
from roomrelay.relay import Relay
from tests.helpers import FakeClock, FakeTransport


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> RelaySettings:
    return RelaySettings(
        max_frame_bytes=1024,
        outbound_queue_depth=4,
        room_grace_sec=60,
        reaper_interval_sec=30,
        shutdown_drain_sec=0.5,
        protocol_error_limit=3,
        protocol_error_window_sec=30,
    )


@pytest.fixture
async def relay(settings: RelaySettings, clock: FakeClock):
    relay = Relay(settings, clock=clock)
    yield relay
    await relay.shutdown()


@pytest.fixture
def connect(relay: Relay):
    """Open a session on the relay over a FakeTransport."""

    def _connect(lang: str = "en"):
        transport = FakeTransport()
        return relay.open_session(transport, lang=lang), transport

    return _connect
