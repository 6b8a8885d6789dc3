import asyncio

from roomrelay.utils.reaper import Reaper
from roomrelay.utils.rooms import RoomManager
from roomrelay.utils.session import ClientSession
from tests.helpers import FakeClock, FakeTransport


async def test_reaper_sweeps_on_interval():
    clock = FakeClock()
    manager = RoomManager(grace_sec=1, clock=clock)
    session = ClientSession(FakeTransport())
    await manager.attach("r1", "A", session)
    await manager.detach("r1", "A", session)
    clock.advance(2)

    reaper = Reaper(manager, interval=0.01)
    reaper.start()
    assert reaper.running
    for _ in range(50):
        if "r1" not in manager.rooms:
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert "r1" not in manager.rooms
    assert not reaper.running


async def test_reaper_stop_without_start():
    reaper = Reaper(RoomManager(), interval=1)
    await reaper.stop()
    assert not reaper.running
