import pytest

from roomrelay.errors import PolicyError, TransportError
from roomrelay.utils.rooms import RoomManager
from roomrelay.utils.session import ClientSession
from tests.helpers import FakeClock, FakeTransport, settle


@pytest.fixture
def manager(clock: FakeClock) -> RoomManager:
    return RoomManager(grace_sec=60, clock=clock)


def _session() -> ClientSession:
    return ClientSession(FakeTransport())


async def test_attach_creates_room_and_counts(manager):
    assert await manager.attach("r1", "A", _session()) == 1
    assert await manager.attach("r1", "B", _session()) == 2
    assert await manager.attach("r2", "A", _session()) == 1
    assert set(manager.rooms) == {"r1", "r2"}


async def test_duplicate_client_id_rejected(manager):
    first = _session()
    await manager.attach("r1", "A", first)
    with pytest.raises(PolicyError) as exc:
        await manager.attach("r1", "A", _session())
    assert exc.value.key == "duplicate_client"
    room = manager.get_room("r1")
    assert room.peers == {"A": first}


async def test_attach_refuses_closing_session(manager):
    session = _session()
    await session.close()
    with pytest.raises(TransportError):
        await manager.attach("r1", "A", session)
    assert not manager.get_room("r1").peers


async def test_attach_callback_runs_with_count(manager):
    seen = []
    await manager.attach("r1", "A", _session(), lambda room, count: seen.append((room.id, count)))
    assert seen == [("r1", 1)]


async def test_detach_marks_room_empty(manager, clock):
    session = _session()
    await manager.attach("r1", "A", session)
    clock.advance(5)
    assert await manager.detach("r1", "A", session) == 0
    room = manager.rooms["r1"]
    assert room.emptied_at == clock.now
    assert await manager.detach("r1", "A", session) == 0


async def test_detach_ignores_other_session_with_same_id(manager):
    owner = _session()
    await manager.attach("r1", "A", owner)
    assert await manager.detach("r1", "A", _session()) == 1
    assert manager.get_room("r1").peers["A"] is owner


async def test_with_room_broadcast_excludes_sender(manager):
    a, b, c = _session(), _session(), _session()
    for s in (a, b, c):
        s.start()
    await manager.attach("r1", "A", a)
    await manager.attach("r1", "B", b)
    await manager.attach("r1", "C", c)

    count = await manager.with_room("r1", lambda room: room.broadcast("hello", exclude="A"))
    await settle(a, b, c)
    assert count == 2
    assert a.transport.sent == []
    assert b.transport.sent == ["hello"]
    assert c.transport.sent == ["hello"]
    for s in (a, b, c):
        await s.close()


async def test_with_room_missing_room(manager):
    assert await manager.with_room("nope", lambda room: 1) is None


async def test_sweep_keeps_room_within_grace(manager, clock):
    session = _session()
    await manager.attach("r1", "A", session)
    created = manager.rooms["r1"].created_at
    await manager.detach("r1", "A", session)

    clock.advance(59)
    assert await manager.sweep() == []
    assert await manager.attach("r1", "B", _session()) == 1
    room = manager.get_room("r1")
    assert room.created_at == created
    assert room.emptied_at is None


async def test_sweep_removes_room_after_grace(manager, clock):
    session = _session()
    await manager.attach("r1", "A", session)
    created = manager.rooms["r1"].created_at
    await manager.detach("r1", "A", session)

    clock.advance(60 + 30)
    assert await manager.sweep() == ["r1"]
    assert "r1" not in manager.rooms
    assert manager.get_room("r1") is None

    assert await manager.attach("r1", "A", _session()) == 1
    assert manager.get_room("r1").created_at > created


async def test_expired_room_is_invisible_before_sweep(manager, clock):
    session = _session()
    await manager.attach("r1", "A", session)
    old = manager.rooms["r1"]
    await manager.detach("r1", "A", session)
    clock.advance(61)

    assert manager.get_room("r1") is None
    assert manager.live_count() == 0
    await manager.attach("r1", "A", _session())
    assert manager.rooms["r1"] is not old
    assert old.removed


async def test_populated_room_never_swept(manager, clock):
    await manager.attach("r1", "A", _session())
    clock.advance(10_000)
    assert await manager.sweep() == []
    assert manager.get_room("r1") is not None
