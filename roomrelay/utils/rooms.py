## Room registry. Each Room has its own lock for participant changes and broadcasts;
## the registry lock only guards adding and removing rooms.

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, TypeVar

from roomrelay.errors import PolicyError, TransportError

if TYPE_CHECKING:
    from roomrelay.utils.session import ClientSession

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Room:
    id: str
    created_at: float
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    peers: Dict[str, "ClientSession"] = field(default_factory=dict)
    emptied_at: Optional[float] = None  ## set while the room has no participants
    removed: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def list_peers_except(self, client_id: Optional[str]) -> List["ClientSession"]:
        return [p for k, p in self.peers.items() if k != client_id]

    def broadcast(self, frame: str, exclude: Optional[str] = None) -> int:
        """Enqueue one encoded envelope for every participant but `exclude`."""
        delivered = 0
        for peer in self.list_peers_except(exclude):
            if peer.send(frame):
                delivered += 1
        return delivered

    def expired(self, now: float, grace: float) -> bool:
        return not self.peers and self.emptied_at is not None and now - self.emptied_at >= grace


class RoomManager:
    def __init__(self, grace_sec: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.rooms: Dict[str, Room] = {}
        self.lock = asyncio.Lock()
        self.grace_sec = grace_sec
        self._clock = clock

    def _live(self, room_id: str) -> Optional[Room]:
        room = self.rooms.get(room_id)
        if room is None or room.removed or room.expired(self._clock(), self.grace_sec):
            return None
        return room

    async def _open(self, room_id: str) -> Room:
        async with self.lock:
            room = self.rooms.get(room_id)
            if room is not None and room.expired(self._clock(), self.grace_sec):
                room.removed = True
                log.info("room replaced after grace window room=%s", room_id)
                room = None
            if room is None:
                now = self._clock()
                room = Room(id=room_id, created_at=now, emptied_at=now)
                self.rooms[room_id] = room
                log.info("room created room=%s", room_id)
            return room

    async def attach(
        self,
        room_id: str,
        client_id: str,
        session: "ClientSession",
        fn: Optional[Callable[[Room, int], None]] = None,
    ) -> int:
        """Insert `session` as `client_id`; `fn(room, count)` runs under the room lock right after."""
        while True:
            room = await self._open(room_id)
            async with room.lock:
                if room.removed:
                    ## swept while we waited for the lock
                    continue
                if not session.alive:
                    raise TransportError()
                if client_id in room.peers:
                    raise PolicyError("duplicate_client")
                room.peers[client_id] = session
                room.emptied_at = None
                count = len(room.peers)
                log.info("joined room=%s client=%s size=%d", room_id, client_id, count)
                if fn is not None:
                    fn(room, count)
                return count

    async def detach(
        self,
        room_id: str,
        client_id: str,
        session: Optional["ClientSession"] = None,
        fn: Optional[Callable[[Room, int], None]] = None,
    ) -> int:
        """Remove `client_id` (only if it is `session`, when given). Returns the remaining count."""
        room = self.rooms.get(room_id)
        if room is None:
            return 0
        async with room.lock:
            current = room.peers.get(client_id)
            if current is None or (session is not None and current is not session):
                return len(room.peers)
            del room.peers[client_id]
            count = len(room.peers)
            if not count:
                room.emptied_at = self._clock()
            log.info("left room=%s client=%s size=%d", room_id, client_id, count)
            if fn is not None:
                fn(room, count)
            return count

    async def with_room(self, room_id: str, fn: Callable[[Room], T]) -> Optional[T]:
        """Run `fn` over a live room under its lock. `fn` may only enqueue, never await."""
        room = self._live(room_id)
        if room is None:
            return None
        async with room.lock:
            if room.removed:
                return None
            return fn(room)

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._live(room_id)

    def live_count(self) -> int:
        now = self._clock()
        return sum(1 for r in self.rooms.values() if not r.expired(now, self.grace_sec))

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """Remove rooms that have been empty for longer than the grace window."""
        now = self._clock() if now is None else now
        reaped = []
        async with self.lock:
            for room_id, room in list(self.rooms.items()):
                if room.expired(now, self.grace_sec) and not room.lock.locked():
                    room.removed = True
                    del self.rooms[room_id]
                    reaped.append(room_id)
        for room_id in reaped:
            log.info("room reaped room=%s", room_id)
        return reaped
