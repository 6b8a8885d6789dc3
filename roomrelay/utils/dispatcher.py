## Routes each inbound envelope by type: join, targeted signaling relay, chat fan-out.
## Protocol violations raise ProtocolError (reply + keep session), policy ones PolicyError (close).

import logging

from roomrelay.errors import PolicyError, ProtocolError
from roomrelay.schemas import SIGNAL_MODELS, ChatMessage, JoinRoom, parse_envelope
from roomrelay.utils.codec import Frame, encode_envelope, error_envelope
from roomrelay.utils.rooms import Room, RoomManager
from roomrelay.utils.session import ClientSession

log = logging.getLogger(__name__)


class Dispatcher:
    def __init__(self, rooms: RoomManager):
        self.rooms = rooms
        self._handlers = {
            "join-room": self.join,
            "offer": self.relay_signal,
            "answer": self.relay_signal,
            "ice-candidate": self.relay_signal,
            "chat-message": self.chat,
        }

    async def dispatch(self, session: ClientSession, frame: Frame) -> None:
        handler = self._handlers.get(frame.type)
        if handler is None:
            log.debug("unknown type=%s session=%s", frame.type, session.id)
            raise ProtocolError("unknown_type")
        await handler(session, frame)

    async def join(self, session: ClientSession, frame: Frame) -> None:
        if session.joined:
            raise ProtocolError("already_joined")
        msg = parse_envelope(JoinRoom, frame.envelope)

        def admitted(room: Room, count: int) -> None:
            session.bind(msg.roomId, msg.clientId)
            session.send(encode_envelope({
                "type": "room-joined",
                "roomId": msg.roomId,
                "participantCount": count,
            }))
            room.broadcast(encode_envelope({
                "type": "participant-joined",
                "clientId": msg.clientId,
                "participantCount": count,
            }), exclude=msg.clientId)

        try:
            await self.rooms.attach(msg.roomId, msg.clientId, session, admitted)
        except PolicyError as e:
            log.info("join rejected room=%s client=%s: %s", msg.roomId, msg.clientId, e)
            session.send(error_envelope(e.message(session.lang)))
            raise

    async def relay_signal(self, session: ClientSession, frame: Frame) -> None:
        self._require_joined(session)
        msg = parse_envelope(SIGNAL_MODELS[frame.type], frame.envelope)
        self._check_origin(session, msg.roomId, msg.senderId)

        ## forward the frame as received; only fill in a missing senderId
        if msg.senderId is None:
            text = encode_envelope({**frame.envelope, "senderId": session.client_id})
        else:
            text = frame.text

        def deliver(room: Room) -> bool:
            target = room.peers.get(msg.targetId)
            if target is None:
                return False
            return target.send(text)

        delivered = await self.rooms.with_room(msg.roomId, deliver)
        if delivered:
            log.debug("relay %s room=%s from=%s to=%s", frame.type, msg.roomId, session.client_id, msg.targetId)
        else:
            log.debug("relay skip %s room=%s from=%s to=%s", frame.type, msg.roomId, session.client_id, msg.targetId)

    async def chat(self, session: ClientSession, frame: Frame) -> None:
        self._require_joined(session)
        msg = parse_envelope(ChatMessage, frame.envelope)
        self._check_origin(session, msg.roomId, msg.senderId)

        text = encode_envelope({
            "type": "chat-message",
            "message": msg.message,
            "messageId": msg.messageId,
            "senderId": session.client_id,
            "timestamp": msg.timestamp,
        })
        count = await self.rooms.with_room(msg.roomId, lambda room: room.broadcast(text, exclude=session.client_id))
        log.debug("chat room=%s from=%s id=%s to=%s peers", msg.roomId, session.client_id, msg.messageId, count or 0)

    async def leave(self, session: ClientSession) -> None:
        """Detach a closing session and tell the rest of the room. No-op before join."""
        if not session.joined:
            return

        def notify(room: Room, count: int) -> None:
            room.broadcast(encode_envelope({
                "type": "participant-left",
                "clientId": session.client_id,
                "participantCount": count,
            }), exclude=session.client_id)

        await self.rooms.detach(session.room_id, session.client_id, session, notify)

    def _require_joined(self, session: ClientSession) -> None:
        if not session.joined:
            raise ProtocolError("not_joined")

    def _check_origin(self, session: ClientSession, room_id: str, sender_id) -> None:
        if room_id != session.room_id:
            raise ProtocolError("wrong_room")
        if sender_id is not None and sender_id != session.client_id:
            raise ProtocolError("sender_mismatch")
