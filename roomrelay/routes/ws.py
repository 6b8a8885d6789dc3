## WebSocket signaling route: one ClientSession per connection, receive loop with idle and join timeouts
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket

from roomrelay.errors import (
    CLOSE_GOING_AWAY,
    CLOSE_NORMAL,
    CLOSE_POLICY,
    PolicyError,
    ProtocolError,
    RelayError,
    TransportError,
)
from roomrelay.i18n.messages import tr
from roomrelay.relay import Relay
from roomrelay.utils.codec import decode_frame
from roomrelay.utils.session import ClientSession

router = APIRouter()
log = logging.getLogger(__name__)


def _timeout(relay: Relay, session: ClientSession):
    """Seconds until the next deadline, and the error raised when it passes."""
    settings = relay.settings
    now = relay.clock()
    idle_left = session.last_seen + settings.idle_timeout_sec - now
    if not session.joined:
        join_left = session.connected_at + settings.join_timeout_sec - now
        if join_left <= idle_left:
            return max(join_left, 0), PolicyError("join_timeout")
    return max(idle_left, 0), PolicyError("idle_timeout")


async def _next_message(websocket: WebSocket, relay: Relay, session: ClientSession) -> Optional[dict]:
    """Next ASGI message, or None once the session is being closed from elsewhere."""
    timeout, expired = _timeout(relay, session)
    receive = asyncio.ensure_future(websocket.receive())
    closing = asyncio.ensure_future(session.wait_closing())
    try:
        done, _ = await asyncio.wait({receive, closing}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        closing.cancel()
        if not receive.done():
            receive.cancel()
    if receive in done:
        return receive.result()
    if closing in done:
        return None
    raise expired


@router.websocket("/")
@router.websocket("/ws")
async def ws_relay(websocket: WebSocket, lang: str = "en"):
    relay: Relay = websocket.app.state.relay
    if not relay.accepting:
        await websocket.close(code=CLOSE_GOING_AWAY)
        return

    await websocket.accept()
    session = relay.open_session(websocket, lang=lang)
    log.info("connected session=%s peer=%s", session.id, websocket.client)

    code, reason, flush = CLOSE_NORMAL, "", False
    try:
        while True:
            message = await _next_message(websocket, relay, session)
            if message is None:
                break
            if message["type"] == "websocket.disconnect":
                log.info("disconnect session=%s client=%s room=%s code=%s",
                         session.id, session.client_id, session.room_id, message.get("code"))
                break

            session.touch()
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            try:
                frame = decode_frame(data, relay.settings.max_frame_bytes)
                await relay.dispatcher.dispatch(session, frame)
            except ProtocolError as e:
                session.protocol_error(e)
    except TransportError as e:
        log.info("transport lost session=%s: %s", session.id, e)
    except PolicyError as e:
        log.info("policy close session=%s client=%s room=%s: %s",
                 session.id, session.client_id, session.room_id, e)
        code, reason, flush = e.close_code, e.reason, True
    except RelayError as e:
        log.error("relay error session=%s: %s", session.id, e, exc_info=True)
        code, reason, flush = e.close_code, e.reason, True
    except Exception:
        log.exception("internal error session=%s client=%s room=%s", session.id, session.client_id, session.room_id)
        code, reason, flush = CLOSE_POLICY, tr("error.internal"), True
    finally:
        ## the close must finish even if this handler is being cancelled
        await asyncio.shield(session.close(code, reason, flush=flush))
