from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from roomrelay.errors import ProtocolError

NonEmpty = Annotated[str, Field(min_length=1)]


class Envelope(BaseModel):
    ## unknown fields are kept so relayed envelopes stay intact
    model_config = ConfigDict(extra="allow")

    type: str


class JoinRoom(Envelope):
    roomId: NonEmpty
    clientId: NonEmpty


class Signal(Envelope):
    roomId: NonEmpty
    targetId: NonEmpty
    senderId: Optional[NonEmpty] = None


class Offer(Signal):
    offer: Dict[str, Any]


class Answer(Signal):
    answer: Dict[str, Any]


class IceCandidate(Signal):
    candidate: Any


class ChatMessage(Envelope):
    roomId: NonEmpty
    message: str
    messageId: NonEmpty
    senderId: Optional[NonEmpty] = None
    timestamp: Any


SIGNAL_MODELS = {
    "offer": Offer,
    "answer": Answer,
    "ice-candidate": IceCandidate,
}


def parse_envelope(model, envelope: Dict[str, Any]):
    """Validate a decoded envelope; a failing field becomes a ProtocolError."""
    try:
        return model.model_validate(envelope)
    except ValidationError as e:
        errors = e.errors()
        loc = errors[0].get("loc", ()) if errors else ()
        field = ".".join(str(part) for part in loc) or "envelope"
        raise ProtocolError("invalid_field", field=field) from None
