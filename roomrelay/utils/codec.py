## Frame codec: one UTF-8 JSON object per WebSocket frame, tagged by "type"

import json
from dataclasses import dataclass
from typing import Any, Dict, Union

from roomrelay.errors import FrameTooLarge, ProtocolError


@dataclass(frozen=True)
class Frame:
    text: str  ## the frame exactly as received, for verbatim relay
    envelope: Dict[str, Any]

    @property
    def type(self) -> str:
        return self.envelope["type"]


def decode_frame(data: Union[str, bytes, None], max_bytes: int) -> Frame:
    if data is None:
        raise ProtocolError("malformed")

    if isinstance(data, (bytes, bytearray)):
        if len(data) > max_bytes:
            raise FrameTooLarge(len(data), max_bytes)
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError:
            raise ProtocolError("malformed") from None
    else:
        text = data
        size = len(text.encode("utf-8", "surrogatepass"))
        if size > max_bytes:
            raise FrameTooLarge(size, max_bytes)

    try:
        envelope = json.loads(text)
    except ValueError:
        raise ProtocolError("malformed") from None

    if not isinstance(envelope, dict) or not isinstance(envelope.get("type"), str):
        raise ProtocolError("malformed")
    return Frame(text=text, envelope=envelope)


def encode_envelope(envelope: Dict[str, Any]) -> str:
    return json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))


def error_envelope(message: str) -> str:
    return encode_envelope({"type": "error", "message": message})
