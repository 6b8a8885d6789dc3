## Error taxonomy for the relay.
## Transport: connection lost, close silently.
## Protocol: bad frame or wrong state, reply with an error envelope and keep the session.
## Policy: limits and timeouts, close the session.

from roomrelay.i18n.messages import tr

CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_POLICY = 1008
CLOSE_TOO_BIG = 1009


class RelayError(Exception):
    close_code = CLOSE_POLICY

    def __init__(self, key: str = "internal", **params):
        self.key = key
        self.params = params
        super().__init__(tr(f"error.{key}", "en", **params))

    def message(self, lang: str = "en") -> str:
        return tr(f"error.{self.key}", lang, **self.params)

    @property
    def reason(self) -> str:
        ## close reasons are limited to 123 bytes on the wire
        return str(self).encode("utf-8")[:123].decode("utf-8", "ignore")


class TransportError(RelayError):
    close_code = CLOSE_NORMAL

    def __init__(self, key: str = "disconnected", **params):
        super().__init__(key, **params)


class ProtocolError(RelayError):
    close_code = CLOSE_POLICY


class PolicyError(RelayError):
    close_code = CLOSE_POLICY


class FrameTooLarge(PolicyError):
    close_code = CLOSE_TOO_BIG

    def __init__(self, size: int = 0, limit: int = 0):
        super().__init__("frame_too_large")
        self.size = size
        self.limit = limit
