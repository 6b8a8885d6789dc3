import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_list(name: str, default: str) -> List[str]:
    return [u.strip() for u in os.getenv(name, default).split(",") if u.strip()]


@dataclass(frozen=True)
class RelaySettings:
    host: str = "0.0.0.0"
    port: int = 8080

    ## Frame and queue limits
    max_frame_bytes: int = 65536
    outbound_queue_depth: int = 64

    ## Session timeouts (seconds)
    idle_timeout_sec: float = 120.0
    join_timeout_sec: float = 30.0

    ## Empty rooms linger for room_grace_sec; the reaper sweeps every reaper_interval_sec
    room_grace_sec: float = 60.0
    reaper_interval_sec: float = 30.0

    ## Deadline for flushing outbound queues on close and shutdown
    shutdown_drain_sec: float = 5.0

    ## More than protocol_error_limit errors within the window ends the session
    protocol_error_limit: int = 10
    protocol_error_window_sec: float = 30.0

    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    ssl_certfile: Optional[str] = None
    ssl_keyfile: Optional[str] = None

    @classmethod
    def from_env(cls) -> "RelaySettings":
        settings = cls(
            host=os.getenv("HOST", cls.host),
            port=_env_int("PORT", cls.port),
            max_frame_bytes=_env_int("MAX_FRAME_BYTES", cls.max_frame_bytes),
            outbound_queue_depth=_env_int("OUTBOUND_QUEUE_DEPTH", cls.outbound_queue_depth),
            idle_timeout_sec=_env_float("IDLE_TIMEOUT_SEC", cls.idle_timeout_sec),
            join_timeout_sec=_env_float("JOIN_TIMEOUT_SEC", cls.join_timeout_sec),
            room_grace_sec=_env_float("ROOM_GRACE_SEC", cls.room_grace_sec),
            reaper_interval_sec=_env_float("REAPER_INTERVAL_SEC", cls.reaper_interval_sec),
            shutdown_drain_sec=_env_float("SHUTDOWN_DRAIN_SEC", cls.shutdown_drain_sec),
            protocol_error_limit=_env_int("PROTOCOL_ERROR_LIMIT", cls.protocol_error_limit),
            protocol_error_window_sec=_env_float("PROTOCOL_ERROR_WINDOW_SEC", cls.protocol_error_window_sec),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper().strip(),
            cors_origins=_env_list("CORS_ORIGINS", "*"),
            ssl_certfile=os.getenv("SSL_CERTFILE") or None,
            ssl_keyfile=os.getenv("SSL_KEYFILE") or None,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.max_frame_bytes <= 0:
            raise ValueError("MAX_FRAME_BYTES must be positive")
        if self.outbound_queue_depth <= 0:
            raise ValueError("OUTBOUND_QUEUE_DEPTH must be positive")
        for name in ("idle_timeout_sec", "join_timeout_sec", "room_grace_sec",
                     "reaper_interval_sec", "protocol_error_window_sec"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive")
        if self.shutdown_drain_sec < 0:
            raise ValueError("SHUTDOWN_DRAIN_SEC must not be negative")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, got {self.log_level!r}")
