"""Server configuration read from the environment."""

import os
from dataclasses import dataclass
from functools import lru_cache

# Env var names
ENV_HOST = "MAFIA_HOST"
ENV_PORT = "MAFIA_PORT"
ENV_PLATFORM_PORT = "PORT"
ENV_LOG_LEVEL = "MAFIA_LOG_LEVEL"
ENV_WS_PING_INTERVAL = "MAFIA_WS_PING_INTERVAL"
ENV_PRIVATE_INSPECTIONS = "MAFIA_PRIVATE_INSPECTIONS"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_WS_PING_INTERVAL = 25.0

# Query defaults for /ws when the client omits them
DEFAULT_ROOM_CODE = "ROOM"
DEFAULT_PLAYER_NAME = "Guest"

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    ws_ping_interval: float = DEFAULT_WS_PING_INTERVAL
    private_inspections: bool = False


def _env_port() -> int:
    raw = os.environ.get(ENV_PORT) or os.environ.get(ENV_PLATFORM_PORT)
    try:
        return int(raw) if raw else DEFAULT_PORT
    except ValueError:
        return DEFAULT_PORT


def load_settings() -> Settings:
    """Build Settings from the environment; malformed numbers fall back to defaults."""
    try:
        ping = float(os.environ.get(ENV_WS_PING_INTERVAL, DEFAULT_WS_PING_INTERVAL))
    except ValueError:
        ping = DEFAULT_WS_PING_INTERVAL
    return Settings(
        host=os.environ.get(ENV_HOST, DEFAULT_HOST),
        port=_env_port(),
        log_level=os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper(),
        ws_ping_interval=ping,
        private_inspections=os.environ.get(ENV_PRIVATE_INSPECTIONS, "").strip().lower() in _TRUE_VALUES,
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
