from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class ClientSettings(BaseSettings):
    """Dashboard client settings, read from FLEET_* environment variables."""

    # Endpoint override used as one negotiation candidate (http(s) or ws(s))
    SOCKET_URL: str | None = None
    # Where the REST endpoints live; also plays the part of the page origin
    API_BASE_URL: str = "http://localhost:3000"
    SOCKET_PATH: str = "/api/socketio"
    LOCALHOST_FALLBACKS: list[str] = [
        "ws://localhost:3000",
        "ws://127.0.0.1:3000",
    ]

    HANDSHAKE_TIMEOUT: float = 10.0   # seconds per candidate
    POLLING_INTERVAL: float = 30.0
    REQUEST_TIMEOUT: float = 10.0
    RECENT_LIMIT: int = 5

    ENABLE_POLLING_FALLBACK: bool = True
    ENABLE_OFFLINE_CACHE: bool = True
    CACHE_DIR: str | None = None      # unset keeps the cache in memory
    CACHE_TTL: float = 300.0          # freshness window, seconds
    CACHE_PREFIX: str = "dashboard_"

    NETWORK_CHECK_INTERVAL: float = 30.0

    model_config = SettingsConfigDict(
        env_prefix="FLEET_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache
def get_client_settings() -> ClientSettings:
    """Cached settings singleton."""
    return ClientSettings()
