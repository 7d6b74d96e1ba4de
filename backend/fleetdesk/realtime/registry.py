"""Process-wide handle on the one canonical broadcast hub.

The handle is built once at process start and handed to both the
WebSocket listener and the mutation handlers, so emitting and
broadcasting always go through the same hub instance.
"""

import logging
from enum import Enum

from fastapi.requests import HTTPConnection

from fleetdesk.realtime.hub import BroadcastHub

logger = logging.getLogger(__name__)


class HubState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    CLOSED = "closed"


class HubUnavailable(RuntimeError):
    """Raised by HubRef.require() when no hub is installed."""


class HubRef:
    """Holds the hub once it exists; reads before that see ``None``."""

    def __init__(self):
        self._hub: BroadcastHub | None = None
        self._state = HubState.PENDING

    @property
    def state(self) -> HubState:
        return self._state

    def install(self, hub: BroadcastHub) -> None:
        if self._hub is not None and self._hub is not hub:
            raise RuntimeError("A different broadcast hub is already installed")
        self._hub = hub
        self._state = HubState.READY
        logger.info("Broadcast hub installed")

    def get(self) -> BroadcastHub | None:
        return self._hub

    def require(self) -> BroadcastHub:
        if self._hub is None:
            raise HubUnavailable(f"Broadcast hub is {self._state.value}")
        return self._hub

    async def shutdown(self) -> None:
        hub, self._hub = self._hub, None
        self._state = HubState.CLOSED
        if hub is not None:
            await hub.close()
            logger.info("Broadcast hub torn down")


def get_hub_ref(conn: HTTPConnection) -> HubRef:
    """FastAPI dependency returning the handle set up by the app lifespan."""
    return conn.app.state.hub_ref
