"""Connection state exposed to the dashboard consumer."""

import dataclasses
from datetime import datetime
from enum import Enum


class Phase(str, Enum):
    """Where the manager's state machine currently is."""

    CONNECTING = "connecting"
    LIVE = "live"
    POLLING = "polling"
    OFFLINE = "offline"


class Transport(str, Enum):
    LIVE = "live"
    POLLING = "polling"
    OFFLINE = "offline"


@dataclasses.dataclass(frozen=True)
class ConnectionState:
    """Snapshot of how fresh the dashboard data currently is.

    ``transport == LIVE`` implies ``is_connected``; ``transport == OFFLINE``
    implies not connected. Violations raise ``ValueError`` at construction.
    """

    is_connected: bool = False
    transport: Transport = Transport.OFFLINE
    last_connected_at: datetime | None = None
    retry_count: int = 0

    def __post_init__(self) -> None:
        if self.transport is Transport.LIVE and not self.is_connected:
            raise ValueError("A live transport must be connected")
        if self.transport is Transport.OFFLINE and self.is_connected:
            raise ValueError("An offline transport cannot be connected")
        if self.retry_count < 0:
            raise ValueError("retry_count cannot be negative")

    def replace(self, **changes) -> "ConnectionState":
        return dataclasses.replace(self, **changes)
