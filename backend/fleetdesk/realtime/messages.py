"""Domain events and the wire envelopes they travel in.

Shared by the server side (hub, mutation handlers) and the client side
(connection manager, dashboard view) so both agree on one shape.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DASHBOARD_GROUP = "dashboard"

# Client -> hub signals
JOIN_DASHBOARD = "join-dashboard"
LEAVE_DASHBOARD = "leave-dashboard"
MESSAGE = "message"


class Category(str, Enum):
    DASHBOARD_STATS = "dashboard-stats"
    TRUCK = "truck"
    MAINTENANCE = "maintenance"


class Action(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    SNAPSHOT = "snapshot"


class Origin(str, Enum):
    LIVE = "live"
    POLL = "poll"
    CACHE = "cache"


# Hub -> client event names, one per category
PUSH_EVENTS: dict[Category, str] = {
    Category.DASHBOARD_STATS: "dashboard-update",
    Category.TRUCK: "truck-update",
    Category.MAINTENANCE: "maintenance-update",
}
_CATEGORY_BY_EVENT = {name: category for category, name in PUSH_EVENTS.items()}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DomainEvent(BaseModel):
    """A notification describing a committed change to a tracked resource.

    Immutable once created. ``payload`` is an opaque record (or list of
    records for snapshots); ``update_type`` is only meaningful for
    dashboard-stats events and mirrors the ``type`` field on the wire.
    """

    model_config = ConfigDict(frozen=True)

    category: Category
    action: Action
    payload: Any = None
    emitted_at: datetime = Field(default_factory=utcnow)
    origin: Origin = Origin.LIVE
    update_type: str = "stats"

    @property
    def push_event(self) -> str:
        return PUSH_EVENTS[self.category]

    def to_push_message(self) -> dict[str, Any]:
        """Build the ``{"event": ..., "data": ...}`` frame sent to subscribers."""
        dumped = self.model_dump(mode="json")
        data: dict[str, Any] = {
            "data": dumped["payload"],
            "timestamp": dumped["emitted_at"],
        }
        if self.category is Category.DASHBOARD_STATS:
            data["type"] = self.update_type
        else:
            data["action"] = self.action.value
        return {"event": self.push_event, "data": data}


def event_from_push(
    event_name: str,
    data: Any,
    origin: Origin = Origin.LIVE,
) -> DomainEvent | None:
    """Normalize a pushed frame into a DomainEvent.

    Returns None for event names that are not dashboard pushes or for
    malformed bodies.
    """
    category = _CATEGORY_BY_EVENT.get(event_name)
    if category is None or not isinstance(data, dict):
        return None

    fields: dict[str, Any] = {
        "category": category,
        "payload": data.get("data"),
        "origin": origin,
    }
    if category is Category.DASHBOARD_STATS:
        fields["action"] = Action.SNAPSHOT
        if data.get("type"):
            fields["update_type"] = data["type"]
    else:
        fields["action"] = data.get("action")
    if data.get("timestamp"):
        fields["emitted_at"] = data["timestamp"]

    try:
        return DomainEvent(**fields)
    except ValidationError as exc:
        logger.warning("Dropping malformed %s push: %s", event_name, exc)
        return None
