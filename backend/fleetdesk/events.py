"""Event emission for real-time dashboard updates.

Mutation handlers call these after their change is committed. Emission is
fire-and-forget: a missing hub or a failing broadcast is logged and
swallowed so the mutation still reports success to its caller.
"""

import asyncio
import logging
from typing import Any

from fleetdesk.realtime.messages import (
    DASHBOARD_GROUP,
    Action,
    Category,
    DomainEvent,
)
from fleetdesk.realtime.registry import HubRef

logger = logging.getLogger(__name__)


def emit(
    hub_ref: HubRef, event: DomainEvent, group: str = DASHBOARD_GROUP
) -> asyncio.Task | None:
    """Hand an event to the hub and return at once.

    Returns the background broadcast task (its result is the number of
    clients reached), or None when nothing was scheduled.
    """
    hub = hub_ref.get()
    if hub is None:
        logger.debug("No broadcast hub yet, skipping %s event", event.push_event)
        return None
    try:
        return hub.publish(group, event)
    except Exception:
        logger.exception("Broadcast of %s event failed", event.push_event)
        return None


def notify_truck_change(
    hub_ref: HubRef, action: Action | str, truck: dict[str, Any]
) -> asyncio.Task | None:
    return emit(
        hub_ref,
        DomainEvent(category=Category.TRUCK, action=Action(action), payload=truck),
    )


def notify_maintenance_change(
    hub_ref: HubRef, action: Action | str, record: dict[str, Any]
) -> asyncio.Task | None:
    return emit(
        hub_ref,
        DomainEvent(category=Category.MAINTENANCE, action=Action(action), payload=record),
    )


def notify_dashboard_stats(
    hub_ref: HubRef, stats: dict[str, Any], update_type: str = "stats"
) -> asyncio.Task | None:
    return emit(
        hub_ref,
        DomainEvent(
            category=Category.DASHBOARD_STATS,
            action=Action.SNAPSHOT,
            payload=stats,
            update_type=update_type,
        ),
    )
