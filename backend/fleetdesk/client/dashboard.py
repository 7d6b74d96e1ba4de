"""Dashboard-side state fed by the connection manager."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fleetdesk.client.state import ConnectionState, Phase
from fleetdesk.realtime.messages import Action, Category, DomainEvent, Origin

logger = logging.getLogger(__name__)


@dataclass
class DashboardView:
    """Latest known dashboard data, whatever transport delivered it.

    Updates are applied last-value-wins and are idempotent: replaying the
    same event leaves the view unchanged. Nothing here depends on whether
    an event came from the live channel, a poll or the cache.
    """

    recent_limit: int = 5
    stats: dict[str, Any] | None = None
    trucks: list[dict[str, Any]] = field(default_factory=list)
    maintenance: list[dict[str, Any]] = field(default_factory=list)
    phase: Phase = Phase.CONNECTING
    connection: ConnectionState = field(default_factory=ConnectionState)
    last_origin: Origin | None = None
    updated_at: datetime | None = None
    on_change: Callable[["DashboardView"], None] | None = None

    def apply(self, event: DomainEvent) -> None:
        if event.category is Category.DASHBOARD_STATS:
            if isinstance(event.payload, dict):
                self.stats = event.payload
                # Stats bodies carry their own recent lists
                if isinstance(event.payload.get("recent_trucks"), list):
                    self.trucks = list(event.payload["recent_trucks"])
                if isinstance(event.payload.get("recent_maintenance"), list):
                    self.maintenance = list(event.payload["recent_maintenance"])
        elif event.category is Category.TRUCK:
            self.trucks = self._fold(self.trucks, event)
        elif event.category is Category.MAINTENANCE:
            self.maintenance = self._fold(self.maintenance, event)

        self.last_origin = event.origin
        self.updated_at = event.emitted_at
        self._changed()

    def _fold(self, items: list[dict[str, Any]], event: DomainEvent) -> list[dict[str, Any]]:
        if event.action is Action.SNAPSHOT:
            return list(event.payload) if isinstance(event.payload, list) else items
        if not isinstance(event.payload, dict):
            logger.debug("Ignoring %s event without a record", event.category.value)
            return items

        record_id = event.payload.get("id")
        kept = [item for item in items if item.get("id") != record_id]
        if event.action is Action.DELETED:
            return kept
        if len(kept) == len(items) and event.action is Action.UPDATED:
            # An update to a record outside the recent window; keep it out
            return items
        if event.action is Action.CREATED:
            return [event.payload, *kept][: self.recent_limit]
        position = next(i for i, item in enumerate(items) if item.get("id") == record_id)
        kept.insert(position, event.payload)
        return kept

    def set_connection(self, phase: Phase, state: ConnectionState) -> None:
        self.phase = phase
        self.connection = state
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def bind(self, manager) -> Callable[[], None]:
        """Follow a ConnectionManager; returns a function that unbinds."""
        remove_events = manager.add_listener(self.apply)
        remove_state = manager.add_state_listener(self.set_connection)

        def unbind() -> None:
            remove_events()
            remove_state()

        return unbind

    @property
    def status_label(self) -> str:
        """Short text for a connection indicator."""
        return {
            Phase.LIVE: "Live",
            Phase.POLLING: "Polling",
            Phase.OFFLINE: "Offline",
            Phase.CONNECTING: "Connecting",
        }[self.phase]
