"""Keeps one dashboard session as fresh as the network allows.

The manager tries the live channel first, falls back to REST polling
when every candidate endpoint fails, and replays cached data when the
device has no network at all::

    Connecting --handshake ok--> Live --drop--> Offline --> Polling
        |                                                     ^
        +--all candidates failed-----------------------------+
        +--no network / polling disabled--> Offline

Transitions are serialized by one asyncio lock. Every negotiation gets a
generation number; a handshake or a drop notice that belongs to an older
generation is discarded. Polling never upgrades itself to live: only a
network-online notice or ``reconnect()`` starts a new negotiation.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from datetime import datetime, timezone
from functools import partial
from typing import Any

from fleetdesk.client.cache import DashboardCache, JsonFileStore, MemoryStore
from fleetdesk.client.config import ClientSettings, get_client_settings
from fleetdesk.client.endpoints import build_candidate_urls
from fleetdesk.client.network import NetworkMonitor
from fleetdesk.client.poller import RESOURCE_BY_CATEGORY, RESOURCES, Poller, Resource
from fleetdesk.client.state import ConnectionState, Phase, Transport
from fleetdesk.client.transport import Connector, LiveConnection, WebSocketTransport
from fleetdesk.realtime.messages import (
    JOIN_DASHBOARD,
    LEAVE_DASHBOARD,
    Action,
    Category,
    DomainEvent,
    Origin,
    event_from_push,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[DomainEvent], None]
StateListener = Callable[[Phase, ConnectionState], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _build_cache(settings: ClientSettings) -> DashboardCache:
    store = JsonFileStore(settings.CACHE_DIR) if settings.CACHE_DIR else MemoryStore()
    return DashboardCache(
        store=store,
        ttl=settings.CACHE_TTL,
        prefix=settings.CACHE_PREFIX,
        enabled=settings.ENABLE_OFFLINE_CACHE,
    )


class ConnectionManager:
    """Client side of the real-time dashboard channel.

    Collaborators are injectable so the state machine can be driven
    without sockets or HTTP:

    - ``connector`` opens a live connection to one candidate URL.
    - ``poller`` fetches a REST resource.
    - ``cache`` stores last-known-good payloads.
    - ``network`` reports device connectivity.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        connector: Connector | None = None,
        poller: Poller | None = None,
        cache: DashboardCache | None = None,
        network: NetworkMonitor | None = None,
        overrides: Iterable[str] | None = None,
    ):
        self.settings = settings or get_client_settings()
        self.connector = connector or WebSocketTransport(self.settings.SOCKET_PATH)
        self.poller = poller or Poller(
            self.settings.API_BASE_URL,
            timeout=self.settings.REQUEST_TIMEOUT,
            recent_limit=self.settings.RECENT_LIMIT,
        )
        self.cache = cache or _build_cache(self.settings)
        self.network = network or NetworkMonitor()
        self.overrides = list(overrides or ())

        self._phase = Phase.CONNECTING
        self._state = ConnectionState()
        self._lock = asyncio.Lock()
        self._generation = 0
        self._connection: LiveConnection | None = None
        self._negotiation: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()
        self._background: set[asyncio.Task] = set()
        self._listeners: list[EventListener] = []
        self._state_listeners: list[StateListener] = []
        self._unsubscribe_network: Callable[[], None] | None = None
        self.attempted_urls: list[str] = []

    # ── public surface ──────────────────────────────

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def connection(self) -> LiveConnection | None:
        return self._connection

    def candidate_urls(self) -> list[str]:
        return build_candidate_urls(
            overrides=self.overrides,
            env_url=self.settings.SOCKET_URL,
            origin=self.settings.API_BASE_URL,
            fallbacks=self.settings.LOCALHOST_FALLBACKS,
        )

    def add_listener(self, listener: EventListener) -> Callable[[], None]:
        """Receive every DomainEvent, whatever transport produced it."""
        self._listeners.append(listener)
        return partial(self._discard, self._listeners, listener)

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        self._state_listeners.append(listener)
        return partial(self._discard, self._state_listeners, listener)

    @staticmethod
    def _discard(listeners: list, listener: Any) -> None:
        if listener in listeners:
            listeners.remove(listener)

    async def start(self) -> None:
        """Subscribe to connectivity changes and run the first negotiation."""
        if self._unsubscribe_network is None:
            self._unsubscribe_network = self.network.subscribe(
                self._on_network_online, self._on_network_offline
            )
        await self._connect()

    async def reconnect(self) -> None:
        """Tear everything down and negotiate again from the first candidate."""
        logger.info("Manual reconnect triggered")
        await self._connect()

    async def stop(self) -> None:
        """End the session: stop polling, leave the room, close the channel.

        Idempotent; the manager can be started again afterwards.
        """
        if self._unsubscribe_network is not None:
            self._unsubscribe_network()
            self._unsubscribe_network = None

        async with self._lock:
            self._generation += 1
            self._cancel_negotiation()
            await self._stop_polling()
            await self._close_live(leave=True)
            self._set_phase(Phase.OFFLINE, self._offline_state())

        current = asyncio.current_task()
        pending = [t for t in self._background if t is not current]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        await self.stop()
        await self.poller.aclose()

    async def __aenter__(self) -> "ConnectionManager":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── negotiation ─────────────────────────────────

    async def _connect(self) -> None:
        async with self._lock:
            await self._teardown()
            self._generation += 1
            generation = self._generation
            self._set_phase(Phase.CONNECTING, self._offline_state())

            if not self.network.is_online:
                logger.info("Network is offline, serving cached data if available")
                self._set_phase(Phase.OFFLINE, self._offline_state())
                self._serve_cache(RESOURCES)
                return

            task = asyncio.create_task(self._negotiate(generation))
            self._negotiation = task
        # Outside the lock so a reconnect or offline notice can cancel it
        await asyncio.wait({task})

    async def _negotiate(self, generation: int) -> None:
        self.attempted_urls = []
        for url in self.candidate_urls():
            self.attempted_urls.append(url)
            logger.info("Attempting live connection to %s", url)
            try:
                conn = await asyncio.wait_for(
                    self.connector(
                        url,
                        partial(self._on_push, generation),
                        partial(self._on_live_closed, generation),
                    ),
                    timeout=self.settings.HANDSHAKE_TIMEOUT,
                )
            except asyncio.TimeoutError:
                logger.warning("Live connection to %s timed out", url)
                continue
            except Exception as exc:
                logger.warning("Live connection to %s failed: %s", url, exc)
                continue

            try:
                async with self._lock:
                    if generation != self._generation:
                        logger.info("Discarding superseded connection to %s", url)
                        await conn.close()
                        return
                    await self._activate_live(conn)
            except asyncio.CancelledError:
                if self._connection is not conn:
                    await conn.close()
                raise
            return

        logger.error("All live connection attempts failed")
        async with self._lock:
            if generation != self._generation:
                return
            self._negotiation = None
            retries = self._state.retry_count + 1
            if self.settings.ENABLE_POLLING_FALLBACK:
                self._state = self._state.replace(retry_count=retries)
                await self._start_polling()
            else:
                self._set_phase(Phase.OFFLINE, self._offline_state(retry_count=retries))

    async def _activate_live(self, conn: LiveConnection) -> None:
        await self._stop_polling()
        self._connection = conn
        self._negotiation = None
        self._set_phase(
            Phase.LIVE,
            ConnectionState(
                is_connected=True,
                transport=Transport.LIVE,
                last_connected_at=_now(),
                retry_count=0,
            ),
        )
        logger.info("Live connection established to %s", conn.url)
        try:
            await conn.send(JOIN_DASHBOARD)
        except Exception as exc:
            logger.warning("Could not join the dashboard room: %s", exc)
        if conn.closed:
            # Its close callback may have fired before LIVE was set
            logger.info("Live channel to %s closed during activation", conn.url)
            await self._drop_live()

    def _cancel_negotiation(self) -> None:
        task, self._negotiation = self._negotiation, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _teardown(self) -> None:
        self._cancel_negotiation()
        await self._stop_polling()
        await self._close_live(leave=True)

    async def _close_live(self, leave: bool) -> None:
        conn, self._connection = self._connection, None
        if conn is None:
            return
        if leave and not conn.closed:
            try:
                await conn.send(LEAVE_DASHBOARD)
            except Exception as exc:
                logger.debug("Could not leave the dashboard room: %s", exc)
        await conn.close()

    # ── live channel callbacks ──────────────────────

    def _on_push(self, generation: int, event_name: str, data: Any) -> None:
        if generation != self._generation or self._phase is not Phase.LIVE:
            return
        event = event_from_push(event_name, data, Origin.LIVE)
        if event is None:
            logger.debug("Ignoring %s frame", event_name)
            return
        logger.debug("%s received via live channel", event_name)
        self._remember(event)
        self._emit(event)

    def _on_live_closed(self, generation: int, reason: str) -> None:
        if generation != self._generation or self._phase is not Phase.LIVE:
            return
        logger.info("Live channel dropped: %s", reason)
        self._spawn(self._handle_live_drop(generation))

    async def _handle_live_drop(self, generation: int) -> None:
        async with self._lock:
            if generation != self._generation or self._phase is not Phase.LIVE:
                return
            await self._drop_live()

    async def _drop_live(self) -> None:
        """Leave LIVE after the channel closed; caller holds the lock."""
        await self._close_live(leave=False)
        self._set_phase(Phase.OFFLINE, self._offline_state())
        if self.settings.ENABLE_POLLING_FALLBACK and self.network.is_online:
            await self._start_polling()

    # ── polling ─────────────────────────────────────

    async def _start_polling(self) -> None:
        await self._close_live(leave=True)
        await self._stop_polling()
        self._set_phase(
            Phase.POLLING,
            self._state.replace(is_connected=True, transport=Transport.POLLING),
        )
        logger.info("Starting polling fallback (every %ss)", self.settings.POLLING_INTERVAL)
        self._poll_task = asyncio.create_task(self._poll_loop())

    async def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        cycles = [c for c in self._cycles if c is not asyncio.current_task()]
        self._cycles.clear()
        pending = [t for t in [task, *cycles] if t is not None and not t.done()]
        if not pending:
            return
        for t in pending:
            t.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Stopped polling")

    async def _poll_loop(self) -> None:
        # Ticks do not wait for the previous cycle, so cycles may overlap
        while True:
            cycle = asyncio.create_task(self.poll_cycle())
            self._cycles.add(cycle)
            cycle.add_done_callback(self._cycles.discard)
            await asyncio.sleep(self.settings.POLLING_INTERVAL)

    async def poll_cycle(self) -> None:
        """Fetch every tracked resource once; failures stay per resource."""
        if not self.network.is_online:
            self._spawn(self._handle_network_offline())
            return
        await asyncio.gather(*(self._poll_resource(r) for r in RESOURCES))

    async def _poll_resource(self, resource: Resource) -> None:
        try:
            payload = await self.poller.fetch(resource)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Polling %s failed: %s", resource.key, exc)
            self._serve_cache([resource])
            return

        self.cache.put(resource.key, payload)
        if self._phase is Phase.POLLING:
            self._state = self._state.replace(last_connected_at=_now())
        self._emit(
            DomainEvent(
                category=resource.category,
                action=Action.SNAPSHOT,
                payload=payload,
                origin=Origin.POLL,
            )
        )

    # ── connectivity ────────────────────────────────

    def _on_network_online(self) -> None:
        logger.info("Network came back online")
        self._spawn(self._connect())

    def _on_network_offline(self) -> None:
        logger.info("Network went offline")
        self._spawn(self._handle_network_offline())

    async def _handle_network_offline(self) -> None:
        async with self._lock:
            if self._phase is Phase.OFFLINE and self._connection is None and not self.is_polling:
                return
            self._generation += 1
            self._cancel_negotiation()
            await self._stop_polling()
            await self._close_live(leave=False)
            self._set_phase(Phase.OFFLINE, self._offline_state())
            self._serve_cache(RESOURCES)

    # ── cache and dispatch ──────────────────────────

    def _remember(self, event: DomainEvent) -> None:
        """Write a live push into the cache entry of its resource."""
        resource = RESOURCE_BY_CATEGORY[event.category]
        if event.category is Category.DASHBOARD_STATS:
            self.cache.put(resource.key, event.payload)
        elif isinstance(event.payload, dict):
            self.cache.merge_record(
                resource.key,
                event.payload,
                deleted=event.action is Action.DELETED,
                limit=self.settings.RECENT_LIMIT,
            )

    def _serve_cache(self, resources: Iterable[Resource]) -> None:
        for resource in resources:
            entry = self.cache.get(resource.key)
            if entry is None:
                continue
            logger.info("Serving cached %s from %s", resource.key, entry.captured_at.isoformat())
            self._emit(
                DomainEvent(
                    category=resource.category,
                    action=Action.SNAPSHOT,
                    payload=entry.payload,
                    origin=Origin.CACHE,
                )
            )

    def _emit(self, event: DomainEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Dashboard listener failed on %s event", event.category.value)

    def _offline_state(self, **changes) -> ConnectionState:
        return self._state.replace(is_connected=False, transport=Transport.OFFLINE, **changes)

    def _set_phase(self, phase: Phase, state: ConnectionState) -> None:
        changed = phase is not self._phase or state != self._state
        self._phase = phase
        self._state = state
        if not changed:
            return
        for listener in list(self._state_listeners):
            try:
                listener(phase, state)
            except Exception:
                logger.exception("Connection state listener failed")

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
