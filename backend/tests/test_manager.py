import asyncio

import pytest

from fleetdesk.client.config import ClientSettings
from fleetdesk.client.manager import ConnectionManager
from fleetdesk.client.network import NetworkMonitor
from fleetdesk.client.state import Phase, Transport
from fleetdesk.realtime.messages import Action, Category, Origin

WS = "ws://fleet.test"
BACKUP = "ws://backup.test"


async def settle(turns: int = 20) -> None:
    for _ in range(turns):
        await asyncio.sleep(0)


def _phases(manager: ConnectionManager) -> list[Phase]:
    seen: list[Phase] = []
    manager.add_state_listener(lambda phase, state: seen.append(phase))
    return seen


# ── negotiation ─────────────────────────────────────


@pytest.mark.asyncio
async def test_candidates_are_tried_in_order_until_one_answers(manager, connector, poller):
    connector.outcomes[BACKUP] = "ok"

    await manager.start()

    assert connector.calls == [WS, BACKUP]
    assert manager.attempted_urls == [WS, BACKUP]
    assert manager.phase is Phase.LIVE
    assert manager.connection.url == BACKUP
    assert manager.connection.sent == ["join-dashboard"]
    assert manager.state.transport is Transport.LIVE
    assert manager.state.is_connected
    assert manager.state.retry_count == 0
    assert manager.state.last_connected_at is not None
    assert poller.calls == []


@pytest.mark.asyncio
async def test_overrides_are_tried_first(client_settings, connector, poller, cache, network):
    connector.outcomes["ws://override.test"] = "ok"
    mgr = ConnectionManager(
        client_settings,
        connector=connector,
        poller=poller,
        cache=cache,
        network=network,
        overrides=["ws://override.test/"],
    )

    await mgr.start()
    try:
        assert connector.calls == ["ws://override.test"]
        assert mgr.phase is Phase.LIVE
    finally:
        await mgr.stop()


@pytest.mark.asyncio
async def test_handshake_timeout_moves_to_next_candidate(manager, connector):
    connector.outcomes[WS] = "hang"
    connector.outcomes[BACKUP] = "ok"

    await manager.start()

    assert connector.calls == [WS, BACKUP]
    assert manager.phase is Phase.LIVE
    assert manager.connection.url == BACKUP


@pytest.mark.asyncio
async def test_all_candidates_failing_starts_polling(manager, connector, poller):
    phases = _phases(manager)

    await manager.start()
    await settle()

    assert connector.calls == [WS, BACKUP]
    assert manager.phase is Phase.POLLING
    assert manager.is_polling
    assert manager.connection is None
    assert manager.state.transport is Transport.POLLING
    assert manager.state.retry_count == 1
    assert phases == [Phase.POLLING]
    assert sorted(poller.calls) == ["maintenance", "stats", "trucks"]

    polled = {e.category: e for e in manager.events}
    assert polled[Category.DASHBOARD_STATS].payload == {"total_trucks": 3}
    assert all(e.origin is Origin.POLL and e.action is Action.SNAPSHOT for e in manager.events)


@pytest.mark.asyncio
async def test_polling_disabled_goes_offline(connector, poller, cache, network):
    settings = ClientSettings(
        API_BASE_URL="http://fleet.test",
        LOCALHOST_FALLBACKS=[],
        HANDSHAKE_TIMEOUT=0.05,
        ENABLE_POLLING_FALLBACK=False,
    )
    mgr = ConnectionManager(settings, connector=connector, poller=poller, cache=cache, network=network)

    await mgr.start()
    try:
        assert mgr.phase is Phase.OFFLINE
        assert not mgr.is_polling
        assert mgr.state.transport is Transport.OFFLINE
        assert mgr.state.retry_count == 1
        assert poller.calls == []
    finally:
        await mgr.stop()


@pytest.mark.asyncio
async def test_polling_never_upgrades_to_live_by_itself(manager, connector):
    await manager.start()
    await settle()
    connector.outcomes[WS] = "ok"

    await manager.poll_cycle()
    await settle()

    assert manager.phase is Phase.POLLING
    assert connector.calls == [WS, BACKUP]


@pytest.mark.asyncio
async def test_reconnect_from_polling_goes_live(manager, connector):
    await manager.start()
    await settle()
    connector.outcomes[WS] = "ok"

    await manager.reconnect()

    assert manager.phase is Phase.LIVE
    assert not manager.is_polling
    assert manager.state.retry_count == 0
    assert connector.calls == [WS, BACKUP, WS]


@pytest.mark.asyncio
async def test_reconnect_cancels_a_pending_handshake(manager, connector):
    connector.outcomes[WS] = "hang"
    manager.settings.HANDSHAKE_TIMEOUT = 3600
    starting = asyncio.create_task(manager.start())
    await settle()
    assert connector.calls == [WS]

    connector.outcomes[WS] = "ok"
    await manager.reconnect()
    await starting

    assert manager.phase is Phase.LIVE
    assert connector.calls == [WS, WS]
    assert len(connector.connections) == 1


@pytest.mark.asyncio
async def test_superseded_handshake_is_closed_and_discarded(manager, connector):
    gate = asyncio.get_running_loop().create_future()
    connector.outcomes[WS] = gate
    manager.settings.HANDSHAKE_TIMEOUT = 3600
    starting = asyncio.create_task(manager.start())
    await settle()

    async with manager._lock:
        gate.set_result(None)
        await settle()
        # A newer negotiation has taken over in the meantime
        manager._generation += 1
    await starting

    (late,) = connector.connections
    assert late.closed
    assert late.sent == []
    assert manager.connection is None
    assert manager.phase is not Phase.LIVE


# ── exclusivity ─────────────────────────────────────


@pytest.mark.asyncio
async def test_live_and_polling_are_never_active_together(manager, connector):
    snapshots = []
    manager.add_state_listener(
        lambda phase, state: snapshots.append(
            (phase, manager.connection is not None, manager.is_polling)
        )
    )

    await manager.start()
    await settle()
    connector.outcomes[WS] = "ok"
    await manager.reconnect()
    manager.connection.drop()
    await settle()
    await manager.reconnect()

    assert [s[0] for s in snapshots] == [
        Phase.POLLING,
        Phase.CONNECTING,
        Phase.LIVE,
        Phase.OFFLINE,
        Phase.POLLING,
        Phase.CONNECTING,
        Phase.LIVE,
    ]
    assert not any(has_live and polling for _, has_live, polling in snapshots)
    assert sum(1 for c in connector.connections if not c.closed) == 1


# ── live channel ────────────────────────────────────


@pytest.mark.asyncio
async def test_live_pushes_reach_listeners_without_polling(manager, connector, poller, cache):
    connector.outcomes[WS] = "ok"
    await manager.start()

    manager.connection.push(
        "truck-update",
        {"action": "created", "data": {"id": "t7", "make": "Mack"}, "timestamp": "2026-01-01T00:00:00Z"},
    )
    manager.connection.push("dashboard-update", {"type": "stats", "data": {"total_trucks": 9}})
    manager.connection.push("message", {"text": "Welcome"})

    truck, stats = manager.events
    assert truck.category is Category.TRUCK
    assert truck.action is Action.CREATED
    assert truck.origin is Origin.LIVE
    assert stats.payload == {"total_trucks": 9}
    assert poller.calls == []
    assert cache.get("trucks").payload == [{"id": "t7", "make": "Mack"}]
    assert cache.get("stats").payload == {"total_trucks": 9}


@pytest.mark.asyncio
async def test_live_deletes_are_folded_into_cached_lists(manager, connector, cache):
    connector.outcomes[WS] = "ok"
    cache.put("maintenance", [{"id": "m1"}, {"id": "m2"}])
    await manager.start()

    manager.connection.push("maintenance-update", {"action": "deleted", "data": {"id": "m1"}})

    assert cache.get("maintenance").payload == [{"id": "m2"}]


@pytest.mark.asyncio
async def test_drop_falls_back_to_polling(manager, connector, poller):
    connector.outcomes[WS] = "ok"
    await manager.start()
    conn = manager.connection
    phases = _phases(manager)

    conn.drop()
    await settle()

    assert phases == [Phase.OFFLINE, Phase.POLLING]
    assert manager.phase is Phase.POLLING
    assert manager.connection is None
    assert "leave-dashboard" not in conn.sent
    assert sorted(poller.calls) == ["maintenance", "stats", "trucks"]


@pytest.mark.asyncio
async def test_connection_closed_before_activation_falls_back(manager, connector, poller):
    connector.outcomes[WS] = "drop"
    phases = _phases(manager)

    await manager.start()
    await settle()

    conn = connector.connections[0]
    assert conn.closed
    assert phases == [Phase.LIVE, Phase.OFFLINE, Phase.POLLING]
    assert manager.phase is Phase.POLLING
    assert manager.is_polling
    assert manager.connection is None
    assert manager.state.transport is Transport.POLLING
    assert sorted(poller.calls) == ["maintenance", "stats", "trucks"]


@pytest.mark.asyncio
async def test_stale_drop_notice_is_ignored(manager, connector):
    connector.outcomes[WS] = "ok"
    await manager.start()
    first = manager.connection
    await manager.reconnect()
    second = manager.connection

    first.on_close("late close from the old socket")
    await settle()

    assert second is not first
    assert manager.phase is Phase.LIVE
    assert manager.connection is second
    assert first.sent == ["join-dashboard", "leave-dashboard"]


@pytest.mark.asyncio
async def test_listener_failure_does_not_stop_delivery(manager, connector):
    def broken(event):
        raise RuntimeError("render failed")

    manager._listeners.insert(0, broken)
    connector.outcomes[WS] = "ok"
    await manager.start()

    manager.connection.push("truck-update", {"action": "updated", "data": {"id": "t1"}})

    assert len(manager.events) == 1


# ── polling ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_overlapping_poll_cycles_last_completion_wins(manager, poller, cache):
    loop = asyncio.get_running_loop()
    first, second = loop.create_future(), loop.create_future()
    poller.responses["stats"] = [first, second]

    slow = asyncio.create_task(manager.poll_cycle())
    fast = asyncio.create_task(manager.poll_cycle())
    await settle()

    second.set_result({"total_trucks": 2})
    await settle()
    first.set_result({"total_trucks": 1})
    await asyncio.gather(slow, fast)

    stats = [e.payload for e in manager.events if e.category is Category.DASHBOARD_STATS]
    assert stats == [{"total_trucks": 2}, {"total_trucks": 1}]
    assert cache.get("stats").payload == {"total_trucks": 1}


@pytest.mark.asyncio
async def test_failed_resource_is_served_from_cache(manager, poller, cache):
    cache.put("trucks", [{"id": "cached"}])
    poller.responses["trucks"] = RuntimeError("502 Bad Gateway")

    await manager.poll_cycle()

    by_category = {e.category: e for e in manager.events}
    assert by_category[Category.TRUCK].origin is Origin.CACHE
    assert by_category[Category.TRUCK].payload == [{"id": "cached"}]
    assert by_category[Category.DASHBOARD_STATS].origin is Origin.POLL
    assert by_category[Category.MAINTENANCE].origin is Origin.POLL


@pytest.mark.asyncio
async def test_failed_resource_without_cache_emits_nothing(manager, poller):
    poller.responses["stats"] = RuntimeError("timeout")

    await manager.poll_cycle()

    assert Category.DASHBOARD_STATS not in {e.category for e in manager.events}


# ── connectivity ────────────────────────────────────


@pytest.mark.asyncio
async def test_offline_start_serves_cache_without_connecting(
    client_settings, connector, poller, cache, clock
):
    cache.put("stats", {"total_trucks": 5})
    clock.advance(120)
    network = NetworkMonitor(online=False)
    mgr = ConnectionManager(client_settings, connector=connector, poller=poller, cache=cache, network=network)
    events = []
    mgr.add_listener(events.append)

    await mgr.start()
    try:
        assert mgr.phase is Phase.OFFLINE
        assert connector.calls == []
        assert poller.calls == []
        (event,) = events
        assert event.category is Category.DASHBOARD_STATS
        assert event.origin is Origin.CACHE
        assert event.payload == {"total_trucks": 5}
    finally:
        await mgr.stop()


@pytest.mark.asyncio
async def test_offline_start_with_stale_cache_shows_nothing(
    client_settings, connector, poller, cache, clock
):
    cache.put("stats", {"total_trucks": 5})
    clock.advance(301)
    mgr = ConnectionManager(
        client_settings, connector=connector, poller=poller, cache=cache, network=NetworkMonitor(online=False)
    )
    events = []
    mgr.add_listener(events.append)

    await mgr.start()
    try:
        assert mgr.phase is Phase.OFFLINE
        assert events == []
    finally:
        await mgr.stop()


@pytest.mark.asyncio
async def test_network_loss_closes_live_and_serves_cache(manager, connector, network, cache):
    connector.outcomes[WS] = "ok"
    await manager.start()
    conn = manager.connection
    manager.connection.push("dashboard-update", {"type": "stats", "data": {"total_trucks": 4}})

    network.set_online(False)
    await settle()

    assert manager.phase is Phase.OFFLINE
    assert manager.connection is None
    assert conn.closed
    assert conn.sent == ["join-dashboard"]
    cached = manager.events[-1]
    assert cached.origin is Origin.CACHE
    assert cached.payload == {"total_trucks": 4}


@pytest.mark.asyncio
async def test_network_loss_stops_polling(manager, network):
    await manager.start()
    await settle()
    assert manager.is_polling

    network.set_online(False)
    await settle()

    assert manager.phase is Phase.OFFLINE
    assert not manager.is_polling


@pytest.mark.asyncio
async def test_network_return_renegotiates(manager, connector, network):
    await manager.start()
    await settle()
    network.set_online(False)
    await settle()
    connector.outcomes[WS] = "ok"

    network.set_online(True)
    await settle()

    assert manager.phase is Phase.LIVE
    assert connector.calls == [WS, BACKUP, WS]


# ── shutdown ────────────────────────────────────────


@pytest.mark.asyncio
async def test_stop_leaves_room_then_closes_and_is_idempotent(manager, connector, network):
    connector.outcomes[WS] = "ok"
    await manager.start()
    conn = manager.connection
    assert network.subscriber_count == 2

    await manager.stop()
    await manager.stop()

    assert conn.sent == ["join-dashboard", "leave-dashboard"]
    assert conn.close_calls == 1
    assert manager.phase is Phase.OFFLINE
    assert manager.connection is None
    assert network.subscriber_count == 0


@pytest.mark.asyncio
async def test_stop_while_polling_cancels_the_loop(manager):
    await manager.start()
    await settle()

    await manager.stop()

    assert not manager.is_polling
    assert manager.phase is Phase.OFFLINE
    assert manager.state.transport is Transport.OFFLINE


@pytest.mark.asyncio
async def test_context_manager_closes_the_poller(client_settings, connector, poller, cache, network):
    connector.outcomes[WS] = "ok"

    async with ConnectionManager(
        client_settings, connector=connector, poller=poller, cache=cache, network=network
    ) as mgr:
        assert mgr.phase is Phase.LIVE

    assert poller.closed
    assert mgr.phase is Phase.OFFLINE
