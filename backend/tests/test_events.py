import asyncio

import pytest

from fleetdesk.events import (
    emit,
    notify_dashboard_stats,
    notify_maintenance_change,
    notify_truck_change,
)
from fleetdesk.realtime.hub import BroadcastHub
from fleetdesk.realtime.messages import Action, Category, DomainEvent
from fleetdesk.realtime.registry import HubRef, HubState, HubUnavailable


class _Client:
    client_id = "viewer"
    is_open = True

    def __init__(self):
        self.received: list[dict] = []

    async def send(self, message: dict) -> None:
        self.received.append(message)


class _SlowClient:
    """Accepts a frame only once ``release`` is set."""

    is_open = True

    def __init__(self, release: asyncio.Event, client_id: str = "slow"):
        self.client_id = client_id
        self.release = release
        self.received: list[dict] = []

    async def send(self, message: dict) -> None:
        await self.release.wait()
        self.received.append(message)


class _ExplodingHub(BroadcastHub):
    async def broadcast(self, group, event):
        raise RuntimeError("hub exploded")


def _joined_hub() -> tuple[HubRef, _Client]:
    ref = HubRef()
    hub = BroadcastHub()
    ref.install(hub)
    client = _Client()
    hub.on_connect(client)
    hub.join(client)
    return ref, client


def test_hub_ref_starts_pending() -> None:
    ref = HubRef()

    assert ref.state is HubState.PENDING
    assert ref.get() is None
    with pytest.raises(HubUnavailable):
        ref.require()


def test_hub_ref_rejects_a_second_instance() -> None:
    ref = HubRef()
    hub = BroadcastHub()
    ref.install(hub)
    ref.install(hub)

    with pytest.raises(RuntimeError):
        ref.install(BroadcastHub())
    assert ref.require() is hub


@pytest.mark.asyncio
async def test_hub_ref_shutdown_goes_back_to_no_hub() -> None:
    ref, _ = _joined_hub()

    await ref.shutdown()
    await ref.shutdown()

    assert ref.state is HubState.CLOSED
    assert ref.get() is None


@pytest.mark.asyncio
async def test_emit_without_hub_is_silent_noop() -> None:
    assert notify_truck_change(HubRef(), Action.CREATED, {"id": "t1"}) is None


@pytest.mark.asyncio
async def test_emit_keeps_hub_failures_from_the_caller() -> None:
    ref = HubRef()
    hub = _ExplodingHub()
    ref.install(hub)

    event = DomainEvent(category=Category.TRUCK, action=Action.UPDATED, payload={"id": "t1"})
    task = emit(ref, event)
    await hub.drain()

    assert task.done()
    assert isinstance(task.exception(), RuntimeError)


@pytest.mark.asyncio
async def test_emit_returns_none_when_publish_fails() -> None:
    class _Broken(BroadcastHub):
        def publish(self, group, event):
            raise RuntimeError("cannot schedule")

    ref = HubRef()
    ref.install(_Broken())

    event = DomainEvent(category=Category.TRUCK, action=Action.UPDATED, payload={"id": "t1"})
    assert emit(ref, event) is None


@pytest.mark.asyncio
async def test_truck_change_reaches_joined_client() -> None:
    ref, client = _joined_hub()

    delivered = await notify_truck_change(ref, "created", {"id": "t1", "make": "Volvo"})

    assert delivered == 1
    frame = client.received[0]
    assert frame["event"] == "truck-update"
    assert frame["data"]["action"] == "created"
    assert frame["data"]["data"] == {"id": "t1", "make": "Volvo"}


@pytest.mark.asyncio
async def test_maintenance_and_stats_frames() -> None:
    ref, client = _joined_hub()

    await notify_maintenance_change(ref, Action.DELETED, {"id": "m1"})
    await notify_dashboard_stats(ref, {"total_trucks": 4})

    maintenance, stats = client.received
    assert maintenance["event"] == "maintenance-update"
    assert maintenance["data"]["action"] == "deleted"
    assert stats["event"] == "dashboard-update"
    assert stats["data"]["type"] == "stats"
    assert stats["data"]["data"] == {"total_trucks": 4}


@pytest.mark.asyncio
async def test_slow_subscriber_does_not_hold_up_the_emitter() -> None:
    ref = HubRef()
    hub = BroadcastHub()
    ref.install(hub)
    release = asyncio.Event()
    slow = _SlowClient(release)
    hub.on_connect(slow)
    hub.join(slow)

    task = notify_truck_change(ref, Action.UPDATED, {"id": "t1"})
    await asyncio.sleep(0)

    assert not task.done()
    assert slow.received == []
    release.set()
    assert await task == 1
    assert slow.received[0]["event"] == "truck-update"


@pytest.mark.asyncio
async def test_stalled_subscriber_is_dropped_after_the_send_timeout() -> None:
    ref = HubRef()
    hub = BroadcastHub(send_timeout=0.05)
    ref.install(hub)
    stalled = _SlowClient(asyncio.Event(), client_id="stalled")
    healthy = _Client()
    for client in (stalled, healthy):
        hub.on_connect(client)
        hub.join(client)

    delivered = await notify_truck_change(ref, Action.CREATED, {"id": "t2"})

    assert delivered == 1
    assert len(healthy.received) == 1
    assert stalled.received == []
    assert hub.members("dashboard") == {"viewer"}
    assert hub.client_count == 1
