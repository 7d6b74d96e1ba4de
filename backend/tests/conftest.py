import asyncio
from typing import Any

import pytest
import pytest_asyncio

from fleetdesk.client.cache import DashboardCache
from fleetdesk.client.config import ClientSettings
from fleetdesk.client.exceptions import HandshakeError
from fleetdesk.client.manager import ConnectionManager
from fleetdesk.client.network import NetworkMonitor

ORIGIN = "http://fleet.test"


class FakeConnection:
    def __init__(self, url, on_message, on_close):
        self.url = url
        self.on_message = on_message
        self.on_close = on_close
        self.sent: list[str] = []
        self.closed = False
        self.close_calls = 0

    async def send(self, event: str, data: Any = None) -> None:
        if self.closed:
            raise ConnectionError("closed")
        self.sent.append(event)

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True

    def push(self, event: str, data: Any) -> None:
        self.on_message(event, data)

    def drop(self, reason: str = "transport close") -> None:
        self.closed = True
        self.on_close(reason)


class FakeConnector:
    """Outcome per URL: "ok", "fail", "hang", "drop", or a future to wait on.

    "drop" hands back a connection that has already closed.
    """

    def __init__(self, outcomes: dict[str, Any] | None = None):
        self.outcomes = dict(outcomes or {})
        self.calls: list[str] = []
        self.connections: list[FakeConnection] = []

    async def __call__(self, url, on_message, on_close):
        self.calls.append(url)
        outcome = self.outcomes.get(url, "fail")
        if outcome == "fail":
            raise HandshakeError(url, "connection refused")
        if outcome == "hang":
            await asyncio.sleep(3600)
        if isinstance(outcome, asyncio.Future):
            await outcome
        conn = FakeConnection(url, on_message, on_close)
        self.connections.append(conn)
        if outcome == "drop":
            conn.drop("closed during handshake")
        return conn


class FakePoller:
    """Responses per resource key: a payload, an exception, or a list of futures."""

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses = dict(responses or {})
        self.calls: list[str] = []
        self.closed = False

    async def fetch(self, resource):
        self.calls.append(resource.key)
        response = self.responses.get(resource.key, [])
        if isinstance(response, list) and response and isinstance(response[0], asyncio.Future):
            return await response.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1_800_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def client_settings() -> ClientSettings:
    return ClientSettings(
        SOCKET_URL=None,
        API_BASE_URL=ORIGIN,
        LOCALHOST_FALLBACKS=["ws://backup.test"],
        HANDSHAKE_TIMEOUT=0.05,
        POLLING_INTERVAL=3600,
        CACHE_DIR=None,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> DashboardCache:
    return DashboardCache(clock=clock)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def poller() -> FakePoller:
    return FakePoller(
        {
            "stats": {"total_trucks": 3},
            "trucks": [{"id": "t1"}],
            "maintenance": [{"id": "m1"}],
        }
    )


@pytest.fixture
def network() -> NetworkMonitor:
    return NetworkMonitor(online=True)


@pytest_asyncio.fixture
async def manager(client_settings, connector, poller, cache, network):
    mgr = ConnectionManager(
        client_settings,
        connector=connector,
        poller=poller,
        cache=cache,
        network=network,
    )
    events = []
    mgr.add_listener(events.append)
    mgr.events = events
    yield mgr
    await mgr.stop()
