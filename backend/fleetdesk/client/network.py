"""Device connectivity as explicit subscriptions."""

import asyncio
import logging
from collections.abc import Callable

import httpx

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class NetworkMonitor:
    """Reports whether the device has network and tells subscribers on change.

    Listeners are plain callables invoked on the event loop thread. Each
    ``subscribe`` returns the function that undoes it.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._on_online: list[Listener] = []
        self._on_offline: list[Listener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def subscriber_count(self) -> int:
        return len(self._on_online) + len(self._on_offline)

    def subscribe(self, on_online: Listener, on_offline: Listener) -> Callable[[], None]:
        self._on_online.append(on_online)
        self._on_offline.append(on_offline)

        def unsubscribe() -> None:
            if on_online in self._on_online:
                self._on_online.remove(on_online)
            if on_offline in self._on_offline:
                self._on_offline.remove(on_offline)

        return unsubscribe

    def set_online(self, online: bool) -> None:
        """Record a connectivity change; listeners only fire on real changes."""
        if online == self._online:
            return
        self._online = online
        logger.info("Network went %s", "online" if online else "offline")
        for listener in list(self._on_online if online else self._on_offline):
            try:
                listener()
            except Exception:
                logger.exception("Network listener failed")


async def check_url_reachable(url: str, timeout: float = 5.0) -> bool:
    """True when a HEAD request to ``url`` gets any HTTP response in time."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            await client.head(url)
        return True
    except httpx.HTTPError:
        return False


class ReachabilityProbe:
    """Feeds a NetworkMonitor by probing a URL on a fixed interval."""

    def __init__(
        self,
        monitor: NetworkMonitor,
        url: str,
        interval: float = 30.0,
        timeout: float = 5.0,
    ):
        self.monitor = monitor
        self.url = url
        self.interval = interval
        self.timeout = timeout
        self._task: asyncio.Task | None = None

    async def check_once(self) -> bool:
        online = await check_url_reachable(self.url, self.timeout)
        self.monitor.set_online(online)
        return online

    async def _run(self) -> None:
        while True:
            await self.check_once()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
