"""REST polling of the dashboard resources."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from fleetdesk.realtime.messages import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resource:
    """A polled endpoint and the cache key / event category it feeds."""

    key: str
    path: str
    category: Category
    limited: bool = False


RESOURCES: tuple[Resource, ...] = (
    Resource("stats", "/api/dashboard/stats", Category.DASHBOARD_STATS),
    Resource("trucks", "/api/trucks", Category.TRUCK, limited=True),
    Resource("maintenance", "/api/maintenance", Category.MAINTENANCE, limited=True),
)

RESOURCE_BY_CATEGORY = {r.category: r for r in RESOURCES}


class Poller:
    """Fetches one resource at a time; errors propagate to the caller."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        recent_limit: int = 5,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.recent_limit = recent_limit
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._owns_client = client is None

    async def fetch(self, resource: Resource) -> Any:
        params = {"limit": self.recent_limit} if resource.limited else None
        response = await self._client.get(resource.path, params=params)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
