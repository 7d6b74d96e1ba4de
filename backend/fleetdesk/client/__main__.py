"""
Watch the fleet dashboard from a terminal.

Usage:
    cd backend
    FLEET_API_BASE_URL=http://localhost:8000 python -m fleetdesk.client
"""

import asyncio
import logging
import signal

from fleetdesk.client.config import get_client_settings
from fleetdesk.client.dashboard import DashboardView
from fleetdesk.client.manager import ConnectionManager
from fleetdesk.client.network import NetworkMonitor, ReachabilityProbe


def _render(view: DashboardView) -> None:
    stats = view.stats or {}
    print(
        f"[{view.status_label:<10}] "
        f"trucks={stats.get('total_trucks', '-')} "
        f"active={stats.get('active_trucks', '-')} "
        f"upcoming={stats.get('upcoming_maintenance', '-')} "
        f"overdue={stats.get('overdue_repairs', '-')} "
        f"recent_trucks={len(view.trucks)} "
        f"recent_maintenance={len(view.maintenance)} "
        f"via={view.last_origin.value if view.last_origin else '-'}"
    )


async def main():
    settings = get_client_settings()
    network = NetworkMonitor()
    probe = ReachabilityProbe(
        network, settings.API_BASE_URL, interval=settings.NETWORK_CHECK_INTERVAL
    )
    view = DashboardView(recent_limit=settings.RECENT_LIMIT, on_change=_render)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await probe.check_once()
    probe.start()
    manager = ConnectionManager(settings, network=network)
    view.bind(manager)
    async with manager:
        await stop.wait()
    await probe.stop()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
