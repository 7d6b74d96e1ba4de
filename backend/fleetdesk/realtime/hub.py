"""Broadcast hub for real-time dashboard updates."""

import asyncio
import logging
from typing import Any, Protocol

from fleetdesk.realtime.messages import DASHBOARD_GROUP, DomainEvent

logger = logging.getLogger(__name__)

SEND_TIMEOUT = 5.0  # seconds a single subscriber may take to accept a frame


class ClientHandle(Protocol):
    """A connected subscriber the hub can push frames to."""

    client_id: str

    @property
    def is_open(self) -> bool: ...

    async def send(self, message: dict[str, Any]) -> None: ...


class BroadcastHub:
    """Tracks connected clients and fans events out to subscription groups.

    Membership is only ever touched from the event loop, so no locking is
    needed. Nothing is persisted: a restarted hub starts with no clients and
    no groups.
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT):
        self.send_timeout = send_timeout
        self._tasks: set[asyncio.Task] = set()
        self._clients: dict[str, ClientHandle] = {}
        # Map of group name -> ids of the clients subscribed to it
        self._groups: dict[str, set[str]] = {}

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def members(self, group: str = DASHBOARD_GROUP) -> set[str]:
        return set(self._groups.get(group, ()))

    def on_connect(self, client: ClientHandle) -> None:
        """Register a client. It receives nothing until it joins a group."""
        self._clients[client.client_id] = client
        logger.info("Client connected: %s (%d total)", client.client_id, len(self._clients))

    def join(self, client: ClientHandle, group: str = DASHBOARD_GROUP) -> None:
        if client.client_id not in self._clients:
            self._clients[client.client_id] = client
        self._groups.setdefault(group, set()).add(client.client_id)
        logger.info("Client %s joined %s room", client.client_id, group)

    def leave(self, client: ClientHandle, group: str = DASHBOARD_GROUP) -> None:
        members = self._groups.get(group)
        if not members or client.client_id not in members:
            return
        members.discard(client.client_id)
        if not members:
            del self._groups[group]
        logger.info("Client %s left %s room", client.client_id, group)

    def on_disconnect(self, client: ClientHandle) -> None:
        """Forget a client and drop it from every group."""
        self._drop(client.client_id)
        logger.info("Client disconnected: %s (%d total)", client.client_id, len(self._clients))

    def _drop(self, client_id: str) -> None:
        self._clients.pop(client_id, None)
        for group in list(self._groups):
            members = self._groups[group]
            members.discard(client_id)
            if not members:
                del self._groups[group]

    async def broadcast(self, group: str, event: DomainEvent) -> int:
        """Push an event to every open member of a group.

        Best-effort: no acknowledgement, no retry and nothing is kept for
        clients that miss it. Returns the number of clients that got the
        frame.
        """
        targets = [
            self._clients[cid]
            for cid in self._groups.get(group, ())
            if cid in self._clients and self._clients[cid].is_open
        ]
        if not targets:
            return 0

        message = event.to_push_message()
        results = await asyncio.gather(
            *(asyncio.wait_for(client.send(message), self.send_timeout) for client in targets),
            return_exceptions=True,
        )

        delivered = 0
        for client, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning("Dropping client %s after failed send: %r", client.client_id, result)
                self._drop(client.client_id)
            else:
                delivered += 1
        logger.debug("Broadcast %s to %d/%d members of %s", message["event"], delivered, len(targets), group)
        return delivered

    def publish(self, group: str, event: DomainEvent) -> asyncio.Task:
        """Broadcast in the background; the caller does not wait for subscribers."""
        task = asyncio.create_task(self.broadcast(group, event))
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background broadcast failed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for every pending background broadcast."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel pending broadcasts and forget every client.

        The listener closes the sockets themselves.
        """
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._clients.clear()
        self._groups.clear()
