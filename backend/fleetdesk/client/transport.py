"""Live transport: a WebSocket to the broadcast hub."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import websockets

from fleetdesk.client.endpoints import to_live_scheme
from fleetdesk.client.exceptions import HandshakeError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, Any], None]
CloseHandler = Callable[[str], None]


class LiveConnection(Protocol):
    url: str

    @property
    def closed(self) -> bool: ...

    async def send(self, event: str, data: Any = None) -> None: ...

    async def close(self) -> None: ...


# (url, on_message, on_close) -> open connection; raises on failed handshake
Connector = Callable[[str, MessageHandler, CloseHandler], Awaitable[LiveConnection]]


class WebSocketConnection:
    """An open channel; frames are ``{"event": name, "data": ...}`` JSON."""

    def __init__(
        self,
        ws: Any,
        url: str,
        on_message: MessageHandler,
        on_close: CloseHandler,
    ):
        self.url = url
        self._ws = ws
        self._on_message = on_message
        self._on_close = on_close
        self._closed = False
        self._closing = False
        self._reader = asyncio.create_task(self._read())

    @property
    def closed(self) -> bool:
        return self._closed

    async def _read(self) -> None:
        reason = "server closed the connection"
        try:
            async for raw in self._ws:
                try:
                    frame = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring non-JSON frame from %s", self.url)
                    continue
                if not isinstance(frame, dict) or not frame.get("event"):
                    continue
                try:
                    self._on_message(frame["event"], frame.get("data"))
                except Exception:
                    logger.exception("Handler for %s failed", frame["event"])
        except websockets.ConnectionClosed as exc:
            reason = str(exc)
        finally:
            self._closed = True
            if not self._closing:
                self._on_close(reason)

    async def send(self, event: str, data: Any = None) -> None:
        frame: dict[str, Any] = {"event": event}
        if data is not None:
            frame["data"] = data
        await self._ws.send(json.dumps(frame))

    async def close(self) -> None:
        """Close without reporting a drop. Safe to call more than once."""
        if self._closing:
            return
        self._closing = True
        self._closed = True
        self._reader.cancel()
        try:
            await self._ws.close()
        except Exception as exc:
            logger.debug("Error while closing %s: %s", self.url, exc)
        try:
            await self._reader
        except asyncio.CancelledError:
            pass


class WebSocketTransport:
    """Connector that opens ``<candidate><socket_path>`` with websockets."""

    def __init__(self, socket_path: str = "/api/socketio"):
        self.socket_path = "/" + socket_path.lstrip("/")

    def uri_for(self, url: str) -> str:
        return to_live_scheme(url).rstrip("/") + self.socket_path

    async def __call__(
        self,
        url: str,
        on_message: MessageHandler,
        on_close: CloseHandler,
    ) -> WebSocketConnection:
        uri = self.uri_for(url)
        try:
            # The manager bounds the handshake itself
            ws = await websockets.connect(uri, open_timeout=None)
        except (OSError, websockets.InvalidHandshake, websockets.InvalidURI) as exc:
            raise HandshakeError(url, str(exc)) from exc
        logger.info("Live channel open: %s", uri)
        return WebSocketConnection(ws, url, on_message, on_close)
