"""WebSocket listener for the live dashboard channel."""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from fleetdesk.realtime.messages import (
    DASHBOARD_GROUP,
    JOIN_DASHBOARD,
    LEAVE_DASHBOARD,
    MESSAGE,
    utcnow,
)
from fleetdesk.realtime.registry import HubRef, get_hub_ref

logger = logging.getLogger(__name__)


class WebSocketClient:
    """Adapts a Starlette WebSocket to the hub's client handle."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.client_id = uuid.uuid4().hex

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: dict[str, Any]) -> None:
        await self.websocket.send_json(message)


def _system_message(text: str) -> dict[str, Any]:
    return {
        "event": MESSAGE,
        "data": {"text": text, "senderId": "system", "timestamp": utcnow().isoformat()},
    }


async def dashboard_socket(websocket: WebSocket, hub_ref: HubRef = Depends(get_hub_ref)):
    """
    Accept a client, then handle its join / leave signals until it goes away.

    Frames are JSON objects ``{"event": "<name>", "data": ...}``. Join and
    leave carry no payload and get no acknowledgement.
    """
    hub = hub_ref.get()
    if hub is None:
        # Not serving live updates yet; the client will fall back to polling.
        await websocket.close(code=1013)
        return

    await websocket.accept()
    client = WebSocketClient(websocket)
    hub.on_connect(client)
    await client.send(_system_message("Welcome to the fleet dashboard channel"))

    try:
        while True:
            frame = await websocket.receive_json()
            event = frame.get("event") if isinstance(frame, dict) else None

            if event == JOIN_DASHBOARD:
                hub.join(client, DASHBOARD_GROUP)
            elif event == LEAVE_DASHBOARD:
                hub.leave(client, DASHBOARD_GROUP)
            elif event == MESSAGE:
                data = frame.get("data") or {}
                text = data.get("text", "") if isinstance(data, dict) else str(data)
                await client.send(_system_message(f"Echo: {text}"))
            else:
                logger.debug("Ignoring unknown event %r from %s", event, client.client_id)
    except WebSocketDisconnect:
        pass
    except ValueError:
        # receive_json on a non-JSON frame
        logger.warning("Client %s sent a malformed frame, closing", client.client_id)
        await websocket.close(code=1003)
    finally:
        hub.on_disconnect(client)


def build_realtime_router(socket_path: str) -> APIRouter:
    """Router serving the listener at the configured channel path."""
    router = APIRouter(tags=["Realtime"])
    router.add_api_websocket_route(socket_path, dashboard_socket)
    return router
