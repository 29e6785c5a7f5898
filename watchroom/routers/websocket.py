"""WebSocket endpoint carrying room events."""

import asyncio
import logging
from typing import Any, Sequence
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from watchroom.models.events import ClientEvent, Envelope, ServerEvent
from watchroom.services.event_router import EventRouter

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


class ConnectionManager:
    """Manages open WebSocket connections.

    Outbound frames go through one queue per connection, drained by a
    writer task, so ``emit`` never suspends and each connection receives
    frames in the order they were emitted.
    """

    def __init__(self):
        # connection_id -> WebSocket
        self.active_connections: dict[str, WebSocket] = {}
        # connection_id -> pending outbound frames
        self.outboxes: dict[str, asyncio.Queue] = {}
        # connection_id -> task draining the outbox
        self.writer_tasks: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self.active_connections)

    async def connect(self, websocket: WebSocket, connection_id: str):
        """Accept and register a WebSocket connection."""
        await websocket.accept()

        outbox: asyncio.Queue = asyncio.Queue()
        self.active_connections[connection_id] = websocket
        self.outboxes[connection_id] = outbox
        self.writer_tasks[connection_id] = asyncio.create_task(
            self._drain(connection_id, websocket, outbox)
        )
        logger.info(f"Client connected: {connection_id}")

    async def disconnect(self, connection_id: str):
        """Forget a connection and stop its writer."""
        self.active_connections.pop(connection_id, None)
        self.outboxes.pop(connection_id, None)
        task = self.writer_tasks.pop(connection_id, None)
        if task:
            task.cancel()
        logger.info(f"Client disconnected: {connection_id}")

    async def _drain(self, connection_id: str, websocket: WebSocket, outbox: asyncio.Queue):
        try:
            while True:
                frame = await outbox.get()
                await websocket.send_json(frame)
        except asyncio.CancelledError:
            return
        except Exception as e:
            logger.warning(f"Failed sending to {connection_id}: {e}")

    def emit(self, connection_ids: Sequence[str], event: str, data: Any = None) -> None:
        """Queue an event for each of the given connections."""
        frame = {"event": event, "data": data}
        for connection_id in connection_ids:
            outbox = self.outboxes.get(connection_id)
            if outbox is not None:
                outbox.put_nowait(frame)

    def acknowledge(self, connection_id: str, ack: int | str, data: Any) -> None:
        """Queue the response to a request."""
        outbox = self.outboxes.get(connection_id)
        if outbox is not None:
            outbox.put_nowait({"event": ServerEvent.ACK.value, "ack": ack, "data": data})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for watch room clients.

    A connection has no identity until it creates or joins a room. Frames
    are ``{"event", "data", "ack"}`` envelopes; requests carrying an ``ack``
    id are answered with an ``ack`` frame echoing it.
    """
    event_router: EventRouter = websocket.app.state.event_router
    manager: ConnectionManager = websocket.app.state.connection_manager

    connection_id = event_router.ids.connection_id()
    await manager.connect(websocket, connection_id)

    try:
        while True:
            try:
                raw = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=float(event_router.settings.ws_heartbeat_interval * 2),
                )
            except asyncio.TimeoutError:
                # Quiet connection, check it is still alive
                manager.emit([connection_id], ServerEvent.PING.value)
                continue

            await handle_client_frame(event_router, manager, connection_id, raw)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        event_router.disconnect(connection_id)
        await manager.disconnect(connection_id)


async def handle_client_frame(
    event_router: EventRouter,
    manager: ConnectionManager,
    connection_id: str,
    raw: str,
):
    """Handle one frame received from a client."""
    try:
        envelope = Envelope.model_validate_json(raw)
    except ValidationError:
        logger.warning(f"Malformed frame from {connection_id}")
        return

    if envelope.is_request:
        response = await event_router.handle_request(connection_id, envelope.event, envelope.data)
        if envelope.ack is not None:
            manager.acknowledge(connection_id, envelope.ack, response)
        return

    if envelope.event in ("pong", ClientEvent.DISCONNECT.value):
        # Keepalive reply; disconnect is only raised by the transport itself
        return

    event_router.handle_message(connection_id, envelope.event, envelope.data)
