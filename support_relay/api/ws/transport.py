"""
Starlette WebSocket implementation of the relay transport.

``send`` never suspends: frames go onto a bounded per-connection queue
that a dedicated writer task drains in order. A full or closed queue drops
the frame, which is counted and logged; delivery is best-effort.
"""

import asyncio
from typing import Any

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from support_relay.api.ws.constants import OutboundEvent
from support_relay.constants import WS_CLOSE_TIMEOUT_SECONDS
from support_relay.logging import logger
from support_relay.schemas.events import OutboundFrame
from support_relay.settings import app_settings
from support_relay.utils.metrics import MetricsCollector


class _CloseRequest:
    def __init__(self, code: int) -> None:
        self.code = code


class _Channel:
    """Outbound queue and writer task of one connection."""

    def __init__(self, websocket: WebSocket, queue_size: int) -> None:
        self.websocket = websocket
        self.queue: asyncio.Queue[str | _CloseRequest] = asyncio.Queue(
            maxsize=queue_size
        )
        self.closing = False
        self.writer: asyncio.Task | None = None


class WebSocketTransport:
    """
    Outbound side of the ``/ws`` endpoint.

    Args:
        queue_size: Capacity of each connection's outbound queue.
            Defaults to app_settings.WS_OUTBOUND_QUEUE_SIZE
    """

    def __init__(self, queue_size: int | None = None) -> None:
        self.queue_size = queue_size or app_settings.WS_OUTBOUND_QUEUE_SIZE
        self._channels: dict[str, _Channel] = {}

    def attach(self, connection_id: str, websocket: WebSocket) -> None:
        """Start the writer task of an accepted connection."""
        channel = _Channel(websocket, self.queue_size)
        channel.writer = asyncio.create_task(
            self._drain(connection_id, channel),
            name=f"ws-writer-{connection_id}",
        )
        self._channels[connection_id] = channel

    async def detach(self, connection_id: str) -> None:
        """Forget a connection after its disconnect; pending frames are dropped."""
        channel = self._channels.pop(connection_id, None)
        if channel is None or channel.writer is None:
            return
        channel.writer.cancel()
        await asyncio.gather(channel.writer, return_exceptions=True)

    def send(
        self, connection_id: str, event: OutboundEvent, payload: dict[str, Any]
    ) -> bool:
        channel = self._channels.get(connection_id)
        if channel is None or channel.closing:
            MetricsCollector.record_frame_dropped()
            logger.debug(f"Dropped {event} for closed connection {connection_id}")
            return False

        frame = OutboundFrame(event=event, data=payload).model_dump_json()
        try:
            channel.queue.put_nowait(frame)
        except asyncio.QueueFull:
            MetricsCollector.record_frame_dropped()
            logger.warning(
                f"Outbound queue of connection {connection_id} is full, dropped {event}"
            )
            return False
        return True

    async def close(self, connection_id: str, code: int) -> None:
        """
        Close a connection once the frames queued before this call are sent.

        Gives up waiting after WS_CLOSE_TIMEOUT_SECONDS and closes the
        socket directly.
        """
        channel = self._channels.get(connection_id)
        if channel is None or channel.closing:
            return
        channel.closing = True

        try:
            channel.queue.put_nowait(_CloseRequest(code))
        except asyncio.QueueFull:
            channel.writer.cancel()
        else:
            done, _ = await asyncio.wait(
                {channel.writer}, timeout=WS_CLOSE_TIMEOUT_SECONDS
            )
            if done:
                return
            channel.writer.cancel()

        await self._close_socket(connection_id, channel.websocket, code)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._channels

    async def _drain(self, connection_id: str, channel: _Channel) -> None:
        try:
            while True:
                item = await channel.queue.get()
                if isinstance(item, _CloseRequest):
                    await self._close_socket(
                        connection_id, channel.websocket, item.code
                    )
                    return
                await channel.websocket.send_text(item)
        except (WebSocketDisconnect, RuntimeError, OSError) as ex:
            logger.debug(f"Writer of connection {connection_id} stopped: {ex!r}")
        finally:
            channel.closing = True
            while not channel.queue.empty():
                if not isinstance(channel.queue.get_nowait(), _CloseRequest):
                    MetricsCollector.record_frame_dropped()

    @staticmethod
    async def _close_socket(
        connection_id: str, websocket: WebSocket, code: int
    ) -> None:
        if websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await websocket.close(code=code)
            logger.debug(f"Closed connection {connection_id} with code {code}")
        except (WebSocketDisconnect, RuntimeError) as ex:
            logger.debug(f"Connection {connection_id} already closed: {ex!r}")
