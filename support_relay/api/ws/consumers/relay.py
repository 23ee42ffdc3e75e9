import json
import uuid

from fastapi import APIRouter
from pydantic import ValidationError
from starlette.endpoints import WebSocketEndpoint
from starlette.websockets import WebSocket

from support_relay.core.hub import RelayHub
from support_relay.exceptions import InvalidFrameError
from support_relay.logging import clear_log_context, logger, set_log_context
from support_relay.middlewares.correlation_id import (
    CORRELATION_ID_LENGTH,
    set_correlation_id,
)
from support_relay.schemas.events import InboundFrame

router = APIRouter()


@router.websocket_route("/ws")
class RelayEndpoint(WebSocketEndpoint):
    """
    Support chat WebSocket endpoint.

    Every accepted socket gets a fresh connection id and a session in the
    relay hub stored on ``app.state.relay``. Text frames carry JSON
    ``{"event": ..., "data": {...}}`` objects; frames that cannot be
    decoded are answered with an ``error`` event and the socket stays open.
    """

    encoding = "text"

    async def on_connect(self, websocket: WebSocket) -> None:
        await super().on_connect(websocket)

        self.hub: RelayHub = websocket.app.state.relay
        self.connection_id = str(uuid.uuid4())

        set_correlation_id(self.connection_id[:CORRELATION_ID_LENGTH])
        set_log_context(connection_id=self.connection_id)

        self.hub.transport.attach(self.connection_id, websocket)
        self.hub.lifecycle.open(self.connection_id)
        logger.debug(f"Client connected (connection_id: {self.connection_id})")

    async def on_receive(self, websocket: WebSocket, data: str) -> None:
        try:
            frame = InboundFrame.model_validate(json.loads(data))
        except (json.JSONDecodeError, ValidationError) as ex:
            logger.debug(f"Received invalid frame: {data!r} ({ex})")
            self.hub.lifecycle.report(
                self.connection_id,
                InvalidFrameError("Frames must be JSON objects with an event name"),
            )
            return

        await self.hub.lifecycle.handle_event(
            self.connection_id, frame.event, frame.data
        )

    async def on_disconnect(self, websocket: WebSocket, close_code: int) -> None:
        await super().on_disconnect(websocket, close_code)

        self.hub.lifecycle.close(self.connection_id)
        await self.hub.transport.detach(self.connection_id)
        logger.debug(
            f"Client {self.connection_id} disconnected with code {close_code}"
        )
        clear_log_context()
