"""Tests for the WebSocket transport adapter."""

import asyncio
import json

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from support_relay.api.ws.constants import OutboundEvent
from support_relay.api.ws.transport import WebSocketTransport
from tests.mocks.websocket_mocks import create_mock_websocket


class TestWebSocketTransport:
    @pytest.mark.asyncio
    async def test_frames_sent_in_order(self):
        transport = WebSocketTransport(queue_size=8)
        websocket = create_mock_websocket()
        transport.attach("c1", websocket)

        assert transport.send("c1", OutboundEvent.CONNECTED, {"userId": "u1"})
        assert transport.send("c1", OutboundEvent.ADMIN_STATUS, {"online": False})
        await transport.close("c1", 1000)

        frames = [
            json.loads(call.args[0]) for call in websocket.send_text.await_args_list
        ]
        assert frames == [
            {"event": "connected", "data": {"userId": "u1"}},
            {"event": "admin_status", "data": {"online": False}},
        ]
        websocket.close.assert_awaited_once_with(code=1000)

    @pytest.mark.asyncio
    async def test_full_queue_drops_frame(self):
        """send never blocks; a full buffer drops the frame."""
        transport = WebSocketTransport(queue_size=1)
        websocket = create_mock_websocket()
        transport.attach("c1", websocket)

        assert transport.send("c1", OutboundEvent.USER_ONLINE, {}) is True
        assert transport.send("c1", OutboundEvent.USER_ONLINE, {}) is False

        await transport.detach("c1")

    @pytest.mark.asyncio
    async def test_send_to_unknown_connection(self):
        transport = WebSocketTransport()

        assert transport.send("ghost", OutboundEvent.ERROR, {}) is False

    @pytest.mark.asyncio
    async def test_send_after_close(self):
        transport = WebSocketTransport()
        websocket = create_mock_websocket()
        transport.attach("c1", websocket)

        await transport.close("c1", 1001)

        assert transport.send("c1", OutboundEvent.ADMIN_REPLY, {}) is False
        await transport.detach("c1")
        assert "c1" not in transport

    @pytest.mark.asyncio
    async def test_close_skips_disconnected_socket(self):
        transport = WebSocketTransport()
        websocket = create_mock_websocket()
        websocket.application_state = WebSocketState.DISCONNECTED
        transport.attach("c1", websocket)

        await transport.close("c1", 1000)

        websocket.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_detach_stops_writer(self):
        transport = WebSocketTransport()
        websocket = create_mock_websocket()
        transport.attach("c1", websocket)
        await asyncio.sleep(0)

        await transport.detach("c1")
        await transport.detach("c1")

        assert "c1" not in transport

    @pytest.mark.asyncio
    async def test_client_gone_stops_accepting_frames(self):
        """Once the socket reports the client gone, send reports drops."""
        transport = WebSocketTransport()
        websocket = create_mock_websocket()
        websocket.send_text.side_effect = WebSocketDisconnect(1006)
        transport.attach("c1", websocket)

        assert transport.send("c1", OutboundEvent.CONNECTED, {}) is True
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert transport.send("c1", OutboundEvent.ADMIN_STATUS, {}) is False
        await transport.close("c1", 1000)
        websocket.close.assert_not_awaited()
        await transport.detach("c1")

    @pytest.mark.asyncio
    async def test_close_on_gone_client(self):
        transport = WebSocketTransport()
        websocket = create_mock_websocket()
        websocket.close.side_effect = WebSocketDisconnect(1006)
        transport.attach("c1", websocket)

        await transport.close("c1", 1000)

        websocket.close.assert_awaited_once_with(code=1000)
        assert transport.send("c1", OutboundEvent.ADMIN_REPLY, {}) is False
