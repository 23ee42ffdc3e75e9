"""Tests for the superseded connection sweep."""

import asyncio

import pytest

from support_relay.api.ws.constants import OutboundEvent
from support_relay.constants import WS_GOING_AWAY_CODE
from support_relay.tasks.superseded_sweep import (
    superseded_sweep_task,
    sweep_superseded,
)


async def connect(lifecycle, connection_id, email):
    lifecycle.open(connection_id)
    await lifecycle.handle_event(connection_id, "user_connect", {"email": email})


class TestSweep:
    @pytest.mark.asyncio
    async def test_closes_idle_superseded(self, hub, transport):
        lifecycle = hub.lifecycle
        lifecycle.open("a1")
        await lifecycle.handle_event("a1", "admin_connect", {})
        await connect(lifecycle, "c1", "alice@example.com")
        await connect(lifecycle, "c2", "alice@example.com")

        closed = await sweep_superseded(hub, idle_timeout=0)

        assert closed == 1
        assert transport.closed == [("c1", WS_GOING_AWAY_CODE)]
        assert "c1" not in hub.registry
        assert hub.registry.resolve_connection("1") == "c2"
        assert transport.payloads("a1", OutboundEvent.USER_OFFLINE) == []

    @pytest.mark.asyncio
    async def test_recent_superseded_kept(self, hub, transport):
        await connect(hub.lifecycle, "c1", "alice@example.com")
        await connect(hub.lifecycle, "c2", "alice@example.com")

        assert await sweep_superseded(hub, idle_timeout=3600) == 0
        assert "c1" in hub.registry

    @pytest.mark.asyncio
    async def test_task_stops_on_cancel(self, hub):
        task = asyncio.create_task(superseded_sweep_task(hub))
        await asyncio.sleep(0)

        task.cancel()
        await task

        assert task.done()
