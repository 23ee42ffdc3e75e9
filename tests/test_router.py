"""Tests for message routing."""

import pytest

from support_relay.api.ws.constants import OutboundEvent
from support_relay.core.background import BackgroundWriter
from support_relay.core.router import MessageRouter
from support_relay.exceptions import (
    PersistenceError,
    RecipientOffline,
    UnauthorizedSender,
    UnknownSender,
)
from support_relay.schemas.message import MessageKind
from tests.mocks.gateway_mocks import make_admin, make_user


@pytest.fixture
def router(registry, transport, gateway):
    """Router sharing the registry and transport fixtures."""
    return MessageRouter(registry, transport, gateway, BackgroundWriter())


@pytest.fixture
def online(registry):
    """Alice (c1), Bob (c2) and the admin (a1) online."""
    registry.register("c1", make_user("u1", "Alice"))
    registry.register("c2", make_user("u2", "Bob"))
    registry.register("a1", make_admin("Support"))
    registry.set_admin("a1")
    return registry


class TestRouteDirect:
    def test_user_to_admin(self, router, online, transport):
        """The admin gets new_message; the sender gets message_sent."""
        message = router.route_direct("c1", "admin", "hello")

        assert message.kind == MessageKind.DIRECT
        [payload] = transport.payloads("a1", OutboundEvent.NEW_MESSAGE)
        assert payload["from"] == "Alice"
        assert payload["userId"] == "u1"
        assert payload["message"] == "hello"
        assert payload["type"] == "user"
        assert transport.payloads("c1", OutboundEvent.MESSAGE_SENT) == [
            {"success": True, "message": "hello"}
        ]

    def test_admin_offline(self, router, registry, transport):
        """Messages to an offline admin are rejected, not queued."""
        registry.register("c1", make_user("u1"))

        with pytest.raises(RecipientOffline) as exc_info:
            router.route_direct("c1", "admin", "anyone there?")

        assert exc_info.value.message == "Admin is offline"
        assert transport.sent == []

    def test_offline_user(self, router, online):
        with pytest.raises(RecipientOffline) as exc_info:
            router.route_direct("c1", "u404", "hi")

        assert exc_info.value.identity_id == "u404"

    def test_unknown_sender(self, router, online, transport):
        with pytest.raises(UnknownSender):
            router.route_direct("ghost", "admin", "hi")
        assert transport.sent == []

    def test_superseded_sender_is_unknown(self, router, online):
        """A superseded connection can no longer send."""
        online.register("c3", make_user("u1", "Alice"))

        with pytest.raises(UnknownSender):
            router.route_direct("c1", "admin", "from old tab")

    def test_delivers_to_newest_connection(self, router, online, transport):
        """Replies follow the identity to its newest connection."""
        online.register("c3", make_user("u1", "Alice"))

        router.route_admin_reply("a1", "u1", "hi again")

        assert transport.events_for("c1") == []
        assert transport.events_for("c3") == [OutboundEvent.ADMIN_REPLY]


class TestRouteAdminReply:
    def test_reply(self, router, online, transport):
        router.route_admin_reply("a1", "u2", "how can I help?")

        [reply] = transport.payloads("c2", OutboundEvent.ADMIN_REPLY)
        assert reply["from"] == "Support"
        assert reply["type"] == "admin"
        assert transport.payloads("a1", OutboundEvent.MESSAGE_DELIVERED) == [
            {"to": "Bob", "userId": "u2", "message": "how can I help?"}
        ]

    def test_reply_to_offline_user(self, router, online):
        with pytest.raises(RecipientOffline):
            router.route_admin_reply("a1", "u9", "hello?")

    def test_user_cannot_reply(self, router, online):
        with pytest.raises(UnauthorizedSender):
            router.route_admin_reply("c1", "u2", "pretending")

    def test_replaced_admin_loses_authority(self, router, online):
        """After the slot moves, the old admin connection is refused."""
        online.register("a2", make_admin("Support"))
        online.set_admin("a2")

        with pytest.raises(UnauthorizedSender):
            router.route_admin_reply("a1", "u1", "stale")
        router.route_admin_reply("a2", "u1", "fresh")


class TestRouteBroadcast:
    def test_broadcast_reaches_every_user(self, router, online, transport):
        """N online users receive exactly one copy each."""
        recipients = router.route_broadcast("a1", "maintenance at 5")

        assert recipients == 2
        assert transport.count(OutboundEvent.ADMIN_REPLY) == 2
        assert transport.events_for("a1") == [OutboundEvent.BROADCAST_SENT]
        [summary] = transport.payloads("a1", OutboundEvent.BROADCAST_SENT)
        assert summary["recipients"] == 2

    def test_broadcast_without_users(self, router, registry, transport):
        registry.register("a1", make_admin())
        registry.set_admin("a1")

        assert router.route_broadcast("a1", "hello?") == 0
        assert transport.payloads("a1", OutboundEvent.BROADCAST_SENT)[0][
            "recipients"
        ] == 0

    def test_broadcast_counts_routable_connections_only(
        self, router, online
    ):
        """A superseded tab does not get a second copy."""
        online.register("c3", make_user("u1", "Alice"))

        assert router.route_broadcast("a1", "one each") == 2

    def test_user_cannot_broadcast(self, router, online):
        with pytest.raises(UnauthorizedSender):
            router.route_broadcast("c1", "spam")


class TestPersistence:
    @pytest.mark.asyncio
    async def test_message_record_scheduled(self, router, online, gateway):
        message = router.route_direct("c1", "admin", "persist me")
        await router.writer.flush()

        gateway.append_message_record.assert_awaited_once_with(message)

    @pytest.mark.asyncio
    async def test_persistence_failure_keeps_delivery(
        self, router, online, gateway, transport
    ):
        """A failed write is logged; the delivered message stands."""
        gateway.append_message_record.side_effect = PersistenceError("down")

        router.route_broadcast("a1", "still delivered")
        await router.writer.flush()

        assert transport.count(OutboundEvent.ADMIN_REPLY) == 2
        gateway.append_message_record.assert_awaited_once()

    def test_router_without_gateway(self, registry, transport):
        router = MessageRouter(registry, transport)
        registry.register("c1", make_user("u1"))
        registry.register("a1", make_admin())
        registry.set_admin("a1")

        router.route_direct("c1", "admin", "no store")

        assert len(router.writer) == 0
