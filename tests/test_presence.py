"""Tests for presence planning and the presence notifier."""

from support_relay.api.ws.constants import OutboundEvent
from support_relay.core.presence import (
    PresenceNotifier,
    plan_admin_arrived,
    plan_departed,
    plan_user_arrived,
)
from support_relay.core.registry import Departure
from tests.mocks.gateway_mocks import make_admin, make_user


class TestPlanUserArrived:
    def test_admin_online(self):
        """Admin gets user_online; the user gets connected and admin_status."""
        alice = make_user("u1", "Alice")

        deliveries = plan_user_arrived(alice, "c1", "a1")

        assert [(d.connection_id, d.event) for d in deliveries] == [
            ("a1", OutboundEvent.USER_ONLINE),
            ("c1", OutboundEvent.CONNECTED),
            ("c1", OutboundEvent.ADMIN_STATUS),
        ]
        assert deliveries[0].payload["userId"] == "u1"
        assert deliveries[0].payload["name"] == "Alice"
        assert deliveries[1].payload["userId"] == "u1"
        assert deliveries[2].payload == {"online": True}

    def test_admin_offline(self):
        """Without an admin only the arriving user is notified."""
        deliveries = plan_user_arrived(make_user("u1"), "c1", None)

        assert {d.connection_id for d in deliveries} == {"c1"}
        assert deliveries[-1].payload == {"online": False}


class TestPlanAdminArrived:
    def test_snapshot_and_status(self):
        """Every user hears admin_status; the admin gets the snapshot."""
        users = [("c1", make_user("u1", "Alice")), ("c2", make_user("u2", "Bob"))]

        deliveries = plan_admin_arrived("a1", users)

        assert [(d.connection_id, d.event) for d in deliveries] == [
            ("c1", OutboundEvent.ADMIN_STATUS),
            ("c2", OutboundEvent.ADMIN_STATUS),
            ("a1", OutboundEvent.ADMIN_CONNECTED),
        ]
        snapshot = deliveries[-1].payload
        assert snapshot["totalUsers"] == 2
        assert snapshot["users"] == [
            {"userId": "u1", "name": "Alice"},
            {"userId": "u2", "name": "Bob"},
        ]

    def test_empty_snapshot(self):
        deliveries = plan_admin_arrived("a1", [])

        assert len(deliveries) == 1
        assert deliveries[0].payload["users"] == []
        assert deliveries[0].payload["totalUsers"] == 0


class TestPlanDeparted:
    def test_user_departure_notifies_admin(self):
        alice = make_user("u1", "Alice")
        departure = Departure(
            connection_id="c1", identity=alice, held_admin_slot=False, superseded=False
        )

        deliveries = plan_departed(departure, "a1", [])

        assert len(deliveries) == 1
        assert deliveries[0].connection_id == "a1"
        assert deliveries[0].event == OutboundEvent.USER_OFFLINE
        assert deliveries[0].payload == {"userId": "u1", "name": "Alice"}

    def test_superseded_departure_is_silent(self):
        """A superseded connection leaving changes nobody's presence view."""
        departure = Departure(
            connection_id="c1",
            identity=make_user("u1"),
            held_admin_slot=False,
            superseded=True,
        )

        assert plan_departed(departure, "a1", [("c2", make_user("u1"))]) == []

    def test_admin_departure_notifies_users(self):
        departure = Departure(
            connection_id="a1",
            identity=make_admin(),
            held_admin_slot=True,
            superseded=False,
        )
        users = [("c1", make_user("u1")), ("c2", make_user("u2"))]

        deliveries = plan_departed(departure, None, users)

        assert [d.connection_id for d in deliveries] == ["c1", "c2"]
        assert all(d.payload == {"online": False} for d in deliveries)

    def test_user_departure_without_admin(self):
        departure = Departure(
            connection_id="c1",
            identity=make_user("u1"),
            held_admin_slot=False,
            superseded=False,
        )

        assert plan_departed(departure, None, []) == []


class TestPresenceNotifier:
    def test_on_user_arrived_dispatches(self, registry, transport):
        notifier = PresenceNotifier(registry, transport)
        registry.register("a1", make_admin())
        registry.set_admin("a1")
        alice = make_user("u1", "Alice")
        registry.register("c1", alice)

        accepted = notifier.on_user_arrived(alice, "c1")

        assert accepted == 3
        assert transport.events_for("a1") == [OutboundEvent.USER_ONLINE]

    def test_unreachable_connection_does_not_stop_fanout(
        self, registry, transport
    ):
        """A dropped delivery is skipped; the rest still go out."""
        notifier = PresenceNotifier(registry, transport)
        registry.register("c1", make_user("u1"))
        registry.register("c2", make_user("u2"))
        registry.register("a1", make_admin())
        registry.set_admin("a1")
        transport.unreachable.add("c1")

        accepted = notifier.on_admin_arrived(make_admin(), "a1")

        assert accepted == 2
        assert transport.events_for("c2") == [OutboundEvent.ADMIN_STATUS]
        assert transport.events_for("a1") == [OutboundEvent.ADMIN_CONNECTED]
