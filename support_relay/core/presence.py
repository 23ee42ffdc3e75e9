"""
Presence notifications.

The ``plan_*`` functions are pure: given the committed registry state they
compute which connection gets which event. ``PresenceNotifier`` reads the
registry after a mutation, plans, and dispatches the result.
"""

from datetime import datetime, timezone

from support_relay.api.ws.constants import OutboundEvent
from support_relay.core.dispatch import dispatch
from support_relay.core.registry import ConnectionRegistry, Departure
from support_relay.logging import logger
from support_relay.protocols import Transport
from support_relay.schemas.events import Delivery
from support_relay.schemas.identity import Identity

WELCOME_MESSAGE = "Connected to support. An admin will assist you shortly."
ADMIN_WELCOME_MESSAGE = "Admin connected successfully"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def user_summary(identity: Identity) -> dict[str, str]:
    return {"userId": identity.id, "name": identity.display_name}


def plan_user_arrived(
    identity: Identity,
    connection_id: str,
    admin_connection_id: str | None,
) -> list[Delivery]:
    """Admin learns about the new user; the user gets its acknowledgement and the admin status."""
    deliveries = []
    if admin_connection_id is not None:
        deliveries.append(
            Delivery(
                connection_id=admin_connection_id,
                event=OutboundEvent.USER_ONLINE,
                payload={**user_summary(identity), "timestamp": _now()},
            )
        )
    deliveries.append(
        Delivery(
            connection_id=connection_id,
            event=OutboundEvent.CONNECTED,
            payload={"message": WELCOME_MESSAGE, "userId": identity.id},
        )
    )
    deliveries.append(
        Delivery(
            connection_id=connection_id,
            event=OutboundEvent.ADMIN_STATUS,
            payload={"online": admin_connection_id is not None},
        )
    )
    return deliveries


def plan_admin_arrived(
    admin_connection_id: str,
    user_connections: list[tuple[str, Identity]],
    active_users: list[Identity] | None = None,
) -> list[Delivery]:
    """Every user learns the admin is online; the admin gets the snapshot of active users."""
    if active_users is None:
        active_users = [identity for _, identity in user_connections]

    deliveries = [
        Delivery(
            connection_id=connection_id,
            event=OutboundEvent.ADMIN_STATUS,
            payload={"online": True},
        )
        for connection_id, _ in user_connections
    ]
    deliveries.append(
        Delivery(
            connection_id=admin_connection_id,
            event=OutboundEvent.ADMIN_CONNECTED,
            payload={
                "message": ADMIN_WELCOME_MESSAGE,
                "users": [user_summary(identity) for identity in active_users],
                "totalUsers": len(active_users),
            },
        )
    )
    return deliveries


def plan_departed(
    departure: Departure,
    admin_connection_id: str | None,
    user_connections: list[tuple[str, Identity]],
) -> list[Delivery]:
    """
    Offline transition for a departed connection.

    A superseded connection was not routable anymore, so its departure
    changes nobody's view of presence and yields no deliveries.
    """
    if departure.superseded:
        return []

    if departure.held_admin_slot:
        return [
            Delivery(
                connection_id=connection_id,
                event=OutboundEvent.ADMIN_STATUS,
                payload={"online": False},
            )
            for connection_id, _ in user_connections
        ]

    if departure.identity.is_admin or admin_connection_id is None:
        return []

    return [
        Delivery(
            connection_id=admin_connection_id,
            event=OutboundEvent.USER_OFFLINE,
            payload=user_summary(departure.identity),
        )
    ]


class PresenceNotifier:
    """Emits online/offline transitions derived from the registry."""

    def __init__(self, registry: ConnectionRegistry, transport: Transport) -> None:
        self.registry = registry
        self.transport = transport

    def on_user_arrived(self, identity: Identity, connection_id: str) -> int:
        deliveries = plan_user_arrived(
            identity, connection_id, self.registry.admin_connection()
        )
        logger.info(f"User connected: {identity.display_name} ({identity.id})")
        return dispatch(self.transport, deliveries)

    def on_admin_arrived(
        self,
        admin_identity: Identity,
        connection_id: str,
        active_users: list[Identity] | None = None,
    ) -> int:
        deliveries = plan_admin_arrived(
            connection_id, self.registry.user_connections(), active_users
        )
        logger.info(
            f"Admin connected: {admin_identity.display_name} ({connection_id})"
        )
        return dispatch(self.transport, deliveries)

    def on_departed(self, departure: Departure) -> int:
        deliveries = plan_departed(
            departure,
            self.registry.admin_connection(),
            self.registry.user_connections(),
        )
        if departure.held_admin_slot:
            logger.info("Admin disconnected")
        elif not departure.superseded:
            logger.info(
                f"User disconnected: {departure.identity.display_name}"
            )
        return dispatch(self.transport, deliveries)
