"""
Message routing between users and the operator.

Each ``route_*`` call first resolves sender and destinations against the
live registry (raising a ``RelayError`` when it cannot), then dispatches
the planned deliveries in one synchronous step, and finally schedules the
message record on the persistence gateway without waiting for it.
"""

from datetime import datetime

from support_relay.api.ws.constants import OutboundEvent
from support_relay.constants import ADMIN_IDENTITY_ID
from support_relay.core.background import BackgroundWriter
from support_relay.core.dispatch import dispatch
from support_relay.core.registry import ConnectionRegistry
from support_relay.exceptions import (
    RecipientOffline,
    UnauthorizedSender,
    UnknownSender,
)
from support_relay.logging import logger
from support_relay.protocols import PersistenceGateway, Transport
from support_relay.schemas.events import Delivery
from support_relay.schemas.identity import Identity, Role
from support_relay.schemas.message import Message, MessageKind
from support_relay.utils.metrics import MetricsCollector


def _timestamp(value: datetime) -> str:
    return value.isoformat()


def plan_direct(
    message: Message, sender_connection_id: str, recipient_connection_id: str
) -> list[Delivery]:
    return [
        Delivery(
            connection_id=recipient_connection_id,
            event=OutboundEvent.NEW_MESSAGE,
            payload={
                "from": message.from_identity.display_name,
                "userId": message.from_identity.id,
                "message": message.body,
                "timestamp": _timestamp(message.sent_at),
                "type": message.from_identity.role.value,
            },
        ),
        Delivery(
            connection_id=sender_connection_id,
            event=OutboundEvent.MESSAGE_SENT,
            payload={"success": True, "message": message.body},
        ),
    ]


def plan_admin_reply(
    message: Message, admin_connection_id: str, recipient_connection_id: str
) -> list[Delivery]:
    return [
        Delivery(
            connection_id=recipient_connection_id,
            event=OutboundEvent.ADMIN_REPLY,
            payload={
                "from": message.from_identity.display_name,
                "message": message.body,
                "timestamp": _timestamp(message.sent_at),
                "type": "admin",
            },
        ),
        Delivery(
            connection_id=admin_connection_id,
            event=OutboundEvent.MESSAGE_DELIVERED,
            payload={
                "to": message.to_identity.display_name,
                "userId": message.to_identity.id,
                "message": message.body,
            },
        ),
    ]


def plan_broadcast(
    message: Message,
    admin_connection_id: str,
    user_connections: list[tuple[str, Identity]],
) -> list[Delivery]:
    payload = {
        "from": message.from_identity.display_name,
        "message": message.body,
        "timestamp": _timestamp(message.sent_at),
        "type": "broadcast",
    }
    deliveries = [
        Delivery(
            connection_id=connection_id,
            event=OutboundEvent.ADMIN_REPLY,
            payload=payload,
        )
        for connection_id, _ in user_connections
        if connection_id != admin_connection_id
    ]
    deliveries.append(
        Delivery(
            connection_id=admin_connection_id,
            event=OutboundEvent.BROADCAST_SENT,
            payload={"recipients": len(deliveries), "message": message.body},
        )
    )
    return deliveries


class MessageRouter:
    """
    Routes direct messages, admin replies and admin broadcasts.

    Args:
        registry: Live connection registry used to resolve every sender
            and destination at delivery time.
        transport: Outbound channel to clients.
        gateway: Optional persistence gateway for message records.
        writer: Runner for the fire-and-forget message record writes.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        transport: Transport,
        gateway: PersistenceGateway | None = None,
        writer: BackgroundWriter | None = None,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.gateway = gateway
        self.writer = writer or BackgroundWriter()

    def _resolve_sender(self, connection_id: str) -> Identity:
        sender = self.registry.resolve_routable(connection_id)
        if sender is None:
            raise UnknownSender("Connection is not registered")
        return sender

    def _resolve_admin(self, connection_id: str) -> Identity:
        # A replaced admin connection is still bound but has lost the slot
        sender = self.registry.resolve(connection_id)
        if sender is None:
            raise UnknownSender("Connection is not registered")
        if not self.registry.is_admin(connection_id):
            raise UnauthorizedSender("Only the active admin may do this")
        return sender

    def route_direct(
        self, from_connection_id: str, to_identity_id: str, body: str
    ) -> Message:
        """
        Deliver a message from one connection to one identity.

        Raises:
            UnknownSender: Sender connection is not registered (or superseded).
            RecipientOffline: Recipient has no live connection.
        """
        sender = self._resolve_sender(from_connection_id)

        recipient_connection_id = self.registry.resolve_connection(to_identity_id)
        if recipient_connection_id is None:
            raise RecipientOffline(
                to_identity_id,
                "Admin is offline"
                if to_identity_id == ADMIN_IDENTITY_ID
                else "User not found",
            )
        recipient = self.registry.resolve(recipient_connection_id)

        message = Message(
            from_identity=sender,
            to_identity=recipient,
            body=body,
            kind=MessageKind.DIRECT,
        )
        dispatch(
            self.transport,
            plan_direct(message, from_connection_id, recipient_connection_id),
        )
        MetricsCollector.record_message_routed(MessageKind.DIRECT.value)
        logger.info(f"{sender.display_name} to {recipient.display_name}: {body}")

        self._persist(message)
        return message

    def route_admin_reply(
        self, admin_connection_id: str, to_identity_id: str, body: str
    ) -> Message:
        """
        Deliver an operator reply to one user.

        Raises:
            UnknownSender: Sender connection is not registered.
            UnauthorizedSender: Sender does not hold the admin slot.
            RecipientOffline: Target user has no live connection.
        """
        admin = self._resolve_admin(admin_connection_id)

        recipient_connection_id = self.registry.resolve_connection(to_identity_id)
        recipient = (
            self.registry.resolve(recipient_connection_id)
            if recipient_connection_id is not None
            else None
        )
        if recipient is None or recipient.role != Role.USER:
            raise RecipientOffline(to_identity_id)

        message = Message(
            from_identity=admin,
            to_identity=recipient,
            body=body,
            kind=MessageKind.ADMIN_REPLY,
        )
        dispatch(
            self.transport,
            plan_admin_reply(message, admin_connection_id, recipient_connection_id),
        )
        MetricsCollector.record_message_routed(MessageKind.ADMIN_REPLY.value)
        logger.info(f"Admin to {recipient.display_name}: {body}")

        self._persist(message)
        return message

    def route_broadcast(self, admin_connection_id: str, body: str) -> int:
        """
        Deliver an operator message to every online user.

        Returns:
            Number of user connections the broadcast was addressed to,
            counted from the live registry at delivery time.

        Raises:
            UnknownSender: Sender connection is not registered.
            UnauthorizedSender: Sender does not hold the admin slot.
        """
        admin = self._resolve_admin(admin_connection_id)
        user_connections = self.registry.user_connections()

        message = Message(
            from_identity=admin,
            body=body,
            kind=MessageKind.BROADCAST,
            recipients=[identity for _, identity in user_connections],
        )
        deliveries = plan_broadcast(message, admin_connection_id, user_connections)
        recipients = len(deliveries) - 1
        dispatch(self.transport, deliveries)
        MetricsCollector.record_message_routed(MessageKind.BROADCAST.value)
        logger.info(f"Admin broadcast to {recipients} users: {body}")

        self._persist(message)
        return recipients

    def _persist(self, message: Message) -> None:
        """Schedule the message record without waiting for it."""
        if self.gateway is None:
            return
        self.writer.schedule(
            self.gateway.append_message_record(message),
            f"{message.kind.value} message from {message.from_identity.id}",
        )
