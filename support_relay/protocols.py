"""
Protocol classes for the relay's collaborators.

The presence and routing core only talks to the outside world through
these two interfaces, so it can be exercised in tests with simple fakes
and without a database or a live WebSocket.
"""

from typing import Any, Protocol, runtime_checkable

from support_relay.api.ws.constants import OutboundEvent
from support_relay.schemas.identity import Identity
from support_relay.schemas.message import Message


@runtime_checkable
class PersistenceGateway(Protocol):
    """
    Durable store of identities and message records.

    Only ``find_identity_by_key``, ``create_identity`` and
    ``update_identity`` are ever awaited by the routing core;
    ``append_message_record`` is scheduled and never awaited.
    """

    async def find_identity_by_key(self, key: str) -> Identity | None:
        """
        Look up a user identity by its natural key (lower-cased email).

        Returns:
            Identity if found, None otherwise.
        """
        ...

    async def create_identity(self, fields: dict[str, Any]) -> Identity:
        """Create a new user identity from ``fields`` and return it."""
        ...

    async def update_identity(
        self, identity_id: str, fields: dict[str, Any]
    ) -> None:
        """Update mutable fields (name, contact, last seen, ...) of an identity."""
        ...

    async def append_message_record(self, message: Message) -> None:
        """Persist a routed message."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Outbound side of the bidirectional channel to clients."""

    def send(
        self, connection_id: str, event: OutboundEvent, payload: dict[str, Any]
    ) -> bool:
        """
        Hand one event to the connection without suspending.

        Returns:
            True if the event was accepted for delivery, False if the
            connection is unknown to the transport or its buffer is full.
        """
        ...

    async def close(self, connection_id: str, code: int) -> None:
        """Close the transport session of a connection."""
        ...
