"""
In-memory registry of live connections.

The registry is the single source of truth for who is online and through
which connection. It is owned by the relay hub and shared by reference
with the router, the presence notifier and the session lifecycle.

None of its methods await anything: on a single asyncio event loop each
call runs to completion before any other task can observe the maps, which
is what keeps ``by_connection`` and ``by_identity`` consistent.
"""

import time

from pydantic import BaseModel, ConfigDict

from support_relay.exceptions import RegistryInconsistency
from support_relay.logging import logger
from support_relay.schemas.identity import Connection, Identity, Role


class Departure(BaseModel):
    """
    Outcome of unregistering a connection.

    Attributes:
        connection_id: The connection that went away.
        identity: Identity the connection was bound to.
        held_admin_slot: Whether the connection held the admin slot.
        superseded: Whether a newer connection of the same identity had
            already taken over its routing eligibility.
    """

    model_config = ConfigDict(frozen=True)

    connection_id: str
    identity: Identity
    held_admin_slot: bool
    superseded: bool


class ConnectionRegistry:
    """
    Two-way mapping between connections and identities plus the admin slot.

    ``by_connection`` keeps every bound connection until its own
    disconnect, including superseded ones. ``by_identity`` points at the
    single routable connection of each online identity. Superseded
    connections therefore stay resolvable but are no longer routable.
    """

    def __init__(self) -> None:
        self._by_connection: dict[str, Connection] = {}
        self._by_identity: dict[str, str] = {}
        self._admin_connection_id: str | None = None
        # connection_id -> monotonic time it was superseded at
        self._superseded_at: dict[str, float] = {}

    def register(self, connection_id: str, identity: Identity) -> str | None:
        """
        Bind a connection to an identity.

        If the identity already has a live connection, that connection is
        superseded: it leaves ``by_identity`` but stays in
        ``by_connection`` until its own disconnect fires. Re-registering
        an identity moves it to the end of the registration order.

        Args:
            connection_id: The connection being bound.
            identity: The identity resolved for it.

        Returns:
            The superseded connection id, if any.
        """
        previous = self._by_connection.get(connection_id)
        if previous is not None and previous.identity.id != identity.id:
            if self._by_identity.get(previous.identity.id) == connection_id:
                del self._by_identity[previous.identity.id]
            if (
                self._admin_connection_id == connection_id
                and not identity.is_admin
            ):
                self._admin_connection_id = None

        superseded = self._by_identity.pop(identity.id, None)
        if superseded == connection_id:
            superseded = None
        if superseded is not None:
            self._superseded_at[superseded] = time.monotonic()
            logger.info(
                f"Connection {superseded} of identity {identity.id} "
                f"superseded by {connection_id}"
            )

        self._by_connection[connection_id] = Connection(
            connection_id=connection_id, identity=identity
        )
        self._superseded_at.pop(connection_id, None)
        self._by_identity[identity.id] = connection_id

        logger.debug(
            f"Connection {connection_id} registered for identity {identity.id}"
        )
        return superseded

    def set_admin(self, connection_id: str) -> str | None:
        """
        Assign the singleton admin slot, replacing any previous holder.

        The connection must already be registered with the Admin role.

        Returns:
            The connection id that held the slot before, if any.

        Raises:
            RegistryInconsistency: If the connection is not registered as
                an admin connection.
        """
        connection = self._by_connection.get(connection_id)
        if connection is None or connection.identity.role != Role.ADMIN:
            raise RegistryInconsistency(
                f"Connection {connection_id} is not a registered admin connection"
            )

        previous = self._admin_connection_id
        self._admin_connection_id = connection_id
        if previous is not None and previous != connection_id:
            logger.info(
                f"Admin slot moved from {previous} to {connection_id}"
            )
        return previous if previous != connection_id else None

    def unregister(self, connection_id: str) -> Departure | None:
        """
        Remove every entry of a connection.

        Calling it again for the same connection is a no-op.

        Returns:
            Departure describing what was removed, or None if the
            connection was not registered.
        """
        connection = self._by_connection.pop(connection_id, None)
        if connection is None:
            return None

        identity_id = connection.identity.id
        superseded = self._by_identity.get(identity_id) != connection_id
        if not superseded:
            del self._by_identity[identity_id]

        held_admin_slot = self._admin_connection_id == connection_id
        if held_admin_slot:
            self._admin_connection_id = None

        self._superseded_at.pop(connection_id, None)

        logger.debug(
            f"Connection {connection_id} unregistered (identity {identity_id})"
        )
        return Departure(
            connection_id=connection_id,
            identity=connection.identity,
            held_admin_slot=held_admin_slot,
            superseded=superseded,
        )

    def resolve(self, connection_id: str) -> Identity | None:
        """Identity bound to a connection, superseded connections included."""
        connection = self._by_connection.get(connection_id)
        return connection.identity if connection else None

    def resolve_routable(self, connection_id: str) -> Identity | None:
        """Identity bound to a connection, only if the connection is not superseded."""
        identity = self.resolve(connection_id)
        if identity is None:
            return None
        if self._by_identity.get(identity.id) != connection_id:
            return None
        return identity

    def resolve_connection(self, identity_id: str) -> str | None:
        """Routable connection of an identity."""
        return self._by_identity.get(identity_id)

    def admin_connection(self) -> str | None:
        """
        Connection holding the admin slot.

        A slot pointing at a missing or non-admin connection is logged as
        a registry inconsistency and cleared, so callers see it as absent.
        """
        connection_id = self._admin_connection_id
        if connection_id is None:
            return None

        connection = self._by_connection.get(connection_id)
        if connection is None or connection.identity.role != Role.ADMIN:
            error = RegistryInconsistency(
                f"Admin slot points at dangling connection {connection_id}"
            )
            logger.error(error.message)
            self._admin_connection_id = None
            return None
        return connection_id

    def is_admin(self, connection_id: str) -> bool:
        """Whether the connection currently holds the admin slot."""
        return self.admin_connection() == connection_id

    def user_connections(self) -> list[tuple[str, Identity]]:
        """Routable user connections in registration order."""
        result = []
        for identity_id, connection_id in self._by_identity.items():
            identity = self._by_connection[connection_id].identity
            if identity.role == Role.USER:
                result.append((connection_id, identity))
        return result

    def snapshot_active_users(self) -> list[Identity]:
        """Online users in registration order, used when an admin (re)connects."""
        return [identity for _, identity in self.user_connections()]

    def superseded_connections(
        self, older_than: float | None = None
    ) -> list[str]:
        """
        Connections that lost their routing eligibility to a newer one.

        Args:
            older_than: Only return connections superseded at least this
                many seconds ago.
        """
        if older_than is None:
            return list(self._superseded_at)
        now = time.monotonic()
        return [
            connection_id
            for connection_id, since in self._superseded_at.items()
            if now - since >= older_than
        ]

    def stats(self) -> dict[str, int | bool]:
        """Counters for the health endpoint."""
        return {
            "connections": len(self._by_connection),
            "users": len(self.user_connections()),
            "admin": self.admin_connection() is not None,
            "superseded": len(self._superseded_at),
        }

    def assert_consistent(self) -> None:
        """
        Check the registry invariants.

        Raises:
            RegistryInconsistency: On the first violated invariant.
        """
        for identity_id, connection_id in self._by_identity.items():
            connection = self._by_connection.get(connection_id)
            if connection is None or connection.identity.id != identity_id:
                raise RegistryInconsistency(
                    f"Identity {identity_id} maps to unbound connection {connection_id}"
                )

        for connection_id, connection in self._by_connection.items():
            if connection_id in self._superseded_at:
                continue
            if self._by_identity.get(connection.identity.id) != connection_id:
                raise RegistryInconsistency(
                    f"Connection {connection_id} is neither routable nor superseded"
                )

        for connection_id in self._superseded_at:
            if connection_id not in self._by_connection:
                raise RegistryInconsistency(
                    f"Superseded connection {connection_id} is not bound"
                )

        if self._admin_connection_id is not None:
            connection = self._by_connection.get(self._admin_connection_id)
            if connection is None or connection.identity.role != Role.ADMIN:
                raise RegistryInconsistency(
                    f"Admin slot points at dangling connection {self._admin_connection_id}"
                )

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._by_connection

    def __len__(self) -> int:
        return len(self._by_connection)
