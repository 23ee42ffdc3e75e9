"""
Per-connection session state machine and inbound event dispatch.

Every connection walks ``CONNECTING -> BOUND -> ROUTABLE -> CLOSED`` and
never goes back. ``SessionLifecycle.handle_event`` is the operation
boundary: any ``AppException`` raised while handling an inbound event is
reported to the originating connection as an ``error`` event and never
reaches the transport loop or other connections.
"""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError
from starlette import status

from support_relay.api.ws.constants import InboundEvent, OutboundEvent
from support_relay.constants import ADMIN_IDENTITY_ID
from support_relay.core.background import BackgroundWriter
from support_relay.core.binder import IdentityBinder
from support_relay.core.presence import PresenceNotifier
from support_relay.core.registry import ConnectionRegistry, Departure
from support_relay.core.router import MessageRouter
from support_relay.exceptions import (
    AppException,
    BindingError,
    InvalidFrameError,
    UnauthorizedSender,
    UnknownSender,
)
from support_relay.logging import logger
from support_relay.protocols import PersistenceGateway, Transport
from support_relay.schemas.events import (
    AdminBroadcastPayload,
    AdminMessagePayload,
    UserMessagePayload,
)
from support_relay.schemas.identity import Identity, Role
from support_relay.settings import app_settings
from support_relay.utils.metrics import MetricsCollector

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class SessionState(str, Enum):
    CONNECTING = "connecting"
    BOUND = "bound"
    ROUTABLE = "routable"
    CLOSED = "closed"


_STATE_ORDER = list(SessionState)


class Session:
    """Lifecycle state of one connection."""

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        self.state = SessionState.CONNECTING
        self.identity: Identity | None = None

    def advance(self, state: SessionState) -> None:
        """
        Move to a later state.

        Raises:
            ValueError: On any transition that is not strictly forward.
        """
        if _STATE_ORDER.index(state) <= _STATE_ORDER.index(self.state):
            raise ValueError(
                f"Invalid session transition {self.state.value} -> {state.value}"
            )
        self.state = state

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED


class SessionLifecycle:
    """
    Orchestrates binding, registration, presence and routing per connection.

    Only the identity binder awaits anything; registry mutation and the
    notifications it triggers run in one synchronous step afterwards.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        binder: IdentityBinder,
        notifier: PresenceNotifier,
        router: MessageRouter,
        transport: Transport,
        gateway: PersistenceGateway | None = None,
        writer: BackgroundWriter | None = None,
    ) -> None:
        self.registry = registry
        self.binder = binder
        self.notifier = notifier
        self.router = router
        self.transport = transport
        self.gateway = gateway
        self.writer = writer or router.writer
        self.sessions: dict[str, Session] = {}

    def open(self, connection_id: str) -> Session:
        """Start a fresh session for an accepted transport connection."""
        session = Session(connection_id)
        self.sessions[connection_id] = session
        MetricsCollector.record_connection_opened()
        logger.debug(f"Session opened for connection {connection_id}")
        return session

    def state(self, connection_id: str) -> SessionState | None:
        session = self.sessions.get(connection_id)
        return session.state if session else None

    def _connecting_session(self, connection_id: str) -> Session:
        session = self.sessions.get(connection_id)
        if session is None or session.is_closed:
            raise BindingError("Connection is closed")
        if session.state != SessionState.CONNECTING:
            raise BindingError("Connection is already bound")
        return session

    def _routable_session(self, connection_id: str) -> Session:
        session = self.sessions.get(connection_id)
        if session is None or session.state != SessionState.ROUTABLE:
            raise UnknownSender("Connection is not registered")
        return session

    @staticmethod
    def _parse(model: Type[PayloadT], data: dict[str, Any] | None) -> PayloadT:
        try:
            payload = model.model_validate(data or {})
        except ValidationError as exc:
            error = exc.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or "payload"
            raise InvalidFrameError(f"Invalid payload: {field}: {error['msg']}")

        message = getattr(payload, "message", "")
        if len(message) > app_settings.WS_MAX_MESSAGE_LENGTH:
            raise InvalidFrameError(
                f"Message longer than {app_settings.WS_MAX_MESSAGE_LENGTH} characters"
            )
        return payload

    async def handle_user_connect(
        self, connection_id: str, data: dict[str, Any] | None
    ) -> Identity | None:
        """
        Bind, register and announce an end user.

        Returns:
            The bound identity, or None if the connection closed while the
            identity store was being consulted.
        """
        session = self._connecting_session(connection_id)
        identity = await self.binder.bind(connection_id, data or {})

        if session.is_closed:
            logger.info(
                f"Connection {connection_id} closed while binding {identity.id}"
            )
            return None

        self.registry.register(connection_id, identity)
        session.identity = identity
        session.advance(SessionState.BOUND)
        MetricsCollector.record_bound(identity.role.value)

        self.notifier.on_user_arrived(identity, connection_id)
        session.advance(SessionState.ROUTABLE)
        return identity

    def handle_admin_connect(
        self, connection_id: str, data: dict[str, Any] | None
    ) -> Identity:
        """Take over the admin slot and send the admin its snapshot of online users."""
        session = self._connecting_session(connection_id)
        identity = self.binder.bind_admin(connection_id, data)

        self.registry.register(connection_id, identity)
        self.registry.set_admin(connection_id)
        session.identity = identity
        session.advance(SessionState.BOUND)
        MetricsCollector.record_bound(identity.role.value)

        self.notifier.on_admin_arrived(
            identity, connection_id, self.registry.snapshot_active_users()
        )
        session.advance(SessionState.ROUTABLE)
        return identity

    def handle_user_message(
        self, connection_id: str, data: dict[str, Any] | None
    ) -> None:
        session = self._routable_session(connection_id)
        if session.identity.is_admin:
            raise UnauthorizedSender("Admins reply with admin_message")
        payload = self._parse(UserMessagePayload, data)
        self.router.route_direct(connection_id, ADMIN_IDENTITY_ID, payload.message)

    def handle_admin_message(
        self, connection_id: str, data: dict[str, Any] | None
    ) -> None:
        self._routable_session(connection_id)
        payload = self._parse(AdminMessagePayload, data)
        self.router.route_admin_reply(
            connection_id, payload.user_id, payload.message
        )

    def handle_admin_broadcast(
        self, connection_id: str, data: dict[str, Any] | None
    ) -> int:
        self._routable_session(connection_id)
        payload = self._parse(AdminBroadcastPayload, data)
        return self.router.route_broadcast(connection_id, payload.message)

    def close(self, connection_id: str) -> Departure | None:
        """
        Close a session after the transport reported a disconnect.

        Safe to call more than once; only the first call unregisters the
        connection and fires the departed notification.

        Returns:
            Departure of a bound connection, None if the session was never
            bound or is already closed.
        """
        session = self.sessions.pop(connection_id, None)
        if session is None or session.is_closed:
            return None

        session.advance(SessionState.CLOSED)
        MetricsCollector.record_connection_closed()

        departure = self.registry.unregister(connection_id)
        if departure is None:
            logger.debug(f"Unbound connection {connection_id} closed")
            return None

        self.notifier.on_departed(departure)
        self._mark_inactive(departure)
        return departure

    def _mark_inactive(self, departure: Departure) -> None:
        if self.gateway is None or departure.superseded:
            return
        if departure.identity.role != Role.USER:
            return
        self.writer.schedule(
            self.gateway.update_identity(
                departure.identity.id,
                {"is_active": False, "last_seen": datetime.now(timezone.utc)},
            ),
            f"mark identity {departure.identity.id} inactive",
        )

    def report(self, connection_id: str, exc: AppException) -> None:
        """Tell the originating connection that its event failed."""
        if isinstance(exc, BindingError):
            MetricsCollector.record_binding_failed()
        MetricsCollector.record_routing_failure(exc.code.value)
        logger.warning(
            f"{type(exc).__name__} on connection {connection_id}: {exc.message}"
        )
        self.transport.send(connection_id, OutboundEvent.ERROR, exc.to_error_payload())

    async def handle_event(
        self, connection_id: str, event: str, data: dict[str, Any] | None = None
    ) -> None:
        """
        Handle one inbound event of a connection.

        Errors are recovered here and reported to the connection; they
        never propagate to the transport loop.
        """
        start_time = time.perf_counter()
        label = "unknown"
        try:
            try:
                inbound = InboundEvent(event)
            except ValueError:
                raise InvalidFrameError(f"Unknown event '{event}'")
            label = inbound.value

            if inbound == InboundEvent.USER_CONNECT:
                await self.handle_user_connect(connection_id, data)
            elif inbound == InboundEvent.ADMIN_CONNECT:
                self.handle_admin_connect(connection_id, data)
            elif inbound == InboundEvent.USER_MESSAGE:
                self.handle_user_message(connection_id, data)
            elif inbound == InboundEvent.ADMIN_MESSAGE:
                self.handle_admin_message(connection_id, data)
            elif inbound == InboundEvent.ADMIN_BROADCAST:
                self.handle_admin_broadcast(connection_id, data)
            elif inbound == InboundEvent.DISCONNECT:
                self.close(connection_id)
                await self.transport.close(
                    connection_id, status.WS_1000_NORMAL_CLOSURE
                )
        except AppException as ex:
            self.report(connection_id, ex)
        except Exception as ex:
            logger.error(
                f"Unexpected error handling '{event}' on {connection_id}: {ex}",
                exc_info=True,
            )
            self.report(connection_id, AppException("Internal server error"))
        finally:
            MetricsCollector.observe_event_duration(
                label, time.perf_counter() - start_time
            )
