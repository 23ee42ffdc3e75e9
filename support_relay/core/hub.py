from support_relay.core.background import BackgroundWriter
from support_relay.core.binder import IdentityBinder
from support_relay.core.lifecycle import SessionLifecycle
from support_relay.core.presence import PresenceNotifier
from support_relay.core.registry import ConnectionRegistry
from support_relay.core.router import MessageRouter
from support_relay.protocols import PersistenceGateway, Transport


class RelayHub:
    """
    Owns one relay instance: the registry and every component sharing it.

    The application factory builds exactly one hub and stores it on
    ``app.state.relay``; WebSocket consumers reach the core through it.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        transport: Transport,
        admin_default_name: str | None = None,
    ) -> None:
        self.gateway = gateway
        self.transport = transport
        self.writer = BackgroundWriter()
        self.registry = ConnectionRegistry()
        self.binder = IdentityBinder(gateway, admin_default_name)
        self.notifier = PresenceNotifier(self.registry, transport)
        self.router = MessageRouter(
            self.registry, transport, gateway, self.writer
        )
        self.lifecycle = SessionLifecycle(
            self.registry,
            self.binder,
            self.notifier,
            self.router,
            transport,
            gateway,
            self.writer,
        )
