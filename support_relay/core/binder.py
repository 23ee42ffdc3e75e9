import re
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from support_relay.constants import ADMIN_IDENTITY_ID, GENERATED_NAME_ID_CHARS
from support_relay.exceptions import BindingError, PersistenceError
from support_relay.logging import logger
from support_relay.protocols import PersistenceGateway
from support_relay.schemas.events import AdminConnectPayload, UserConnectPayload
from support_relay.schemas.identity import Identity, Role
from support_relay.settings import app_settings

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"]) or "payload"
    return f"{field}: {error['msg']}"


class IdentityBinder:
    """
    Resolves an announcing connection to a durable identity.

    Users are looked up by e-mail through the persistence gateway and
    created on first contact; known users get their mutable fields and
    "last seen" marker refreshed. The admin identity is a fixed singleton
    that never touches the store.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        admin_default_name: str | None = None,
    ) -> None:
        self.gateway = gateway
        self.admin_default_name = (
            admin_default_name or app_settings.ADMIN_DEFAULT_NAME
        )

    @staticmethod
    def parse_credentials(
        credentials: dict[str, Any] | UserConnectPayload,
    ) -> UserConnectPayload:
        """
        Validate a ``user_connect`` payload.

        Raises:
            BindingError: If the e-mail is missing or malformed.
        """
        if isinstance(credentials, UserConnectPayload):
            payload = credentials
        else:
            try:
                payload = UserConnectPayload.model_validate(credentials or {})
            except ValidationError as exc:
                raise BindingError(f"Invalid identity: {_first_error(exc)}")

        if not EMAIL_PATTERN.match(payload.email):
            raise BindingError(f"Invalid identity: malformed email '{payload.email}'")
        return payload

    async def bind(
        self,
        connection_id: str,
        credentials: dict[str, Any] | UserConnectPayload,
    ) -> Identity:
        """
        Resolve or create the user identity announced on a connection.

        Args:
            connection_id: Connection the announcement arrived on.
            credentials: ``user_connect`` payload (email, name, contact).

        Returns:
            The bound user identity.

        Raises:
            BindingError: If the payload is invalid or the identity store
                cannot resolve the identity.
        """
        payload = self.parse_credentials(credentials)
        email = payload.email.lower()
        now = datetime.now(timezone.utc)

        try:
            identity = await self.gateway.find_identity_by_key(email)
        except PersistenceError as exc:
            logger.error(f"Identity lookup failed for {email}: {exc.message}")
            raise BindingError("Identity store unavailable, please retry")

        if identity is None:
            name = payload.name or (
                f"User-{connection_id[:GENERATED_NAME_ID_CHARS]}"
            )
            try:
                identity = await self.gateway.create_identity(
                    {
                        "full_name": name,
                        "email": email,
                        "contact": payload.contact or "",
                        "socket_id": connection_id,
                        "is_active": True,
                        "last_seen": now,
                    }
                )
            except PersistenceError as exc:
                # A concurrent bind of the same e-mail may have created it first
                logger.warning(
                    f"Identity creation failed for {email}: {exc.message}"
                )
                identity = await self._find_after_conflict(email)
            else:
                logger.info(f"Created identity {identity.id} for {email}")
                return identity

        fields: dict[str, Any] = {
            "socket_id": connection_id,
            "is_active": True,
            "last_seen": now,
        }
        changes: dict[str, Any] = {}
        if payload.name and payload.name != identity.display_name:
            fields["full_name"] = payload.name
            changes["display_name"] = payload.name
        if payload.contact and payload.contact != identity.contact:
            fields["contact"] = payload.contact
            changes["contact"] = payload.contact

        try:
            await self.gateway.update_identity(identity.id, fields)
        except PersistenceError as exc:
            # The identity is known; a stale "last seen" must not block the bind
            logger.warning(
                f"Could not refresh identity {identity.id}: {exc.message}"
            )

        return identity.model_copy(update=changes) if changes else identity

    async def _find_after_conflict(self, email: str) -> Identity:
        try:
            identity = await self.gateway.find_identity_by_key(email)
        except PersistenceError as exc:
            logger.error(f"Identity lookup failed for {email}: {exc.message}")
            identity = None
        if identity is None:
            raise BindingError("Identity store unavailable, please retry")
        return identity

    def bind_admin(
        self, connection_id: str, data: dict[str, Any] | None = None
    ) -> Identity:
        """
        Build the singleton admin identity for an ``admin_connect``.

        Raises:
            BindingError: If the payload is malformed.
        """
        try:
            payload = AdminConnectPayload.model_validate(data or {})
        except ValidationError as exc:
            raise BindingError(f"Invalid admin identity: {_first_error(exc)}")

        logger.debug(f"Admin announced on connection {connection_id}")
        return Identity(
            id=ADMIN_IDENTITY_ID,
            role=Role.ADMIN,
            display_name=payload.name or self.admin_default_name,
        )
