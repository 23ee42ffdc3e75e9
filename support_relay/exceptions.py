"""
Custom exception classes for the relay.

Every routing and binding failure is a ``RelayError``. Each one knows the
``error`` event it is reported as, so the session lifecycle can recover at
the operation boundary and tell the originating connection what went wrong.
"""

from typing import Any

from support_relay.api.ws.constants import ErrorCode


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    Attributes:
        message: Human-readable error message.
        http_status: HTTP status code for REST responses.
        code: ErrorCode reported to WebSocket clients.
    """

    http_status: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_error_payload(self) -> dict[str, Any]:
        """
        Build the payload of the ``error`` event for this exception.

        Returns:
            Dict with the human readable message and the error code.
        """
        return {"message": self.message, "code": self.code.value}


class RelayError(AppException):
    """Base class for failures of the presence and routing core."""


class BindingError(RelayError):
    """
    Identity announcement is missing fields or malformed.

    The connection stays unbound; no routing is allowed from it.
    """

    http_status = 400
    code = ErrorCode.BINDING_ERROR


class UnknownSender(RelayError):
    """Routing attempted from a connection that is not registered."""

    http_status = 401
    code = ErrorCode.UNKNOWN_SENDER


class UnauthorizedSender(RelayError):
    """
    Routing that needs admin authority from a connection without it.

    Also raised for a former admin connection whose slot was taken over
    by a newer admin connection.
    """

    http_status = 403
    code = ErrorCode.UNAUTHORIZED_SENDER


class RecipientOffline(RelayError):
    """
    Target identity has no live connection.

    Reported back to the sender as a delivery failure; never queued.
    """

    http_status = 404
    code = ErrorCode.RECIPIENT_OFFLINE

    def __init__(self, identity_id: str, message: str | None = None):
        self.identity_id = identity_id
        super().__init__(message or "User not found")


class RegistryInconsistency(RelayError):
    """Internal registry invariant violated (e.g. dangling admin slot)."""

    http_status = 500
    code = ErrorCode.REGISTRY_INCONSISTENCY


class InvalidFrameError(AppException):
    """Inbound frame could not be decoded or names an unknown event."""

    http_status = 400
    code = ErrorCode.INVALID_FRAME


class PersistenceError(AppException):
    """Persistence gateway operation failed."""

    http_status = 500
    code = ErrorCode.INTERNAL_ERROR
