"""Tests for relay exception classes."""

from support_relay.api.ws.constants import ErrorCode
from support_relay.exceptions import (
    AppException,
    BindingError,
    RecipientOffline,
    RelayError,
    UnauthorizedSender,
    UnknownSender,
)


class TestErrorPayload:
    def test_binding_error(self):
        exc = BindingError("missing email")

        assert exc.to_error_payload() == {
            "message": "missing email",
            "code": ErrorCode.BINDING_ERROR.value,
        }
        assert exc.http_status == 400

    def test_recipient_offline_default_message(self):
        exc = RecipientOffline("u1")

        assert exc.identity_id == "u1"
        assert exc.message == "User not found"
        assert exc.code == ErrorCode.RECIPIENT_OFFLINE

    def test_relay_errors_share_base(self):
        for exc_class in (BindingError, UnknownSender, UnauthorizedSender):
            assert issubclass(exc_class, RelayError)
            assert issubclass(exc_class, AppException)

    def test_generic_exception_is_internal(self):
        assert AppException("oops").to_error_payload()["code"] == "internal_error"
