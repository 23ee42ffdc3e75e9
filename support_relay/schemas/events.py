"""
Wire models for WebSocket frames.

Every frame in both directions is a JSON object ``{"event": ..., "data":
{...}}``. Inbound payload models accept the field names used by the
browser widget (``email``, ``userId``, ``message``) and their descriptive
aliases (``identityKey``, ``toIdentityId``, ``body``).
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from support_relay.api.ws.constants import OutboundEvent


class InboundFrame(BaseModel):
    event: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class OutboundFrame(BaseModel):
    event: OutboundEvent
    data: dict[str, Any] = Field(default_factory=dict)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class UserConnectPayload(_Payload):
    """Identity announcement of an end user."""

    email: str = Field(validation_alias=AliasChoices("email", "identityKey"))
    name: str | None = None
    contact: str | None = None


class AdminConnectPayload(_Payload):
    name: str | None = None


class UserMessagePayload(_Payload):
    message: str = Field(
        min_length=1, validation_alias=AliasChoices("message", "body")
    )


class AdminMessagePayload(_Payload):
    user_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("userId", "toIdentityId", "user_id"),
    )
    message: str = Field(
        min_length=1, validation_alias=AliasChoices("message", "body")
    )


class AdminBroadcastPayload(_Payload):
    message: str = Field(
        min_length=1, validation_alias=AliasChoices("message", "body")
    )


class Delivery(BaseModel):
    """One outbound event addressed to one live connection."""

    model_config = ConfigDict(frozen=True)

    connection_id: str
    event: OutboundEvent
    payload: dict[str, Any] = Field(default_factory=dict)
