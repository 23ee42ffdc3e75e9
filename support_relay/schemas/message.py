from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from support_relay.schemas.identity import Identity


class MessageKind(str, Enum):
    DIRECT = "direct"
    ADMIN_REPLY = "admin_reply"
    BROADCAST = "broadcast"


class Message(BaseModel):
    """
    Transient routing envelope.

    This is not the persisted record; the persistence gateway maps it to
    whatever it stores. ``to_identity`` is None for broadcasts.
    """

    model_config = ConfigDict(frozen=True)

    from_identity: Identity
    to_identity: Identity | None = None
    body: str
    kind: MessageKind
    sent_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    recipients: list[Identity] = Field(default_factory=list)

    @property
    def is_broadcast(self) -> bool:
        return self.kind == MessageKind.BROADCAST
