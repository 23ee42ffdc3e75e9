from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Identity(BaseModel):
    """
    Durable chat participant, independent of any single connection.

    Attributes:
        id: Stable opaque identifier (store primary key, or "admin").
        role: User or Admin.
        display_name: Name shown to the other side of the chat.
        email: Natural key of users; None for the admin.
        contact: Optional contact detail supplied by the user.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    display_name: str
    email: str | None = None
    contact: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Connection(BaseModel):
    """Live transport handle bound to an identity, owned by the registry."""

    model_config = ConfigDict(frozen=True)

    connection_id: str
    identity: Identity
    connected_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
