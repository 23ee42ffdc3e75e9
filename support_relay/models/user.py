from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from support_relay.schemas.identity import Identity, Role


class User(SQLModel, table=True):
    """
    End user of the support chat, keyed by e-mail.

    Attributes:
        id: Primary key identifier
        full_name: Display name shown to the operator
        email: Lower-cased e-mail, the natural key used at bind time
        contact: Contact detail supplied by the user
        is_active: Whether the user currently has a live connection
        last_seen: Last bind or departure of the user
        socket_id: Most recent connection id of the user
        created_at: First contact
    """

    __tablename__ = "users"
    __table_args__ = {"extend_existing": True}

    id: int | None = Field(default=None, primary_key=True)
    full_name: str
    email: str = Field(unique=True, index=True)
    contact: str = ""
    is_active: bool = Field(default=True, index=True)
    last_seen: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    socket_id: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def to_identity(self) -> Identity:
        return Identity(
            id=str(self.id),
            role=Role.USER,
            display_name=self.full_name,
            email=self.email,
            contact=self.contact or None,
        )
