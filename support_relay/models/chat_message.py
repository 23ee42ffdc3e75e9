"""Chat message record model."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, Index, Text
from sqlalchemy.dialects.postgresql import JSON
from sqlmodel import Field, SQLModel

BROADCAST_CONVERSATION_ID = "broadcast"


def conversation_key(sender_id: str, receiver_id: str) -> str:
    """Order-independent key of the conversation between two identities."""
    return "_".join(sorted([sender_id, receiver_id]))


class ChatMessage(SQLModel, table=True):
    """
    Record of one routed message.

    Messages are written after delivery and never read back by the relay;
    they exist for auditing and for history views outside this service.

    Attributes:
        id: Primary key identifier
        conversation_id: Sorted pair of participant ids, or "broadcast"
        sender: Role of the sender (user or admin)
        sender_id: Identity id of the sender
        receiver_id: Identity id of the receiver, "all" for broadcasts
        sender_name: Display name of the sender at send time
        content: Message body
        message_type: text or broadcast
        timestamp: When the message was routed
        is_read: Read marker for history views
        is_broadcast: Whether the message went to every online user
        broadcast_to: Recipients of a broadcast (id and name)
    """

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("idx_conversation_timestamp", "conversation_id", "timestamp"),
        Index("idx_sender_receiver", "sender_id", "receiver_id"),
        {"extend_existing": True},
    )

    id: int | None = Field(default=None, primary_key=True)
    conversation_id: str = Field(index=True, max_length=255)
    sender: str = Field(max_length=10)
    sender_id: str = Field(max_length=255)
    receiver_id: str = Field(max_length=255)
    sender_name: str | None = Field(default=None, max_length=255)
    content: str = Field(sa_column=Column(Text, nullable=False))
    message_type: str = Field(default="text", max_length=20)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    is_read: bool = False
    is_broadcast: bool = False
    broadcast_to: list[dict[str, Any]] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
