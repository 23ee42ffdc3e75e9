"""
Repository for chat message records.

Maps the transient routing envelope onto ``ChatMessage`` rows: one row per
direct message or admin reply, and a single row per broadcast listing its
recipients.
"""

from sqlmodel.ext.asyncio.session import AsyncSession

from support_relay.models.chat_message import (
    BROADCAST_CONVERSATION_ID,
    ChatMessage,
    conversation_key,
)
from support_relay.repositories.base import BaseRepository
from support_relay.schemas.message import Message


class MessageRepository(BaseRepository[ChatMessage]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ChatMessage)

    @staticmethod
    def build_record(message: Message) -> ChatMessage:
        sender = message.from_identity
        if message.is_broadcast:
            return ChatMessage(
                conversation_id=BROADCAST_CONVERSATION_ID,
                sender=sender.role.value,
                sender_id=sender.id,
                receiver_id="all",
                sender_name=sender.display_name,
                content=message.body,
                message_type="broadcast",
                timestamp=message.sent_at,
                is_broadcast=True,
                broadcast_to=[
                    {"userId": recipient.id, "name": recipient.display_name}
                    for recipient in message.recipients
                ],
            )

        receiver = message.to_identity
        return ChatMessage(
            conversation_id=conversation_key(sender.id, receiver.id),
            sender=sender.role.value,
            sender_id=sender.id,
            receiver_id=receiver.id,
            sender_name=sender.display_name,
            content=message.body,
            message_type="text",
            timestamp=message.sent_at,
        )

    async def record(self, message: Message) -> ChatMessage:
        """Insert the record of a routed message."""
        return await self.create(self.build_record(message))

