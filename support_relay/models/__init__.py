from support_relay.models.chat_message import ChatMessage
from support_relay.models.user import User

__all__ = ["ChatMessage", "User"]
