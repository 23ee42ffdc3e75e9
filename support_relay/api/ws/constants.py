from enum import Enum


class InboundEvent(str, Enum):
    """
    Events a client may send to the relay.

    Attributes:
        USER_CONNECT: An end user announces itself (email, name, contact).
        ADMIN_CONNECT: The operator announces itself and takes the admin slot.
        USER_MESSAGE: An end user writes to the operator.
        ADMIN_MESSAGE: The operator replies to one user.
        ADMIN_BROADCAST: The operator writes to every connected user.
        DISCONNECT: The client asks the relay to close its session.
    """

    USER_CONNECT = "user_connect"
    ADMIN_CONNECT = "admin_connect"
    USER_MESSAGE = "user_message"
    ADMIN_MESSAGE = "admin_message"
    ADMIN_BROADCAST = "admin_broadcast"
    DISCONNECT = "disconnect"


class OutboundEvent(str, Enum):
    """Events the relay emits toward clients."""

    CONNECTED = "connected"
    USER_ONLINE = "user_online"
    USER_OFFLINE = "user_offline"
    ADMIN_STATUS = "admin_status"
    ADMIN_CONNECTED = "admin_connected"
    NEW_MESSAGE = "new_message"
    ADMIN_REPLY = "admin_reply"
    MESSAGE_SENT = "message_sent"
    MESSAGE_DELIVERED = "message_delivered"
    BROADCAST_SENT = "broadcast_sent"
    ERROR = "error"


class ErrorCode(str, Enum):
    """
    Machine readable codes carried by ``error`` events.

    Example:
        >>> str(ErrorCode.RECIPIENT_OFFLINE)
        'ErrorCode.RECIPIENT_OFFLINE<recipient_offline>'
    """

    BINDING_ERROR = "binding_error"
    UNKNOWN_SENDER = "unknown_sender"
    UNAUTHORIZED_SENDER = "unauthorized_sender"
    RECIPIENT_OFFLINE = "recipient_offline"
    REGISTRY_INCONSISTENCY = "registry_inconsistency"
    INVALID_FRAME = "invalid_frame"
    INTERNAL_ERROR = "internal_error"

    def __str__(self):
        return f"{__class__.__name__}.{self.name}<{self.value}>"
