from typing import Iterable

from support_relay.logging import logger
from support_relay.protocols import Transport
from support_relay.schemas.events import Delivery


def dispatch(transport: Transport, deliveries: Iterable[Delivery]) -> int:
    """
    Hand planned deliveries to the transport.

    Sending never suspends, so the whole fan-out completes before the
    calling event handler yields.

    Returns:
        Number of deliveries the transport accepted.
    """
    accepted = 0
    for delivery in deliveries:
        if transport.send(delivery.connection_id, delivery.event, delivery.payload):
            accepted += 1
        else:
            logger.warning(
                f"Dropped {delivery.event.value} for connection {delivery.connection_id}"
            )
    return accepted
