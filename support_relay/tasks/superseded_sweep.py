from asyncio import CancelledError, sleep

from support_relay.constants import TASK_ERROR_BACKOFF_SECONDS, WS_GOING_AWAY_CODE
from support_relay.core.hub import RelayHub
from support_relay.logging import logger
from support_relay.settings import app_settings


async def sweep_superseded(hub: RelayHub, idle_timeout: float) -> int:
    """
    Close connections that were superseded at least ``idle_timeout`` seconds ago.

    Superseded connections are not routable, so closing them emits no
    presence events.

    Returns:
        Number of connections closed.
    """
    stale = hub.registry.superseded_connections(older_than=idle_timeout)
    for connection_id in stale:
        hub.lifecycle.close(connection_id)
        await hub.transport.close(connection_id, WS_GOING_AWAY_CODE)
        logger.info(f"Closed idle superseded connection {connection_id}")
    return len(stale)


async def superseded_sweep_task(hub: RelayHub):
    """
    Periodically close superseded connections left open by their clients.

    A client that reconnects without closing its previous socket leaves a
    connection that can no longer send or receive routed messages; this
    task reclaims it after SUPERSEDED_IDLE_TIMEOUT_SECONDS.
    """
    while True:
        try:
            await sleep(app_settings.SWEEP_INTERVAL_SECONDS)
            await sweep_superseded(
                hub, app_settings.SUPERSEDED_IDLE_TIMEOUT_SECONDS
            )

        except CancelledError:
            logger.info("Task for superseded connection sweep cancelled!")
            break

        except Exception as ex:
            logger.error(f"Superseded connection sweep error occurred with: {ex}")
            await sleep(TASK_ERROR_BACKOFF_SECONDS)
