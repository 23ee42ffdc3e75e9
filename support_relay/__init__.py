# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
from asyncio import create_task, gather
from contextlib import asynccontextmanager

from fastapi import FastAPI

from support_relay.api.ws.transport import WebSocketTransport
from support_relay.core.hub import RelayHub
from support_relay.logging import logger
from support_relay.middlewares.correlation_id import CorrelationIDMiddleware
from support_relay.routing import collect_subrouters
from support_relay.settings import app_settings
from support_relay.storage.db import engine, wait_and_init_db
from support_relay.storage.gateway import SQLPersistenceGateway
from support_relay.tasks.superseded_sweep import superseded_sweep_task

tasks = []


async def startup(app: FastAPI) -> None:
    """
    Wait for the database, create missing tables and start the
    superseded connection sweep.
    """
    await wait_and_init_db()
    logger.info("Initialized database and tables")

    tasks.append(create_task(superseded_sweep_task(app.state.relay)))
    logger.info("Created task for superseded connection sweep")


async def shutdown(app: FastAPI) -> None:
    """
    Graceful cleanup.

    Cleanup order:
    1. Cancel and wait for background tasks
    2. Wait for scheduled persistence writes
    3. Dispose of the database engine
    """
    logger.info("Application shutdown initiated")

    if tasks:
        logger.info(f"Cancelling {len(tasks)} background tasks")
        for task in tasks:
            task.cancel()
        await gather(*tasks, return_exceptions=True)
        tasks.clear()
        logger.info("All background tasks completed")

    hub: RelayHub = app.state.relay
    if pending := len(hub.writer):
        logger.info(f"Waiting for {pending} persistence writes")
    await hub.writer.flush()

    await engine.dispose()
    logger.info("Application shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup(app)
    yield
    await shutdown(app)


def application() -> FastAPI:
    """
    Build the support relay application.

    A single ``RelayHub`` backed by the SQL persistence gateway and the
    WebSocket transport is stored on ``app.state.relay``; the ``/ws``
    consumer and the HTTP endpoints reach the relay through it.
    """
    app = FastAPI(
        title="Support chat relay",
        description="Real-time relay between end users and a support operator",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.relay = RelayHub(
        SQLPersistenceGateway(),
        WebSocketTransport(app_settings.WS_OUTBOUND_QUEUE_SIZE),
    )

    app.include_router(collect_subrouters())

    app.add_middleware(CorrelationIDMiddleware)

    return app
