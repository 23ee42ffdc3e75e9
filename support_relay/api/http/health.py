"""Health check endpoint for monitoring service status."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from support_relay.logging import logger
from support_relay.storage.db import engine

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    admin: bool
    users: int
    database: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    tags=["health"],
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Report relay presence and database connectivity.

    ``admin`` and ``users`` come from the live connection registry; a
    database that cannot answer ``SELECT 1`` turns the response into
    503 Service Unavailable.
    """
    db_status = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (OperationalError, SQLAlchemyError, TimeoutError) as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "unhealthy"
    except Exception as e:
        # Catch-all so the probe itself never fails the endpoint
        logger.error(f"Unexpected database health check error: {e}")
        db_status = "unhealthy"

    stats = request.app.state.relay.registry.stats()

    if db_status != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "unhealthy",
        admin=stats["admin"],
        users=stats["users"],
        database=db_status,
    )
