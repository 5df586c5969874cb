"""Liveness and database health routes."""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.base import success_response, error_response, ErrorCodes
from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

_STARTED_AT = time.monotonic()


def create_health_router(postgres: PostgresClient) -> APIRouter:
    """Create health router with injected database client."""
    router = APIRouter(tags=["health"])

    @router.get("/health")
    async def health():
        return success_response("Server is healthy", status="ok")

    @router.get("/health/db")
    def database_health():
        """Ping Postgres. 503 when the database can't be reached."""
        uptime = round(time.monotonic() - _STARTED_AT, 1)
        timestamp = now_utc().isoformat()

        if not postgres.ping():
            body = error_response(ErrorCodes.SERVICE_UNAVAILABLE, "Database health check failed")
            body.update(database="disconnected", uptime=uptime, timestamp=timestamp)
            return JSONResponse(status_code=503, content=body)

        return success_response(
            "Database connection is healthy",
            database="connected",
            uptime=uptime,
            timestamp=timestamp,
        )

    return router
