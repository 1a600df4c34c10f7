"""
Health check endpoint for the auth service
"""
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from ..db import check_db_connection
from ..schemas import DatabaseHealth, HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    response_model_exclude_none=True,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": HealthResponse}},
)
def health_check(request: Request):
    """
    Report process and database status.

    Returns 200 when the store answers ``SELECT 1``, 503 otherwise.
    """
    state = request.app.state
    connected, error = check_db_connection(state.engine)

    database = DatabaseHealth(
        status="connected" if connected else "disconnected",
        message="Database connection successful" if connected else "Database connection failed",
        error=None if state.settings.is_production else error,
    )
    body = HealthResponse(
        success=connected,
        status="ok" if connected else "error",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - state.started_at, 3),
        environment=state.settings.ENVIRONMENT.value,
        database=database,
        message=None if connected else "Service unavailable - database connection failed",
    )

    if not connected:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(exclude_none=True),
        )
    return body
