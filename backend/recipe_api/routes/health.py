"""
RecipeApp API - Health Check Route
===================================

What:  GET /health for container probes and load balancers (anonymous).
How:   Runs SELECT 1 against the engine; the service is only "healthy" when
       its store answers. Unhealthy responses use 503 so balancers drain it.
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from recipe_api import __version__
from recipe_api.database import ping
from recipe_api.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(request: Request):
    services = request.app.state.services
    connected = await ping(services.engine)

    body = HealthResponse(
        status="healthy" if connected else "unhealthy",
        version=__version__,
        environment=services.settings.environment,
        database="connected" if connected else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if not connected:
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
