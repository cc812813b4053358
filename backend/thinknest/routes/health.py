"""
Think Nest Backend — Health Check Route
========================================

What:  GET /health for Docker health checks, load balancers and monitoring.
How:   Probes the database (SELECT 1) and the mail transport.

Status levels:
    - healthy:   database and mail both fine (HTTP 200)
    - degraded:  mail unavailable or its circuit open (HTTP 200); notes and
                 sign-in still work, only password emails fail
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response

from thinknest import __version__
from thinknest.database import ping_database
from thinknest.schemas.common import HealthResponse
from thinknest.services.mail_service import mail_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


async def mail_status() -> str:
    if mail_service.circuit_open():
        return "circuit_open"
    return "available" if await mail_service.health_check() else "unavailable"


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        await ping_database()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    mail = await mail_status()
    if mail != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        mail=mail,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
