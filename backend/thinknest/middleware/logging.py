"""
Think Nest Backend — Access Log Middleware
===========================================

What:  One access-log line per request on the `thinknest.access` logger.
How:   Times the downstream call and logs method, path, status, duration,
       request id and client IP. The level follows the status class
       (5xx ERROR, 4xx WARNING, otherwise INFO).

Never logged: request bodies, query strings, cookies and the Authorization
header. Auth routes carry passwords, tokens and one-time codes.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from thinknest.middleware.request_id import request_id_var

logger = logging.getLogger("thinknest.access")

# Probed every few seconds by Docker / load balancers
QUIET_PATHS = {"/health"}


def client_address(request: Request) -> str:
    return getattr(request.client, "host", "unknown") if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Typical durations:
        - GET /health: 1-5ms
        - GET /api/notes: 10-50ms (count + page query + tag selectin)
        - POST /api/auth/login: 50-300ms (bcrypt dominates)
        - POST /api/auth/forgot-password: up to the SMTP timeout
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        client_ip = client_address(request)
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
