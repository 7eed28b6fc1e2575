"""
RecipeApp API - Request Logging Middleware
===========================================

What:  One access-log line per request: method, path, status, duration and
       the authenticated subject (or "-" for anonymous callers).
Why:   Authentication challenges and forbidden responses show up as WARNING
       lines, which is where failed sign-ins and probing become visible.
When:  Directly inside RequestIDMiddleware, so every line has the request ID.
       It wraps the security stages, so it also sees their 307/401/403.

What we log vs what we DON'T log (privacy):
    Log:       method, path, status, duration, client IP, request ID, subject
    Never log: request bodies (passwords), Authorization headers (tokens)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from recipe_api.middleware.request_id import request_id_var

logger = logging.getLogger("recipe_api.access")

# Probes hit this every few seconds
QUIET_PATHS = frozenset({"/health"})


def level_for_status(status: int) -> int:
    """5xx → ERROR, 4xx → WARNING, everything else → INFO."""
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def _subject(request: Request) -> str:
    # Set by AuthenticationMiddleware further down the chain
    principal = getattr(request.state, "user", None)
    if principal is None or not principal.is_authenticated:
        return "-"
    return principal.subject or "?"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log for every request except QUIET_PATHS."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        entry = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "client_ip": request.client.host if request.client else "unknown",
            "subject": _subject(request),
        }
        logger.log(
            level_for_status(response.status_code),
            "%(method)s %(path)s %(status)d %(duration_ms).1fms [%(request_id)s] "
            "user=%(subject)s from %(client_ip)s",
            entry,
            extra={"access": entry},
        )
        return response
