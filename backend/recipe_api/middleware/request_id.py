"""
RecipeApp API - Request ID Middleware
======================================

What:  Assigns a correlation ID to each request and returns it in X-Request-ID.
Why:   Error responses (including 401/403 from the security middleware) carry
       the ID, so a client report can be matched to server log lines.
When:  Outermost middleware: runs before HTTPS redirection and authentication.

Client-supplied IDs are echoed into access-log lines and JSON error bodies,
so only short tokens of letters, digits, '.', '_' and '-' are reused. Anything
else is replaced by a generated ID.
"""

import logging
import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

MAX_REQUEST_ID_LENGTH = 64
_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{1,%d}" % MAX_REQUEST_ID_LENGTH)


def new_request_id() -> str:
    # 8 characters are enough to correlate and stay readable in logs
    return str(uuid.uuid4())[:8]


def accepted_request_id(value: Optional[str]) -> Optional[str]:
    """Return a client-sent ID when it is safe to echo, otherwise None."""
    if value is None or not _REQUEST_ID_PATTERN.fullmatch(value):
        return None
    return value


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Reuse a well-formed client X-Request-ID, or generate a short UUID
        2. Store it in the ContextVar (loggers, error handlers) and request.state
        3. Echo it in the response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        sent = request.headers.get(REQUEST_ID_HEADER)
        rid = accepted_request_id(sent)
        if rid is None:
            rid = new_request_id()
            if sent is not None:
                logger.debug("Replaced malformed %s header with %s", REQUEST_ID_HEADER, rid)

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
