"""
RecipeApp API - Security Middleware
====================================

What:  HTTPS redirection, bearer authentication and authorization, the three
       stages every request crosses before reaching a route handler.
Why:   Their relative order is a security invariant: authentication must have
       attached an identity before authorization judges it, and a rejected
       request must never reach the controller.
How:   Starlette BaseHTTPMiddleware classes, installed by recipe_api.main in
       the fixed order HTTPS redirection → authentication → authorization.

Behavior summary:
    HttpsRedirectionMiddleware  plain HTTP → 307 to https://host:HttpsPort
                                (no port configured → warn once, pass through)
    AuthenticationMiddleware    attaches request.state.user; never rejects
    AuthorizationMiddleware     401 challenge / 403 forbid for @authorize endpoints
"""

import logging
from typing import Callable, Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Match
from starlette.types import ASGIApp

from recipe_api.auth.policies import (
    AuthorizationResult,
    AuthorizationService,
    get_authorize_data,
)
from recipe_api.auth.principal import ClaimsPrincipal
from recipe_api.auth.tokens import JwtBearerOptions, validate_token
from recipe_api.exceptions import TokenValidationError
from recipe_api.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

SECURE_SCHEMES = {"https", "wss"}


class HttpsRedirectionMiddleware(BaseHTTPMiddleware):
    """
    Redirects plain-HTTP requests to HTTPS.

    307 keeps the method and body, so a POST is replayed as a POST.
    Paths in `exempt_paths` (the Development docs) are served as they are.
    """

    def __init__(
        self,
        app: ASGIApp,
        https_port: Optional[int] = None,
        status_code: int = 307,
        exempt_paths: Iterable[str] = (),
    ):
        super().__init__(app)
        self.https_port = https_port
        self.status_code = status_code
        self.exempt_paths = frozenset(exempt_paths)
        self._warned = False

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.scheme in SECURE_SCHEMES or request.url.path in self.exempt_paths:
            return await call_next(request)

        if self.https_port is None:
            if not self._warned:
                logger.warning("Failed to determine the https port for redirect.")
                self._warned = True
            return await call_next(request)

        port = None if self.https_port == 443 else self.https_port
        target = request.url.replace(scheme="https", port=port)
        return RedirectResponse(str(target), status_code=self.status_code)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Bearer-token authentication (default authenticate scheme).

    Sets on request.state:
        user          ClaimsPrincipal (anonymous unless a token validated)
        auth_failure  TokenValidationError when a presented token was refused
        access_token  the raw token, when save_token is enabled
    """

    def __init__(self, app: ASGIApp, options: JwtBearerOptions):
        super().__init__(app)
        self.options = options

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.user = ClaimsPrincipal.anonymous()
        request.state.auth_failure = None

        token = _extract_bearer_token(request.headers.get("Authorization"), self.options.scheme)
        if token is not None:
            self._authenticate(request, token)

        return await call_next(request)

    def _authenticate(self, request: Request, token: str) -> None:
        if self.options.require_https_metadata and request.url.scheme not in SECURE_SCHEMES:
            request.state.auth_failure = TokenValidationError(
                "Bearer tokens are only accepted over HTTPS"
            )
            logger.info("Bearer token refused on non-HTTPS request to %s", request.url.path)
            return

        try:
            claims = validate_token(token, self.options.parameters)
        except TokenValidationError as exc:
            request.state.auth_failure = exc
            logger.info("Bearer token rejected: %s", exc.message)
            return

        request.state.user = ClaimsPrincipal(claims=claims, authentication_type=self.options.scheme)
        if self.options.save_token:
            request.state.access_token = token


class AuthorizationMiddleware(BaseHTTPMiddleware):
    """
    Enforces @authorize metadata before the router dispatches.

    The endpoint is resolved with the same route matching the router uses;
    requests to unknown paths fall through so the router can answer 404/405.
    """

    def __init__(
        self,
        app: ASGIApp,
        authorization: AuthorizationService,
        scheme: str = "Bearer",
    ):
        super().__init__(app)
        self.authorization = authorization
        self.scheme = scheme

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        data = get_authorize_data(_resolve_endpoint(request))
        if data is None:
            return await call_next(request)

        principal = getattr(request.state, "user", None) or ClaimsPrincipal.anonymous()
        result = self.authorization.authorize(principal, data)

        if result is AuthorizationResult.SUCCESS:
            return await call_next(request)
        if result is AuthorizationResult.CHALLENGE:
            return self._challenge(request)
        return self._forbid(request, principal)

    def _challenge(self, request: Request) -> Response:
        failure: Optional[TokenValidationError] = getattr(request.state, "auth_failure", None)
        header = self.scheme
        message = "Authentication is required to access this resource."
        if failure is not None:
            description = failure.message.replace('"', "'")
            header = f'{self.scheme} error="invalid_token", error_description="{description}"'
            message = failure.message

        logger.info("Challenge issued for %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=401,
            content={
                "error": "unauthorized",
                "message": message,
                "request_id": request_id_var.get(""),
            },
            headers={"WWW-Authenticate": header},
        )

    def _forbid(self, request: Request, principal: ClaimsPrincipal) -> Response:
        logger.warning(
            "Forbidden: user %s on %s %s", principal.subject, request.method, request.url.path
        )
        return JSONResponse(
            status_code=403,
            content={
                "error": "forbidden",
                "message": "You do not have permission to access this resource.",
                "request_id": request_id_var.get(""),
            },
        )


def _extract_bearer_token(header: Optional[str], scheme: str) -> Optional[str]:
    if not header:
        return None
    parts = header.split(None, 1)
    if len(parts) != 2 or parts[0].lower() != scheme.lower():
        return None
    token = parts[1].strip()
    return token or None


def _resolve_endpoint(request: Request) -> Optional[Callable]:
    for route in request.app.router.routes:
        match, child_scope = route.matches(request.scope)
        if match is Match.FULL:
            return child_scope.get("endpoint")
    return None
