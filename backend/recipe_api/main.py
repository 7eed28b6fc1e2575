"""
RecipeApp API - Application Bootstrap
======================================

What:  The composition root: reads configuration, registers services, builds
       the FastAPI application with its middleware in a fixed order, seeds
       baseline identity data at startup and serves requests.
Why:   Everything security-relevant (database, identity policy, bearer
       validation, middleware order) is decided in one place, once.
How:   `configure()` → `build_app()` → lifespan startup → uvicorn serve loop.
Who:   `run()` (console script / `python -m recipe_api`), or
       `uvicorn --factory recipe_api.main:create_app`.

Middleware Chain (outermost first):
    ┌──────────────────────────────────────────────────────────────┐
    │ Request ID → Logging → HTTPS redirection → Authentication    │
    │            → Authorization → Router (controllers)            │
    └──────────────────────────────────────────────────────────────┘
    Swagger UI / OpenAPI are registered only in Development and are served
    over plain HTTP too: HTTPS redirection exempts their paths.

Lifecycle:
    Startup (before any request is accepted):
    1. Probe the database (bounded retries); unreachable → fatal
    2. Create the schema when Database:CreateSchema is set
    3. Seed the Admin role and administrator inside a released scope;
       any failure → fatal
    Shutdown:
    1. Dispose the engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Tuple, Type

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware import Middleware

from recipe_api import __version__
from recipe_api.auth.middleware import (
    AuthenticationMiddleware,
    AuthorizationMiddleware,
    HttpsRedirectionMiddleware,
)
from recipe_api.auth.policies import create_authorization_service
from recipe_api.auth.tokens import JwtBearerOptions, TokenValidationParameters
from recipe_api.config import Settings, load_settings
from recipe_api.database import (
    create_engine_from_settings,
    create_schema,
    create_session_factory,
    dispose_engine,
    verify_connection,
)
from recipe_api.exceptions import (
    AuthenticationFailedError,
    ConfigurationError,
    IdentityOperationError,
    RecipeApiError,
    SeedingError,
    StartupError,
)
from recipe_api.identity import IdentityOptions, PasswordHasher, PasswordOptions, UserOptions
from recipe_api.middleware.logging import RequestLoggingMiddleware
from recipe_api.middleware.request_id import RequestIDMiddleware, request_id_var
from recipe_api.routes import account, health
from recipe_api.seed import seed_roles_and_admin
from recipe_api.services.scope import AppServices

logger = logging.getLogger(__name__)

# Reordering these changes security semantics; tests pin the order
MIDDLEWARE_ORDER: Tuple[Type, ...] = (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    HttpsRedirectionMiddleware,
    AuthenticationMiddleware,
    AuthorizationMiddleware,
)

# Development-only documentation routes
DOCS_URL = "/swagger"
OPENAPI_URL = "/openapi.json"
DOCS_OAUTH2_REDIRECT_URL = "/swagger/oauth2-redirect"


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging once, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s to stdout
    (container runtimes collect stdout).
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-statement and per-request chatter from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Service Registration
# ══════════════════════════════════════════════════════════════════════════

def configure(settings: Settings) -> AppServices:
    """
    Register every application service, in order, without performing I/O.

    1. Database engine + session factory (ConnectionStrings:DefaultConnection)
    2. Identity: password length >= 6, digit required, symbols optional,
       unique emails; roles enabled; persisted through the session factory
    3. Bearer authentication: signing key, issuer check, no audience check,
       2-minute clock skew, HTTPS requirement from Jwt:RequireHttpsMetadata
    4. Authorization: default policy = authenticated user, plus AdminOnly
    5. Token issuing: resolved per scope by ServiceScope.token_service
    6. Controllers and docs: attached by build_app()

    Raises:
        ConfigurationError: the connection string cannot produce an engine.
    """
    engine = create_engine_from_settings(settings)
    session_factory = create_session_factory(engine)

    identity_options = IdentityOptions(
        password=PasswordOptions(
            required_length=6,
            require_digit=True,
            require_non_alphanumeric=False,
        ),
        user=UserOptions(require_unique_email=True),
    )

    bearer_options = JwtBearerOptions(
        parameters=TokenValidationParameters.from_settings(settings),
        require_https_metadata=bool(settings.jwt.require_https_metadata),
        save_token=True,
    )

    services = AppServices(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        identity_options=identity_options,
        password_hasher=PasswordHasher(),
        bearer_options=bearer_options,
        authorization=create_authorization_service(),
    )
    logger.info(
        "Services configured (environment=%s, issuer=%s, https_metadata=%s)",
        settings.environment,
        settings.issuer,
        bearer_options.require_https_metadata,
    )
    return services


# ══════════════════════════════════════════════════════════════════════════
# Startup Sequence
# ══════════════════════════════════════════════════════════════════════════

async def startup(services: AppServices) -> None:
    """
    Run the one-time startup steps; any exception here is fatal.

    The seeding scope is opened exactly once and released on every exit path.
    """
    settings = services.settings

    await verify_connection(
        services.engine,
        attempts=settings.database.connect_retries,
        wait_seconds=settings.database.connect_retry_wait,
    )

    if settings.database.create_schema:
        await create_schema(services.engine)

    async with services.create_scope() as scope:
        try:
            await seed_roles_and_admin(scope, settings.issuer)
        except SeedingError:
            raise
        except Exception as exc:
            raise SeedingError(
                f"Seeding failed: {type(exc).__name__}",
                context={"error_type": type(exc).__name__},
            ) from exc


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup before `yield`, shutdown after.

    Startup failures propagate: the ASGI server reports "startup failed" and
    exits instead of serving with a half-initialized security configuration.
    """
    services: AppServices = app.state.services
    logger.info("=" * 60)
    logger.info("RecipeApp API %s starting up...", __version__)

    try:
        await startup(services)
    except StartupError as exc:
        logger.critical("Startup aborted: %s | Context: %s", exc.message, exc.context)
        await dispose_engine(services.engine)
        raise
    except Exception:
        logger.critical("Startup aborted by an unexpected error", exc_info=True)
        await dispose_engine(services.engine)
        raise

    logger.info("RecipeApp API ready")
    logger.info("=" * 60)

    yield

    logger.info("RecipeApp API shutting down...")
    await dispose_engine(services.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details is not None:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to JSON error responses.

    Handler hierarchy:
        IdentityOperationError     → 400 (identity error codes in details)
        AuthenticationFailedError  → 401 with WWW-Authenticate: Bearer
        RecipeApiError (base)      → 500
        Exception (fallback)       → 500

    5xx responses never include internal details; those are logged.
    """

    @app.exception_handler(IdentityOperationError)
    async def handle_identity_error(request: Request, exc: IdentityOperationError):
        return JSONResponse(
            status_code=400,
            content=_error_body("identity_error", exc.message, exc.context),
        )

    @app.exception_handler(AuthenticationFailedError)
    async def handle_authentication_failed(request: Request, exc: AuthenticationFailedError):
        return JSONResponse(
            status_code=401,
            content=_error_body("invalid_credentials", exc.message),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(RecipeApiError)
    async def handle_app_error(request: Request, exc: RecipeApiError):
        logger.error(
            "[%s] Application error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def build_app(services: AppServices) -> FastAPI:
    """
    Build the FastAPI application for already-registered services.

    Middleware is passed as a list, so list order IS execution order
    (first = outermost). Docs routes exist only in Development, and are
    served ahead of HTTPS redirection: the redirect stage lets them through
    over plain HTTP. They carry no @authorize marker, so the authentication
    stages never challenge them.
    """
    settings = services.settings
    docs_enabled = settings.is_development
    docs_paths = (DOCS_URL, OPENAPI_URL, DOCS_OAUTH2_REDIRECT_URL) if docs_enabled else ()

    middleware = [
        Middleware(RequestIDMiddleware),
        Middleware(RequestLoggingMiddleware),
        Middleware(
            HttpsRedirectionMiddleware,
            https_port=settings.https_port,
            exempt_paths=docs_paths,
        ),
        Middleware(AuthenticationMiddleware, options=services.bearer_options),
        Middleware(
            AuthorizationMiddleware,
            authorization=services.authorization,
            scheme=services.bearer_options.scheme,
        ),
    ]

    app = FastAPI(
        title="RecipeApp API",
        description="Recipe management backend: accounts, roles and bearer authentication.",
        version=__version__,
        docs_url=DOCS_URL if docs_enabled else None,
        redoc_url=None,
        openapi_url=OPENAPI_URL if docs_enabled else None,
        swagger_ui_oauth2_redirect_url=DOCS_OAUTH2_REDIRECT_URL,
        middleware=middleware,
        lifespan=lifespan,
    )
    app.state.services = services

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(account.router)

    return app


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Factory: configure() + build_app().

    Without explicit settings (uvicorn --factory), configuration is loaded
    from the environment and process logging is set up here.
    """
    if settings is None:
        settings = load_settings()
        setup_logging(settings.log_level)
    return build_app(configure(settings))


def run() -> None:
    """
    Process entry point: configure, build, then serve until shutdown.

    Exits with status 1 on configuration errors; uvicorn exits non-zero when
    the lifespan startup (database probe, seeding) fails.
    """
    setup_logging()
    try:
        settings = load_settings()
        setup_logging(settings.log_level)
        app = create_app(settings)
    except ConfigurationError as exc:
        logger.critical("%s", exc.message)
        logger.critical("Fix the configuration and restart the server.")
        raise SystemExit(1) from exc

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        lifespan="on",
        log_config=None,
    )
