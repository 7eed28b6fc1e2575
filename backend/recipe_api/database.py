"""
RecipeApp API - Database Engine & Session Management
=====================================================

What:  Async SQLAlchemy engine and session factory construction, the ORM base
       class, a startup connectivity probe and schema creation.
Why:   The identity store persists users and roles through SQLAlchemy; every
       request scope and the seeding routine get sessions from one factory.
How:   `create_engine_from_settings()` builds the engine from
       ConnectionStrings:DefaultConnection without opening a connection.
       `verify_connection()` is the first I/O of the process and retries
       with tenacity before declaring the store unreachable.
Who:   `recipe_api.main.configure()` (construction), the lifespan (probe,
       schema), and the health route (ping).

Connection Pooling Strategy:
    Server databases (PostgreSQL, SQL Server, MySQL) get a bounded QueuePool
    sized from Database:PoolSize / Database:MaxOverflow, with pre-ping and an
    hourly recycle. SQLite keeps SQLAlchemy's default pool, which does not
    accept pool sizing arguments.
"""

import logging

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, InvalidRequestError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from recipe_api.config import Settings
from recipe_api.exceptions import ConfigurationError, DatabaseUnavailableError

logger = logging.getLogger(__name__)

# Errors worth retrying at startup: the server may still be coming up
TRANSIENT_ERRORS = (OSError, SQLAlchemyError)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class so a single metadata object describes
    the schema for `create_schema()` and for Alembic autogeneration.
    """
    pass


def parse_connection_string(connection_string: str) -> URL:
    """Parse a SQLAlchemy URL, converting parse failures to ConfigurationError."""
    try:
        return make_url(connection_string)
    except ArgumentError as exc:
        raise ConfigurationError(
            "ConnectionStrings:DefaultConnection is not a valid database URL",
            context={"error": str(exc)},
        ) from exc


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Build the async engine for ConnectionStrings:DefaultConnection.

    No connection is opened here; an unreachable server surfaces later in
    `verify_connection()`. A malformed URL or a driver that is not installed
    (or not async) fails immediately.
    """
    url = parse_connection_string(settings.connection_strings.default_connection or "")
    db = settings.database

    engine_kwargs = {
        "pool_pre_ping": db.pool_pre_ping,
        "echo": db.echo,
    }
    if url.get_backend_name() != "sqlite":
        engine_kwargs.update(
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_recycle=3600,
        )

    try:
        engine = create_async_engine(url, **engine_kwargs)
    except (ArgumentError, InvalidRequestError, ImportError) as exc:
        raise ConfigurationError(
            f"Cannot create a database engine for driver '{url.drivername}'",
            context={"error": str(exc)},
        ) from exc

    logger.info(
        "Database engine configured (driver=%s, host=%s, database=%s)",
        url.drivername,
        url.host or "-",
        url.database or "-",
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory shared by request scopes and the seeding scope.

    expire_on_commit=False: objects stay readable after commit, which the
    account routes rely on when building responses.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def verify_connection(
    engine: AsyncEngine,
    *,
    attempts: int = 3,
    wait_seconds: float = 1.0,
) -> None:
    """
    Prove the database answers `SELECT 1`, retrying transient failures.

    Raises:
        DatabaseUnavailableError: after `attempts` failed tries. The caller
        must treat this as fatal: the API never serves without its store.
    """
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=wait_seconds, max=max(wait_seconds * 8, 1)),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
    except TRANSIENT_ERRORS as exc:
        logger.error(
            "Database unreachable after %d attempt(s): %s", attempts, type(exc).__name__
        )
        raise DatabaseUnavailableError(
            context={
                "attempts": attempts,
                "error_type": type(exc).__name__,
                "database": engine.url.render_as_string(hide_password=True),
            },
        ) from exc

    logger.info("Database connection verified")


async def ping(engine: AsyncEngine) -> bool:
    """Lightweight health probe; never raises."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except TRANSIENT_ERRORS as exc:
        logger.warning("Health check: database unreachable: %s", str(exc))
        return False
    return True


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables known to Base.metadata (idempotent)."""
    # Models must be imported so their tables are registered on the metadata
    from recipe_api.models import identity  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured (%d tables)", len(Base.metadata.tables))


async def dispose_engine(engine: AsyncEngine) -> None:
    """Close all pooled connections (application shutdown)."""
    await engine.dispose()
