"""
Alembic Migration Environment
===============================

What:  Runs RecipeApp API schema migrations with the async SQLAlchemy engine.
How:   The database URL comes from ConnectionStrings:DefaultConnection (same
       settings class as the application), not from alembic.ini.
Who:   Called by `alembic` CLI commands (upgrade, downgrade, revision).

Only the connection string is required here: migrations do not need the
JWT or seeding settings that the application startup policy enforces.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from recipe_api.config import Settings
from recipe_api.database import Base

# Registers the identity tables on Base.metadata for --autogenerate
from recipe_api.models import identity  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_connection_string = Settings().connection_strings.default_connection
if not _connection_string:
    raise RuntimeError(
        "CONNECTION_STRINGS__DEFAULT_CONNECTION must be set to run migrations"
    )
# ConfigParser interpolation: a literal '%' in a password must be doubled
config.set_main_option("sqlalchemy.url", _connection_string.replace("%", "%%"))


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting (review before applying)."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Apply pending migrations through an async engine (no pooling)."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
