"""
RecipeApp API - Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Every test gets its own SQLite database file under tmp_path, its own
       settings object and its own application; nothing leaks between tests.

Fixture Hierarchy (all function-scoped):
    ├── settings_factory: builds resolved Settings with test defaults
    ├── settings:         the default test Settings
    ├── services:         configure(settings) with the schema created
    ├── scope:            a ServiceScope on `services`
    ├── app:              build_app(configure(settings))
    ├── client:           httpx AsyncClient with the lifespan (probe + seed) run
    └── token_factory:    signs arbitrary claims with the test key
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

# Before any settings are loaded: tests never read a developer's .env values
os.environ["ENVIRONMENT"] = "Testing"
os.environ["LOG_LEVEL"] = "WARNING"

from recipe_api.config import Settings, load_settings  # noqa: E402
from recipe_api.database import create_schema  # noqa: E402
from recipe_api.main import build_app, configure  # noqa: E402

TEST_SIGNING_KEY = "test-signing-key-0123456789abcdef-0123456789abcdef"
TEST_ISSUER = "RecipeApp.Tests"
ADMIN_PASSWORD = "Admin123"


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'recipeapp.db'}"


@pytest.fixture
def settings_factory(database_url) -> Callable[..., Settings]:
    """
    Build resolved settings; keyword sections are merged into the defaults.

    Usage:
        settings_factory(jwt={"require_https_metadata": True})
    """
    def factory(**overrides) -> Settings:
        values = {
            "environment": "Testing",
            "jwt": {
                "key": TEST_SIGNING_KEY,
                "issuer": TEST_ISSUER,
                "require_https_metadata": False,
            },
            "connection_strings": {"default_connection": database_url},
            "database": {
                "create_schema": True,
                "connect_retries": 1,
                "connect_retry_wait": 0,
            },
            "seed": {"admin_password": ADMIN_PASSWORD},
        }
        return load_settings(**_merge(values, overrides))

    return factory


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest_asyncio.fixture
async def services(settings):
    services = configure(settings)
    await create_schema(services.engine)
    yield services
    await services.engine.dispose()


@pytest_asyncio.fixture
async def scope(services):
    async with services.create_scope() as scope:
        yield scope


@pytest.fixture
def app(settings):
    return build_app(configure(settings))


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX AsyncClient bound to the app, with startup and shutdown executed.

    ASGITransport does not send lifespan events, so the lifespan context is
    entered explicitly: the database probe and seeding run before the first
    request, exactly as under uvicorn.
    """
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def token_factory() -> Callable[..., str]:
    """
    Sign a token with the test key.

    Args (all optional):
        issuer:      `iss` claim (None omits it)
        expires_in:  timedelta added to now for `exp` (None omits it)
        key:         signing key
        **claims:    extra claims (sub, name, role, ...)
    """
    def factory(
        *,
        issuer: Optional[str] = TEST_ISSUER,
        expires_in: Optional[timedelta] = timedelta(minutes=30),
        key: str = TEST_SIGNING_KEY,
        algorithm: str = "HS256",
        **claims: Any,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {"sub": "user-1", "name": "alice", "iat": int(now.timestamp())}
        if issuer is not None:
            payload["iss"] = issuer
        if expires_in is not None:
            payload["exp"] = int((now + expires_in).timestamp())
        payload.update(claims)
        return jwt.encode(payload, key, algorithm=algorithm)

    return factory


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_header() -> Callable[[str], Dict[str, str]]:
    return bearer
