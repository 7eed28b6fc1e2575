"""
RecipeApp API - Application Services & Scopes
==============================================

What:  `AppServices` is everything `configure()` registers, wired explicitly
       through constructors. `ServiceScope` is the short-lived resolver for
       request-scoped collaborators (session, managers, token service).
Why:   Explicit wiring replaces a reflective DI container: every dependency
       is visible in `recipe_api.main.configure()`.
How:   `AppServices.create_scope()` is an async context manager. It opens one
       AsyncSession, hands out the scope, rolls back on error and ALWAYS
       closes the session, on every exit path including failures.

Lifetimes:
    singleton (AppServices)   settings, engine, session factory, options,
                              hasher, bearer options, authorization service
    scoped (ServiceScope)     AsyncSession, UserManager, RoleManager,
                              JwtTokenService
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from recipe_api.auth.policies import AuthorizationService
from recipe_api.auth.tokens import JwtBearerOptions
from recipe_api.config import Settings
from recipe_api.identity import IdentityOptions, PasswordHasher, RoleManager, UserManager
from recipe_api.services.jwt_token_service import JwtTokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppServices:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker
    identity_options: IdentityOptions
    password_hasher: PasswordHasher
    bearer_options: JwtBearerOptions
    authorization: AuthorizationService

    @asynccontextmanager
    async def create_scope(self) -> AsyncIterator["ServiceScope"]:
        session = self.session_factory()
        scope = ServiceScope(self, session)
        try:
            yield scope
        except Exception:
            await session.rollback()
            raise
        finally:
            await scope.close()


class ServiceScope:
    """Resolves request-scoped services; all of them share one session."""

    def __init__(self, services: AppServices, session: AsyncSession):
        self.services = services
        self.session = session
        self.closed = False
        self._user_manager: Optional[UserManager] = None
        self._role_manager: Optional[RoleManager] = None
        self._token_service: Optional[JwtTokenService] = None

    @property
    def user_manager(self) -> UserManager:
        if self._user_manager is None:
            self._user_manager = UserManager(
                self.session,
                self.services.identity_options,
                self.services.password_hasher,
            )
        return self._user_manager

    @property
    def role_manager(self) -> RoleManager:
        if self._role_manager is None:
            self._role_manager = RoleManager(self.session)
        return self._role_manager

    @property
    def token_service(self) -> JwtTokenService:
        if self._token_service is None:
            self._token_service = JwtTokenService(
                self.services.bearer_options.parameters,
                lifetime=timedelta(minutes=self.services.settings.jwt.access_token_minutes),
            )
        return self._token_service

    async def commit(self) -> None:
        await self.session.commit()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.session.close()


async def get_service_scope(request: Request) -> AsyncGenerator[ServiceScope, None]:
    """
    FastAPI dependency: one ServiceScope per request.

    Commits when the handler returns normally; rolls back when it raises
    (the exception is re-raised for the global handlers).
    """
    services: AppServices = request.app.state.services
    async with services.create_scope() as scope:
        yield scope
        await scope.commit()
