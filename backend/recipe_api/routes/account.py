"""
RecipeApp API - Account Route Handlers
=======================================

What:  Registration, sign-in (token issuance) and current-user endpoints.
Why:   They are the consumers of the identity subsystem and of the
       request-scoped JwtTokenService that the bootstrap registers.

Route Inventory:
    POST /api/auth/register   anonymous      create an account
    POST /api/auth/login      anonymous      exchange credentials for a token
    GET  /api/auth/me         authenticated  claims of the current token
    GET  /api/auth/users      AdminOnly      list accounts with their roles

Protection is declared with @authorize and enforced by
AuthorizationMiddleware before the handler runs; the HTTPBearer security
dependency only documents the scheme in OpenAPI.
"""

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Request, Security
from fastapi.security import HTTPBearer

from recipe_api.auth.policies import ADMIN_POLICY, authorize
from recipe_api.auth.principal import ClaimsPrincipal
from recipe_api.exceptions import AuthenticationFailedError, IdentityOperationError
from recipe_api.models.identity import ApplicationUser
from recipe_api.schemas.account import (
    CurrentUserResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from recipe_api.schemas.common import ErrorResponse
from recipe_api.services.scope import ServiceScope, get_service_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Account"])

bearer_scheme = HTTPBearer(auto_error=False, description="JWT issued by POST /api/auth/login")


@router.post(
    "/register",
    status_code=201,
    response_model=UserResponse,
    responses={400: {"description": "Identity policy violation", "model": ErrorResponse}},
    summary="Register a new account",
)
async def register(
    payload: RegisterRequest,
    scope: ServiceScope = Depends(get_service_scope),
) -> UserResponse:
    user = ApplicationUser(user_name=payload.user_name, email=payload.email)
    result = await scope.user_manager.create(user, payload.password)
    if not result.succeeded:
        raise IdentityOperationError(result.errors)

    return UserResponse(id=user.id, user_name=user.user_name, email=user.email, roles=[])


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Sign in and receive a bearer token",
)
async def login(
    payload: LoginRequest,
    scope: ServiceScope = Depends(get_service_scope),
) -> TokenResponse:
    users = scope.user_manager
    if "@" in payload.user_name:
        user = await users.find_by_email(payload.user_name)
    else:
        user = await users.find_by_name(payload.user_name)

    if user is None or not await users.check_password(user, payload.password):
        logger.info("Failed sign-in for '%s'", payload.user_name)
        raise AuthenticationFailedError()

    roles = await users.get_roles(user)
    issued = scope.token_service.create_token(user, roles)
    return TokenResponse(
        access_token=issued.access_token,
        token_type=issued.token_type,
        expires_in=issued.expires_in,
        expires_at=issued.expires_at,
    )


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    dependencies=[Security(bearer_scheme)],
    responses={401: {"description": "Missing or invalid token", "model": ErrorResponse}},
    summary="Describe the authenticated user",
)
@authorize()
async def me(request: Request) -> CurrentUserResponse:
    principal: ClaimsPrincipal = request.state.user
    exp = principal.claims.get("exp")
    return CurrentUserResponse(
        id=principal.subject,
        user_name=principal.name,
        email=principal.claims.get("email"),
        roles=list(principal.roles),
        issuer=principal.claims.get("iss"),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp is not None else None,
    )


@router.get(
    "/users",
    response_model=List[UserResponse],
    dependencies=[Security(bearer_scheme)],
    responses={
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        403: {"description": "Caller is not an administrator", "model": ErrorResponse},
    },
    summary="List all accounts (administrators only)",
)
@authorize(ADMIN_POLICY)
async def list_users(scope: ServiceScope = Depends(get_service_scope)) -> List[UserResponse]:
    users = scope.user_manager
    return [
        UserResponse(
            id=user.id,
            user_name=user.user_name,
            email=user.email,
            roles=await users.get_roles(user),
        )
        for user in await users.list_users()
    ]
