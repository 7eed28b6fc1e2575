# Auth package init
"""
RecipeApp API - Authentication & Authorization
===============================================

What:  JWT bearer authentication and endpoint authorization.

Module Inventory:
    - tokens.py:     TokenValidationParameters, JwtBearerOptions, validate_token()
    - principal.py:  ClaimsPrincipal attached to every request
    - policies.py:   @authorize, AuthorizationService, default and AdminOnly policies
    - middleware.py: HTTPS redirection, authentication and authorization middleware
"""

from recipe_api.auth.policies import (
    ADMIN_POLICY,
    ADMIN_ROLE,
    AuthorizationService,
    authorize,
    create_authorization_service,
)
from recipe_api.auth.principal import ClaimsPrincipal
from recipe_api.auth.tokens import (
    BEARER_SCHEME,
    JwtBearerOptions,
    TokenValidationParameters,
    validate_token,
)

__all__ = [
    "ADMIN_POLICY",
    "ADMIN_ROLE",
    "AuthorizationService",
    "BEARER_SCHEME",
    "ClaimsPrincipal",
    "JwtBearerOptions",
    "TokenValidationParameters",
    "authorize",
    "create_authorization_service",
    "validate_token",
]
