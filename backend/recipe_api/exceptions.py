"""
RecipeApp API - Custom Exception Hierarchy
===========================================

What:  Application-specific exceptions for startup and request-time failures.
Why:   Startup failures must stop the process before it serves traffic, while
       request failures must map to well-formed HTTP error responses.
How:   Each exception carries a message and an optional context dict. Global
       exception handlers (registered in main.py) turn request-time errors
       into JSON responses; startup errors propagate out of the lifespan.

Exception Hierarchy:
    RecipeApiError (base)
    ├── ConfigurationError           → fatal at startup
    ├── StartupError                 → fatal at startup
    │   ├── DatabaseUnavailableError
    │   └── SeedingError
    ├── TokenValidationError         → 401 (handled by the auth middleware)
    │   ├── TokenExpiredError
    │   ├── TokenIssuerInvalidError
    │   └── TokenSignatureInvalidError
    ├── IdentityOperationError       → 400 Bad Request
    └── AuthenticationFailedError    → 401 Unauthorized
"""

from typing import Any, Dict, Iterable, List, Optional


class RecipeApiError(Exception):
    """
    Base exception for all RecipeApp API errors.

    Attributes:
        message:  Human-readable description (safe to return in API responses)
        context:  Additional debug info (logged, never returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(RecipeApiError):
    """
    Raised when configuration is missing, malformed or insecure.

    When:  Loading settings, or building the database engine from a
           connection string that SQLAlchemy cannot parse.
    Effect: The process exits before the server starts listening.
    """

    def __init__(
        self,
        message: str = "Configuration is invalid",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StartupError(RecipeApiError):
    """Base class for failures in the startup sequence (after configuration)."""


class DatabaseUnavailableError(StartupError):
    """
    Raised when the database cannot be reached during startup.

    The connectivity probe retries a bounded number of times before raising.
    Serving traffic against a broken store is never allowed.
    """

    def __init__(
        self,
        message: str = "The database is unreachable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SeedingError(StartupError):
    """
    Raised when baseline roles or the administrator account cannot be ensured.

    Context carries the identity error codes when the identity layer
    rejected an operation (e.g. the admin password violates the policy).
    """

    def __init__(
        self,
        message: str = "Seeding roles and administrator account failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TokenValidationError(RecipeApiError):
    """
    Raised when a bearer token fails validation.

    Never escapes a request: the authentication middleware records it and the
    authorization stage answers with a 401 challenge.
    """

    def __init__(
        self,
        message: str = "The bearer token is invalid",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TokenExpiredError(TokenValidationError):
    """The token expired, including the clock-skew grace period."""

    def __init__(self, message: str = "The token is expired", context=None):
        super().__init__(message=message, context=context)


class TokenIssuerInvalidError(TokenValidationError):
    """The `iss` claim does not match the configured issuer."""

    def __init__(self, message: str = "The token issuer is invalid", context=None):
        super().__init__(message=message, context=context)


class TokenSignatureInvalidError(TokenValidationError):
    """The signature does not verify with the configured signing key."""

    def __init__(self, message: str = "The token signature is invalid", context=None):
        super().__init__(message=message, context=context)


class IdentityOperationError(RecipeApiError):
    """
    Raised when the identity layer rejects an operation requested by a client.

    What:  Wraps the IdentityError list of a failed IdentityResult.
    HTTP:  400 Bad Request, with every error code and description in `details`.
    """

    def __init__(
        self,
        errors: Iterable[Any],
        message: str = "The identity operation failed",
    ):
        self.errors: List[Any] = list(errors)
        super().__init__(
            message=message,
            context={
                "errors": [
                    {"code": error.code, "description": error.description}
                    for error in self.errors
                ]
            },
        )


class AuthenticationFailedError(RecipeApiError):
    """
    Raised when sign-in credentials are wrong.

    HTTP:  401 Unauthorized. The message never says which half was wrong.
    """

    def __init__(
        self,
        message: str = "Invalid user name or password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
