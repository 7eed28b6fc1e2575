"""
RecipeApp API - Authorization Policies
=======================================

What:  Endpoint authorization metadata (`@authorize`) and the service that
       evaluates it against the request's ClaimsPrincipal.
How:   `@authorize()` stores an AuthorizeData marker on the endpoint function.
       AuthorizationMiddleware finds the endpoint the router will dispatch to,
       reads the marker and asks AuthorizationService for a decision.
       Endpoints without a marker are public.

Policies:
    default    → authenticated user
    "AdminOnly"→ authenticated user in the "Admin" role
"""

import enum
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple, TypeVar

from recipe_api.auth.principal import ClaimsPrincipal
from recipe_api.exceptions import ConfigurationError

ADMIN_ROLE = "Admin"
ADMIN_POLICY = "AdminOnly"

AUTHORIZE_ATTRIBUTE = "__authorize_data__"

F = TypeVar("F", bound=Callable)


@dataclass(frozen=True)
class AuthorizeData:
    policy: Optional[str] = None
    roles: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AuthorizationPolicy:
    name: str
    require_authenticated_user: bool = True
    required_roles: Tuple[str, ...] = field(default=())

    def is_satisfied_by(self, principal: ClaimsPrincipal) -> bool:
        if self.require_authenticated_user and not principal.is_authenticated:
            return False
        if self.required_roles and not any(
            principal.is_in_role(role) for role in self.required_roles
        ):
            return False
        return True


class AuthorizationResult(enum.Enum):
    SUCCESS = "success"
    CHALLENGE = "challenge"  # 401: who are you?
    FORBID = "forbid"        # 403: known, not allowed


DEFAULT_POLICY = AuthorizationPolicy(name="Default")


class AuthorizationService:
    """Evaluates AuthorizeData for a principal."""

    def __init__(
        self,
        default_policy: AuthorizationPolicy = DEFAULT_POLICY,
        policies: Optional[Mapping[str, AuthorizationPolicy]] = None,
    ):
        self.default_policy = default_policy
        self.policies: Dict[str, AuthorizationPolicy] = dict(policies or {})

    def get_policy(self, name: str) -> AuthorizationPolicy:
        try:
            return self.policies[name]
        except KeyError:
            raise ConfigurationError(
                f"The authorization policy '{name}' was not found",
                context={"policy": name, "known": sorted(self.policies)},
            ) from None

    def authorize(self, principal: ClaimsPrincipal, data: AuthorizeData) -> AuthorizationResult:
        policies = []
        if data.policy:
            policies.append(self.get_policy(data.policy))
        if data.roles:
            policies.append(AuthorizationPolicy(name="Roles", required_roles=data.roles))
        if not policies:
            policies.append(self.default_policy)

        if all(policy.is_satisfied_by(principal) for policy in policies):
            return AuthorizationResult.SUCCESS
        if not principal.is_authenticated:
            return AuthorizationResult.CHALLENGE
        return AuthorizationResult.FORBID


def create_authorization_service() -> AuthorizationService:
    return AuthorizationService(
        default_policy=DEFAULT_POLICY,
        policies={
            ADMIN_POLICY: AuthorizationPolicy(name=ADMIN_POLICY, required_roles=(ADMIN_ROLE,)),
        },
    )


def authorize(policy: Optional[str] = None, *, roles: Tuple[str, ...] = ()) -> Callable[[F], F]:
    """
    Mark an endpoint as protected.

    Usage:
        @router.get("/me")
        @authorize()
        async def me(request: Request): ...

        @router.get("/users")
        @authorize(ADMIN_POLICY)
        async def users(...): ...
    """
    data = AuthorizeData(policy=policy, roles=tuple(roles))

    def decorator(func: F) -> F:
        setattr(func, AUTHORIZE_ATTRIBUTE, data)
        return func

    return decorator


def get_authorize_data(endpoint: Optional[Callable]) -> Optional[AuthorizeData]:
    if endpoint is None:
        return None
    return getattr(endpoint, AUTHORIZE_ATTRIBUTE, None)
