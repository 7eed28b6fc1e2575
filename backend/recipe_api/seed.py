"""
RecipeApp API - Startup Seeding
================================

What:  Ensures the "Admin" role and the administrator account exist.
When:  Once per process start, inside the lifespan, before any request is
       served. Runs on every start, so it must be idempotent.
How:   Check-then-create through RoleManager / UserManager in one scope,
       then commit. Any identity rejection becomes a SeedingError, which
       aborts startup.

Administrator identity:
    id        uuid5(NAMESPACE_URL, "<issuer>/admin"): stable across restarts
              and distinct per issuer
    user name Seed:AdminUserName (default "admin")
    email     Seed:AdminEmail (default "admin@recipeapp.example")
    password  Seed:AdminPassword; must satisfy the password policy
"""

import logging
import uuid

from recipe_api.auth.policies import ADMIN_ROLE
from recipe_api.exceptions import SeedingError
from recipe_api.identity import IdentityResult
from recipe_api.models.identity import ApplicationUser, Role
from recipe_api.services.scope import ServiceScope

logger = logging.getLogger(__name__)


def admin_user_id(issuer: str) -> str:
    """Deterministic id of the seeded administrator for an issuer."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{issuer}/admin"))


def _ensure(result: IdentityResult, operation: str) -> None:
    if result.succeeded:
        return
    raise SeedingError(
        f"Seeding failed to {operation}: "
        + "; ".join(error.description for error in result.errors),
        context={"operation": operation, "codes": list(result.codes)},
    )


async def seed_roles_and_admin(scope: ServiceScope, issuer: str) -> None:
    """
    Idempotently ensure baseline roles and the administrator account.

    Safe to call repeatedly: the second and later calls find everything in
    place and change nothing.

    Raises:
        SeedingError: the identity layer rejected a role, the admin user
        (e.g. password policy, name taken by another account) or the
        role assignment.
    """
    seed = scope.services.settings.seed
    roles = scope.role_manager
    users = scope.user_manager

    if not await roles.role_exists(ADMIN_ROLE):
        _ensure(await roles.create(Role(name=ADMIN_ROLE)), f"create role '{ADMIN_ROLE}'")
        logger.info("Seeded role '%s'", ADMIN_ROLE)

    admin_id = admin_user_id(issuer)
    admin = await users.find_by_id(admin_id)
    if admin is None:
        admin = ApplicationUser(
            id=admin_id,
            user_name=seed.admin_user_name,
            email=seed.admin_email,
            email_confirmed=True,
        )
        password = seed.admin_password.get_secret_value() if seed.admin_password else None
        if not password:
            raise SeedingError(
                "Seed:AdminPassword is not configured",
                context={"operation": "create administrator"},
            )
        _ensure(await users.create(admin, password), "create administrator")
        logger.info("Seeded administrator '%s' (%s)", admin.user_name, admin.id)

    if not await users.is_in_role(admin, ADMIN_ROLE):
        _ensure(await users.add_to_role(admin, ADMIN_ROLE), f"assign role '{ADMIN_ROLE}'")
        logger.info("Assigned role '%s' to administrator %s", ADMIN_ROLE, admin.id)

    await scope.commit()
    logger.info("Seeding complete for issuer '%s'", issuer)
