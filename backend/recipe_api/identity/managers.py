"""
RecipeApp API - User & Role Managers
=====================================

What:  The identity store API: create users and roles, look them up, check
       passwords and manage role membership.
Why:   Routes and the seeding routine never touch identity tables directly;
       every write goes through validation (password policy, unique names,
       email syntax and uniqueness) first. The unique indexes on the
       normalized columns back the lookups up under concurrent writes.
How:   Managers wrap one AsyncSession (the scope's) and only flush. Committing
       is the owner of the scope's decision.
Who:   Built lazily by ServiceScope; one instance per scope.
"""

import logging
import uuid
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from recipe_api.identity.options import IdentityOptions
from recipe_api.identity.passwords import (
    PasswordHasher,
    PasswordValidator,
    PasswordVerificationResult,
)
from recipe_api.identity.results import IdentityError, IdentityResult
from recipe_api.models.identity import ApplicationUser, Role, UserRole

logger = logging.getLogger(__name__)


def normalize(value: Optional[str]) -> Optional[str]:
    """Lookup key for names and emails: stripped and upper-cased."""
    if value is None:
        return None
    return value.strip().upper()


def _new_stamp() -> str:
    return str(uuid.uuid4())


def _duplicate_user_name(user_name: Optional[str]) -> IdentityError:
    return IdentityError("DuplicateUserName", f"Username '{user_name}' is already taken.")


def _duplicate_email(email: Optional[str]) -> IdentityError:
    return IdentityError("DuplicateEmail", f"Email '{email}' is already taken.")


class UserManager:
    """Creates and queries ApplicationUser records under the identity policy."""

    def __init__(
        self,
        session: AsyncSession,
        options: IdentityOptions,
        hasher: PasswordHasher,
    ):
        self.session = session
        self.options = options
        self.hasher = hasher
        self.password_validator = PasswordValidator(options.password)

    # ── Queries ───────────────────────────────────────────────────────────

    async def find_by_id(self, user_id: str) -> Optional[ApplicationUser]:
        return await self.session.get(ApplicationUser, user_id)

    async def find_by_name(self, user_name: str) -> Optional[ApplicationUser]:
        result = await self.session.execute(
            select(ApplicationUser).where(
                ApplicationUser.normalized_user_name == normalize(user_name)
            )
        )
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[ApplicationUser]:
        result = await self.session.execute(
            select(ApplicationUser)
            .where(ApplicationUser.normalized_email == normalize(email))
            .order_by(ApplicationUser.created_at)
        )
        return result.scalars().first()

    async def list_users(self) -> List[ApplicationUser]:
        result = await self.session.execute(
            select(ApplicationUser).order_by(ApplicationUser.normalized_user_name)
        )
        return list(result.scalars().all())

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(
        self, user: ApplicationUser, password: Optional[str] = None
    ) -> IdentityResult:
        """
        Validate and persist a new user.

        All user and password violations are reported together. On success
        the user is added to the session and flushed (not committed). A
        unique-index violation at flush time rolls the session back and is
        reported as DuplicateEmail or DuplicateUserName.
        """
        user.normalized_user_name = normalize(user.user_name)
        user.normalized_email = normalize(user.email)

        errors = await self._validate_user(user)
        if password is not None:
            errors.extend(self.password_validator.validate(password))
        if errors:
            logger.info(
                "User creation rejected: %s", ",".join(error.code for error in errors)
            )
            return IdentityResult.failed(*errors)

        if password is not None:
            user.password_hash = self.hasher.hash_password(password)
        user.security_stamp = _new_stamp()
        user.concurrency_stamp = _new_stamp()

        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # A concurrent insert won the race past the lookups above
            detail = str(exc.orig if exc.orig is not None else exc).lower()
            if "normalized_email" in detail:
                error = _duplicate_email(user.email)
            elif "normalized_user_name" in detail:
                error = _duplicate_user_name(user.user_name)
            else:
                error = None
            await self.session.rollback()
            if error is None:
                raise
            logger.info("User creation rejected by the database: %s", error.code)
            return IdentityResult.failed(error)
        logger.info("Created user %s", user.id)
        return IdentityResult.success()

    async def check_password(self, user: ApplicationUser, password: str) -> bool:
        """Verify a password, upgrading the stored hash when the scheme asks for it."""
        result = self.hasher.verify_hashed_password(user.password_hash, password)
        if result is PasswordVerificationResult.SUCCESS_REHASH_NEEDED:
            user.password_hash = self.hasher.hash_password(password)
            user.concurrency_stamp = _new_stamp()
            await self.session.flush()
        return result is not PasswordVerificationResult.FAILED

    async def add_to_role(self, user: ApplicationUser, role_name: str) -> IdentityResult:
        role = await self._find_role(role_name)
        if role is None:
            return IdentityResult.failed(
                IdentityError("RoleNotFound", f"Role {role_name} does not exist.")
            )
        if await self._membership(user.id, role.id) is not None:
            return IdentityResult.failed(
                IdentityError("UserAlreadyInRole", f"User already in role '{role_name}'.")
            )
        self.session.add(UserRole(user_id=user.id, role_id=role.id))
        user.concurrency_stamp = _new_stamp()
        await self.session.flush()
        logger.info("Added user %s to role %s", user.id, role.name)
        return IdentityResult.success()

    async def is_in_role(self, user: ApplicationUser, role_name: str) -> bool:
        role = await self._find_role(role_name)
        if role is None:
            return False
        return await self._membership(user.id, role.id) is not None

    async def get_roles(self, user: ApplicationUser) -> List[str]:
        result = await self.session.execute(
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user.id)
            .order_by(Role.normalized_name)
        )
        return list(result.scalars().all())

    # ── Internals ─────────────────────────────────────────────────────────

    async def _validate_user(self, user: ApplicationUser) -> List[IdentityError]:
        errors: List[IdentityError] = []
        user_options = self.options.user

        user_name = user.user_name or ""
        if not user_name.strip() or any(
            ch not in user_options.allowed_user_name_characters for ch in user_name
        ):
            errors.append(
                IdentityError(
                    "InvalidUserName",
                    f"Username '{user_name}' is invalid, can only contain letters or digits.",
                )
            )
        else:
            owner = await self.find_by_name(user_name)
            if owner is not None and owner.id != user.id:
                errors.append(_duplicate_user_name(user_name))

        email = user.email or ""
        if user_options.require_unique_email or email:
            try:
                # Same rules as the EmailStr fields of the request schemas
                validate_email(email, check_deliverability=False)
            except EmailNotValidError:
                errors.append(IdentityError("InvalidEmail", f"Email '{email}' is invalid."))
            else:
                owner = await self.find_by_email(email) if user_options.require_unique_email else None
                if owner is not None and owner.id != user.id:
                    errors.append(_duplicate_email(email))
        return errors

    async def _find_role(self, role_name: str) -> Optional[Role]:
        result = await self.session.execute(
            select(Role).where(Role.normalized_name == normalize(role_name))
        )
        return result.scalar_one_or_none()

    async def _membership(self, user_id: str, role_id: str) -> Optional[UserRole]:
        return await self.session.get(UserRole, (user_id, role_id))


class RoleManager:
    """Creates and queries roles."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_name(self, role_name: str) -> Optional[Role]:
        result = await self.session.execute(
            select(Role).where(Role.normalized_name == normalize(role_name))
        )
        return result.scalar_one_or_none()

    async def role_exists(self, role_name: str) -> bool:
        return await self.find_by_name(role_name) is not None

    async def create(self, role: Role) -> IdentityResult:
        name = role.name or ""
        if not name.strip():
            return IdentityResult.failed(
                IdentityError("InvalidRoleName", f"Role name '{name}' is invalid.")
            )
        if await self.role_exists(name):
            return IdentityResult.failed(
                IdentityError("DuplicateRoleName", f"Role name '{name}' is already taken.")
            )

        role.normalized_name = normalize(name)
        role.concurrency_stamp = _new_stamp()
        self.session.add(role)
        await self.session.flush()
        logger.info("Created role %s", role.name)
        return IdentityResult.success()
