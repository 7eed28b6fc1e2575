"""
RecipeApp API - Identity Tests
===============================

What:  Tests for the password policy, password hashing and the user / role
       managers (against a real SQLite database per test).

What we test:
    ✅ Password policy: length >= 6, digit required, symbols not required
    ✅ Hashing round trip, wrong password, corrupt stored hash
    ✅ Duplicate user names and emails rejected (case-insensitive)
    ✅ Malformed emails rejected with the same rules as the request schemas
    ✅ A duplicate that slips past the lookups is reported, not raised
    ✅ Role creation, membership and duplicate membership
"""

from unittest.mock import AsyncMock, patch

import pytest

from recipe_api.identity import (
    IdentityOptions,
    PasswordHasher,
    PasswordOptions,
    PasswordValidator,
    PasswordVerificationResult,
    normalize,
)
from recipe_api.models.identity import ApplicationUser, Role


class TestPasswordPolicy:

    def setup_method(self):
        self.validator = PasswordValidator(IdentityOptions().password)

    def _codes(self, password):
        return [error.code for error in self.validator.validate(password)]

    def test_five_characters_rejected(self):
        assert "PasswordTooShort" in self._codes("abc12")

    def test_six_characters_with_digit_accepted(self):
        assert self._codes("abcde1") == []

    def test_no_digit_rejected(self):
        assert self._codes("abcdefgh") == ["PasswordRequiresDigit"]

    def test_symbols_and_case_not_required(self):
        assert self._codes("123456") == []

    def test_every_violation_reported(self):
        assert self._codes("abc") == ["PasswordTooShort", "PasswordRequiresDigit"]

    def test_non_ascii_digit_does_not_count(self):
        assert "PasswordRequiresDigit" in self._codes("abcdef٣")

    def test_stricter_options(self):
        validator = PasswordValidator(
            PasswordOptions(
                required_length=8,
                require_non_alphanumeric=True,
                require_lowercase=True,
                require_uppercase=True,
                required_unique_chars=4,
            )
        )
        codes = [error.code for error in validator.validate("1111")]
        assert codes == [
            "PasswordTooShort",
            "PasswordRequiresNonAlphanumeric",
            "PasswordRequiresLower",
            "PasswordRequiresUpper",
            "PasswordRequiresUniqueChars",
        ]


class TestPasswordHasher:

    def setup_method(self):
        self.hasher = PasswordHasher()

    def test_round_trip(self):
        hashed = self.hasher.hash_password("Admin123")

        assert hashed != "Admin123"
        assert hashed.startswith("$pbkdf2-sha256$")
        assert (
            self.hasher.verify_hashed_password(hashed, "Admin123")
            is PasswordVerificationResult.SUCCESS
        )

    def test_wrong_password(self):
        hashed = self.hasher.hash_password("Admin123")
        assert (
            self.hasher.verify_hashed_password(hashed, "Admin124")
            is PasswordVerificationResult.FAILED
        )

    def test_missing_or_corrupt_hash_fails(self):
        assert self.hasher.verify_hashed_password(None, "x") is PasswordVerificationResult.FAILED
        assert (
            self.hasher.verify_hashed_password("not-a-hash", "x")
            is PasswordVerificationResult.FAILED
        )

    def test_same_password_hashes_differently(self):
        assert self.hasher.hash_password("Admin123") != self.hasher.hash_password("Admin123")


class TestUserManager:

    def test_normalize(self):
        assert normalize("  Chef@Example.com ") == "CHEF@EXAMPLE.COM"
        assert normalize(None) is None

    @pytest.mark.asyncio
    async def test_create_and_find(self, scope):
        users = scope.user_manager
        user = ApplicationUser(user_name="Chef", email="chef@example.com")

        result = await users.create(user, "secret1")

        assert result.succeeded
        assert user.id is not None
        assert user.password_hash and user.password_hash != "secret1"
        assert (await users.find_by_name("chef")).id == user.id
        assert (await users.find_by_email("CHEF@example.com")).id == user.id
        assert await users.check_password(user, "secret1")
        assert not await users.check_password(user, "secret2")

    @pytest.mark.asyncio
    async def test_weak_password_not_persisted(self, scope):
        users = scope.user_manager

        result = await users.create(ApplicationUser(user_name="weak", email="weak@example.com"), "abc")

        assert not result.succeeded
        assert set(result.codes) == {"PasswordTooShort", "PasswordRequiresDigit"}
        assert await users.find_by_name("weak") is None

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, scope):
        users = scope.user_manager
        await users.create(ApplicationUser(user_name="first", email="same@example.com"), "secret1")

        result = await users.create(
            ApplicationUser(user_name="second", email="SAME@example.com"), "secret1"
        )

        assert result.codes == ("DuplicateEmail",)

    @pytest.mark.asyncio
    async def test_duplicate_user_name_rejected(self, scope):
        users = scope.user_manager
        await users.create(ApplicationUser(user_name="chef", email="a@example.com"), "secret1")

        result = await users.create(
            ApplicationUser(user_name="CHEF", email="b@example.com"), "secret1"
        )

        assert result.codes == ("DuplicateUserName",)

    @pytest.mark.asyncio
    async def test_invalid_email_and_user_name(self, scope):
        result = await scope.user_manager.create(
            ApplicationUser(user_name="bad name", email="no-at-sign"), "secret1"
        )
        assert set(result.codes) == {"InvalidUserName", "InvalidEmail"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["a@b..c", "x@-", "<script>@x", "chef@", "two@@example.com"])
    async def test_malformed_email_rejected(self, scope, email):
        result = await scope.user_manager.create(
            ApplicationUser(user_name="chef", email=email), "secret1"
        )

        assert result.codes == ("InvalidEmail",)
        assert await scope.user_manager.find_by_name("chef") is None


class TestConcurrentCreate:
    """Two scopes racing for the same email or user name: the unique index decides."""

    async def _create_committed(self, services, user_name, email):
        async with services.create_scope() as first:
            result = await first.user_manager.create(
                ApplicationUser(user_name=user_name, email=email), "secret1"
            )
            assert result.succeeded
            await first.commit()

    async def _user_count(self, services):
        async with services.create_scope() as check:
            return len(await check.user_manager.list_users())

    @pytest.mark.asyncio
    async def test_email_race_reported_as_duplicate(self, services):
        await self._create_committed(services, "first", "dup@example.com")

        async with services.create_scope() as second:
            users = second.user_manager
            # The lookup ran before the other insert committed
            with patch.object(users, "find_by_email", AsyncMock(return_value=None)):
                result = await users.create(
                    ApplicationUser(user_name="second", email="DUP@example.com"), "secret1"
                )

        assert not result.succeeded
        assert result.codes == ("DuplicateEmail",)
        assert await self._user_count(services) == 1

    @pytest.mark.asyncio
    async def test_user_name_race_reported_as_duplicate(self, services):
        await self._create_committed(services, "chef", "one@example.com")

        async with services.create_scope() as second:
            users = second.user_manager
            with patch.object(users, "find_by_name", AsyncMock(return_value=None)):
                result = await users.create(
                    ApplicationUser(user_name="CHEF", email="two@example.com"), "secret1"
                )

        assert result.codes == ("DuplicateUserName",)
        assert await self._user_count(services) == 1

    @pytest.mark.asyncio
    async def test_scope_usable_after_lost_race(self, services):
        await self._create_committed(services, "first", "dup@example.com")

        async with services.create_scope() as second:
            users = second.user_manager
            with patch.object(users, "find_by_email", AsyncMock(return_value=None)):
                await users.create(ApplicationUser(user_name="second", email="dup@example.com"), "secret1")

            result = await users.create(
                ApplicationUser(user_name="second", email="other@example.com"), "secret1"
            )
            assert result.succeeded
            await second.commit()

        assert await self._user_count(services) == 2


class TestRoles:

    @pytest.mark.asyncio
    async def test_create_role_once(self, scope):
        roles = scope.role_manager

        assert (await roles.create(Role(name="Editor"))).succeeded
        assert await roles.role_exists("editor")

        duplicate = await roles.create(Role(name="EDITOR"))
        assert duplicate.codes == ("DuplicateRoleName",)

    @pytest.mark.asyncio
    async def test_blank_role_name_rejected(self, scope):
        result = await scope.role_manager.create(Role(name="  "))
        assert result.codes == ("InvalidRoleName",)

    @pytest.mark.asyncio
    async def test_membership(self, scope):
        users = scope.user_manager
        user = ApplicationUser(user_name="cook", email="cook@example.com")
        await users.create(user, "secret1")
        await scope.role_manager.create(Role(name="Admin"))

        assert (await users.add_to_role(user, "Admin")).succeeded
        assert await users.is_in_role(user, "admin")
        assert await users.get_roles(user) == ["Admin"]

        again = await users.add_to_role(user, "Admin")
        assert again.codes == ("UserAlreadyInRole",)

    @pytest.mark.asyncio
    async def test_unknown_role(self, scope):
        users = scope.user_manager
        user = ApplicationUser(user_name="cook", email="cook@example.com")
        await users.create(user, "secret1")

        result = await users.add_to_role(user, "Nope")

        assert result.codes == ("RoleNotFound",)
        assert not await users.is_in_role(user, "Nope")
