"""
RecipeApp API - Password Policy & Hashing
==========================================

What:  Validates candidate passwords against PasswordOptions and hashes /
       verifies stored credentials.
How:   Validation is plain character-class checks. Hashing is delegated to
       passlib's CryptContext with PBKDF2-HMAC-SHA256; `deprecated="auto"`
       lets verification flag hashes that should be upgraded.
"""

import enum
import logging
from typing import List, Optional

from passlib.context import CryptContext

from recipe_api.identity.options import PasswordOptions
from recipe_api.identity.results import IdentityError

logger = logging.getLogger(__name__)


# Character classes are ASCII-only, matching the error messages below
def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_lower(ch: str) -> bool:
    return "a" <= ch <= "z"


def _is_upper(ch: str) -> bool:
    return "A" <= ch <= "Z"


def _is_letter_or_digit(ch: str) -> bool:
    return _is_digit(ch) or _is_lower(ch) or _is_upper(ch)


class PasswordValidator:
    """Checks a password against the configured policy, reporting every violation."""

    def __init__(self, options: PasswordOptions):
        self.options = options

    def validate(self, password: Optional[str]) -> List[IdentityError]:
        options = self.options
        password = password or ""
        errors: List[IdentityError] = []

        if len(password) < options.required_length:
            errors.append(
                IdentityError(
                    "PasswordTooShort",
                    f"Passwords must be at least {options.required_length} characters.",
                )
            )
        if options.require_non_alphanumeric and all(_is_letter_or_digit(ch) for ch in password):
            errors.append(
                IdentityError(
                    "PasswordRequiresNonAlphanumeric",
                    "Passwords must have at least one non alphanumeric character.",
                )
            )
        if options.require_digit and not any(_is_digit(ch) for ch in password):
            errors.append(
                IdentityError(
                    "PasswordRequiresDigit",
                    "Passwords must have at least one digit ('0'-'9').",
                )
            )
        if options.require_lowercase and not any(_is_lower(ch) for ch in password):
            errors.append(
                IdentityError(
                    "PasswordRequiresLower",
                    "Passwords must have at least one lowercase ('a'-'z').",
                )
            )
        if options.require_uppercase and not any(_is_upper(ch) for ch in password):
            errors.append(
                IdentityError(
                    "PasswordRequiresUpper",
                    "Passwords must have at least one uppercase ('A'-'Z').",
                )
            )
        if options.required_unique_chars > 1 and len(set(password)) < options.required_unique_chars:
            errors.append(
                IdentityError(
                    "PasswordRequiresUniqueChars",
                    f"Passwords must use at least {options.required_unique_chars} "
                    "different characters.",
                )
            )
        return errors


class PasswordVerificationResult(enum.Enum):
    FAILED = "failed"
    SUCCESS = "success"
    SUCCESS_REHASH_NEEDED = "success_rehash_needed"


class PasswordHasher:
    """
    Hashes and verifies passwords.

    pbkdf2_sha256 is used by default: salted, iterated, and implemented on top
    of hashlib so no native extension is required.
    """

    def __init__(self, context: Optional[CryptContext] = None):
        self._context = context or CryptContext(
            schemes=["pbkdf2_sha256"], deprecated="auto"
        )

    def hash_password(self, password: str) -> str:
        return self._context.hash(password)

    def verify_hashed_password(
        self, hashed_password: Optional[str], provided_password: str
    ) -> PasswordVerificationResult:
        if not hashed_password:
            return PasswordVerificationResult.FAILED
        try:
            valid, new_hash = self._context.verify_and_update(
                provided_password, hashed_password
            )
        except ValueError:
            # Unrecognized or corrupt hash format stored for the user
            logger.warning("Stored password hash could not be parsed")
            return PasswordVerificationResult.FAILED

        if not valid:
            return PasswordVerificationResult.FAILED
        if new_hash is not None:
            return PasswordVerificationResult.SUCCESS_REHASH_NEEDED
        return PasswordVerificationResult.SUCCESS
