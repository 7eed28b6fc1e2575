"""Identity policy options: password rules and user uniqueness rules."""

from dataclasses import dataclass, field

DEFAULT_ALLOWED_USER_NAME_CHARACTERS = (
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-._@+"
)


@dataclass(frozen=True)
class PasswordOptions:
    """
    Password policy.

    The API's policy: at least 6 characters and at least one digit; symbols
    are not required. Letter-case rules exist but are off.
    """

    required_length: int = 6
    require_digit: bool = True
    require_non_alphanumeric: bool = False
    require_lowercase: bool = False
    require_uppercase: bool = False
    required_unique_chars: int = 1


@dataclass(frozen=True)
class UserOptions:
    require_unique_email: bool = True
    allowed_user_name_characters: str = DEFAULT_ALLOWED_USER_NAME_CHARACTERS


@dataclass(frozen=True)
class IdentityOptions:
    password: PasswordOptions = field(default_factory=PasswordOptions)
    user: UserOptions = field(default_factory=UserOptions)
