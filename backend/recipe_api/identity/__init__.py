# Identity package init
"""
RecipeApp API - Identity Subsystem
===================================

What:  User and role management on top of the SQLAlchemy identity models.

Policy (IdentityOptions defaults):
    - passwords: minimum length 6, at least one digit, symbols not required
    - users: unique user names, valid and unique emails
    - roles: enabled (RoleManager, role membership on UserManager)

Module Inventory:
    - options.py:   PasswordOptions, UserOptions, IdentityOptions
    - results.py:   IdentityError, IdentityResult
    - passwords.py: PasswordValidator, PasswordHasher (passlib)
    - managers.py:  UserManager, RoleManager
"""

from recipe_api.identity.managers import RoleManager, UserManager, normalize
from recipe_api.identity.options import IdentityOptions, PasswordOptions, UserOptions
from recipe_api.identity.passwords import (
    PasswordHasher,
    PasswordValidator,
    PasswordVerificationResult,
)
from recipe_api.identity.results import IdentityError, IdentityResult

__all__ = [
    "IdentityError",
    "IdentityOptions",
    "IdentityResult",
    "PasswordHasher",
    "PasswordOptions",
    "PasswordValidator",
    "PasswordVerificationResult",
    "RoleManager",
    "UserManager",
    "UserOptions",
    "normalize",
]
