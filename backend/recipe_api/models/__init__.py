# Models package init
from recipe_api.models.identity import ApplicationUser, Role, UserRole

__all__ = ["ApplicationUser", "Role", "UserRole"]
