"""
RecipeApp API - Account Schemas
================================

What:  Request/response contracts for registration, sign-in and the
       current-user endpoints.
Why:   Password rules are NOT duplicated here: the identity layer is the
       single place that enforces them, so a weak password gets the same
       error codes whether it comes from the API or from seeding.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    user_name: str = Field(min_length=1, max_length=256, description="Unique user name")
    email: EmailStr = Field(description="Unique email address")
    password: str = Field(min_length=1, max_length=256, description="Account password")


class LoginRequest(BaseModel):
    user_name: str = Field(
        min_length=1,
        max_length=256,
        description="User name, or email address when it contains '@'",
    )
    password: str = Field(min_length=1, max_length=256)


class TokenResponse(BaseModel):
    """OAuth-style token payload returned by a successful sign-in."""
    access_token: str
    token_type: str = Field(default="Bearer")
    expires_in: int = Field(description="Seconds until the token expires")
    expires_at: datetime


class UserResponse(BaseModel):
    id: str
    user_name: str
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)


class CurrentUserResponse(BaseModel):
    """The authenticated principal as seen by the API (from token claims)."""
    id: Optional[str] = None
    user_name: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    issuer: Optional[str] = None
    expires_at: Optional[datetime] = None
