"""
RecipeApp API - JWT Token Service
==================================

What:  Issues signed bearer tokens for authenticated users.
Who:   The login route, through the request's ServiceScope (one instance per
       request scope).
How:   python-jose signs the claims with the same key, issuer and algorithm
       that TokenValidationParameters verifies, so every issued token passes
       validate_token() until it expires.

Claims:
    sub    user id
    name   user name
    email  user email (omitted when the user has none)
    role   list of role names
    jti    unique token id
    iss    Jwt:Issuer
    iat / nbf / exp  issue time, not-before, expiry (Jwt:AccessTokenMinutes)
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from jose import jwt

from recipe_api.auth.tokens import TokenValidationParameters
from recipe_api.models.identity import ApplicationUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    expires_at: datetime
    token_type: str = "Bearer"

    @property
    def expires_in(self) -> int:
        """Seconds until expiry, as reported to OAuth-style clients."""
        remaining = self.expires_at - datetime.now(timezone.utc)
        return max(int(remaining.total_seconds()), 0)


class JwtTokenService:
    def __init__(self, parameters: TokenValidationParameters, lifetime: timedelta):
        self.parameters = parameters
        self.lifetime = lifetime

    def create_token(self, user: ApplicationUser, roles: Iterable[str] = ()) -> IssuedToken:
        now = datetime.now(timezone.utc)
        expires_at = now + self.lifetime

        claims = {
            "sub": user.id,
            "name": user.user_name,
            "jti": uuid.uuid4().hex,
            "role": list(roles),
            "iss": self.parameters.valid_issuer,
            "iat": int(now.timestamp()),
            "nbf": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        if user.email:
            claims["email"] = user.email

        token = jwt.encode(
            claims,
            self.parameters.signing_key,
            algorithm=self.parameters.algorithms[0],
        )
        logger.info("Issued access token for user %s (expires %s)", user.id, expires_at.isoformat())
        return IssuedToken(access_token=token, expires_at=expires_at)
