"""
RecipeApp API - Bearer Token Validation
========================================

What:  The validation parameters for bearer tokens and the function that
       applies them.
Why:   Every authenticated request depends on exactly these checks, so they
       are built once from settings and frozen for the process lifetime.
How:   python-jose verifies the HMAC signature and the registered claims;
       jose errors are translated into the TokenValidationError family.

Checks applied:
    signature   → HMAC with Jwt:Key (algorithms restricted, "none" rejected)
    iss         → must equal Jwt:Issuer exactly
    aud         → NOT checked
    exp         → required; accepted up to `clock_skew` (2 minutes) past expiry
    nbf         → honoured with the same skew
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from recipe_api.config import Settings
from recipe_api.exceptions import (
    TokenExpiredError,
    TokenIssuerInvalidError,
    TokenSignatureInvalidError,
    TokenValidationError,
)

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"
DEFAULT_CLOCK_SKEW = timedelta(minutes=2)


@dataclass(frozen=True)
class TokenValidationParameters:
    signing_key: bytes
    valid_issuer: str
    validate_issuer_signing_key: bool = True
    validate_issuer: bool = True
    validate_audience: bool = False
    valid_audience: Optional[str] = None
    validate_lifetime: bool = True
    require_expiration_time: bool = True
    clock_skew: timedelta = DEFAULT_CLOCK_SKEW
    algorithms: Tuple[str, ...] = ("HS256",)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenValidationParameters":
        return cls(
            signing_key=settings.signing_key.encode("utf-8"),
            valid_issuer=settings.issuer,
            algorithms=(settings.jwt.algorithm,),
        )

    def __repr__(self) -> str:
        # The key never appears in logs or tracebacks
        return (
            f"TokenValidationParameters(valid_issuer={self.valid_issuer!r}, "
            f"validate_audience={self.validate_audience}, clock_skew={self.clock_skew}, "
            f"algorithms={self.algorithms})"
        )


@dataclass(frozen=True)
class JwtBearerOptions:
    """Authentication scheme options for the bearer middleware."""

    parameters: TokenValidationParameters
    require_https_metadata: bool = True
    save_token: bool = True
    scheme: str = BEARER_SCHEME


def validate_token(token: str, parameters: TokenValidationParameters) -> Dict[str, Any]:
    """
    Validate a compact JWS and return its claims.

    Raises:
        TokenExpiredError:          exp (+ clock skew) is in the past
        TokenIssuerInvalidError:    iss missing or different from the configured issuer
        TokenSignatureInvalidError: signature does not verify with the signing key
        TokenValidationError:       anything else (malformed token, missing exp, ...)
    """
    options = {
        "verify_signature": parameters.validate_issuer_signing_key,
        "verify_aud": parameters.validate_audience,
        "verify_iss": parameters.validate_issuer,
        "verify_exp": parameters.validate_lifetime,
        "verify_nbf": parameters.validate_lifetime,
        "require_exp": parameters.require_expiration_time,
        "leeway": int(parameters.clock_skew.total_seconds()),
    }
    try:
        return jwt.decode(
            token,
            parameters.signing_key,
            algorithms=list(parameters.algorithms),
            issuer=parameters.valid_issuer if parameters.validate_issuer else None,
            audience=parameters.valid_audience if parameters.validate_audience else None,
            options=options,
        )
    except ExpiredSignatureError as exc:
        raise TokenExpiredError() from exc
    except JWTClaimsError as exc:
        if "issuer" in str(exc).lower():
            raise TokenIssuerInvalidError() from exc
        raise TokenValidationError(
            f"The token claims are invalid: {exc}", context={"reason": str(exc)}
        ) from exc
    except JWTError as exc:
        if "signature" in str(exc).lower():
            raise TokenSignatureInvalidError() from exc
        raise TokenValidationError(
            "The token is malformed", context={"reason": str(exc)}
        ) from exc
