"""The identity attached to each request by the authentication middleware."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

ROLE_CLAIM = "role"
NAME_CLAIM = "name"
SUBJECT_CLAIM = "sub"


@dataclass(frozen=True)
class ClaimsPrincipal:
    claims: Mapping[str, Any] = field(default_factory=dict)
    authentication_type: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "ClaimsPrincipal":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.authentication_type)

    @property
    def subject(self) -> Optional[str]:
        return self.claims.get(SUBJECT_CLAIM)

    @property
    def name(self) -> Optional[str]:
        return self.claims.get(NAME_CLAIM)

    @property
    def roles(self) -> Tuple[str, ...]:
        # A single role is serialized as a string, several as a list
        value = self.claims.get(ROLE_CLAIM)
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return tuple(str(role) for role in value)

    def is_in_role(self, role: str) -> bool:
        return role in self.roles
