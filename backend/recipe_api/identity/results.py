"""
Identity operation results.

Managers report expected rejections (weak password, duplicate email, ...)
as an IdentityResult instead of raising, so callers can decide whether a
failure is a 400 for a client (registration) or fatal (seeding).
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class IdentityError:
    code: str
    description: str


@dataclass(frozen=True)
class IdentityResult:
    succeeded: bool
    errors: Tuple[IdentityError, ...] = field(default=())

    @classmethod
    def success(cls) -> "IdentityResult":
        return cls(succeeded=True)

    @classmethod
    def failed(cls, *errors: IdentityError) -> "IdentityResult":
        return cls(succeeded=False, errors=tuple(errors))

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(error.code for error in self.errors)

    def __str__(self) -> str:
        if self.succeeded:
            return "Succeeded"
        return "Failed : " + ",".join(self.codes)
