from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

ADMIN_ROLE = "admin"
MEMBER_ID_HEADER = "X-Member-Id"
MEMBER_ROLES_HEADER = "X-Member-Roles"


@dataclass(frozen=True)
class Identity:
    owner_id: str | None
    is_authenticated: bool = False
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    @property
    def resolved_owner_id(self) -> str | None:
        if not self.is_authenticated or self.owner_id is None:
            return None
        normalized = self.owner_id.strip()
        return normalized or None


ANONYMOUS = Identity(owner_id=None)


def identity_from_headers(headers: Mapping[str, str]) -> Identity:
    """Read the identity an upstream auth proxy attached to the request."""
    owner_id = (headers.get(MEMBER_ID_HEADER) or "").strip()
    if not owner_id:
        return ANONYMOUS

    raw_roles = headers.get(MEMBER_ROLES_HEADER) or ""
    roles = frozenset(role.strip().lower() for role in raw_roles.split(",") if role.strip())
    return Identity(owner_id=owner_id, is_authenticated=True, roles=roles)
