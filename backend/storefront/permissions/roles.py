# Overview: Closed set of caller roles.

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """
    Caller roles.

    SUPER_ADMIN is the only role allowed to exist without an organization
    and the only one that sees rows of every tenant.
    """
    SUPER_ADMIN = "SuperAdmin"
    ADMIN = "Admin"
    MANAGER = "Manager"
    USER = "User"

    @classmethod
    def parse(cls, value: "Role | str") -> "Role":
        """Accept enum members, canonical values and legacy spellings ("Super Admin")."""
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown role: {value!r}")
        normalized = value.replace(" ", "").replace("_", "").lower()
        for role in cls:
            if role.value.lower() == normalized:
                return role
        raise ValueError(f"Unknown role: {value!r}")


STAFF_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER})
ALL_ROLES = frozenset(Role)
