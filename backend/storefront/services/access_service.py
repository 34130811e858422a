"""
AccessScope: role checks and tenant visibility.

WHY: Every store and engine operation is gated here once, instead of role
arrays sprinkled across handlers. Services call authorize() before touching
the database and apply visible_filter() to every catalog read.

SECURITY INVARIANTS:
1. SuperAdmin sees every row; everyone else sees rows where
   org_id = caller.org_id OR org_id IS NULL (global catalog).
2. Capability checks fail closed: unknown capability codes grant nothing.
3. Mutating a row owned by another organization raises AuthorizationError.
   Reading another org's private row raises NotFoundError at the call site
   so its existence is not revealed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, true

from ..errors import AuthorizationError
from ..permissions import Role, allowed_roles, validate_capability_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Identity tuple supplied by the identity provider; trusted as-is."""
    user_id: int
    role: Role
    org_id: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "role", Role.parse(self.role))

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, "role": self.role.value, "org_id": self.org_id}


@dataclass(frozen=True)
class Visibility:
    """Result of resolve_visibility: either every row, or one org plus global rows."""
    all_rows: bool
    org_id: int | None = None


def resolve_visibility(caller: Caller) -> Visibility:
    if caller.is_super_admin:
        return Visibility(all_rows=True)
    return Visibility(all_rows=False, org_id=caller.org_id)


def visible_filter(org_column, caller: Caller):
    """SQL predicate restricting a nullable org_id column to what caller may read."""
    visibility = resolve_visibility(caller)
    if visibility.all_rows:
        return true()
    if visibility.org_id is None:
        return org_column.is_(None)
    return or_(org_column == visibility.org_id, org_column.is_(None))


def can_see(caller: Caller, org_id: int | None) -> bool:
    """Row-level counterpart of visible_filter for already-loaded rows."""
    visibility = resolve_visibility(caller)
    if visibility.all_rows or org_id is None:
        return True
    return org_id == visibility.org_id


def has_capability(caller: Caller, capability: str) -> bool:
    return caller.role in allowed_roles(capability)


def authorize(caller: Caller | None, capability: str) -> Caller:
    """
    Reject callers lacking the capability before any store access.

    Returns the caller so services can write `caller = authorize(caller, ...)`.
    """
    if caller is None:
        raise AuthorizationError("Authentication required")
    if not validate_capability_code(capability):
        logger.error("Unknown capability code %s; denying", capability)
        raise AuthorizationError("Permission denied", {"required_capability": capability})
    if not has_capability(caller, capability):
        logger.info(
            "Capability %s denied for user_id=%s role=%s",
            capability, caller.user_id, caller.role.value,
        )
        raise AuthorizationError(
            "Permission denied",
            {"required_capability": capability, "role": caller.role.value},
        )
    return caller


def owns_organization(caller: Caller, target_org_id: int | None) -> bool:
    """
    True when caller may mutate rows owned by target_org_id.

    Global rows (target_org_id None) are owned by SuperAdmin only.
    """
    if caller.is_super_admin:
        return True
    return target_org_id is not None and target_org_id == caller.org_id


def require_org_ownership(caller: Caller, target_org_id: int | None, resource: str = "resource") -> None:
    if not owns_organization(caller, target_org_id):
        logger.warning(
            "Cross-tenant mutation denied: user_id=%s org_id=%s target_org_id=%s resource=%s",
            caller.user_id, caller.org_id, target_org_id, resource,
        )
        raise AuthorizationError(f"You are not authorized to modify this {resource}")


def resolve_target_org(caller: Caller, requested_org_id: int | None) -> int | None:
    """
    Org that a newly created catalog row belongs to.

    SuperAdmin may target any org or leave the row global (None). Everyone
    else always writes into their own org; naming another org is Forbidden.
    """
    if caller.is_super_admin:
        return requested_org_id
    if requested_org_id is not None and requested_org_id != caller.org_id:
        raise AuthorizationError("You are not authorized to create records for this organization")
    if caller.org_id is None:
        raise AuthorizationError("Caller has no organization")
    return caller.org_id
