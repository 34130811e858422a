# Overview: Role and capability package.
# Re-exports the public API used by AccessScope and the route decorators.

from .roles import Role, STAFF_ROLES, ALL_ROLES
from .definitions import (
    CAPABILITY_DEFINITIONS,
    CATALOG_CAPABILITIES,
    SHOPPING_CAPABILITIES,
    ORDER_CAPABILITIES,
)
from .helpers import (
    get_capability_definition,
    validate_capability_code,
    allowed_roles,
    role_has_capability,
)

__all__ = [
    "Role",
    "STAFF_ROLES",
    "ALL_ROLES",
    "CAPABILITY_DEFINITIONS",
    "CATALOG_CAPABILITIES",
    "SHOPPING_CAPABILITIES",
    "ORDER_CAPABILITIES",
    "get_capability_definition",
    "validate_capability_code",
    "allowed_roles",
    "role_has_capability",
]
