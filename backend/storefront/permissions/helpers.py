# Overview: Utility functions for capability lookups and validation.

from .definitions import CAPABILITY_DEFINITIONS
from .roles import Role

_ALLOWED_ROLES = {cap[0]: cap[3] for cap in CAPABILITY_DEFINITIONS}


def get_capability_definition(code):
    """Get full definition for a capability code."""
    for cap in CAPABILITY_DEFINITIONS:
        if cap[0] == code:
            return {
                "code": cap[0],
                "name": cap[1],
                "description": cap[2],
                "roles": sorted(role.value for role in cap[3]),
            }
    return None


def validate_capability_code(code):
    """Check if a capability code is valid."""
    return code in _ALLOWED_ROLES


def allowed_roles(code):
    """Roles granted a capability. Unknown codes grant nothing (fail closed)."""
    return _ALLOWED_ROLES.get(code, frozenset())


def role_has_capability(role, code):
    return Role.parse(role) in allowed_roles(code)
