# Overview: Capability system package.
# Re-exports all public APIs.

from .definitions import (
    Capability,
    CAPABILITY_DEFINITIONS,
    PermissionSet,
    ADMINISTRATOR_LEVEL,
    USER_LEVEL,
    SYSTEM_LEVELS,
)
from .helpers import (
    get_all_capability_codes,
    get_capability_definition,
    validate_capability_code,
    parse_capability,
)

__all__ = [
    "Capability",
    "CAPABILITY_DEFINITIONS",
    "PermissionSet",
    "ADMINISTRATOR_LEVEL",
    "USER_LEVEL",
    "SYSTEM_LEVELS",
    "get_all_capability_codes",
    "get_capability_definition",
    "validate_capability_code",
    "parse_capability",
]
