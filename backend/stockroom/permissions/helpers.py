# Overview: Utility functions for capability lookups and payload validation.

from .definitions import CAPABILITY_DEFINITIONS, Capability


def get_all_capability_codes():
    """Get list of all capability codes."""
    return [cap.value for cap, _, _ in CAPABILITY_DEFINITIONS]


def get_capability_definition(code):
    """Get full definition for a capability code."""
    for cap, name, description in CAPABILITY_DEFINITIONS:
        if cap.value == code:
            return {
                "code": cap.value,
                "name": name,
                "description": description,
            }
    return None


def validate_capability_code(code):
    """Check if a capability code is valid."""
    return code in get_all_capability_codes()


def parse_capability(code) -> Capability:
    """Convert a code to a Capability, raising ValueError for unknown codes."""
    return Capability(code)
