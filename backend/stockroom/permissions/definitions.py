# Overview: Capability catalogue and the fixed-shape permission set carried by access levels.
# Each capability is defined as: (capability, name, description)

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum


class Capability(str, Enum):
    """Closed set of capability flags an access level can grant."""
    MANAGE_ACCESS = "manage_access"
    MANAGE_LEVELS = "manage_levels"
    CREATE_PRODUCTS = "create_products"
    EDIT_PRODUCTS = "edit_products"
    DELETE_PRODUCTS = "delete_products"
    RECORD_MOVEMENTS = "record_movements"
    VIEW_HISTORY = "view_history"


CAPABILITY_DEFINITIONS = [
    (
        Capability.MANAGE_ACCESS,
        "Manage Access",
        "Create, edit and delete user accounts",
    ),
    (
        Capability.MANAGE_LEVELS,
        "Manage Access Levels",
        "Create, edit and delete access levels",
    ),
    (
        Capability.CREATE_PRODUCTS,
        "Create Products",
        "Register new products",
    ),
    (
        Capability.EDIT_PRODUCTS,
        "Edit Products",
        "Edit product details",
    ),
    (
        Capability.DELETE_PRODUCTS,
        "Delete Products",
        "Remove products from the catalog",
    ),
    (
        Capability.RECORD_MOVEMENTS,
        "Record Movements",
        "Record stock entries and exits",
    ),
    (
        Capability.VIEW_HISTORY,
        "View History",
        "View the stock movement history",
    ),
]


@dataclass(frozen=True)
class PermissionSet:
    """
    Effective capabilities of an access level.

    Field names match Capability values one to one, so a capability that
    does not exist fails loudly instead of reading as False.
    """
    manage_access: bool = False
    manage_levels: bool = False
    create_products: bool = False
    edit_products: bool = False
    delete_products: bool = False
    record_movements: bool = False
    view_history: bool = False

    def allows(self, capability: Capability) -> bool:
        return bool(getattr(self, Capability(capability).value))

    def granted(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def merged(self, patch: dict) -> "PermissionSet":
        """Return a copy with the capabilities in ``patch`` overridden."""
        return replace(self, **patch)

    @classmethod
    def all_granted(cls) -> "PermissionSet":
        return cls(**{c.value: True for c in Capability})

    @classmethod
    def none_granted(cls) -> "PermissionSet":
        return cls()


# Bootstrap access levels: (name, description, permissions)
ADMINISTRATOR_LEVEL = (
    "Administrator",
    "Full system access",
    PermissionSet.all_granted(),
)

USER_LEVEL = (
    "User",
    "Basic system access",
    PermissionSet(
        manage_access=False,
        manage_levels=False,
        create_products=True,
        edit_products=True,
        delete_products=False,
        record_movements=True,
        view_history=True,
    ),
)

SYSTEM_LEVELS = [ADMINISTRATOR_LEVEL, USER_LEVEL]
