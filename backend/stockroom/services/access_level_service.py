# Overview: Service-layer operations for access levels; lifecycle guards for roles.

"""
Access Level Service

Lifecycle rules:
- Created levels are never system levels; omitted permissions mean all false
- System levels (bootstrap) cannot be updated or deleted, whoever asks
- A level referenced by any user cannot be deleted
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import AccessLevel, User
from ..permissions import PermissionSet, USER_LEVEL, validate_capability_code
from ..validation import ValidationError, ConflictError, NotFoundError, ForbiddenError


def parse_permissions(raw, base: PermissionSet | None = None) -> PermissionSet:
    """
    Build a PermissionSet from a JSON object of capability -> bool.

    Missing capabilities keep their value from ``base`` (all false when no
    base is given). Unknown capability names are rejected.
    """
    base = base or PermissionSet.none_granted()
    if raw is None:
        return base
    if not isinstance(raw, dict):
        raise ValidationError("permissions must be an object of capability -> boolean")

    patch = {}
    for code, granted in raw.items():
        if not validate_capability_code(code):
            raise ValidationError(f"Unknown capability: {code}")
        if not isinstance(granted, bool):
            raise ValidationError(f"permissions.{code} must be a boolean")
        patch[code] = granted

    return base.merged(patch)


def _normalize_name(name) -> str:
    name = (name or "").strip() if isinstance(name, str) else ""
    if len(name) < 2:
        raise ValidationError("name must be at least 2 characters")
    return name


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(AccessLevel).filter(db.func.lower(AccessLevel.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(AccessLevel.id != exclude_id)
    if query.first():
        raise ConflictError("An access level with this name already exists")


def _commit_or_conflict() -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("An access level with this name already exists") from exc


def count_users(level_id: int) -> int:
    return db.session.query(User).filter(User.access_level_id == level_id).count()


def list_access_levels() -> list[dict]:
    levels = db.session.query(AccessLevel).order_by(AccessLevel.id.asc()).all()
    items = []
    for level in levels:
        item = level.to_dict()
        item["user_count"] = count_users(level.id)
        items.append(item)
    return items


def get_access_level(level_id: int) -> AccessLevel:
    level = db.session.get(AccessLevel, level_id)
    if level is None:
        raise NotFoundError("Access level not found")
    return level


def get_default_user_level() -> AccessLevel | None:
    """The bootstrap "User" level, assigned when a new user names no level."""
    return db.session.query(AccessLevel).filter_by(name=USER_LEVEL[0], is_system=True).first()


def create_access_level(
    *,
    name: str,
    description: str | None = None,
    permissions: PermissionSet | None = None,
) -> AccessLevel:
    name = _normalize_name(name)
    _ensure_unique_name(name)

    level = AccessLevel(name=name, description=description or "", is_system=False)
    level.permissions = permissions or PermissionSet.none_granted()

    db.session.add(level)
    _commit_or_conflict()
    return level


def update_access_level(level_id: int, *, patch: dict, permissions_patch=None) -> AccessLevel:
    """
    Partially update a non-system level.

    ``patch`` holds validated name/description; ``permissions_patch`` is the
    raw permissions object from the request, merged over the current set.
    """
    level = get_access_level(level_id)
    if level.is_system:
        raise ForbiddenError("System access levels cannot be edited")

    if "name" in patch:
        name = _normalize_name(patch["name"])
        _ensure_unique_name(name, exclude_id=level.id)
        level.name = name

    if "description" in patch:
        level.description = patch["description"] or ""

    if permissions_patch is not None:
        level.permissions = parse_permissions(permissions_patch, base=level.permissions)

    _commit_or_conflict()
    return level


def delete_access_level(level_id: int) -> None:
    level = get_access_level(level_id)
    if level.is_system:
        raise ForbiddenError("System access levels cannot be deleted")

    in_use = count_users(level.id)
    if in_use:
        raise ConflictError(f"Access level is assigned to {in_use} user(s)")

    db.session.delete(level)
    db.session.commit()
