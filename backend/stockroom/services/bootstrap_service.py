# Overview: One-time creation of the system access levels and the first administrator.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import AccessLevel, User
from ..permissions import SYSTEM_LEVELS, ADMINISTRATOR_LEVEL
from .auth_service import hash_password


def ensure_system_levels() -> int:
    """Create missing system access levels. Returns how many were created."""
    created = 0
    for name, description, permissions in SYSTEM_LEVELS:
        level = db.session.query(AccessLevel).filter_by(name=name).first()
        if level is not None:
            continue
        level = AccessLevel(name=name, description=description, is_system=True)
        level.permissions = permissions
        db.session.add(level)
        created += 1
    db.session.commit()
    return created


def ensure_admin_user() -> User | None:
    """
    Create the administrator account when no users exist.

    Returns the new user, or None if any user already existed.
    """
    if db.session.query(User).count() > 0:
        return None

    admin_level = db.session.query(AccessLevel).filter_by(
        name=ADMINISTRATOR_LEVEL[0], is_system=True
    ).first()

    user = User(
        username=current_app.config["ADMIN_USERNAME"].strip().lower(),
        email=None,
        password_hash=hash_password(current_app.config["ADMIN_PASSWORD"]),
        display_name=current_app.config["ADMIN_DISPLAY_NAME"],
        access_level_id=admin_level.id if admin_level else None,
        failed_attempts=0,
    )
    db.session.add(user)
    db.session.commit()
    return user


def bootstrap_defaults() -> dict:
    """
    Idempotent bootstrap: system levels first, then the admin account.
    """
    levels_created = ensure_system_levels()
    admin = ensure_admin_user()

    if levels_created:
        current_app.logger.info("Created %d system access level(s)", levels_created)
    if admin is not None:
        current_app.logger.info("Created administrator account '%s'", admin.username)

    return {
        "access_levels_created": levels_created,
        "admin_created": admin is not None,
    }
