# Overview: Service-layer operations for user accounts; uniqueness and self-delete guards.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, AccessLevel
from ..validation import ValidationError, ConflictError, NotFoundError
from . import session_service
from .access_level_service import get_default_user_level
from .auth_service import hash_password, normalize_login

USER_MUTABLE_FIELDS = {"username", "email", "display_name", "access_level_id"}


def _ensure_unique(*, username: str | None = None, email: str | None = None, exclude_id: int | None = None) -> None:
    """Username/email uniqueness, compared lowercased."""
    if username:
        query = db.session.query(User).filter(User.username == username)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise ConflictError("Username already exists")

    if email:
        query = db.session.query(User).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise ConflictError("Email already in use")


def _commit_or_conflict() -> None:
    """Commit; a unique index tripped by a concurrent writer becomes a Conflict."""
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Username or email already in use") from exc


def _require_level(level_id: int) -> AccessLevel:
    level = db.session.get(AccessLevel, level_id)
    if level is None:
        raise ValidationError("Access level not found")
    return level


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def create_user(
    *,
    username: str,
    password: str,
    display_name: str,
    email: str | None = None,
    access_level_id: int | None = None,
) -> User:
    """
    Create a user with a bcrypt-hashed password.

    Raises:
        ConflictError: username or email already taken (case-insensitive)
        ValidationError: access level does not exist
        PasswordValidationError: password too weak
    """
    username = normalize_login(username)
    email = normalize_login(email) or None

    _ensure_unique(username=username, email=email)

    if access_level_id is None:
        default_level = get_default_user_level()
        access_level_id = default_level.id if default_level else None
    else:
        _require_level(access_level_id)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        display_name=display_name,
        access_level_id=access_level_id,
        failed_attempts=0,
    )

    db.session.add(user)
    _commit_or_conflict()
    return user


def update_user(user_id: int, *, patch: dict, password: str | None = None) -> User:
    """
    Partial update: only keys present in ``patch`` change.

    A supplied password is re-hashed; the plain value is never stored.
    """
    user = get_user(user_id)

    new_hash = hash_password(password) if password else None

    if "username" in patch:
        patch["username"] = normalize_login(patch["username"])
    if "email" in patch:
        patch["email"] = normalize_login(patch["email"]) or None

    _ensure_unique(
        username=patch.get("username"),
        email=patch.get("email"),
        exclude_id=user.id,
    )

    if patch.get("access_level_id") is not None:
        _require_level(patch["access_level_id"])

    for key, value in patch.items():
        if key in USER_MUTABLE_FIELDS:
            setattr(user, key, value)

    if new_hash:
        user.password_hash = new_hash
        with db.session.no_autoflush:
            session_service.revoke_all_user_sessions(user.id, reason="Password changed", commit=False)

    _commit_or_conflict()
    return user


def delete_user(user_id: int, *, acting_user_id: int) -> str:
    """
    Delete a user account (and its sessions). Users cannot delete themselves.

    Returns the deleted username.
    """
    if user_id == acting_user_id:
        raise ValidationError("You cannot delete your own account")

    user = get_user(user_id)
    username = user.username
    db.session.delete(user)
    db.session.commit()
    return username
