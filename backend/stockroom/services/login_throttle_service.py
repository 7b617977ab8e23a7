"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many consecutive failures, the account is temporarily locked.

SECURITY FEATURES:
- Consecutive failures counted on the user row (failed_attempts)
- Identifiers matching no account are counted from security_events, so an
  unknown name locks exactly like a real one and responses do not reveal
  which accounts exist
- Lockout after LOGIN_MAX_FAILED_ATTEMPTS failures (default 5)
- Lockout duration: LOGIN_LOCKOUT_MINUTES (default 15)
- Every failure, lockout and success is recorded in security_events
- Clears failed count on successful login
"""

from datetime import timedelta
from flask import current_app
from ..extensions import db
from ..models import SecurityEvent, User
from . import permission_service
from .auth_service import find_user_by_login, normalize_login
from stockroom.time_utils import utcnow


def max_failed_attempts() -> int:
    return int(current_app.config["LOGIN_MAX_FAILED_ATTEMPTS"])


def lockout_duration() -> timedelta:
    return timedelta(minutes=int(current_app.config["LOGIN_LOCKOUT_MINUTES"]))


def _event_key(identifier: str) -> str:
    return normalize_login(identifier)[:128]


def _last_anonymous_lock(key: str) -> SecurityEvent | None:
    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "ACCOUNT_LOCKED",
        SecurityEvent.action == key,
        SecurityEvent.user_id.is_(None),
    ).order_by(SecurityEvent.id.desc()).first()


def get_anonymous_failed_attempts(identifier: str) -> int:
    """
    Count failures for an identifier that matches no account.

    Only failures logged after the identifier's most recent lockout count,
    mirroring the per-row counter that a lockout resets for real accounts.
    """
    key = _event_key(identifier)
    query = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == key,
        SecurityEvent.user_id.is_(None),
    )
    last_lock = _last_anonymous_lock(key)
    if last_lock is not None:
        query = query.filter(SecurityEvent.id > last_lock.id)
    return query.count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Check if an account is currently locked due to too many failed attempts.

    An expired lock is cleared here, which also resets the failure counter.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    now = utcnow()
    user = find_user_by_login(identifier)

    if not user:
        last_lock = _last_anonymous_lock(_event_key(identifier))
        if last_lock is None:
            return False, None
        lockout_end = last_lock.occurred_at + lockout_duration()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds()) + 1
        return False, None

    if user.locked_until is None:
        return False, None

    if now < user.locked_until:
        seconds_remaining = int((user.locked_until - now).total_seconds()) + 1
        return True, seconds_remaining

    user.locked_until = None
    user.failed_attempts = 0
    db.session.commit()
    return False, None


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials"
) -> int:
    """
    Record a failed login attempt.

    Returns the number of consecutive failures for the identifier.
    """
    user = find_user_by_login(identifier)
    key = _event_key(identifier)

    permission_service.log_security_event(
        user_id=user.id if user else None,
        event_type="LOGIN_FAILED",
        success=False,
        resource="/api/auth/login",
        action=key,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        commit=False,
    )

    if user:
        user.failed_attempts = (user.failed_attempts or 0) + 1
        failed = user.failed_attempts
    else:
        db.session.flush()
        failed = get_anonymous_failed_attempts(identifier)

    if failed >= max_failed_attempts():
        if user:
            user.locked_until = utcnow() + lockout_duration()
        permission_service.log_security_event(
            user_id=user.id if user else None,
            event_type="ACCOUNT_LOCKED",
            success=False,
            resource="/api/auth/login",
            action=key,
            reason=f"{failed} consecutive failed login attempts",
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        current_app.logger.info("Login identifier %s locked after %d failed attempts", key, failed)

    db.session.commit()
    return failed


def record_successful_login(
    user: User,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None
) -> None:
    """Record a successful login and reset the failure counter."""
    user.failed_attempts = 0
    user.locked_until = None

    permission_service.log_security_event(
        user_id=user.id,
        event_type="LOGIN_SUCCESS",
        success=True,
        resource="/api/auth/login",
        action=_event_key(identifier),
        ip_address=ip_address,
        user_agent=user_agent,
        commit=False,
    )
    db.session.commit()


def unlock_account(user: User) -> None:
    """Administrative unlock (CLI and password reset)."""
    user.failed_attempts = 0
    user.locked_until = None
