# Overview: Password reset request/submit flow; opaque single-use tokens delivered by mail.

"""
Password Reset Service

SECURITY:
- Requests answer identically whether or not the email belongs to an
  account (no account enumeration); the route never sees the outcome
- Tokens: 32 random bytes, url-safe, stored only as SHA-256
- Tokens expire after PASSWORD_RESET_TOKEN_MINUTES and are single use
- Completing a reset unlocks the account and revokes every session
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import User
from ..validation import ValidationError
from . import mail_service, permission_service, session_service
from .auth_service import hash_password, normalize_login
from .login_throttle_service import unlock_account
from .session_service import hash_token
from stockroom.time_utils import utcnow


def request_password_reset(
    email: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Issue a reset token and mail it, if the email matches an account."""
    email = normalize_login(email)
    user = db.session.query(User).filter(User.email == email).first() if email else None

    permission_service.log_security_event(
        user_id=user.id if user else None,
        event_type="PASSWORD_RESET_REQUESTED",
        success=user is not None,
        resource="/api/auth/password-reset/request",
        action=email[:128] or None,
        ip_address=ip_address,
        user_agent=user_agent,
        commit=False,
    )

    if user is None:
        db.session.commit()
        return

    token = secrets.token_urlsafe(32)
    minutes = int(current_app.config["PASSWORD_RESET_TOKEN_MINUTES"])
    user.reset_token_hash = hash_token(token)
    user.reset_token_expires_at = utcnow() + timedelta(minutes=minutes)
    db.session.commit()

    link = f"{current_app.config['PASSWORD_RESET_URL']}?token={token}"
    body = (
        f"Hello {user.display_name},\n\n"
        f"A password reset was requested for your account.\n"
        f"Use the link below within {minutes} minutes to choose a new password:\n\n"
        f"{link}\n\n"
        f"Reset token: {token}\n\n"
        f"If you did not request this, you can ignore this message."
    )
    if not mail_service.send_mail(user.email, "Password reset", body):
        current_app.logger.error("Password reset mail for user %s was not delivered", user.id)


def complete_password_reset(token: str, new_password: str) -> User:
    """
    Set a new password using a reset token.

    Raises:
        ValidationError: token unknown, used or expired
        PasswordValidationError: new password too weak
    """
    if not token:
        raise ValidationError("Invalid or expired reset token")

    user = db.session.query(User).filter(User.reset_token_hash == hash_token(token)).first()
    if user is None or user.reset_token_expires_at is None or user.reset_token_expires_at < utcnow():
        raise ValidationError("Invalid or expired reset token")

    user.password_hash = hash_password(new_password)
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    unlock_account(user)
    session_service.revoke_all_user_sessions(user.id, reason="Password reset", commit=False)

    permission_service.log_security_event(
        user_id=user.id,
        event_type="PASSWORD_RESET_COMPLETED",
        success=True,
        resource="/api/auth/password-reset/submit",
        commit=False,
    )
    db.session.commit()
    return user
