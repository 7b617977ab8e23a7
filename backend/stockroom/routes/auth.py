# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stockroom/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Account lockout after repeated failed attempts
- Session management with token-based auth
- Password reset responses never reveal whether an account exists
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..services import password_reset_service
from ..services import permission_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

PASSWORD_RESET_REQUESTED_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


def _session_payload(user) -> dict:
    user_dict = user.to_dict()
    return {
        "user": user_dict,
        "access_level_name": user_dict["access_level_name"],
        "permissions": permission_service.permissions_payload(user.id),
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body:
    {
        "username": "admin",    // username or email
        "password": "..."
    }

    Returns user info, resolved permissions and a session token.
    Token must be included in Authorization header for protected routes.

    SECURITY:
    - Checks for account lockout before attempting authentication
    - Records failed attempts for throttling
    - Records successful logins for audit trail
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not username or not password or not isinstance(username, str) or not isinstance(password, str):
            return jsonify({"error": "username and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(username)
        if is_locked:
            minutes_remaining = (seconds_remaining // 60) + 1
            return jsonify({
                "error": "Account temporarily locked due to too many failed login attempts",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
                "retry_after_minutes": minutes_remaining,
            }), 429  # Too Many Requests

        user = auth_service.authenticate(username, password)

        if not user:
            login_throttle_service.record_failed_attempt(
                identifier=username,
                ip_address=ip_address,
                user_agent=user_agent,
                reason="Invalid credentials"
            )
            return jsonify({"error": "Invalid credentials"}), 401

        login_throttle_service.record_successful_login(
            user=user,
            identifier=username,
            ip_address=ip_address,
            user_agent=user_agent
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )

        payload = _session_payload(user)
        payload.update({
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        })
        return jsonify(payload), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/session")
def session_route():
    """
    Report the current session.

    Never fails for a missing or expired token: answers
    {"authenticated": false} instead, so the dashboard can decide whether
    to show the login page.
    """
    try:
        token = bearer_token()
        context = session_service.validate_session(token) if token else None

        if not context:
            return jsonify({"authenticated": False}), 200

        payload = _session_payload(context.user)
        payload["authenticated"] = True
        return jsonify(payload), 200

    except Exception:
        current_app.logger.exception("Failed to check session")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the bearer token used for this request."""
    try:
        session_service.revoke_session(bearer_token(), reason="User logout")
        current_app.logger.info("User %s logged out", g.current_user.username)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/password-reset/request")
def password_reset_request_route():
    """
    Start a password reset.

    Request body: {"email": "..."}

    Always answers with the same message, whether or not the email is known.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")

        if not email or not isinstance(email, str):
            return jsonify({"error": "email required"}), 400

        password_reset_service.request_password_reset(
            email,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"message": PASSWORD_RESET_REQUESTED_MESSAGE}), 200

    except Exception:
        current_app.logger.exception("Failed to process password reset request")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/password-reset/submit")
def password_reset_submit_route():
    """
    Finish a password reset.

    Request body: {"token": "...", "password": "new password"}
    """
    try:
        data = request.get_json(silent=True) or {}
        token = data.get("token")
        password = data.get("password")

        if not token or not password:
            return jsonify({"error": "token and password required"}), 400

        password_reset_service.complete_password_reset(token, password)
        return jsonify({"message": "Password has been reset. You can now log in."}), 200

    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to complete password reset")
        return jsonify({"error": "Internal server error"}), 500
