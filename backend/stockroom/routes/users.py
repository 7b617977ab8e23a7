# Overview: Flask API routes for user accounts; parses input and returns JSON responses.

# backend/stockroom/routes/users.py
"""
User management routes.

All endpoints require MANAGE_ACCESS. Passwords are accepted on create and
update but never returned.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import User
from ..permissions import Capability
from ..services import user_service, permission_service
from ..services.auth_service import PasswordValidationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_user,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

USER_POLICY = ModelValidationPolicy(
    writable_fields={"username", "email", "display_name", "access_level_id"},
    required_on_create={"username", "display_name"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _audit(event_type: str, action: str) -> None:
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type=event_type,
        success=True,
        resource=request.path,
        action=action,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def _split_password(payload: dict) -> tuple[dict, str | None]:
    """Separate the plain password from the column fields."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    password = payload.pop("password", None)
    if password is not None and not isinstance(password, str):
        raise ValidationError("password must be a string")
    return payload, password


@users_bp.get("")
@require_auth
@require_permission(Capability.MANAGE_ACCESS)
def list_users():
    """List all users with their access level name."""
    try:
        users = [u.to_dict() for u in user_service.list_users()]
        return jsonify({"users": users, "count": len(users)})
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/<int:user_id>")
@require_auth
@require_permission(Capability.MANAGE_ACCESS)
def get_user(user_id: int):
    try:
        user = user_service.get_user(user_id)
        user_dict = user.to_dict()
        user_dict["permissions"] = permission_service.permissions_payload(user.id)
        return jsonify({"user": user_dict})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@users_bp.post("")
@require_auth
@require_permission(Capability.MANAGE_ACCESS)
def create_user():
    """
    Create a new user.

    Request body:
    - username: str (required, unique, case-insensitive)
    - password: str (required)
    - display_name: str (required)
    - email: str (optional, unique)
    - access_level_id: int (optional; defaults to the "User" level)
    """
    try:
        payload, password = _split_password(request.get_json(silent=True) or {})
        if not password:
            return jsonify({"error": "username, password and display_name required"}), 400

        patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)
        enforce_rules_user(patch)

        user = user_service.create_user(
            username=patch["username"],
            password=password,
            display_name=patch["display_name"],
            email=patch.get("email"),
            access_level_id=patch.get("access_level_id"),
        )

        _audit("USER_CREATED", f"Created user: {user.username}")

        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201

    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>")
@require_auth
@require_permission(Capability.MANAGE_ACCESS)
def update_user(user_id: int):
    """
    Update a user.

    Request body (all optional): username, email, display_name,
    access_level_id, password. A new password revokes the user's sessions.
    """
    try:
        payload, password = _split_password(request.get_json(silent=True) or {})

        patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
        enforce_rules_user(patch)

        user = user_service.update_user(user_id, patch=patch, password=password or None)

        _audit("USER_UPDATED", f"Updated user: {user.username}")

        return jsonify({"user": user.to_dict(), "message": "User updated successfully"})

    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission(Capability.MANAGE_ACCESS)
def delete_user(user_id: int):
    """Delete a user. Deleting your own account is rejected."""
    try:
        username = user_service.delete_user(user_id, acting_user_id=g.current_user.id)

        _audit("USER_DELETED", f"Deleted user: {username}")

        return jsonify({"message": "User deleted successfully"})

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
