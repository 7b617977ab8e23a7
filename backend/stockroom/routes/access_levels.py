# Overview: Flask API routes for access levels; parses input and returns JSON responses.

# backend/stockroom/routes/access_levels.py
"""
Access level (role) management routes.

All endpoints except the capability catalogue require MANAGE_LEVELS.
System levels are read-only; a level still assigned to users cannot be deleted.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..permissions import Capability, CAPABILITY_DEFINITIONS
from ..services import access_level_service, permission_service
from ..validation import ValidationError, ConflictError, NotFoundError, ForbiddenError
from ..decorators import require_auth, require_permission

access_levels_bp = Blueprint("access_levels", __name__, url_prefix="/api/access-levels")

LEVEL_FIELDS = {"name", "description", "permissions"}


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


def _read_payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(data) - LEVEL_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")
    return data


@access_levels_bp.get("/capabilities")
@require_auth
def list_capabilities():
    """Capability catalogue used to render the level editor."""
    capabilities = [
        {"code": code.value, "name": name, "description": description}
        for code, name, description in CAPABILITY_DEFINITIONS
    ]
    return jsonify({"capabilities": capabilities, "count": len(capabilities)})


@access_levels_bp.get("")
@require_auth
@require_permission(Capability.MANAGE_LEVELS)
def list_levels():
    """List all access levels with the number of users assigned to each."""
    try:
        levels = access_level_service.list_access_levels()
        return jsonify({"access_levels": levels, "count": len(levels)})
    except Exception:
        current_app.logger.exception("Failed to list access levels")
        return jsonify({"error": "Internal server error"}), 500


@access_levels_bp.get("/<int:level_id>")
@require_auth
@require_permission(Capability.MANAGE_LEVELS)
def get_level(level_id: int):
    try:
        level = access_level_service.get_access_level(level_id)
        return jsonify({"access_level": level.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@access_levels_bp.post("")
@require_auth
@require_permission(Capability.MANAGE_LEVELS)
def create_level():
    """
    Create a custom access level.

    Request body:
    - name: str (required, unique)
    - description: str (optional)
    - permissions: {capability: bool} (optional; omitted capabilities are false)
    """
    try:
        data = _read_payload()
        permissions = access_level_service.parse_permissions(data.get("permissions"))

        level = access_level_service.create_access_level(
            name=data.get("name"),
            description=data.get("description"),
            permissions=permissions,
        )

        _audit("ACCESS_LEVEL_CREATED", f"Created access level: {level.name}")

        return jsonify({"access_level": level.to_dict(), "message": "Access level created"}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create access level")
        return jsonify({"error": "Internal server error"}), 500


@access_levels_bp.put("/<int:level_id>")
@require_auth
@require_permission(Capability.MANAGE_LEVELS)
def update_level(level_id: int):
    """
    Update a custom access level.

    Request body (all optional): name, description, permissions.
    Permissions present in the body overwrite the stored flags; absent ones
    are left unchanged.
    """
    try:
        data = _read_payload()
        patch = {k: data[k] for k in ("name", "description") if k in data}

        level = access_level_service.update_access_level(
            level_id,
            patch=patch,
            permissions_patch=data.get("permissions"),
        )

        _audit("ACCESS_LEVEL_UPDATED", f"Updated access level: {level.name}")

        return jsonify({"access_level": level.to_dict(), "message": "Access level updated"})

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ForbiddenError as e:
        return jsonify({"error": str(e)}), 403
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update access level")
        return jsonify({"error": "Internal server error"}), 500


@access_levels_bp.delete("/<int:level_id>")
@require_auth
@require_permission(Capability.MANAGE_LEVELS)
def delete_level(level_id: int):
    try:
        access_level_service.delete_access_level(level_id)

        _audit("ACCESS_LEVEL_DELETED", f"Deleted access level: {level_id}")

        return jsonify({"message": "Access level deleted"})

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ForbiddenError as e:
        return jsonify({"error": str(e)}), 403
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete access level")
        return jsonify({"error": "Internal server error"}), 500
