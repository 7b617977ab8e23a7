# Overview: Permission resolution (user -> access level -> capabilities) and security event logging.

"""
Permission Checking and Security Event Logging

DESIGN PRINCIPLES:
- Fail closed: a missing user or a dangling access level resolves to no
  permissions, which every check treats as deny
- No caching: permissions are resolved fresh for each request, so changes
  to an access level apply on the next request
- Log denials only: permission grants are not logged
"""

from ..extensions import db
from ..models import User, AccessLevel, SecurityEvent
from ..permissions import Capability, PermissionSet
from stockroom.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required capability."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    *,
    commit: bool = True,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED / LOGIN_SUCCESS / ACCOUNT_LOCKED
    - USER_CREATED / USER_UPDATED / USER_DELETED
    - ACCESS_LEVEL_CREATED / ACCESS_LEVEL_UPDATED / ACCESS_LEVEL_DELETED
    - PASSWORD_RESET_REQUESTED / PASSWORD_RESET_COMPLETED

    Pass commit=False to join the caller's transaction.
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()

    return event


def resolve_permissions(user_id: int | None) -> PermissionSet | None:
    """
    Resolve the effective permission set for a user.

    Two primary-key lookups: user, then the user's access level. Either
    lookup coming back empty yields None ("no permissions"), never an error.
    """
    if user_id is None:
        return None

    user = db.session.get(User, user_id)
    if user is None or user.access_level_id is None:
        return None

    level = db.session.get(AccessLevel, user.access_level_id)
    if level is None:
        return None

    return level.permissions


def user_has_capability(user_id: int | None, capability: Capability) -> bool:
    """
    Check if user holds a specific capability.

    Returns False when the permission set cannot be resolved.
    """
    capability = Capability(capability)
    permissions = resolve_permissions(user_id)
    if permissions is None:
        return False
    return permissions.allows(capability)


def require_capability(
    user_id: int,
    capability: Capability,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require user to hold a capability, raise PermissionDeniedError if not.

    Denials are logged to security_events.

    Usage:
        require_capability(user.id, Capability.DELETE_PRODUCTS, resource=request.path)
    """
    capability = Capability(capability)

    if not user_has_capability(user_id, capability):
        log_security_event(
            user_id=user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=resource,
            action=capability.value,
            reason=f"Missing capability: {capability.value}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise PermissionDeniedError(f"Permission denied: {capability.value}")


def permissions_payload(user_id: int | None) -> dict:
    """Permission map for session responses; unresolved means all false."""
    permissions = resolve_permissions(user_id)
    if permissions is None:
        permissions = PermissionSet.none_granted()
    return permissions.to_dict()
