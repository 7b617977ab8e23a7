from __future__ import annotations

from ..extensions import db
from ..permissions import Capability, PermissionSet
from ..time_utils import to_utc_z


class AccessLevel(db.Model):
    """
    Named bundle of capability flags (a role).

    Each capability is its own boolean column, mirroring PermissionSet, so
    the set of capabilities is fixed by the schema rather than by whatever
    keys a client happened to send.

    System levels (is_system=True) are created at bootstrap and can never be
    edited or deleted through the API.
    """
    __tablename__ = "access_levels"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_access_levels_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)

    manage_access = db.Column(db.Boolean, nullable=False, default=False)
    manage_levels = db.Column(db.Boolean, nullable=False, default=False)
    create_products = db.Column(db.Boolean, nullable=False, default=False)
    edit_products = db.Column(db.Boolean, nullable=False, default=False)
    delete_products = db.Column(db.Boolean, nullable=False, default=False)
    record_movements = db.Column(db.Boolean, nullable=False, default=False)
    view_history = db.Column(db.Boolean, nullable=False, default=False)

    is_system = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def permissions(self) -> PermissionSet:
        return PermissionSet(**{c.value: bool(getattr(self, c.value)) for c in Capability})

    @permissions.setter
    def permissions(self, value: PermissionSet) -> None:
        for code, granted in value.to_dict().items():
            setattr(self, code, granted)

    def __repr__(self) -> str:
        return f"<AccessLevel id={self.id} name={self.name!r} system={self.is_system}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "permissions": self.permissions.to_dict(),
            "is_system": self.is_system,
            "created_at": to_utc_z(self.created_at),
        }


class User(db.Model):
    """
    User accounts for authentication and attribution.

    Username and email are stored lowercased so the unique constraints are
    case-insensitive. access_level_id is resolved on every request; a level
    that no longer exists resolves to no permissions at all.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    display_name = db.Column(db.String(128), nullable=False)

    access_level_id = db.Column(db.Integer, db.ForeignKey("access_levels.id"), nullable=True, index=True)

    # Login throttling
    failed_attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime(timezone=True), nullable=True)

    # Password reset (token stored hashed)
    reset_token_hash = db.Column(db.String(255), nullable=True, unique=True)
    reset_token_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    access_level = db.relationship("AccessLevel", backref=db.backref("users", lazy=True))
    session_tokens = db.relationship(
        "SessionToken",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"

    def to_dict(self) -> dict:
        level = self.access_level
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "display_name": self.display_name,
            "access_level_id": self.access_level_id,
            "access_level_name": level.name if level else "Unknown",
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Server-side session record keyed by the SHA-256 of an opaque token.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts (see Config)
    - Revocable on logout, password reset or account deletion
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", back_populates="session_tokens")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
