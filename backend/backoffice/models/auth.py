from __future__ import annotations

from ..extensions import db
from backoffice.principal import ROLE_USER
from backoffice.time_utils import to_utc_z


class User(db.Model):
    """
    Back-office user (cashier, technician or administrator).

    Users belong to exactly one tenant. Email is unique within a tenant.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    username = db.Column(db.String(64), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_USER)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tenant = db.relationship("Tenant", backref=db.backref("users", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """
    Opaque bearer token issued by the identity boundary.

    Only the SHA-256 hash of the token is stored. The tenant is captured at
    issue time and stays fixed for the token's lifetime.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))
    tenant = db.relationship("Tenant")
