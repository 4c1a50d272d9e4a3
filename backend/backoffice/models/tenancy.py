from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


TENANT_STATUS_ACTIVE = "ACTIVE"
TENANT_STATUS_SUSPENDED = "SUSPENDED"
TENANT_STATUS_DISABLED = "DISABLED"


class Tenant(db.Model):
    """
    Multi-tenant root: every company using the back office is a Tenant.

    All stores, users, clients and orders belong to exactly one tenant.
    No data may cross tenant boundaries.

    Features are the plan capabilities enabled for the tenant, stored as a
    comma-separated list (see principal.VALID_FEATURES).
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TENANT_STATUS_ACTIVE, index=True)
    plan = db.Column(db.String(16), nullable=False, default="FREE")
    features = db.Column(db.Text, nullable=False, default="")
    currency = db.Column(db.String(3), nullable=False, default="PEN")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r}>"

    @property
    def feature_set(self) -> frozenset:
        if not self.features:
            return frozenset()
        return frozenset(f.strip() for f in self.features.split(",") if f.strip())

    @feature_set.setter
    def feature_set(self, values) -> None:
        self.features = ",".join(sorted(set(values)))

    @property
    def is_active(self) -> bool:
        return self.status == TENANT_STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "plan": self.plan,
            "features": sorted(self.feature_set),
            "currency": self.currency,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Store(db.Model):
    """
    Sales location within a tenant.

    Store order by creation time is significant: the 1-based position of a
    store among its tenant's stores prefixes every order number it issues.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_stores_tenant_name"),
        db.Index("ix_stores_tenant_created", "tenant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tenant = db.relationship("Tenant", backref=db.backref("stores", lazy=True))

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }


class StoreMembership(db.Model):
    """Users assigned to a store. ADMIN users do not need a membership row."""
    __tablename__ = "store_users"
    __table_args__ = (
        db.UniqueConstraint("store_id", "user_id", name="uq_store_users_store_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("memberships", lazy=True))
    user = db.relationship("User", backref=db.backref("store_memberships", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
