from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


# Reserved dni shared by every anonymous/walk-in sale of a tenant
GENERIC_CLIENT_DNI = "00000000"
GENERIC_CLIENT_NAME = "Generic Client"


class Client(db.Model):
    """
    Customer of a tenant.

    UNIQUENESS (per tenant):
    - dni is the primary dedup key; repeated checkouts with a known dni
      refresh the stored contact fields instead of creating a new client.
    - email, when present, maps to at most one client.
    - dni "00000000" is the tenant's shared generic client.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "email", name="uq_clients_tenant_email"),
        db.UniqueConstraint("tenant_id", "dni", name="uq_clients_tenant_dni"),
        db.Index("ix_clients_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    dni = db.Column(db.String(32), nullable=True)
    ruc = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    tenant = db.relationship("Tenant", backref=db.backref("clients", lazy=True))
    created_by = db.relationship("User", backref=db.backref("clients_created", lazy=True))

    @property
    def is_generic(self) -> bool:
        return self.dni == GENERIC_CLIENT_DNI

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "dni": self.dni,
            "ruc": self.ruc,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
