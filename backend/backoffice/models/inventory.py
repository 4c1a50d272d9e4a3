from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


MOVEMENT_INCOMING = "INCOMING"
MOVEMENT_OUTGOING = "OUTGOING"
MOVEMENT_SALE = "SALE"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_ADJUST = "ADJUST"

VALID_MOVEMENT_TYPES = (
    MOVEMENT_INCOMING,
    MOVEMENT_OUTGOING,
    MOVEMENT_SALE,
    MOVEMENT_RETURN,
    MOVEMENT_ADJUST,
)


class Product(db.Model):
    """Tenant-wide catalog entry. Prices and stock live on StoreProduct."""
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    base_price_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tenant = db.relationship("Tenant", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "base_price_cents": self.base_price_cents,
            "created_at": to_utc_z(self.created_at),
        }


class StoreProduct(db.Model):
    """
    The sellable unit: a catalog product as priced and stocked by one store.

    stock is never allowed below zero (CHECK constraint backs up the service
    layer validation). It only changes through the stock service, always
    alongside an InventoryMovement row.
    """
    __tablename__ = "store_products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "product_id", name="uq_store_products_store_product"),
        db.CheckConstraint("stock >= 0", name="ck_store_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    stock_threshold = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("store_products", lazy=True))
    product = db.relationship("Product", backref=db.backref("store_products", lazy=True))

    @property
    def display_name(self) -> str:
        if self.product is not None and self.product.name:
            return self.product.name
        return f"StoreProduct {self.id}"

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "name": self.display_name,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "stock_threshold": self.stock_threshold,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock audit trail.

    quantity is signed: negative for stock decreases (SALE, OUTGOING),
    positive for increases (INCOMING, RETURN). ADJUST carries either sign.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_invmov_store_product_occurred", "store_product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_product_id = db.Column(db.Integer, db.ForeignKey("store_products.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    store_product = db.relationship("StoreProduct", backref=db.backref("movements", lazy=True))
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_product_id": self.store_product_id,
            "type": self.type,
            "quantity": self.quantity,
            "description": self.description,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
