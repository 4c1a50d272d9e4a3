from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


ORDER_STATUS_PENDING = "PENDING"
ORDER_STATUS_COMPLETED = "COMPLETED"
ORDER_STATUS_CANCELLED = "CANCELLED"

SERVICE_STATUS_IN_PROGRESS = "IN_PROGRESS"
SERVICE_STATUS_COMPLETED = "COMPLETED"
SERVICE_STATUS_ANNULLATED = "ANNULLATED"

SERVICE_TYPE_REPAIR = "REPAIR"
SERVICE_TYPE_WARRANTY = "WARRANTY"

VALID_SERVICE_TYPES = (SERVICE_TYPE_REPAIR, SERVICE_TYPE_WARRANTY)

# Payment instruments. Only EFECTIVO (cash) goes through the cash drawer.
PAYMENT_EFECTIVO = "EFECTIVO"
PAYMENT_TARJETA = "TARJETA"
PAYMENT_TRANSFERENCIA = "TRANSFERENCIA"
PAYMENT_YAPE = "YAPE"
PAYMENT_PLIN = "PLIN"

VALID_PAYMENT_TYPES = (
    PAYMENT_EFECTIVO,
    PAYMENT_TARJETA,
    PAYMENT_TRANSFERENCIA,
    PAYMENT_YAPE,
    PAYMENT_PLIN,
)


class Order(db.Model):
    """
    Sale of products and/or services against an open cash session.

    LIFECYCLE:
    - PENDING: has services still being worked on or not fully paid
    - COMPLETED: settled (may still be cancelled, which refunds it)
    - CANCELLED: terminal; stock restored, services annulled
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_tenant_created", "tenant_id", "created_at"),
        db.Index("ix_orders_session_status", "cash_session_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    cash_session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)

    # "{store_seq:03d}-{YYYYMMDD}-{base36 x8}"
    order_number = db.Column(db.String(64), nullable=False, unique=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    is_price_modified = db.Column(db.Boolean, nullable=False, default=False)

    # Cancellation audit
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    canceled_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    cash_session = db.relationship("CashSession", backref=db.backref("orders", lazy=True))
    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("orders", lazy=True))
    canceled_by = db.relationship("User", foreign_keys=[canceled_by_id])
    client = db.relationship("Client", backref=db.backref("orders", lazy=True))

    @property
    def paid_cents(self) -> int:
        return sum(pm.amount_cents for pm in self.payment_methods)

    @property
    def owed_cents(self) -> int:
        products = sum(line.unit_price_cents * line.quantity for line in self.order_products)
        services = sum(service.price_cents for service in self.services)
        return products + services

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "cash_session_id": self.cash_session_id,
            "user_id": self.user_id,
            "client_id": self.client_id,
            "order_number": self.order_number,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "is_price_modified": self.is_price_modified,
            "canceled_at": to_utc_z(self.canceled_at) if self.canceled_at else None,
            "canceled_by_id": self.canceled_by_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "order_products": [line.to_dict() for line in self.order_products],
            "services": [service.to_dict() for service in self.services],
            "payment_methods": [pm.to_dict() for pm in self.payment_methods],
        }


class OrderProduct(db.Model):
    """Product line on an order. unit_price_cents is a snapshot at sale time."""
    __tablename__ = "order_products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    store_product_id = db.Column(db.Integer, db.ForeignKey("store_products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("order_products", lazy=True, order_by="OrderProduct.id"))
    store_product = db.relationship("StoreProduct")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "store_product_id": self.store_product_id,
            "name": self.store_product.display_name if self.store_product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class OrderService(db.Model):
    """
    Service line on an order (repair, warranty work).

    LIFECYCLE: IN_PROGRESS -> COMPLETED | ANNULLATED
    """
    __tablename__ = "order_services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, default=SERVICE_TYPE_REPAIR)
    status = db.Column(db.String(16), nullable=False, default=SERVICE_STATUS_IN_PROGRESS, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    order = db.relationship("Order", backref=db.backref("services", lazy=True, order_by="OrderService.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "type": self.type,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PaymentMethod(db.Model):
    """
    Payment instrument recorded against an order.

    Declared at checkout or added while completing a pending order. Rows are
    never removed on cancellation; cash refunds are recorded as EXPENSE cash
    movements instead.
    """
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, default=PAYMENT_EFECTIVO, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("payment_methods", lazy=True, order_by="PaymentMethod.id"))

    @property
    def is_cash(self) -> bool:
        return self.type == PAYMENT_EFECTIVO

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "created_at": to_utc_z(self.created_at),
        }
