from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


SESSION_STATUS_OPEN = "OPEN"
SESSION_STATUS_CLOSED = "CLOSED"

CASH_MOVEMENT_INCOME = "INCOME"
CASH_MOVEMENT_EXPENSE = "EXPENSE"

VALID_CASH_MOVEMENT_TYPES = (CASH_MOVEMENT_INCOME, CASH_MOVEMENT_EXPENSE)


class CashSession(db.Model):
    """
    Cash drawer session of a store.

    WHY: Orders are only taken against an open session so every cash payment
    lands in a drawer that will later be counted and closed.

    LIFECYCLE:
    - OPEN: accepts orders and cash movements
    - CLOSED: counted; terminal, never reopened
    """
    __tablename__ = "cash_sessions"
    __table_args__ = (
        db.Index("ix_cash_sessions_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_OPEN, index=True)

    opening_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_amount_cents = db.Column(db.Integer, nullable=True)  # expected cash at close
    declared_amount_cents = db.Column(db.Integer, nullable=True)  # counted by the cashier

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    store = db.relationship("Store", backref=db.backref("cash_sessions", lazy=True))
    opened_by = db.relationship("User", foreign_keys=[user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_id])

    @property
    def is_open(self) -> bool:
        return self.status == SESSION_STATUS_OPEN

    @property
    def variance_cents(self) -> int | None:
        if self.closing_amount_cents is None or self.declared_amount_cents is None:
            return None
        return self.declared_amount_cents - self.closing_amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "user_id": self.user_id,
            "status": self.status,
            "opening_amount_cents": self.opening_amount_cents,
            "closing_amount_cents": self.closing_amount_cents,
            "declared_amount_cents": self.declared_amount_cents,
            "variance_cents": self.variance_cents,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "closed_by_id": self.closed_by_id,
        }


class CashMovement(db.Model):
    """
    Money in or out of a cash session.

    payment_type NULL predates typed movements and counts as cash (EFECTIVO)
    when computing the drawer balance.

    IMMUTABLE: corrections are new movements, never edits.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_session_created", "cash_session_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # INCOME, EXPENSE
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_type = db.Column(db.String(16), nullable=True)
    description = db.Column(db.Text, nullable=True)
    related_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cash_session = db.relationship("CashSession", backref=db.backref("movements", lazy=True))
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_session_id": self.cash_session_id,
            "user_id": self.user_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "payment_type": self.payment_type,
            "description": self.description,
            "related_order_id": self.related_order_id,
            "created_at": to_utc_z(self.created_at),
        }
