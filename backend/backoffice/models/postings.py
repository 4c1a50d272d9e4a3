from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


POSTING_STATUS_PENDING = "PENDING"
POSTING_STATUS_RESOLVED = "RESOLVED"
POSTING_STATUS_ABANDONED = "ABANDONED"


class PostingFailure(db.Model):
    """
    A cash movement that an order operation could not post.

    Orders commit before their cash movements are written. When a posting
    fails, the order stands and the missing movement is parked here so it can
    be re-attempted later (`flask postings retry`).

    LIFECYCLE:
    - PENDING: waiting for a retry
    - RESOLVED: movement created (cash_movement_id set)
    - ABANDONED: gave up after max attempts; needs a manual movement
    """
    __tablename__ = "posting_failures"
    __table_args__ = (
        db.Index("ix_posting_failures_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    cash_session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    movement_type = db.Column(db.String(16), nullable=False)  # INCOME, EXPENSE
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_type = db.Column(db.String(16), nullable=True)
    description = db.Column(db.Text, nullable=True)

    error = db.Column(db.Text, nullable=True)
    attempts = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(16), nullable=False, default=POSTING_STATUS_PENDING, index=True)

    cash_movement_id = db.Column(db.Integer, db.ForeignKey("cash_movements.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    order = db.relationship("Order", backref=db.backref("posting_failures", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "cash_session_id": self.cash_session_id,
            "user_id": self.user_id,
            "movement_type": self.movement_type,
            "amount_cents": self.amount_cents,
            "payment_type": self.payment_type,
            "description": self.description,
            "error": self.error,
            "attempts": self.attempts,
            "status": self.status,
            "cash_movement_id": self.cash_movement_id,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
        }
