# Overview: Posts the cash side effects of orders after their structural commit.

"""
Payment & Cash-Movement Poster

WHY: A sale must never be lost because the cash ledger could not be
written. Orders commit first; their cash movements are posted afterwards,
one at a time, each in its own transaction.

FAILURE POLICY:
- A failed posting is rolled back, logged with order/session/amount, and
  parked as a PostingFailure row. It never propagates to the caller.
- Parked postings are re-attempted out of band by retry_failed_postings()
  (CLI: `flask postings retry`).
- Only EFECTIVO (cash) payments reach the drawer. Other instruments are
  recorded as PaymentMethod rows only.
"""

from flask import current_app

from ..extensions import db
from ..models import (
    CashSession,
    CashMovement,
    Order,
    PostingFailure,
    CASH_MOVEMENT_INCOME,
    CASH_MOVEMENT_EXPENSE,
    PAYMENT_EFECTIVO,
    POSTING_STATUS_PENDING,
    POSTING_STATUS_RESOLVED,
    POSTING_STATUS_ABANDONED,
)
from ..principal import Principal
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update
from .cash_movement_service import add_movement_locked


def income_description(order: Order) -> str:
    names = [service.description or service.name for service in order.services]
    if names:
        return f"Pago en efectivo - Orden {order.order_number} ({', '.join(names)})"
    return f"Pago en efectivo - Orden {order.order_number}"


def refund_description(order: Order) -> str:
    return f"Reembolso por anulación - Orden {order.order_number}"


def _write_movement(
    *,
    cash_session_id: int,
    movement_type: str,
    amount_cents: int,
    user_id: int,
    order_id: int,
    description: str | None,
    payment_type: str | None,
) -> CashMovement:
    cash_session = lock_for_update(
        db.session.query(CashSession).filter_by(id=cash_session_id)
    ).first()
    if cash_session is None:
        raise LookupError(f"Cash session {cash_session_id} not found")

    movement = add_movement_locked(
        cash_session,
        movement_type=movement_type,
        amount_cents=amount_cents,
        user_id=user_id,
        payment_type=payment_type,
        description=description,
        related_order_id=order_id,
    )
    return movement


def _record_failure(
    *,
    order_id: int,
    cash_session_id: int,
    user_id: int,
    movement_type: str,
    amount_cents: int,
    payment_type: str | None,
    description: str | None,
    error: str,
) -> PostingFailure | None:
    try:
        failure = PostingFailure(
            order_id=order_id,
            cash_session_id=cash_session_id,
            user_id=user_id,
            movement_type=movement_type,
            amount_cents=amount_cents,
            payment_type=payment_type,
            description=description,
            error=error[:2000],
            attempts=1,
            status=POSTING_STATUS_PENDING,
        )
        db.session.add(failure)
        db.session.commit()
        return failure
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Could not record posting failure order_id=%s cash_session_id=%s amount_cents=%s type=%s",
            order_id, cash_session_id, amount_cents, movement_type,
        )
        return None


def post_movement(
    *,
    order_id: int,
    cash_session_id: int,
    movement_type: str,
    amount_cents: int,
    user_id: int,
    description: str | None = None,
    payment_type: str | None = PAYMENT_EFECTIVO,
) -> CashMovement | None:
    """
    Post one order cash movement. Returns None if it failed and was parked.
    """
    try:
        movement = _write_movement(
            cash_session_id=cash_session_id,
            movement_type=movement_type,
            amount_cents=amount_cents,
            user_id=user_id,
            order_id=order_id,
            description=description,
            payment_type=payment_type,
        )
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(
            "Cash movement posting failed order_id=%s cash_session_id=%s amount_cents=%s type=%s",
            order_id, cash_session_id, amount_cents, movement_type,
        )
        _record_failure(
            order_id=order_id,
            cash_session_id=cash_session_id,
            user_id=user_id,
            movement_type=movement_type,
            amount_cents=amount_cents,
            payment_type=payment_type,
            description=description,
            error=f"{type(exc).__name__}: {exc}",
        )
        return None

    current_app.logger.info(
        "Posted %s cash movement id=%s order_id=%s cash_session_id=%s amount_cents=%s",
        movement_type, movement.id, order_id, cash_session_id, amount_cents,
    )
    return movement


def post_payments(order: Order, declared_payments, principal: Principal) -> list[CashMovement]:
    """
    Post INCOME movements for the cash payments of an order.

    declared_payments is any iterable of objects with `type` and
    `amount_cents` (PaymentLine or PaymentMethod).
    """
    # Plain values first: a failed posting rolls back and expires the ORM objects
    order_id = order.id
    cash_session_id = order.cash_session_id
    description = income_description(order)
    amounts = [
        payment.amount_cents
        for payment in declared_payments
        if payment.type == PAYMENT_EFECTIVO and payment.amount_cents > 0
    ]

    posted = []
    for amount_cents in amounts:
        movement = post_movement(
            order_id=order_id,
            cash_session_id=cash_session_id,
            movement_type=CASH_MOVEMENT_INCOME,
            amount_cents=amount_cents,
            user_id=principal.user_id,
            description=description,
        )
        if movement is not None:
            posted.append(movement)
    return posted


def post_refunds(order: Order, principal: Principal) -> list[CashMovement]:
    """
    Post EXPENSE movements refunding the cash payments of a cancelled order.

    A closed session cannot pay money back out, so refunds are skipped with
    a warning in that case.
    """
    order_id = order.id
    cash_session_id = order.cash_session_id
    description = refund_description(order)
    amounts = [
        payment.amount_cents
        for payment in order.payment_methods
        if payment.type == PAYMENT_EFECTIVO and payment.amount_cents > 0
    ]
    if not amounts:
        return []

    cash_session = db.session.query(CashSession).filter_by(id=cash_session_id).first()
    if cash_session is None or not cash_session.is_open:
        current_app.logger.warning(
            "Refund skipped: cash session closed order_id=%s cash_session_id=%s amount_cents=%s",
            order_id, cash_session_id, sum(amounts),
        )
        return []

    posted = []
    for amount_cents in amounts:
        movement = post_movement(
            order_id=order_id,
            cash_session_id=cash_session_id,
            movement_type=CASH_MOVEMENT_EXPENSE,
            amount_cents=amount_cents,
            user_id=principal.user_id,
            description=description,
        )
        if movement is not None:
            posted.append(movement)
    return posted


# =============================================================================
# OUT-OF-BAND RETRY
# =============================================================================

def list_posting_failures(status: str | None = POSTING_STATUS_PENDING, limit: int = 100) -> list[PostingFailure]:
    query = db.session.query(PostingFailure)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(PostingFailure.created_at.asc(), PostingFailure.id.asc()).limit(limit).all()


def retry_failed_postings(limit: int = 50, max_attempts: int | None = None) -> dict:
    """
    Re-attempt PENDING postings, oldest first.

    Each retry increments `attempts`. A success marks the row RESOLVED with
    the created movement id; a posting that reaches max_attempts without
    success is marked ABANDONED.

    Returns counts: {"resolved": n, "failed": n, "abandoned": n}.
    """
    if max_attempts is None:
        max_attempts = current_app.config.get("POSTING_MAX_ATTEMPTS", 5)

    summary = {"resolved": 0, "failed": 0, "abandoned": 0}
    failure_ids = [f.id for f in list_posting_failures(POSTING_STATUS_PENDING, limit)]

    for failure_id in failure_ids:
        failure = db.session.get(PostingFailure, failure_id)
        if failure is None or failure.status != POSTING_STATUS_PENDING:
            continue

        try:
            movement = _write_movement(
                cash_session_id=failure.cash_session_id,
                movement_type=failure.movement_type,
                amount_cents=failure.amount_cents,
                user_id=failure.user_id,
                order_id=failure.order_id,
                description=failure.description,
                payment_type=failure.payment_type,
            )
        except Exception as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Posting retry failed id=%s order_id=%s cash_session_id=%s amount_cents=%s: %s",
                failure.id, failure.order_id, failure.cash_session_id, failure.amount_cents, exc,
            )
            failure.attempts += 1
            failure.error = f"{type(exc).__name__}: {exc}"[:2000]
            if failure.attempts >= max_attempts:
                failure.status = POSTING_STATUS_ABANDONED
                summary["abandoned"] += 1
            else:
                summary["failed"] += 1
            db.session.commit()
            continue

        failure.attempts += 1
        failure.status = POSTING_STATUS_RESOLVED
        failure.cash_movement_id = movement.id
        failure.resolved_at = utcnow()
        db.session.commit()
        summary["resolved"] += 1
        current_app.logger.info(
            "Posting retry resolved id=%s movement_id=%s order_id=%s",
            failure.id, movement.id, failure.order_id,
        )

    return summary
