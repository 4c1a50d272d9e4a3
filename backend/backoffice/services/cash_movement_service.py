# Overview: Service-layer operations for cash movements and the drawer balance of a cash session.

"""
Cash Movement Service

WHY: The drawer balance is what the cashier must be able to hand over at
close. Only cash counts toward it.

BALANCE RULE:
    balance = opening + Σ cash INCOME − Σ cash EXPENSE
A movement with no payment_type is treated as cash (EFECTIVO). Non-cash
payment methods of the session's orders are listed alongside the movements
for reference but never change the balance.
"""

from ..extensions import db
from ..models import (
    CashSession,
    CashMovement,
    Order,
    PaymentMethod,
    CASH_MOVEMENT_INCOME,
    CASH_MOVEMENT_EXPENSE,
    VALID_CASH_MOVEMENT_TYPES,
    ORDER_STATUS_CANCELLED,
    PAYMENT_EFECTIVO,
    VALID_PAYMENT_TYPES,
)
from ..principal import Principal
from backoffice.time_utils import utcnow, to_utc_z
from .concurrency import begin_immediate, run_with_retry
from .errors import BadRequestError, ConflictError
from . import scope_service

GENERIC_ORDER_DESCRIPTION = "orden de venta"
UNNAMED_CLIENT = "Cliente sin nombre"


def _is_cash(movement: CashMovement) -> bool:
    return movement.payment_type in (None, PAYMENT_EFECTIVO)


def compute_cash_totals(cash_session: CashSession) -> dict:
    movements = db.session.query(CashMovement).filter_by(
        cash_session_id=cash_session.id
    ).all()

    income = sum(m.amount_cents for m in movements if m.type == CASH_MOVEMENT_INCOME and _is_cash(m))
    expense = sum(m.amount_cents for m in movements if m.type == CASH_MOVEMENT_EXPENSE and _is_cash(m))

    return {
        "opening_amount_cents": cash_session.opening_amount_cents,
        "cash_income_cents": income,
        "cash_expense_cents": expense,
        "balance_cents": cash_session.opening_amount_cents + income - expense,
    }


def add_movement_locked(
    cash_session: CashSession,
    *,
    movement_type: str,
    amount_cents: int,
    user_id: int,
    payment_type: str | None = PAYMENT_EFECTIVO,
    description: str | None = None,
    related_order_id: int | None = None,
) -> CashMovement:
    """
    Append a movement to an open session. Caller owns the transaction.

    Raises ConflictError if the session is not OPEN.
    """
    if not cash_session.is_open:
        raise ConflictError(
            "Cash session is closed",
            details={"cash_session_id": cash_session.id},
        )

    movement = CashMovement(
        cash_session_id=cash_session.id,
        user_id=user_id,
        type=movement_type,
        amount_cents=amount_cents,
        payment_type=payment_type,
        description=description,
        related_order_id=related_order_id,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def create_manual_movement(
    *,
    cash_session_id: int,
    movement_type: str,
    amount_cents: int,
    principal: Principal,
    payment_type: str | None = PAYMENT_EFECTIVO,
    description: str | None = None,
    order_id: int | None = None,
) -> CashMovement:
    """Cash in/out entered by hand (change fund top-up, petty cash, ...)."""
    movement_type = (movement_type or "").upper()
    if movement_type not in VALID_CASH_MOVEMENT_TYPES:
        raise BadRequestError(
            f"Invalid cash movement type: {movement_type}",
            details={"allowed": list(VALID_CASH_MOVEMENT_TYPES)},
        )
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise BadRequestError("amount_cents must be a positive integer")
    if payment_type is not None and payment_type not in VALID_PAYMENT_TYPES:
        raise BadRequestError(
            f"Invalid payment type: {payment_type}",
            details={"allowed": list(VALID_PAYMENT_TYPES)},
        )

    def _op():
        begin_immediate()
        cash_session = scope_service.require_cash_session_access(cash_session_id, principal, lock=True)
        if order_id is not None:
            order = scope_service.require_order_access(order_id, principal)
            if order.cash_session_id != cash_session.id:
                raise BadRequestError(
                    "Order does not belong to this cash session",
                    details={"order_id": order_id, "cash_session_id": cash_session.id},
                )
        movement = add_movement_locked(
            cash_session,
            movement_type=movement_type,
            amount_cents=amount_cents,
            user_id=principal.user_id,
            payment_type=payment_type,
            description=description,
            related_order_id=order_id,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_movements_by_session(
    cash_session_id: int,
    principal: Principal,
    *,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[CashMovement], int]:
    scope_service.require_cash_session_access(cash_session_id, principal)
    query = db.session.query(CashMovement).filter_by(cash_session_id=cash_session_id)
    total = query.count()
    movements = query.order_by(
        CashMovement.created_at.desc(), CashMovement.id.desc()
    ).offset(offset).limit(limit).all()
    return movements, total


def _client_fields(order: Order | None) -> dict:
    client = order.client if order is not None else None
    if client is None:
        return {"client_name": UNNAMED_CLIENT, "client_email": ""}
    return {"client_name": client.name or UNNAMED_CLIENT, "client_email": client.email or ""}


def _services_description(order: Order) -> str:
    names = [(s.description or s.name or "").strip() for s in order.services]
    names = [name for name in names if name]
    return ", ".join(names) if names else GENERIC_ORDER_DESCRIPTION


def get_cash_balance(cash_session_id: int, principal: Principal) -> dict:
    """
    Drawer balance plus a merged, newest-first activity list.

    Activity entries with "counts_toward_balance": False are non-cash
    payments taken on the session's orders. Entries tied to an order carry
    the order's client_name and client_email.
    """
    cash_session = scope_service.require_cash_session_access(cash_session_id, principal)
    totals = compute_cash_totals(cash_session)

    activity = []
    for movement in db.session.query(CashMovement).filter_by(cash_session_id=cash_session.id).all():
        entry = movement.to_dict()
        entry["source"] = "cash_movement"
        entry["counts_toward_balance"] = _is_cash(movement)
        if movement.related_order_id is not None:
            entry.update(_client_fields(db.session.get(Order, movement.related_order_id)))
        activity.append((movement.created_at, entry))

    non_cash = db.session.query(PaymentMethod, Order).join(
        Order, Order.id == PaymentMethod.order_id
    ).filter(
        Order.cash_session_id == cash_session.id,
        Order.status != ORDER_STATUS_CANCELLED,
        PaymentMethod.type != PAYMENT_EFECTIVO,
    ).all()
    for payment, order in non_cash:
        activity.append((payment.created_at, {
            "id": payment.id,
            "source": "payment_method",
            "type": CASH_MOVEMENT_INCOME,
            "amount_cents": payment.amount_cents,
            "payment_type": payment.type,
            "description": _services_description(order),
            "related_order_id": order.id,
            **_client_fields(order),
            "created_at": to_utc_z(payment.created_at),
            "counts_toward_balance": False,
        }))

    activity.sort(key=lambda item: item[0], reverse=True)

    return {
        "cash_session": cash_session.to_dict(),
        **totals,
        "movements": [entry for _, entry in activity],
    }
