# Overview: Service-layer operations for orders; creation, cancellation, completion and reads.

"""
Order Service

WHY: An order touches stock, clients, the cash session and the cash ledger.
The structural part (order graph, stock, inventory movements) is written in
one locked transaction; the cash movements follow after commit so a ledger
problem can never undo a sale (see posting_service).

ORDER LIFECYCLE:
- PENDING → COMPLETED, PENDING → CANCELLED, COMPLETED → CANCELLED
- CANCELLED is terminal; cancelling twice is rejected

SERVICE LIFECYCLE:
- IN_PROGRESS → COMPLETED | ANNULLATED
"""

import secrets
import string

from flask import current_app

from ..extensions import db
from ..models import (
    CashSession,
    Order,
    OrderProduct,
    OrderService,
    PaymentMethod,
    Store,
    StoreProduct,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
    SERVICE_STATUS_IN_PROGRESS,
    SERVICE_STATUS_COMPLETED,
    SERVICE_STATUS_ANNULLATED,
)
from ..principal import Principal, FEATURE_FAST_SERVICE
from backoffice.time_utils import utcnow, date_stamp
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from .order_schemas import Cart, PaymentLine, ServicePayment
from . import client_service, posting_service, scope_service, stock_service, tenant_service


ORDER_NUMBER_ALPHABET = string.digits + string.ascii_uppercase


# =============================================================================
# ORDER NUMBERS
# =============================================================================

def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(length))


def generate_order_number(store: Store) -> str:
    """
    "{store_seq:03d}-{YYYYMMDD}-{random base36}", e.g. "002-20250314-7KQ2M9XA".

    Regenerates the random tail on the (unlikely) event of a collision.
    """
    length = current_app.config.get("ORDER_NUMBER_SUFFIX_LENGTH", 8)
    prefix = f"{tenant_service.get_store_sequence_number(store):03d}-{date_stamp()}"

    for _ in range(5):
        candidate = f"{prefix}-{_random_suffix(length)}"
        taken = db.session.query(Order.id).filter_by(order_number=candidate).first()
        if not taken:
            return candidate
    raise ConflictError("Could not allocate a unique order number")


# =============================================================================
# CREATE
# =============================================================================

def _group_product_lines(cart: Cart) -> tuple[dict[int, int], dict[tuple[int, int | None], int]]:
    """
    Returns (quantity per product, quantity per (product, custom price)).

    Repeated lines for one product are merged; stock is checked against the
    per-product total.
    """
    per_product: dict[int, int] = {}
    per_price: dict[tuple[int, int | None], int] = {}
    for line in cart.products:
        per_product[line.product_id] = per_product.get(line.product_id, 0) + line.quantity
        key = (line.product_id, line.custom_price_cents)
        per_price[key] = per_price.get(key, 0) + line.quantity
    return per_product, per_price


def is_fast_service_cart(cart: Cart, principal: Principal) -> bool:
    """Services-only cart on a tenant with the FASTSERVICE feature."""
    return (
        tenant_service.tenant_has_feature(principal, FEATURE_FAST_SERVICE)
        and bool(cart.services)
        and not cart.products
    )


def _create_order_locked(cart: Cart, principal: Principal) -> Order:
    # 1. Cash session: exists, same tenant, OPEN (row locked until commit)
    cash_session = scope_service.require_cash_session_access(
        cart.cash_session_id, principal, lock=True, check_membership=False
    )
    if not cash_session.is_open:
        raise ConflictError(
            "Cash session is closed",
            details={"cash_session_id": cash_session.id},
        )

    # 2. Store membership (ADMIN bypasses)
    scope_service.require_store_membership(principal, cash_session.store_id)

    # 3. Client
    client_id = client_service.resolve_client(cart.client_id, cart.client_info, principal.tenant_id, principal)

    # 4. Products: resolve, lock, check stock, price
    per_product, per_price = _group_product_lines(cart)
    store_products = stock_service.load_cart_store_products(
        list(per_product), principal, cash_session.store_id
    )
    for product_id, quantity in per_product.items():
        stock_service.check_available(store_products[product_id], quantity)

    is_price_modified = False
    priced_lines = []
    for (product_id, custom_price_cents), quantity in per_price.items():
        store_product = store_products[product_id]
        unit_price_cents = store_product.price_cents
        if custom_price_cents is not None:
            if custom_price_cents != store_product.price_cents:
                is_price_modified = True
            unit_price_cents = custom_price_cents
        priced_lines.append((store_product, quantity, unit_price_cents))

    # 5-6. Services, totals, status
    fast_service = is_fast_service_cart(cart, principal)
    if fast_service and cart.declared_payment_cents != cart.services_total_cents:
        raise BadRequestError(
            "Declared payments must equal the services total for fast service",
            details={
                "declared_cents": cart.declared_payment_cents,
                "services_total_cents": cart.services_total_cents,
            },
        )

    products_total = sum(quantity * price for _, quantity, price in priced_lines)
    total_amount_cents = products_total + cart.services_total_cents

    if fast_service or not cart.services:
        status = ORDER_STATUS_COMPLETED
    else:
        status = ORDER_STATUS_PENDING
    service_status = SERVICE_STATUS_COMPLETED if fast_service else SERVICE_STATUS_IN_PROGRESS

    # 7. Number
    order_number = generate_order_number(cash_session.store)

    # 8. Persist order graph and debit stock
    order = Order(
        tenant_id=principal.tenant_id,
        cash_session_id=cash_session.id,
        user_id=principal.user_id,
        client_id=client_id,
        order_number=order_number,
        total_amount_cents=total_amount_cents,
        status=status,
        is_price_modified=is_price_modified,
    )
    db.session.add(order)
    db.session.flush()

    for store_product, quantity, unit_price_cents in priced_lines:
        db.session.add(OrderProduct(
            order_id=order.id,
            store_product_id=store_product.id,
            quantity=quantity,
            unit_price_cents=unit_price_cents,
        ))
        stock_service.reserve_stock_locked(
            store_product,
            quantity,
            order_id=order.id,
            user_id=principal.user_id,
            description=f"Order {order_number}",
        )

    for line in cart.services:
        db.session.add(OrderService(
            order_id=order.id,
            name=line.name,
            description=line.description,
            price_cents=line.price_cents,
            type=line.type,
            status=service_status,
        ))

    for payment in cart.payment_methods:
        if payment.amount_cents <= 0:
            continue
        db.session.add(PaymentMethod(
            order_id=order.id,
            type=payment.type,
            amount_cents=payment.amount_cents,
        ))

    db.session.flush()
    return order


def create_order(cart: Cart, principal: Principal) -> Order:
    """
    Create an order from a parsed cart.

    Everything up to and including stock debit commits atomically; any
    validation error leaves no trace. Cash payments are then posted as
    INCOME movements on a best-effort basis.

    Raises:
        BadRequestError, NotFoundError, ForbiddenError, ConflictError
    """
    def _op():
        begin_immediate()
        order = _create_order_locked(cart, principal)
        db.session.commit()
        return order.id

    order_id = run_with_retry(_op)

    order = db.session.get(Order, order_id)
    posting_service.post_payments(order, list(order.payment_methods), principal)

    return db.session.get(Order, order_id)


# =============================================================================
# CANCEL
# =============================================================================

def cancel_order(order_id: int, principal: Principal) -> Order:
    """
    Cancel an order: restore stock, annul services, then refund cash.

    Only ADMIN or the order's creator may cancel. Refunds are posted after
    commit and skipped (with a warning) when the cash session is closed.
    """
    def _op():
        begin_immediate()
        order = scope_service.require_order_access(order_id, principal, lock=True)

        if not principal.is_admin and order.user_id != principal.user_id:
            raise ForbiddenError(
                "Only an administrator or the order's creator can cancel it",
                details={"order_id": order.id},
            )

        if order.status == ORDER_STATUS_CANCELLED:
            raise BadRequestError("Order is already cancelled", details={"order_id": order.id})

        lines = list(order.order_products)
        store_product_ids = sorted({line.store_product_id for line in lines})
        locked = {}
        if store_product_ids:
            rows = lock_for_update(
                db.session.query(StoreProduct).filter(StoreProduct.id.in_(store_product_ids)).order_by(StoreProduct.id)
            ).all()
            locked = {sp.id: sp for sp in rows}

        for line in lines:
            stock_service.restore_stock_locked(
                locked[line.store_product_id],
                line.quantity,
                order_id=order.id,
                user_id=principal.user_id,
                description=f"Order {order.order_number} cancelled",
            )

        order.status = ORDER_STATUS_CANCELLED
        order.canceled_at = utcnow()
        order.canceled_by_id = principal.user_id

        for service in order.services:
            service.status = SERVICE_STATUS_ANNULLATED

        db.session.commit()
        return order.id

    cancelled_id = run_with_retry(_op)

    order = db.session.get(Order, cancelled_id)
    posting_service.post_refunds(order, principal)

    return db.session.get(Order, cancelled_id)


# =============================================================================
# COMPLETE
# =============================================================================

def evaluate_completion(order: Order, principal: Principal) -> str:
    """
    Decide the status of a PENDING order from payments and service states.

    Precedence:
    1. every service ANNULLATED → CANCELLED
    2. paid ≥ owed and every service COMPLETED → COMPLETED
    3. paid ≥ owed and at least one service COMPLETED → COMPLETED
    4. otherwise unchanged
    """
    statuses = [service.status for service in order.services]
    fully_paid = order.paid_cents >= order.owed_cents

    if statuses and all(s == SERVICE_STATUS_ANNULLATED for s in statuses):
        order.status = ORDER_STATUS_CANCELLED
        order.canceled_at = utcnow()
        order.canceled_by_id = principal.user_id
    elif fully_paid and statuses and all(s == SERVICE_STATUS_COMPLETED for s in statuses):
        order.status = ORDER_STATUS_COMPLETED
    elif fully_paid and any(s == SERVICE_STATUS_COMPLETED for s in statuses):
        order.status = ORDER_STATUS_COMPLETED
    return order.status


def complete_order(order_id: int, service_payments: tuple[ServicePayment, ...], principal: Principal) -> Order:
    """
    Record payments against a PENDING order and re-evaluate its status.

    Never touches stock. New cash payments are posted after commit.
    """
    def _op():
        begin_immediate()
        order = scope_service.require_order_access(order_id, principal, lock=True)

        if order.status != ORDER_STATUS_PENDING:
            raise BadRequestError(
                f"Order is not pending (status {order.status})",
                details={"order_id": order.id, "status": order.status},
            )

        service_ids = {service.id for service in order.services}
        unknown = sorted({sp.service_id for sp in service_payments} - service_ids)
        if unknown:
            raise NotFoundError(
                f"Services not found on order: {', '.join(str(sid) for sid in unknown)}",
                details={"order_id": order.id, "missing_service_ids": unknown},
            )

        added = []
        for service_payment in service_payments:
            for payment in service_payment.payments:
                if payment.amount_cents <= 0:
                    continue
                db.session.add(PaymentMethod(
                    order_id=order.id,
                    type=payment.type,
                    amount_cents=payment.amount_cents,
                ))
                added.append(PaymentLine(type=payment.type, amount_cents=payment.amount_cents))

        db.session.flush()
        db.session.refresh(order)
        evaluate_completion(order, principal)

        db.session.commit()
        return order.id, added

    completed_id, added = run_with_retry(_op)

    order = db.session.get(Order, completed_id)
    posting_service.post_payments(order, added, principal)

    return db.session.get(Order, completed_id)


def update_service_status(service_id: int, status: str, principal: Principal) -> OrderService:
    """Move a service out of IN_PROGRESS. COMPLETED and ANNULLATED are final."""
    status = (status or "").upper()
    if status not in (SERVICE_STATUS_COMPLETED, SERVICE_STATUS_ANNULLATED):
        raise BadRequestError(
            f"Invalid service status: {status}",
            details={"allowed": [SERVICE_STATUS_COMPLETED, SERVICE_STATUS_ANNULLATED]},
        )

    def _op():
        begin_immediate()
        service = lock_for_update(
            db.session.query(OrderService).join(
                Order, Order.id == OrderService.order_id
            ).filter(
                OrderService.id == service_id,
                Order.tenant_id == principal.tenant_id,
            )
        ).first()
        if not service:
            raise NotFoundError("Service not found", details={"service_id": service_id})

        order = service.order
        scope_service.require_store_membership(principal, order.cash_session.store_id)

        if order.status == ORDER_STATUS_CANCELLED:
            raise BadRequestError("Order is cancelled", details={"order_id": order.id})
        if service.status != SERVICE_STATUS_IN_PROGRESS:
            raise BadRequestError(
                f"Service is already {service.status}",
                details={"service_id": service.id, "status": service.status},
            )

        service.status = status
        db.session.commit()
        return service.id

    return db.session.get(OrderService, run_with_retry(_op))


# =============================================================================
# READS
# =============================================================================

def find_order(order_id: int, principal: Principal) -> Order:
    return scope_service.require_order_access(order_id, principal)


def _tenant_orders_query(principal: Principal):
    return db.session.query(Order).filter(Order.tenant_id == principal.tenant_id)


def list_orders_by_store(store_id: int, principal: Principal) -> list[Order]:
    scope_service.require_store_access(store_id, principal)
    return _tenant_orders_query(principal).join(
        CashSession, CashSession.id == Order.cash_session_id
    ).filter(
        CashSession.store_id == store_id
    ).order_by(Order.created_at.desc(), Order.id.desc()).all()


def list_orders_by_tenant(principal: Principal) -> list[Order]:
    """ADMIN sees every tenant order; others see orders of their stores."""
    query = _tenant_orders_query(principal)
    if not principal.is_admin:
        store_ids = scope_service.get_member_store_ids(principal)
        if not store_ids:
            return []
        query = query.join(
            CashSession, CashSession.id == Order.cash_session_id
        ).filter(CashSession.store_id.in_(store_ids))
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def list_my_orders(principal: Principal) -> list[Order]:
    return _tenant_orders_query(principal).filter(
        Order.user_id == principal.user_id
    ).order_by(Order.created_at.desc(), Order.id.desc()).all()


def build_receipt(order: Order) -> dict:
    """Display fields printed on the ticket; money stays in cents."""
    store = order.cash_session.store
    client = order.client
    seller = order.user
    return {
        "order_number": order.order_number,
        "store_name": store.name,
        "store_address": store.address,
        "store_phone": store.phone,
        "seller_name": seller.name if seller else None,
        "seller_email": seller.email if seller else None,
        "client_name": client.name if client else None,
        "client_dni": client.dni if client else None,
        "client_phone": client.phone if client else None,
        "client_email": client.email if client else None,
        "total_amount_cents": order.total_amount_cents,
        "paid_amount_cents": order.paid_cents,
        "owed_amount_cents": max(order.total_amount_cents - order.paid_cents, 0),
    }
