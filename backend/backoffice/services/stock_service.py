# Overview: Service-layer operations for store stock; every stock change writes an InventoryMovement.

"""
Stock Service

Inventory invariants (authoritative):
- StoreProduct.stock is the live on-hand quantity and never goes below zero.
- Every change to stock appends exactly one InventoryMovement in the same
  transaction; movements are never edited or deleted.
- InventoryMovement.quantity is signed: negative = stock decrease.
- Rows are read with SELECT ... FOR UPDATE before being changed so two
  concurrent sales cannot both pass the stock check.

The *_locked helpers run inside a caller-owned transaction and never commit.
"""

from ..extensions import db
from ..models import (
    Store,
    StoreProduct,
    InventoryMovement,
    MOVEMENT_OUTGOING,
    MOVEMENT_SALE,
    MOVEMENT_RETURN,
    VALID_MOVEMENT_TYPES,
)
from ..principal import Principal
from backoffice.time_utils import utcnow
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .errors import BadRequestError, NotFoundError
from . import scope_service


# Movement types that always take stock out, whatever sign the caller sent
_DECREASING_TYPES = (MOVEMENT_OUTGOING, MOVEMENT_SALE)


def load_cart_store_products(
    product_ids: list[int],
    principal: Principal,
    store_id: int,
) -> dict[int, StoreProduct]:
    """
    Lock and return the StoreProducts of a cart, keyed by id.

    ADMIN may sell any StoreProduct of the tenant; everyone else only those
    of the cash session's store. Ids outside that scope count as missing.

    Raises NotFoundError listing every unresolved id.
    """
    if not product_ids:
        return {}

    query = db.session.query(StoreProduct).join(
        Store, Store.id == StoreProduct.store_id
    ).filter(
        StoreProduct.id.in_(product_ids),
        Store.tenant_id == principal.tenant_id,
    )
    if not principal.is_admin:
        query = query.filter(StoreProduct.store_id == store_id)

    # Stable lock order avoids deadlocks between overlapping carts
    rows = lock_for_update(query.order_by(StoreProduct.id)).all()
    found = {sp.id: sp for sp in rows}

    missing = sorted(set(product_ids) - set(found))
    if missing:
        raise NotFoundError(
            f"Products not found: {', '.join(str(pid) for pid in missing)}",
            details={"missing_product_ids": missing},
        )
    return found


def check_available(store_product: StoreProduct, quantity: int) -> None:
    if quantity > store_product.stock:
        raise BadRequestError(
            f"Insufficient stock for product {store_product.display_name}",
            details={
                "product_id": store_product.id,
                "name": store_product.display_name,
                "requested": quantity,
                "available": store_product.stock,
            },
        )


def _apply_movement_locked(
    store_product: StoreProduct,
    *,
    movement_type: str,
    quantity_delta: int,
    user_id: int,
    description: str | None = None,
    order_id: int | None = None,
) -> InventoryMovement:
    if store_product.stock + quantity_delta < 0:
        raise BadRequestError(
            f"Insufficient stock for product {store_product.display_name}",
            details={
                "product_id": store_product.id,
                "requested": -quantity_delta,
                "available": store_product.stock,
            },
        )

    store_product.stock += quantity_delta
    movement = InventoryMovement(
        store_product_id=store_product.id,
        type=movement_type,
        quantity=quantity_delta,
        description=description,
        user_id=user_id,
        order_id=order_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def reserve_stock_locked(
    store_product: StoreProduct,
    quantity: int,
    *,
    order_id: int,
    user_id: int,
    description: str | None = None,
) -> InventoryMovement:
    """Debit stock for a sale (SALE movement, negative quantity)."""
    check_available(store_product, quantity)
    return _apply_movement_locked(
        store_product,
        movement_type=MOVEMENT_SALE,
        quantity_delta=-quantity,
        user_id=user_id,
        description=description,
        order_id=order_id,
    )


def restore_stock_locked(
    store_product: StoreProduct,
    quantity: int,
    *,
    order_id: int,
    user_id: int,
    description: str | None = None,
) -> InventoryMovement:
    """Credit stock back for a cancelled sale (RETURN movement, positive quantity)."""
    return _apply_movement_locked(
        store_product,
        movement_type=MOVEMENT_RETURN,
        quantity_delta=quantity,
        user_id=user_id,
        description=description,
        order_id=order_id,
    )


# =============================================================================
# MANUAL MOVEMENTS
# =============================================================================

def record_inventory_movement(
    *,
    store_product_id: int,
    movement_type: str,
    quantity: int,
    principal: Principal,
    description: str | None = None,
) -> InventoryMovement:
    """
    Record a manual stock movement (receiving, shrinkage, count correction).

    OUTGOING and SALE always decrease stock regardless of the sign sent.
    INCOMING, RETURN and ADJUST apply the quantity as given.
    """
    movement_type = (movement_type or "").upper()
    if movement_type not in VALID_MOVEMENT_TYPES:
        raise BadRequestError(
            f"Invalid movement type: {movement_type}",
            details={"allowed": list(VALID_MOVEMENT_TYPES)},
        )
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity == 0:
        raise BadRequestError("quantity must be a non-zero integer")

    quantity_delta = -abs(quantity) if movement_type in _DECREASING_TYPES else quantity

    def _op():
        begin_immediate()
        store_product = scope_service.require_store_product_access(store_product_id, principal, lock=True)
        movement = _apply_movement_locked(
            store_product,
            movement_type=movement_type,
            quantity_delta=quantity_delta,
            user_id=principal.user_id,
            description=description,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_inventory_movements(
    principal: Principal,
    *,
    store_id: int | None = None,
    store_product_id: int | None = None,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[InventoryMovement], int]:
    if store_product_id is not None:
        scope_service.require_store_product_access(store_product_id, principal)
    if store_id is not None:
        scope_service.require_store_access(store_id, principal)

    query = db.session.query(InventoryMovement).join(
        StoreProduct, StoreProduct.id == InventoryMovement.store_product_id
    ).filter(
        StoreProduct.store_id.in_(scope_service.get_member_store_ids(principal))
    )
    if store_id is not None:
        query = query.filter(StoreProduct.store_id == store_id)
    if store_product_id is not None:
        query = query.filter(InventoryMovement.store_product_id == store_product_id)

    total = query.count()
    movements = query.order_by(
        InventoryMovement.occurred_at.desc(), InventoryMovement.id.desc()
    ).offset(offset).limit(limit).all()
    return movements, total


def list_low_stock(store_id: int, principal: Principal) -> list[StoreProduct]:
    """StoreProducts at or below their restock threshold."""
    scope_service.require_store_access(store_id, principal)
    return db.session.query(StoreProduct).filter(
        StoreProduct.store_id == store_id,
        StoreProduct.stock <= StoreProduct.stock_threshold,
    ).order_by(StoreProduct.stock.asc(), StoreProduct.id.asc()).all()
