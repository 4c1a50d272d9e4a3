# Overview: Resolves tenant/store scope for a principal and a resource id.

"""
Scope Resolver

WHY: Every operation in the order core asks the same question: does this
resource belong to the caller's tenant, and may this caller act on its
store? Answering it in one place keeps the membership rule consistent.

RULES:
- Resource missing → NotFoundError
- Resource in another tenant → ForbiddenError for sessions/clients/stores,
  NotFoundError for orders and store products (their existence is not leaked)
- ADMIN bypasses store membership; everyone else needs a store_users row
"""

from ..extensions import db
from ..models import Store, StoreMembership, CashSession, Order, StoreProduct
from ..principal import Principal
from .concurrency import lock_for_update
from .errors import NotFoundError, ForbiddenError


def is_user_member_of_store(user_id: int, store_id: int) -> bool:
    return db.session.query(StoreMembership.id).filter_by(
        user_id=user_id,
        store_id=store_id,
    ).first() is not None


def get_member_store_ids(principal: Principal) -> list[int]:
    """Stores the caller may act on (all tenant stores for ADMIN)."""
    if principal.is_admin:
        rows = db.session.query(Store.id).filter_by(tenant_id=principal.tenant_id).all()
    else:
        rows = db.session.query(StoreMembership.store_id).join(
            Store, Store.id == StoreMembership.store_id
        ).filter(
            StoreMembership.user_id == principal.user_id,
            Store.tenant_id == principal.tenant_id,
        ).all()
    return [row[0] for row in rows]


def require_store_membership(principal: Principal, store_id: int) -> None:
    if principal.is_admin:
        return
    if not is_user_member_of_store(principal.user_id, store_id):
        raise ForbiddenError(
            "You are not a member of this store",
            details={"store_id": store_id},
        )


def require_store_access(store_id: int, principal: Principal) -> Store:
    store = db.session.query(Store).filter_by(id=store_id).first()
    if not store:
        raise NotFoundError("Store not found", details={"store_id": store_id})
    if store.tenant_id != principal.tenant_id:
        raise ForbiddenError("Store belongs to another tenant", details={"store_id": store_id})
    require_store_membership(principal, store.id)
    return store


def require_cash_session_access(
    cash_session_id: int,
    principal: Principal,
    *,
    lock: bool = False,
    check_membership: bool = True,
) -> CashSession:
    """
    Load a cash session the caller may use.

    lock=True reads the row with SELECT ... FOR UPDATE so its status cannot
    change before the surrounding transaction commits.
    check_membership=False leaves the store membership check to the caller
    (order creation reports a closed session before a missing membership).
    """
    query = db.session.query(CashSession).filter_by(id=cash_session_id)
    if lock:
        query = lock_for_update(query)
    cash_session = query.first()
    if not cash_session:
        raise NotFoundError("Cash session not found", details={"cash_session_id": cash_session_id})

    store = db.session.query(Store).filter_by(id=cash_session.store_id).first()
    if not store or store.tenant_id != principal.tenant_id:
        raise ForbiddenError(
            "Cash session belongs to another tenant",
            details={"cash_session_id": cash_session_id},
        )

    if check_membership:
        require_store_membership(principal, store.id)
    return cash_session


def require_order_access(order_id: int, principal: Principal, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id, tenant_id=principal.tenant_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if not order:
        raise NotFoundError("Order not found", details={"order_id": order_id})

    require_store_membership(principal, order.cash_session.store_id)
    return order


def require_store_product_access(
    store_product_id: int,
    principal: Principal,
    *,
    lock: bool = False,
) -> StoreProduct:
    query = db.session.query(StoreProduct).join(
        Store, Store.id == StoreProduct.store_id
    ).filter(
        StoreProduct.id == store_product_id,
        Store.tenant_id == principal.tenant_id,
    )
    if lock:
        query = lock_for_update(query)
    store_product = query.first()
    if not store_product:
        raise NotFoundError("Store product not found", details={"store_product_id": store_product_id})

    require_store_membership(principal, store_product.store_id)
    return store_product
