# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

Two tenants with their own store, admin, stock and open cash session. An
ADMIN of tenant B must not be able to touch anything of tenant A:
1. Cash sessions, stores and clients of another tenant → Forbidden
2. Orders and store products of another tenant → NotFound (existence not leaked)
3. Tenant-wide listings only ever return the caller's tenant
"""

import pytest

from backoffice.models import Order
from backoffice.services import (
    cash_movement_service,
    order_service,
    scope_service,
    stock_service,
    tenant_service,
)
from backoffice.services.errors import ForbiddenError, NotFoundError
from backoffice.services.order_schemas import Cart, ClientInfo, ProductLine


@pytest.fixture
def order_a(db_session, cashier_principal, open_session, phone_case):
    return order_service.create_order(
        Cart(
            cash_session_id=open_session.id,
            client_info=ClientInfo(dni="00000000"),
            products=(ProductLine(product_id=phone_case.id, quantity=1),),
        ),
        cashier_principal,
    )


class TestScopeResolver:

    def test_store_of_other_tenant(self, db_session, admin_b_principal, store_a):
        with pytest.raises(ForbiddenError):
            scope_service.require_store_access(store_a.id, admin_b_principal)

    def test_missing_store(self, db_session, admin_principal):
        with pytest.raises(NotFoundError):
            scope_service.require_store_access(99999, admin_principal)

    def test_cash_session_of_other_tenant(self, db_session, admin_b_principal, open_session):
        with pytest.raises(ForbiddenError):
            scope_service.require_cash_session_access(open_session.id, admin_b_principal)

    def test_order_of_other_tenant(self, db_session, admin_b_principal, order_a):
        with pytest.raises(NotFoundError):
            scope_service.require_order_access(order_a.id, admin_b_principal)

    def test_store_product_of_other_tenant(self, db_session, admin_b_principal, phone_case):
        with pytest.raises(NotFoundError):
            scope_service.require_store_product_access(phone_case.id, admin_b_principal)

    def test_admin_bypasses_membership(self, db_session, admin_principal, store_a2):
        assert scope_service.require_store_access(store_a2.id, admin_principal).id == store_a2.id

    def test_user_needs_membership(self, db_session, cashier_principal, store_a, store_a2):
        assert scope_service.require_store_access(store_a.id, cashier_principal).id == store_a.id
        with pytest.raises(ForbiddenError):
            scope_service.require_store_access(store_a2.id, cashier_principal)

    def test_membership_lookup(self, db_session, cashier_a, store_a, store_a2):
        assert scope_service.is_user_member_of_store(cashier_a.id, store_a.id) is True
        assert scope_service.is_user_member_of_store(cashier_a.id, store_a2.id) is False


class TestCrossTenantOperations:

    def test_cannot_order_on_other_tenant_session(self, db_session, admin_b_principal, open_session, product_b):
        with pytest.raises(ForbiddenError):
            order_service.create_order(
                Cart(
                    cash_session_id=open_session.id,
                    client_info=ClientInfo(dni="00000000"),
                    products=(ProductLine(product_id=product_b.id, quantity=1),),
                ),
                admin_b_principal,
            )
        assert product_b.stock == 8

    def test_cannot_sell_other_tenant_product(self, db_session, admin_b_principal, session_b, phone_case):
        with pytest.raises(NotFoundError):
            order_service.create_order(
                Cart(
                    cash_session_id=session_b.id,
                    client_info=ClientInfo(dni="00000000"),
                    products=(ProductLine(product_id=phone_case.id, quantity=1),),
                ),
                admin_b_principal,
            )
        assert phone_case.stock == 5

    def test_cannot_cancel_other_tenant_order(self, db_session, admin_b_principal, order_a):
        with pytest.raises(NotFoundError):
            order_service.cancel_order(order_a.id, admin_b_principal)

    def test_cannot_read_other_tenant_balance(self, db_session, admin_b_principal, open_session):
        with pytest.raises(ForbiddenError):
            cash_movement_service.get_cash_balance(open_session.id, admin_b_principal)

    def test_low_stock_of_other_tenant_store(self, db_session, admin_b_principal, store_a):
        with pytest.raises(ForbiddenError):
            stock_service.list_low_stock(store_a.id, admin_b_principal)

    def test_tenant_listings_are_isolated(self, db_session, admin_b_principal, admin_principal, order_a, session_b, product_b):
        order_b = order_service.create_order(
            Cart(
                cash_session_id=session_b.id,
                client_info=ClientInfo(dni="00000000"),
                products=(ProductLine(product_id=product_b.id, quantity=1),),
            ),
            admin_b_principal,
        )

        assert [o.id for o in order_service.list_orders_by_tenant(admin_principal)] == [order_a.id]
        assert [o.id for o in order_service.list_orders_by_tenant(admin_b_principal)] == [order_b.id]
        assert db_session.query(Order).count() == 2

    def test_generic_client_is_per_tenant(self, db_session, admin_b_principal, order_a, session_b, product_b):
        order_b = order_service.create_order(
            Cart(
                cash_session_id=session_b.id,
                client_info=ClientInfo(dni="00000000"),
                products=(ProductLine(product_id=product_b.id, quantity=1),),
            ),
            admin_b_principal,
        )
        assert order_b.client_id != order_a.client_id
        assert order_b.client.tenant_id == admin_b_principal.tenant_id


class TestTenantService:

    def test_store_sequence_follows_creation_order(self, db_session, tenant_a, store_a, store_a2, store_b):
        assert [s.id for s in tenant_service.get_tenant_stores(tenant_a.id)] == [store_a.id, store_a2.id]
        assert tenant_service.get_store_sequence_number(store_a) == 1
        assert tenant_service.get_store_sequence_number(store_a2) == 2
        assert tenant_service.get_store_sequence_number(store_b) == 1

    def test_features(self, db_session, tenant_a, fast_service_principal, admin_b_principal):
        assert tenant_service.get_tenant_features(tenant_a.id) == frozenset({"FASTSERVICE"})
        assert tenant_service.tenant_has_feature(fast_service_principal, "FASTSERVICE") is True
        assert tenant_service.tenant_has_feature(admin_b_principal, "FASTSERVICE") is False
        assert tenant_service.get_tenant_features(424242) == frozenset()
