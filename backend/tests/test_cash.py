# Overview: Pytest coverage for cash sessions, manual cash movements and the drawer balance.

import pytest

from backoffice.models import SESSION_STATUS_CLOSED, SESSION_STATUS_OPEN
from backoffice.services import cash_movement_service, cash_session_service, order_service
from backoffice.services.errors import BadRequestError, ConflictError, ForbiddenError
from backoffice.services.order_schemas import Cart, ClientInfo, PaymentLine, ProductLine, ServiceLine


class TestCashSessionLifecycle:

    def test_open_session(self, db_session, cashier_principal, store_a):
        cash_session = cash_session_service.open_cash_session(store_a.id, 20000, cashier_principal)

        assert cash_session.status == SESSION_STATUS_OPEN
        assert cash_session.opening_amount_cents == 20000
        assert cash_session.user_id == cashier_principal.user_id
        assert cash_session_service.get_open_session_for_store(store_a.id).id == cash_session.id

    def test_one_open_session_per_store(self, db_session, cashier_principal, store_a, open_session):
        with pytest.raises(ConflictError):
            cash_session_service.open_cash_session(store_a.id, 0, cashier_principal)

    def test_open_requires_membership(self, db_session, outsider_principal, store_a):
        with pytest.raises(ForbiddenError):
            cash_session_service.open_cash_session(store_a.id, 0, outsider_principal)

    def test_negative_opening_amount(self, db_session, cashier_principal, store_a):
        with pytest.raises(BadRequestError):
            cash_session_service.open_cash_session(store_a.id, -1, cashier_principal)

    def test_close_records_expected_and_declared(self, db_session, cashier_principal, open_session):
        cash_movement_service.create_manual_movement(
            cash_session_id=open_session.id,
            movement_type="INCOME",
            amount_cents=2500,
            principal=cashier_principal,
        )

        closed = cash_session_service.close_cash_session(open_session.id, 12000, cashier_principal)

        assert closed.status == SESSION_STATUS_CLOSED
        assert closed.closing_amount_cents == 12500
        assert closed.declared_amount_cents == 12000
        assert closed.variance_cents == -500
        assert closed.closed_by_id == cashier_principal.user_id
        assert closed.closed_at is not None

    def test_close_twice(self, db_session, cashier_principal, open_session):
        cash_session_service.close_cash_session(open_session.id, 10000, cashier_principal)
        with pytest.raises(ConflictError):
            cash_session_service.close_cash_session(open_session.id, 10000, cashier_principal)

    def test_store_can_reopen_after_close(self, db_session, cashier_principal, store_a, open_session):
        cash_session_service.close_cash_session(open_session.id, 10000, cashier_principal)
        reopened = cash_session_service.open_cash_session(store_a.id, 5000, cashier_principal)
        assert reopened.id != open_session.id


class TestManualMovements:

    def test_closed_session_rejects_movement(self, db_session, cashier_principal, open_session):
        cash_session_service.close_cash_session(open_session.id, 10000, cashier_principal)

        with pytest.raises(ConflictError):
            cash_movement_service.create_manual_movement(
                cash_session_id=open_session.id,
                movement_type="EXPENSE",
                amount_cents=500,
                principal=cashier_principal,
            )

    @pytest.mark.parametrize("movement_type,amount", [("REFUND", 100), ("INCOME", 0), ("EXPENSE", -5)])
    def test_invalid_movement(self, db_session, cashier_principal, open_session, movement_type, amount):
        with pytest.raises(BadRequestError):
            cash_movement_service.create_manual_movement(
                cash_session_id=open_session.id,
                movement_type=movement_type,
                amount_cents=amount,
                principal=cashier_principal,
            )

    def test_order_must_belong_to_session(
        self, db_session, admin_principal, admin_a, store_a2, open_session, phone_case
    ):
        order = order_service.create_order(
            Cart(
                cash_session_id=open_session.id,
                client_info=ClientInfo(dni="00000000"),
                products=(ProductLine(product_id=phone_case.id, quantity=1),),
            ),
            admin_principal,
        )
        other = cash_session_service.open_cash_session(store_a2.id, 0, admin_principal)

        with pytest.raises(BadRequestError):
            cash_movement_service.create_manual_movement(
                cash_session_id=other.id,
                movement_type="INCOME",
                amount_cents=100,
                principal=admin_principal,
                order_id=order.id,
            )

    def test_list_movements_newest_first(self, db_session, cashier_principal, open_session):
        for amount in (100, 200, 300):
            cash_movement_service.create_manual_movement(
                cash_session_id=open_session.id,
                movement_type="INCOME",
                amount_cents=amount,
                principal=cashier_principal,
            )

        movements, total = cash_movement_service.list_movements_by_session(
            open_session.id, cashier_principal, limit=2
        )
        assert total == 3
        assert [m.amount_cents for m in movements] == [300, 200]


class TestCashBalance:

    def test_balance_counts_cash_only(self, db_session, cashier_principal, open_session, phone_case, charger):
        order_service.create_order(
            Cart(
                cash_session_id=open_session.id,
                client_info=ClientInfo(dni="00000000"),
                products=(
                    ProductLine(product_id=phone_case.id, quantity=2),
                    ProductLine(product_id=charger.id, quantity=1),
                ),
                payment_methods=(
                    PaymentLine(type="TARJETA", amount_cents=2000),
                    PaymentLine(type="EFECTIVO", amount_cents=2500),
                ),
            ),
            cashier_principal,
        )
        cash_movement_service.create_manual_movement(
            cash_session_id=open_session.id,
            movement_type="EXPENSE",
            amount_cents=700,
            principal=cashier_principal,
            description="Cleaning supplies",
        )

        balance = cash_movement_service.get_cash_balance(open_session.id, cashier_principal)

        assert balance["opening_amount_cents"] == 10000
        assert balance["cash_income_cents"] == 2500
        assert balance["cash_expense_cents"] == 700
        assert balance["balance_cents"] == 10000 + 2500 - 700

        informational = [m for m in balance["movements"] if not m["counts_toward_balance"]]
        assert len(informational) == 1
        assert informational[0]["payment_type"] == "TARJETA"
        assert informational[0]["amount_cents"] == 2000
        assert informational[0]["source"] == "payment_method"
        assert len(balance["movements"]) == 3

    def test_untyped_movement_counts_as_cash(self, db_session, cashier_principal, open_session):
        cash_movement_service.create_manual_movement(
            cash_session_id=open_session.id,
            movement_type="EXPENSE",
            amount_cents=1000,
            principal=cashier_principal,
            payment_type=None,
        )
        cash_movement_service.create_manual_movement(
            cash_session_id=open_session.id,
            movement_type="INCOME",
            amount_cents=3000,
            principal=cashier_principal,
            payment_type="YAPE",
        )

        balance = cash_movement_service.get_cash_balance(open_session.id, cashier_principal)

        assert balance["balance_cents"] == 9000
        yape = [m for m in balance["movements"] if m["payment_type"] == "YAPE"]
        assert yape[0]["counts_toward_balance"] is False

    def test_cancelled_order_payments_are_not_listed(self, db_session, cashier_principal, open_session, phone_case):
        order = order_service.create_order(
            Cart(
                cash_session_id=open_session.id,
                client_info=ClientInfo(dni="00000000"),
                products=(ProductLine(product_id=phone_case.id, quantity=1),),
                payment_methods=(PaymentLine(type="PLIN", amount_cents=1000),),
            ),
            cashier_principal,
        )
        order_service.cancel_order(order.id, cashier_principal)

        balance = cash_movement_service.get_cash_balance(open_session.id, cashier_principal)
        assert balance["movements"] == []
        assert balance["balance_cents"] == 10000

    def test_order_entries_carry_client_and_services(self, db_session, cashier_principal, open_session, phone_case):
        order_service.create_order(
            Cart(
                cash_session_id=open_session.id,
                client_info=ClientInfo(dni="12345678", name="Ana Torres", email="ana@example.com"),
                services=(ServiceLine(name="Screen repair", price_cents=5000, description="Cracked glass"),),
                payment_methods=(
                    PaymentLine(type="EFECTIVO", amount_cents=500),
                    PaymentLine(type="TARJETA", amount_cents=500),
                ),
            ),
            cashier_principal,
        )
        order_service.create_order(
            Cart(
                cash_session_id=open_session.id,
                client_info=ClientInfo(dni="87654321", name="Luis Vega"),
                products=(ProductLine(product_id=phone_case.id, quantity=1),),
                payment_methods=(PaymentLine(type="YAPE", amount_cents=1000),),
            ),
            cashier_principal,
        )
        cash_movement_service.create_manual_movement(
            cash_session_id=open_session.id,
            movement_type="EXPENSE",
            amount_cents=200,
            principal=cashier_principal,
        )

        movements = cash_movement_service.get_cash_balance(open_session.id, cashier_principal)["movements"]

        by_source = {(m["source"], m["payment_type"]): m for m in movements}
        cash_entries = [m for m in movements if m["source"] == "cash_movement" and m["related_order_id"]]
        assert len(cash_entries) == 1
        cash_entry = cash_entries[0]
        assert cash_entry["client_name"] == "Ana Torres"
        assert cash_entry["client_email"] == "ana@example.com"

        card = by_source[("payment_method", "TARJETA")]
        assert card["description"] == "Cracked glass"
        assert card["client_name"] == "Ana Torres"

        yape = by_source[("payment_method", "YAPE")]
        assert yape["description"] == "orden de venta"
        assert yape["client_name"] == "Luis Vega"
        assert yape["client_email"] == ""

        manual = [m for m in movements if m["source"] == "cash_movement" and not m["related_order_id"]]
        assert "client_name" not in manual[0]
