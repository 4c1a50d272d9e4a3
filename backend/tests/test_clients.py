# Overview: Pytest coverage for client resolution at checkout and client records.

import pytest

from backoffice.models import Client, GENERIC_CLIENT_DNI, GENERIC_CLIENT_NAME
from backoffice.services import client_service, order_service
from backoffice.services.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from backoffice.services.order_schemas import Cart, ClientInfo, ServiceLine


class TestResolveClient:

    def test_requires_exactly_one_source(self, db_session, cashier_principal, tenant_a):
        with pytest.raises(BadRequestError):
            client_service.resolve_client(None, None, tenant_a.id, cashier_principal)
        with pytest.raises(BadRequestError):
            client_service.resolve_client(1, ClientInfo(dni="12345678"), tenant_a.id, cashier_principal)

    def test_dni_required(self, db_session, cashier_principal, tenant_a):
        with pytest.raises(BadRequestError):
            client_service.resolve_client(None, ClientInfo(dni=None, name="Ana"), tenant_a.id, cashier_principal)

    def test_creates_new_client(self, db_session, cashier_principal, tenant_a):
        client_id = client_service.resolve_client(
            None,
            ClientInfo(dni="12345678", name="Ana", email="ana@example.com"),
            tenant_a.id,
            cashier_principal,
        )
        db_session.commit()

        client = db_session.get(Client, client_id)
        assert client.tenant_id == tenant_a.id
        assert client.name == "Ana"
        assert client.user_id == cashier_principal.user_id

    def test_known_dni_updates_contact_fields(self, db_session, cashier_principal, tenant_a):
        first = client_service.resolve_client(
            None, ClientInfo(dni="12345678", name="Ana", phone="999000111"), tenant_a.id, cashier_principal
        )
        second = client_service.resolve_client(
            None, ClientInfo(dni="12345678", name="Ana María"), tenant_a.id, cashier_principal
        )
        db_session.commit()

        assert first == second
        client = db_session.get(Client, first)
        assert client.name == "Ana María"
        # Blank fields never erase stored data
        assert client.phone == "999000111"
        assert db_session.query(Client).count() == 1

    def test_email_of_another_dni_rejected(self, db_session, cashier_principal, tenant_a):
        client_service.resolve_client(
            None, ClientInfo(dni="12345678", email="ana@example.com"), tenant_a.id, cashier_principal
        )
        db_session.commit()

        with pytest.raises(BadRequestError) as exc_info:
            client_service.resolve_client(
                None, ClientInfo(dni="99999999", email="ana@example.com"), tenant_a.id, cashier_principal
            )
        assert exc_info.value.code == "EMAIL_ALREADY_EXISTS"

    def test_generic_client_is_shared(self, db_session, cashier_principal, tenant_a):
        first = client_service.resolve_client(None, ClientInfo(dni=GENERIC_CLIENT_DNI), tenant_a.id, cashier_principal)
        second = client_service.resolve_client(
            None, ClientInfo(dni=GENERIC_CLIENT_DNI, name="Someone"), tenant_a.id, cashier_principal
        )
        db_session.commit()

        assert first == second
        assert db_session.get(Client, first).name == GENERIC_CLIENT_NAME

    def test_client_id_lookup(self, db_session, cashier_principal, tenant_a, tenant_b):
        own = Client(tenant_id=tenant_a.id, name="Own", dni="11112222")
        foreign = Client(tenant_id=tenant_b.id, name="Foreign", dni="33334444")
        db_session.add_all([own, foreign])
        db_session.commit()

        assert client_service.resolve_client(own.id, None, tenant_a.id, cashier_principal) == own.id
        with pytest.raises(ForbiddenError):
            client_service.resolve_client(foreign.id, None, tenant_a.id, cashier_principal)
        with pytest.raises(NotFoundError):
            client_service.resolve_client(987654, None, tenant_a.id, cashier_principal)

    def test_checkout_dedups_by_dni(self, db_session, cashier_principal, open_session):
        for name in ("Ana", "Ana Torres"):
            order_service.create_order(
                Cart(
                    cash_session_id=open_session.id,
                    client_info=ClientInfo(dni="12345678", name=name),
                    services=(ServiceLine(name="Diagnosis", price_cents=0),),
                ),
                cashier_principal,
            )

        clients = db_session.query(Client).filter_by(dni="12345678").all()
        assert len(clients) == 1
        assert clients[0].name == "Ana Torres"
        assert len(clients[0].orders) == 2


class TestClientRecords:

    def test_create_and_get(self, db_session, cashier_principal):
        client = client_service.create_client(
            cashier_principal, ClientInfo(dni="55556666", name="Carlos", email="carlos@example.com")
        )
        assert client_service.get_client(client.id, cashier_principal).email == "carlos@example.com"

    def test_create_duplicate_dni_conflicts(self, db_session, cashier_principal):
        client_service.create_client(cashier_principal, ClientInfo(dni="55556666", name="Carlos"))
        with pytest.raises(ConflictError) as exc_info:
            client_service.create_client(cashier_principal, ClientInfo(dni="55556666", name="Carla"))
        assert exc_info.value.code == "DNI_ALREADY_EXISTS"

    def test_update_email_conflict(self, db_session, cashier_principal):
        client_service.create_client(cashier_principal, ClientInfo(dni="1", email="one@example.com"))
        two = client_service.create_client(cashier_principal, ClientInfo(dni="2", email="two@example.com"))

        with pytest.raises(ConflictError) as exc_info:
            client_service.update_client(two.id, cashier_principal, ClientInfo(dni=None, email="one@example.com"))
        assert exc_info.value.code == "EMAIL_ALREADY_EXISTS"

    def test_generic_client_is_read_only(self, db_session, cashier_principal, tenant_a):
        generic_id = client_service.resolve_client(
            None, ClientInfo(dni=GENERIC_CLIENT_DNI), tenant_a.id, cashier_principal
        )
        db_session.commit()

        with pytest.raises(BadRequestError):
            client_service.update_client(generic_id, cashier_principal, ClientInfo(dni=None, name="Renamed"))

    def test_other_tenant_client_not_found(self, db_session, cashier_principal, admin_b_principal):
        client = client_service.create_client(admin_b_principal, ClientInfo(dni="77778888", name="Beta"))
        with pytest.raises(NotFoundError):
            client_service.get_client(client.id, cashier_principal)

    def test_search(self, db_session, cashier_principal, admin_b_principal):
        client_service.create_client(cashier_principal, ClientInfo(dni="10203040", name="Ana Torres"))
        client_service.create_client(cashier_principal, ClientInfo(dni="50607080", name="Mariana Ruiz"))
        client_service.create_client(cashier_principal, ClientInfo(dni="90909090", name="Pedro", phone="955123"))
        client_service.create_client(admin_b_principal, ClientInfo(dni="10203041", name="Ana B"))

        names = [c.name for c in client_service.search_clients(cashier_principal, "ana")]
        assert names == ["Ana Torres", "Mariana Ruiz"]
        assert [c.name for c in client_service.search_clients(cashier_principal, "955")] == ["Pedro"]

        with pytest.raises(BadRequestError):
            client_service.search_clients(cashier_principal, "an")

    def test_list_clients(self, db_session, cashier_principal):
        for dni in ("1", "2", "3"):
            client_service.create_client(cashier_principal, ClientInfo(dni=dni, name=f"Client {dni}"))

        clients, total = client_service.list_clients(cashier_principal, limit=2)
        assert total == 3
        assert len(clients) == 2
