# Overview: Pytest coverage for session tokens and the Principal built from them.

from datetime import timedelta

import pytest

from backoffice.models import SessionToken, TENANT_STATUS_SUSPENDED
from backoffice.principal import Principal, ROLE_ADMIN
from backoffice.services.session_service import create_session, hash_token, revoke_session, validate_session


class TestSessionTokens:

    def test_token_is_stored_hashed(self, db_session, cashier_a):
        session, token = create_session(cashier_a.id)

        assert len(token) == 64
        assert session.token_hash == hash_token(token)
        assert db_session.query(SessionToken).filter_by(token_hash=token).count() == 0

    def test_validate_builds_principal(self, db_session, admin_a, tenant_a):
        tenant_a.feature_set = {"CASH", "FASTSERVICE"}
        db_session.commit()
        _, token = create_session(admin_a.id)

        principal = validate_session(token)

        assert principal.user_id == admin_a.id
        assert principal.tenant_id == tenant_a.id
        assert principal.role == ROLE_ADMIN
        assert principal.is_admin
        assert principal.tenant_features == frozenset({"CASH", "FASTSERVICE"})

    def test_revoked_token(self, db_session, cashier_a):
        _, token = create_session(cashier_a.id)

        assert revoke_session(token) is True
        assert validate_session(token) is None
        assert revoke_session(token) is False

    def test_expired_token(self, db_session, cashier_a):
        session, token = create_session(cashier_a.id)
        session.expires_at = session.created_at - timedelta(minutes=1)
        db_session.commit()

        assert validate_session(token) is None

    def test_deactivated_user(self, db_session, cashier_a):
        _, token = create_session(cashier_a.id)
        cashier_a.is_active = False
        db_session.commit()

        assert validate_session(token) is None
        with pytest.raises(ValueError):
            create_session(cashier_a.id)

    def test_suspended_tenant(self, db_session, cashier_a, tenant_a):
        _, token = create_session(cashier_a.id)
        tenant_a.status = TENANT_STATUS_SUSPENDED
        db_session.commit()

        assert validate_session(token) is None

    def test_unknown_token(self, db_session):
        assert validate_session("not-a-token") is None


class TestPrincipal:

    def test_is_immutable(self):
        principal = Principal(user_id=1, email="a@b.c", role="USER", tenant_id=1)
        with pytest.raises(AttributeError):
            principal.role = ROLE_ADMIN

    def test_rejects_unknown_role(self):
        with pytest.raises(ValueError):
            Principal(user_id=1, email="a@b.c", role="OWNER", tenant_id=1)

    def test_rejects_unknown_feature(self):
        with pytest.raises(ValueError):
            Principal(user_id=1, email="a@b.c", role="USER", tenant_id=1, tenant_features={"TELEPORT"})

    def test_features_are_frozen(self):
        principal = Principal(user_id=1, email="a@b.c", role="USER", tenant_id=1, tenant_features=["CASH"])
        assert principal.tenant_features == frozenset({"CASH"})
        assert principal.has_feature("CASH")
        assert not principal.has_feature("FASTSERVICE")
