"""
Tenant lookups: plan features and store ordering.

USAGE:
    from backoffice.services.tenant_service import tenant_has_feature

    if tenant_has_feature(principal, FEATURE_FAST_SERVICE):
        ...
"""

from ..extensions import db
from ..models import Tenant, Store
from ..principal import Principal


def get_tenant_features(tenant_id: int) -> frozenset:
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        return frozenset()
    return tenant.feature_set


def tenant_has_feature(principal: Principal, feature: str) -> bool:
    """
    Features come from the principal, which is built per request from the
    tenant row, so this never needs a second lookup.
    """
    return principal.has_feature(feature)


def get_tenant_stores(tenant_id: int) -> list[Store]:
    """Tenant stores in creation order (ties broken by id)."""
    return db.session.query(Store).filter_by(
        tenant_id=tenant_id
    ).order_by(Store.created_at.asc(), Store.id.asc()).all()


def get_store_sequence_number(store: Store) -> int:
    """
    1-based position of a store among its tenant's stores by creation time.

    Used as the prefix of order numbers ("002-20250101-...").
    """
    store_ids = [s.id for s in get_tenant_stores(store.tenant_id)]
    return store_ids.index(store.id) + 1
