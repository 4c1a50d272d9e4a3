"""
Authenticated caller identity.

Built once at the request boundary (see decorators.require_auth) and passed
explicitly into every service call. Services never read flask.g directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field


ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"

VALID_ROLES = (ROLE_USER, ROLE_ADMIN)


# Tenant plan capabilities
FEATURE_DASHBOARD = "DASHBOARD"
FEATURE_STORE = "STORE"
FEATURE_CASH = "CASH"
FEATURE_SALES = "SALES"
FEATURE_SALES_OF_PRODUCTS = "SALESOFPRODUCTS"
FEATURE_SALES_OF_SERVICES = "SALESOFSERVICES"
FEATURE_SERVICES = "SERVICES"
FEATURE_PRODUCTS = "PRODUCTS"
FEATURE_INVENTORY = "INVENTORY"
FEATURE_CLIENTS = "CLIENTS"
FEATURE_CONFIG = "CONFIG"
# Services-only orders complete at checkout when fully paid
FEATURE_FAST_SERVICE = "FASTSERVICE"

VALID_FEATURES = frozenset({
    FEATURE_DASHBOARD,
    FEATURE_STORE,
    FEATURE_CASH,
    FEATURE_SALES,
    FEATURE_SALES_OF_PRODUCTS,
    FEATURE_SALES_OF_SERVICES,
    FEATURE_SERVICES,
    FEATURE_PRODUCTS,
    FEATURE_INVENTORY,
    FEATURE_CLIENTS,
    FEATURE_CONFIG,
    FEATURE_FAST_SERVICE,
})


@dataclass(frozen=True)
class Principal:
    user_id: int
    email: str
    role: str
    tenant_id: int
    tenant_features: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        if self.role not in VALID_ROLES:
            raise ValueError(f"Invalid role: {self.role}")
        if self.tenant_id is None:
            raise ValueError("Principal requires a tenant")
        unknown = set(self.tenant_features) - VALID_FEATURES
        if unknown:
            raise ValueError(f"Unknown tenant features: {sorted(unknown)}")
        # Accept any iterable at construction time, keep it immutable
        object.__setattr__(self, "tenant_features", frozenset(self.tenant_features))

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def has_feature(self, feature: str) -> bool:
        return feature in self.tenant_features
