# Overview: Model package exports; import order keeps string relationships resolvable.

from .tenancy import Tenant, Store, StoreMembership, TENANT_STATUS_ACTIVE, TENANT_STATUS_SUSPENDED, TENANT_STATUS_DISABLED
from .auth import User, SessionToken
from .customers import Client, GENERIC_CLIENT_DNI, GENERIC_CLIENT_NAME
from .inventory import (
    Product,
    StoreProduct,
    InventoryMovement,
    MOVEMENT_INCOMING,
    MOVEMENT_OUTGOING,
    MOVEMENT_SALE,
    MOVEMENT_RETURN,
    MOVEMENT_ADJUST,
    VALID_MOVEMENT_TYPES,
)
from .registers import (
    CashSession,
    CashMovement,
    SESSION_STATUS_OPEN,
    SESSION_STATUS_CLOSED,
    CASH_MOVEMENT_INCOME,
    CASH_MOVEMENT_EXPENSE,
    VALID_CASH_MOVEMENT_TYPES,
)
from .orders import (
    Order,
    OrderProduct,
    OrderService,
    PaymentMethod,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
    SERVICE_STATUS_IN_PROGRESS,
    SERVICE_STATUS_COMPLETED,
    SERVICE_STATUS_ANNULLATED,
    SERVICE_TYPE_REPAIR,
    SERVICE_TYPE_WARRANTY,
    VALID_SERVICE_TYPES,
    PAYMENT_EFECTIVO,
    PAYMENT_TARJETA,
    PAYMENT_TRANSFERENCIA,
    PAYMENT_YAPE,
    PAYMENT_PLIN,
    VALID_PAYMENT_TYPES,
)
from .postings import PostingFailure, POSTING_STATUS_PENDING, POSTING_STATUS_RESOLVED, POSTING_STATUS_ABANDONED
