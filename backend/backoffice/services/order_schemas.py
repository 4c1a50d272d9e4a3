"""
Request payloads for the order core, parsed once at the boundary.

Each parser takes the decoded JSON body and returns frozen dataclasses, or
raises BadRequestError naming the offending field. Money may be given either
as integer cents ("price_cents": 1050) or as a decimal amount ("price": 10.5);
both end up as integer cents.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from ..models import VALID_PAYMENT_TYPES, VALID_SERVICE_TYPES, SERVICE_TYPE_REPAIR
from .errors import BadRequestError


@dataclass(frozen=True)
class ClientInfo:
    dni: str | None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    ruc: str | None = None


@dataclass(frozen=True)
class ProductLine:
    # StoreProduct id (the per-store sellable unit, not the catalog product)
    product_id: int
    quantity: int
    custom_price_cents: int | None = None


@dataclass(frozen=True)
class ServiceLine:
    name: str
    price_cents: int
    type: str = SERVICE_TYPE_REPAIR
    description: str | None = None


@dataclass(frozen=True)
class PaymentLine:
    type: str
    amount_cents: int


@dataclass(frozen=True)
class Cart:
    cash_session_id: int
    client_id: int | None = None
    client_info: ClientInfo | None = None
    products: tuple[ProductLine, ...] = ()
    services: tuple[ServiceLine, ...] = ()
    payment_methods: tuple[PaymentLine, ...] = ()

    @property
    def declared_payment_cents(self) -> int:
        return sum(p.amount_cents for p in self.payment_methods)

    @property
    def services_total_cents(self) -> int:
        return sum(s.price_cents for s in self.services)


@dataclass(frozen=True)
class ServicePayment:
    service_id: int
    payments: tuple[PaymentLine, ...] = ()


# =============================================================================
# FIELD COERCION
# =============================================================================

def parse_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    # bool is an int subclass; "true" is never a valid id or quantity
    if isinstance(value, bool):
        raise BadRequestError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise BadRequestError(f"{field} must be an integer", details={"field": field})


def parse_cents(raw: dict, key: str) -> int | None:
    """Read `<key>_cents` (integer) or `<key>` (decimal amount) from raw."""
    cents_key = f"{key}_cents"
    if raw.get(cents_key) is not None:
        return parse_int(raw[cents_key], cents_key)

    value = raw.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise BadRequestError(f"{key} must be a number", details={"field": key})
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise BadRequestError(f"{key} must be a number", details={"field": key})
    if not amount.is_finite():
        raise BadRequestError(f"{key} must be a number", details={"field": key})
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _as_list(raw: dict, key: str) -> list:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise BadRequestError(f"{key} must be a list", details={"field": key})
    return value


def _as_dict(value: Any, field: str) -> dict:
    if not isinstance(value, dict):
        raise BadRequestError(f"{field} must be an object", details={"field": field})
    return value


# =============================================================================
# PARSERS
# =============================================================================

def parse_client_info(raw: Any) -> ClientInfo | None:
    if raw is None:
        return None
    raw = _as_dict(raw, "client_info")
    email = _to_text(raw.get("email"))
    return ClientInfo(
        dni=_to_text(raw.get("dni")),
        name=_to_text(raw.get("name")),
        email=email.lower() if email else None,
        phone=_to_text(raw.get("phone")),
        address=_to_text(raw.get("address")),
        ruc=_to_text(raw.get("ruc")),
    )


def parse_payment_line(raw: Any, index: int) -> PaymentLine:
    raw = _as_dict(raw, f"payment_methods[{index}]")
    payment_type = (_to_text(raw.get("type")) or "").upper()
    if payment_type not in VALID_PAYMENT_TYPES:
        raise BadRequestError(
            f"Invalid payment type: {raw.get('type')}",
            details={"field": f"payment_methods[{index}].type", "allowed": list(VALID_PAYMENT_TYPES)},
        )
    amount_cents = parse_cents(raw, "amount")
    if amount_cents is None or amount_cents < 0:
        raise BadRequestError(
            "Payment amount must be zero or positive",
            details={"field": f"payment_methods[{index}].amount"},
        )
    return PaymentLine(type=payment_type, amount_cents=amount_cents)


def parse_product_line(raw: Any, index: int) -> ProductLine:
    raw = _as_dict(raw, f"products[{index}]")
    product_id = parse_int(raw.get("product_id"), "product_id")
    if product_id is None:
        raise BadRequestError("product_id is required", details={"field": f"products[{index}].product_id"})

    quantity = parse_int(raw.get("quantity"), "quantity")
    if quantity is None or quantity <= 0:
        raise BadRequestError(
            "Quantity must be a positive integer",
            details={"field": f"products[{index}].quantity", "product_id": product_id},
        )

    custom_price_cents = parse_cents(raw, "custom_price")
    if custom_price_cents is not None and custom_price_cents < 0:
        raise BadRequestError(
            "custom_price cannot be negative",
            details={"field": f"products[{index}].custom_price", "product_id": product_id},
        )

    return ProductLine(product_id=product_id, quantity=quantity, custom_price_cents=custom_price_cents)


def parse_service_line(raw: Any, index: int) -> ServiceLine:
    raw = _as_dict(raw, f"services[{index}]")
    name = _to_text(raw.get("name"))
    if not name:
        raise BadRequestError("Service name is required", details={"field": f"services[{index}].name"})

    price_cents = parse_cents(raw, "price")
    if price_cents is None or price_cents < 0:
        raise BadRequestError("Service price must be zero or positive", details={"field": f"services[{index}].price"})

    service_type = (_to_text(raw.get("type")) or SERVICE_TYPE_REPAIR).upper()
    if service_type not in VALID_SERVICE_TYPES:
        raise BadRequestError(
            f"Invalid service type: {raw.get('type')}",
            details={"field": f"services[{index}].type", "allowed": list(VALID_SERVICE_TYPES)},
        )

    return ServiceLine(
        name=name,
        price_cents=price_cents,
        type=service_type,
        description=_to_text(raw.get("description")),
    )


def parse_cart(raw: Any) -> Cart:
    """
    Parse a POST /api/orders body.

    Does not enforce "exactly one of client_id / client_info": that rule
    belongs to client resolution, which runs after the cash session checks.
    """
    if raw is None:
        raw = {}
    raw = _as_dict(raw, "body")

    cash_session_id = parse_int(raw.get("cash_session_id"), "cash_session_id")
    if cash_session_id is None:
        raise BadRequestError("cash_session_id is required", details={"field": "cash_session_id"})

    products = tuple(parse_product_line(item, i) for i, item in enumerate(_as_list(raw, "products")))
    services = tuple(parse_service_line(item, i) for i, item in enumerate(_as_list(raw, "services")))
    payments = tuple(parse_payment_line(item, i) for i, item in enumerate(_as_list(raw, "payment_methods")))

    if not products and not services:
        raise BadRequestError("Order must contain at least one product or service")

    return Cart(
        cash_session_id=cash_session_id,
        client_id=parse_int(raw.get("client_id"), "client_id"),
        client_info=parse_client_info(raw.get("client_info")),
        products=products,
        services=services,
        payment_methods=payments,
    )


def parse_service_payments(raw: Any) -> tuple[ServicePayment, ...]:
    """Parse the `services` list of a PATCH /api/orders/complete body."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise BadRequestError("services must be a list", details={"field": "services"})

    parsed = []
    for i, item in enumerate(raw):
        item = _as_dict(item, f"services[{i}]")
        service_id = parse_int(item.get("service_id"), "service_id")
        if service_id is None:
            raise BadRequestError("service_id is required", details={"field": f"services[{i}].service_id"})
        payments = tuple(
            parse_payment_line(p, j) for j, p in enumerate(_as_list(item, "payments"))
        )
        parsed.append(ServicePayment(service_id=service_id, payments=payments))
    return tuple(parsed)
