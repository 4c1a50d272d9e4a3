# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/backoffice/routes/orders.py
"""
Order API Routes

DESIGN:
- Handlers only parse input and serialize output; all rules live in
  order_service.
- Money is exchanged in integer cents (*_cents). Request bodies may also
  send decimal amounts ("price": 10.5), converted at the boundary.
- Cash movements triggered by an order are posted after it commits; a
  posting problem never turns a successful order into an error response.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service
from ..services.errors import ServiceError, BadRequestError
from ..services.order_schemas import parse_cart, parse_int, parse_service_payments
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_payload(order, *, receipt: bool = False) -> dict:
    payload = {"order": order.to_dict()}
    if receipt:
        payload["receipt"] = order_service.build_receipt(order)
    return payload


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order against an open cash session.

    Request body:
    {
        "cash_session_id": 1,
        "client_info": {"dni": "12345678", "name": "Ana", "email": "ana@example.com"},
        "products": [{"product_id": 3, "quantity": 2, "custom_price_cents": 900}],
        "services": [{"name": "Screen repair", "price_cents": 10000, "type": "REPAIR"}],
        "payment_methods": [{"type": "EFECTIVO", "amount_cents": 10000}]
    }

    Either "client_id" or "client_info" is required (not both).
    """
    try:
        cart = parse_cart(request.get_json(silent=True))
        order = order_service.create_order(cart, g.principal)
        return jsonify(_order_payload(order, receipt=True)), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    """Tenant orders visible to the caller (ADMIN: all; others: their stores)."""
    orders = order_service.list_orders_by_tenant(g.principal)
    return jsonify({"orders": [order.to_dict() for order in orders]}), 200


@orders_bp.get("/me")
@require_auth
def list_my_orders_route():
    orders = order_service.list_my_orders(g.principal)
    return jsonify({"orders": [order.to_dict() for order in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.find_order(order_id, g.principal)
        return jsonify(_order_payload(order, receipt=True)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.get("/store/<int:store_id>")
@require_auth
def list_store_orders_route(store_id: int):
    try:
        orders = order_service.list_orders_by_store(store_id, g.principal)
        return jsonify({"orders": [order.to_dict() for order in orders]}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    """
    Cancel an order (ADMIN or the order's creator).

    Restores stock, annuls services and refunds cash payments when the cash
    session is still open. A second cancel returns 400.
    """
    try:
        order = order_service.cancel_order(order_id, g.principal)
        return jsonify(_order_payload(order)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/complete")
@require_auth
def complete_order_route():
    """
    Add payments to a PENDING order and re-evaluate its status.

    Request body:
    {
        "order_id": 10,
        "services": [
            {"service_id": 4, "payments": [{"type": "EFECTIVO", "amount_cents": 5000}]}
        ]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order_id = parse_int(data.get("order_id"), "order_id")
        if order_id is None:
            raise BadRequestError("order_id is required", details={"field": "order_id"})

        service_payments = parse_service_payments(data.get("services"))
        order = order_service.complete_order(order_id, service_payments, g.principal)
        return jsonify(_order_payload(order, receipt=True)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/services/<int:service_id>/status")
@require_auth
def update_service_status_route(service_id: int):
    """
    Request body: {"status": "COMPLETED"} or {"status": "ANNULLATED"}
    """
    try:
        data = request.get_json(silent=True) or {}
        service = order_service.update_service_status(service_id, data.get("status"), g.principal)
        return jsonify({"service": service.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update service status")
        return jsonify({"error": "Internal server error"}), 500
