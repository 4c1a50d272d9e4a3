# Overview: Flask API routes for inventory movements and low-stock alerts; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import stock_service
from ..services.errors import ServiceError, BadRequestError
from ..services.order_schemas import parse_int
from ..decorators import require_auth


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.post("/inventory-movements")
@require_auth
def create_inventory_movement_route():
    """
    Record a manual stock movement.

    Request body:
    {
        "store_product_id": 5,
        "type": "INCOMING",  (INCOMING | OUTGOING | SALE | RETURN | ADJUST)
        "quantity": 12,
        "description": "Supplier delivery"
    }

    OUTGOING and SALE always decrease stock.
    """
    try:
        data = request.get_json(silent=True) or {}
        store_product_id = parse_int(data.get("store_product_id"), "store_product_id")
        if store_product_id is None:
            raise BadRequestError("store_product_id is required", details={"field": "store_product_id"})
        quantity = parse_int(data.get("quantity"), "quantity")
        if quantity is None:
            raise BadRequestError("quantity is required", details={"field": "quantity"})

        movement = stock_service.record_inventory_movement(
            store_product_id=store_product_id,
            movement_type=data.get("type"),
            quantity=quantity,
            principal=g.principal,
            description=data.get("description"),
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record inventory movement")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/inventory-movements")
@require_auth
def list_inventory_movements_route():
    limit = min(request.args.get("limit", 200, type=int), 1000)
    offset = request.args.get("offset", 0, type=int)
    try:
        movements, total = stock_service.list_inventory_movements(
            g.principal,
            store_id=request.args.get("store_id", type=int),
            store_product_id=request.args.get("store_product_id", type=int),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "movements": [m.to_dict() for m in movements],
            "total": total,
            "limit": limit,
            "offset": offset,
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/stores/<int:store_id>/low-stock")
@require_auth
def low_stock_route(store_id: int):
    try:
        products = stock_service.list_low_stock(store_id, g.principal)
        return jsonify({"store_products": [sp.to_dict() for sp in products]}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
