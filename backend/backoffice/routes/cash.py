# Overview: Flask API routes for cash sessions and cash movements; parses input and returns JSON responses.

# backend/backoffice/routes/cash.py
"""
Cash Session API Routes

DESIGN:
- Session lifecycle: open -> close (terminal, never reopened)
- One open session per store
- Balance counts cash only; card/transfer/wallet payments are listed for
  reference but excluded from the drawer total
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import cash_session_service, cash_movement_service
from ..services.errors import ServiceError, BadRequestError
from ..services.order_schemas import parse_cents, parse_int
from ..decorators import require_auth


cash_bp = Blueprint("cash", __name__, url_prefix="/api")


@cash_bp.post("/cash-sessions")
@require_auth
def open_cash_session_route():
    """
    Open a cash session for a store.

    Request body:
    {
        "store_id": 1,
        "opening_amount_cents": 20000
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        store_id = parse_int(data.get("store_id"), "store_id")
        if store_id is None:
            raise BadRequestError("store_id is required", details={"field": "store_id"})
        opening = parse_cents(data, "opening_amount") or 0

        cash_session = cash_session_service.open_cash_session(store_id, opening, g.principal)
        return jsonify({"cash_session": cash_session.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open cash session")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/cash-sessions/<int:cash_session_id>/close")
@require_auth
def close_cash_session_route(cash_session_id: int):
    """
    Close a cash session.

    Request body:
    {
        "declared_amount_cents": 35000
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        declared = parse_cents(data, "declared_amount")
        if declared is None:
            raise BadRequestError("declared_amount_cents is required", details={"field": "declared_amount_cents"})

        cash_session = cash_session_service.close_cash_session(cash_session_id, declared, g.principal)
        return jsonify({"cash_session": cash_session.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close cash session")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/cash-sessions/<int:cash_session_id>/balance")
@require_auth
def cash_balance_route(cash_session_id: int):
    try:
        return jsonify(cash_movement_service.get_cash_balance(cash_session_id, g.principal)), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@cash_bp.get("/cash-sessions/<int:cash_session_id>/movements")
@require_auth
def list_cash_movements_route(cash_session_id: int):
    limit = min(request.args.get("limit", 100, type=int), 500)
    offset = request.args.get("offset", 0, type=int)
    try:
        movements, total = cash_movement_service.list_movements_by_session(
            cash_session_id, g.principal, limit=limit, offset=offset
        )
        return jsonify({
            "movements": [m.to_dict() for m in movements],
            "total": total,
            "limit": limit,
            "offset": offset,
        }), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@cash_bp.post("/cash-movements")
@require_auth
def create_cash_movement_route():
    """
    Record a manual cash movement.

    Request body:
    {
        "cash_session_id": 1,
        "type": "EXPENSE",
        "amount_cents": 1500,
        "payment_type": "EFECTIVO",  (optional, defaults to EFECTIVO)
        "description": "Cleaning supplies",
        "order_id": null  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        cash_session_id = parse_int(data.get("cash_session_id"), "cash_session_id")
        if cash_session_id is None:
            raise BadRequestError("cash_session_id is required", details={"field": "cash_session_id"})
        amount_cents = parse_cents(data, "amount")
        if amount_cents is None:
            raise BadRequestError("amount_cents is required", details={"field": "amount_cents"})

        movement = cash_movement_service.create_manual_movement(
            cash_session_id=cash_session_id,
            movement_type=data.get("type"),
            amount_cents=amount_cents,
            principal=g.principal,
            payment_type=str(data.get("payment_type") or "EFECTIVO").upper(),
            description=data.get("description"),
            order_id=parse_int(data.get("order_id"), "order_id"),
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create cash movement")
        return jsonify({"error": "Internal server error"}), 500
