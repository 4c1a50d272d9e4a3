# Overview: Flask API routes for clients; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import client_service
from ..services.errors import ServiceError
from ..services.order_schemas import parse_client_info
from ..decorators import require_auth


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    limit = min(request.args.get("limit", 100, type=int), 500)
    offset = request.args.get("offset", 0, type=int)
    clients, total = client_service.list_clients(g.principal, limit=limit, offset=offset)
    return jsonify({
        "clients": [c.to_dict() for c in clients],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@clients_bp.post("")
@require_auth
def create_client_route():
    """
    Request body:
    {
        "name": "Ana Pérez",
        "dni": "12345678",
        "email": "ana@example.com",
        "phone": "999888777",
        "address": "Av. Lima 123",
        "ruc": null
    }
    """
    try:
        info = parse_client_info(request.get_json(silent=True) or {})
        client = client_service.create_client(g.principal, info)
        return jsonify({"client": client.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/search")
@require_auth
def search_clients_route():
    """GET /api/clients/search?q=ana (at least 3 characters, max 20 results)."""
    try:
        clients = client_service.search_clients(g.principal, request.args.get("q"))
        return jsonify({"clients": [c.to_dict() for c in clients]}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    try:
        client = client_service.get_client(client_id, g.principal)
        return jsonify({"client": client.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@clients_bp.patch("/<int:client_id>")
@require_auth
def update_client_route(client_id: int):
    try:
        info = parse_client_info(request.get_json(silent=True) or {})
        client = client_service.update_client(client_id, g.principal, info)
        return jsonify({"client": client.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update client")
        return jsonify({"error": "Internal server error"}), 500
