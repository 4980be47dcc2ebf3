# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..services import inventory_service
from ..decorators import (
    require_actor,
    require_permission,
    ledger_error_response,
    internal_error_response,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjust")
@require_actor
@require_permission("ADJUST_INVENTORY")
def adjust_stock_route():
    """
    Manual restock or correction.

    Request body:
    {
        "product_id": 1,
        "quantity_delta": -3,
        "reason": "Damaged in storage"
    }

    Returns:
        201: Inventory log row for the change
        400: Result would be negative, missing reason
    """
    try:
        data = request.get_json(silent=True) or {}

        product_id = data.get("product_id")
        delta = data.get("quantity_delta")
        if product_id is None or delta is None:
            return jsonify({"error": "product_id and quantity_delta required", "code": "VALIDATION_FAILED"}), 400

        log = inventory_service.adjust_stock(g.actor, product_id, delta, data.get("reason"))
        return jsonify({"log": log.to_dict()}), 201

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to adjust stock")


@inventory_bp.get("/products/<int:product_id>/logs")
@require_actor
@require_permission("VIEW_INVENTORY")
def inventory_logs_route(product_id: int):
    try:
        limit = min(request.args.get("limit", default=200, type=int), 1000)
        logs = inventory_service.get_inventory_logs(product_id, limit=limit)
        return jsonify({"logs": [log.to_dict() for log in logs], "count": len(logs)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get inventory logs")


@inventory_bp.get("/low-stock")
@require_actor
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    try:
        threshold = request.args.get("threshold", type=int)
        products = inventory_service.get_low_stock(threshold)
        return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get low stock products")
