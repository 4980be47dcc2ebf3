# Overview: Flask API routes for salesman shop and brand assignments.

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..services import assignment_service
from ..decorators import (
    require_actor,
    require_permission,
    ledger_error_response,
    internal_error_response,
)


salesmen_bp = Blueprint("salesmen", __name__, url_prefix="/api/salesmen")


@salesmen_bp.get("/<int:salesman_id>/assignments")
@require_actor
@require_permission("MANAGE_ASSIGNMENTS")
def list_assignments_route(salesman_id: int):
    try:
        shops = assignment_service.get_assigned_shops(salesman_id)
        brands = assignment_service.get_assigned_brands(salesman_id)
        return jsonify({
            "salesman_id": salesman_id,
            "shops": [s.to_dict() for s in shops],
            "brands": [b.to_dict() for b in brands],
        }), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to list assignments")


@salesmen_bp.post("/<int:salesman_id>/shops")
@require_actor
@require_permission("MANAGE_ASSIGNMENTS")
def assign_shop_route(salesman_id: int):
    """
    Request body:
    {
        "shop_id": 12
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        shop_id = data.get("shop_id")
        if shop_id is None:
            return jsonify({"error": "shop_id required", "code": "VALIDATION_FAILED"}), 400

        assignment = assignment_service.assign_shop(g.actor, salesman_id, shop_id)
        return jsonify({"assignment": assignment.to_dict()}), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to assign shop")


@salesmen_bp.delete("/<int:salesman_id>/shops/<int:shop_id>")
@require_actor
@require_permission("MANAGE_ASSIGNMENTS")
def unassign_shop_route(salesman_id: int, shop_id: int):
    try:
        assignment_service.unassign_shop(g.actor, salesman_id, shop_id)
        return jsonify({"ok": True}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to unassign shop")


@salesmen_bp.put("/<int:salesman_id>/brands")
@require_actor
@require_permission("MANAGE_ASSIGNMENTS")
def assign_brands_route(salesman_id: int):
    """
    Replace the salesman's brand set.

    Request body:
    {
        "brand_ids": [1, 2]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        brands = assignment_service.assign_brands(g.actor, salesman_id, data.get("brand_ids"))
        return jsonify({"brands": [b.to_dict() for b in brands]}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to assign brands")
