# Overview: Flask API routes for client financial profiles; pending limits and credit wallets.

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..services import credit_service, order_service, pending_limit_service
from ..decorators import (
    require_actor,
    require_permission,
    ledger_error_response,
    internal_error_response,
)


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


# =============================================================================
# PENDING LIMITS
# =============================================================================

@clients_bp.get("/<int:client_id>/financial-status")
@require_actor
def financial_status_route(client_id: int):
    """Limit, current pending, remaining limit and lifetime totals."""
    try:
        status = pending_limit_service.get_client_financial_status(g.actor, client_id)
        return jsonify(status), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get client financial status")


@clients_bp.put("/<int:client_id>/pending-limit")
@require_actor
@require_permission("SET_PENDING_LIMIT")
def set_pending_limit_route(client_id: int):
    """
    Request body:
    {
        "pending_limit_cents": 500000   (null removes the limit)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if "pending_limit_cents" not in data:
            return jsonify({"error": "pending_limit_cents required", "code": "VALIDATION_FAILED"}), 400

        client = pending_limit_service.set_pending_limit(g.actor, client_id, data["pending_limit_cents"])
        return jsonify({"client": client.to_dict()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to set pending limit")


@clients_bp.post("/<int:client_id>/pending-limit/check")
@require_actor
def check_pending_limit_route(client_id: int):
    """
    Pre-checkout limit check.

    Request body:
    {
        "total_cents": 200000,
        "paid_cents": 50000
    }

    Returns 200 with the check result whether or not it is valid.
    """
    try:
        data = request.get_json(silent=True) or {}
        check = pending_limit_service.check_pending_limit(
            g.actor, client_id, data.get("total_cents"), data.get("paid_cents", 0)
        )
        return jsonify(check.to_dict()), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to check pending limit")


# =============================================================================
# ORDERS
# =============================================================================

@clients_bp.get("/<int:client_id>/orders")
@require_actor
def list_client_orders_route(client_id: int):
    """Order history for one client, newest first. Optional ?status= filter."""
    try:
        orders = order_service.list_client_orders(g.actor, client_id, request.args.get("status"))
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to list client orders")


# =============================================================================
# CREDIT WALLET
# =============================================================================

@clients_bp.get("/<int:client_id>/credit")
@require_actor
def get_credit_route(client_id: int):
    try:
        return jsonify(credit_service.get_client_credit(g.actor, client_id)), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get credit wallet")


@clients_bp.post("/<int:client_id>/credit")
@require_actor
@require_permission("MANAGE_CREDIT")
def adjust_credit_route(client_id: int):
    """
    Request body:
    {
        "amount_cents": 100000,
        "type": "add",            (add | deduct | adjustment)
        "description": "..."      (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        amount_cents = data.get("amount_cents")
        adjust_type = data.get("type")
        if amount_cents is None or not adjust_type:
            return jsonify({"error": "amount_cents and type required", "code": "VALIDATION_FAILED"}), 400

        tx = credit_service.adjust_credit(g.actor, client_id, amount_cents, adjust_type, data.get("description"))
        return jsonify({"transaction": tx.to_dict(), "wallet": credit_service.get_wallet(client_id)}), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to adjust credit")
