# Overview: Flask API routes for order operations; parses input and returns JSON responses.

"""
Order API Routes

DESIGN:
- Checkout for clients (and admins on a client's behalf)
- Field sales entered by salesmen for assigned shops
- Owner cancellation, staff status changes and sub-admin assignment

SECURITY:
- Capability checked once here via @require_permission
- Ownership / assignment scoping is enforced by order_service
"""

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..services import audit_service, order_service
from ..decorators import (
    require_actor,
    require_permission,
    ledger_error_response,
    internal_error_response,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# PLACEMENT
# =============================================================================

@orders_bp.post("")
@require_actor
@require_permission("PLACE_ORDER")
def place_order_route():
    """
    Check out an order.

    Request body:
    {
        "client_id": 12,                 (optional for clients; defaults to self)
        "items": [{"product_id": 1, "quantity": 2}],
        "payment_method": "cash",
        "initial_payment_cents": 50000,  (optional; omitted = pay in full)
        "total_cents": 120000,           (optional; must match catalog total)
        "defer_initial_payment": false,  (optional)
        "notes": "..."                   (optional)
    }

    Returns:
        201: Order created (with items)
        400: Invalid input, pending limit exceeded, insufficient credit
        403: Not allowed to order for this client
        409: Concurrent update, retry
    """
    try:
        data = request.get_json(silent=True) or {}

        payment_method = data.get("payment_method")
        if not payment_method or "items" not in data:
            return jsonify({"error": "items and payment_method required", "code": "VALIDATION_FAILED"}), 400

        order = order_service.place_order(
            g.actor,
            client_id=data.get("client_id", g.actor.user_id),
            items=data.get("items"),
            payment_method=payment_method,
            initial_payment_cents=data.get("initial_payment_cents"),
            declared_total_cents=data.get("total_cents"),
            defer_initial_payment=bool(data.get("defer_initial_payment", False)),
            notes=data.get("notes"),
        )
        return jsonify({"order": order.to_dict(include_items=True)}), 201

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to place order")


@orders_bp.post("/for-client")
@require_actor
@require_permission("CREATE_ORDER_FOR_CLIENT")
def create_order_for_client_route():
    """
    Salesman field sale.

    Request body:
    {
        "client_id": 12,
        "items": [{"product_id": 1, "quantity": 2}],
        "paid_cents": 20000,
        "brand_id": 3,        (optional)
        "notes": "..."        (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        client_id = data.get("client_id")
        if client_id is None or "items" not in data:
            return jsonify({"error": "client_id and items required", "code": "VALIDATION_FAILED"}), 400

        order = order_service.create_order_for_client(
            g.actor,
            client_id=client_id,
            items=data.get("items"),
            paid_cents=data.get("paid_cents", 0),
            brand_id=data.get("brand_id"),
            notes=data.get("notes"),
        )
        return jsonify({"order": order.to_dict(include_items=True)}), 201

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to create order for client")


# =============================================================================
# QUERIES
# =============================================================================

@orders_bp.get("/<int:order_id>")
@require_actor
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.actor, order_id)
        return jsonify({"order": order.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get order")


@orders_bp.get("/<int:order_id>/activity")
@require_actor
def order_activity_route(order_id: int):
    """Activity trail for an order (placement, payments, status changes)."""
    try:
        order_service.get_order(g.actor, order_id)
        entries = audit_service.list_activity("order", order_id)
        return jsonify({"activity": [e.to_dict() for e in entries]}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get order activity")


# =============================================================================
# LIFECYCLE
# =============================================================================

@orders_bp.post("/<int:order_id>/cancel")
@require_actor
@require_permission("CANCEL_OWN_ORDER")
def cancel_order_route(order_id: int):
    """Cancel your own order while it is still pending."""
    try:
        order = order_service.cancel_order(g.actor, order_id)
        return jsonify({"order": order.to_dict()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to cancel order")


@orders_bp.patch("/<int:order_id>/status")
@require_actor
@require_permission("MANAGE_ORDERS")
def update_order_status_route(order_id: int):
    """
    Request body:
    {
        "status": "processing"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required", "code": "VALIDATION_FAILED"}), 400

        order = order_service.update_order_status(g.actor, order_id, status)
        return jsonify({"order": order.to_dict()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to update order status")


@orders_bp.post("/<int:order_id>/assign")
@require_actor
@require_permission("ASSIGN_ORDERS")
def assign_order_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        sub_admin_id = data.get("sub_admin_id")
        if sub_admin_id is None:
            return jsonify({"error": "sub_admin_id required", "code": "VALIDATION_FAILED"}), 400

        order = order_service.assign_order(g.actor, order_id, sub_admin_id)
        return jsonify({"order": order.to_dict()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to assign order")
