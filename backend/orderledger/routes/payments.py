# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment API Routes

DESIGN:
- Staff record completed payments (partial payments up to pending)
- Clients submit payment requests; staff approve or reject them
- Deferred initial payments and due-date scheduling
- Per-order payment summary, upcoming and overdue collections
- Payment reminders (list, seen, acknowledge) and uncollected initial payments
"""

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError, ValidationError
from ..services import payment_service, schedule_service
from ..services.ledger_math import to_cents
from ..decorators import (
    require_actor,
    require_permission,
    require_any_permission,
    ledger_error_response,
    internal_error_response,
)
from orderledger.time_utils import parse_iso_datetime


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _amount_cents(data: dict):
    """amount_cents (integer) wins; otherwise a decimal 'amount' such as '1234.50' is converted."""
    if data.get("amount_cents") is not None:
        return data["amount_cents"]
    if data.get("amount") is not None:
        return to_cents(data["amount"])
    return None


# =============================================================================
# PAYMENT RECORDING
# =============================================================================

@payments_bp.post("")
@require_actor
@require_any_permission("RECORD_PAYMENTS", "RECORD_FIELD_PAYMENTS")
def record_payment_route():
    """
    Record a completed payment against an order.

    Request body:
    {
        "order_id": 123,
        "amount_cents": 10000,
        "payment_method": "cash",
        "notes": "..."  (optional)
    }

    Returns:
        201: Payment recorded, with the order's updated payment summary
        400: Invalid amount / method, amount exceeds pending
        403: Order outside the salesman's assignments
    """
    try:
        data = request.get_json(silent=True) or {}

        order_id = data.get("order_id")
        amount_cents = _amount_cents(data)
        payment_method = data.get("payment_method")
        if order_id is None or amount_cents is None or not payment_method:
            return jsonify({
                "error": "order_id, amount_cents (or amount), and payment_method required",
                "code": "VALIDATION_FAILED",
            }), 400

        payment = payment_service.record_payment(
            g.actor, order_id, amount_cents, payment_method, data.get("notes")
        )
        summary = payment_service.get_payment_summary(g.actor, order_id)

        return jsonify({"payment": payment.to_dict(), "summary": summary}), 201

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to record payment")


# =============================================================================
# PAYMENT REQUESTS
# =============================================================================

@payments_bp.post("/requests")
@require_actor
@require_permission("REQUEST_PAYMENT")
def request_payment_route():
    """Client submits a payment against their own order for approval."""
    try:
        data = request.get_json(silent=True) or {}

        order_id = data.get("order_id")
        amount_cents = _amount_cents(data)
        payment_method = data.get("payment_method")
        if order_id is None or amount_cents is None or not payment_method:
            return jsonify({
                "error": "order_id, amount_cents (or amount), and payment_method required",
                "code": "VALIDATION_FAILED",
            }), 400

        payment = payment_service.request_payment(
            g.actor, order_id, amount_cents, payment_method, data.get("notes")
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to submit payment request")


@payments_bp.get("/requests")
@require_actor
@require_permission("REVIEW_PAYMENT_REQUESTS")
def list_payment_requests_route():
    try:
        status = request.args.get("status", "pending")
        payments = payment_service.list_payment_requests(g.actor, status=status or None)
        return jsonify({"payments": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to list payment requests")


@payments_bp.post("/<int:payment_id>/approve")
@require_actor
@require_permission("REVIEW_PAYMENT_REQUESTS")
def approve_payment_request_route(payment_id: int):
    try:
        payment = payment_service.approve_payment_request(g.actor, payment_id)
        return jsonify({"payment": payment.to_dict()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to approve payment request")


@payments_bp.post("/<int:payment_id>/reject")
@require_actor
@require_permission("REVIEW_PAYMENT_REQUESTS")
def reject_payment_request_route(payment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.reject_payment_request(g.actor, payment_id, data.get("reason"))
        return jsonify({"payment": payment.to_dict()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to reject payment request")


# =============================================================================
# ORDER PAYMENT STATE
# =============================================================================

@payments_bp.get("/orders/<int:order_id>")
@require_actor
def get_order_payments_route(order_id: int):
    """Ledger state and payment history for one order."""
    try:
        summary = payment_service.get_payment_summary(g.actor, order_id)
        return jsonify(summary), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get order payments")


@payments_bp.post("/orders/<int:order_id>/collect-initial")
@require_actor
@require_permission("MANAGE_PAYMENT_SCHEDULE")
def collect_initial_payment_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        payment = schedule_service.collect_initial_payment(
            g.actor, order_id, data.get("payment_method", "cash")
        )
        return jsonify({"payment": payment.to_dict()}), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to collect initial payment")


@payments_bp.post("/orders/<int:order_id>/due-date")
@require_actor
@require_permission("MANAGE_PAYMENT_SCHEDULE")
def set_due_date_route(order_id: int):
    """
    Request body:
    {
        "due_date": "2026-11-01",   (ISO-8601 date or datetime)
        "kind": "pending"           (initial | pending)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        try:
            due_date = parse_iso_datetime(data.get("due_date"))
        except (TypeError, ValueError, AttributeError):
            raise ValidationError("due_date must be an ISO-8601 date or datetime")
        if due_date is None:
            return jsonify({"error": "due_date required", "code": "VALIDATION_FAILED"}), 400

        reminder = schedule_service.set_payment_due_date(
            g.actor, order_id, due_date, data.get("kind", "pending")
        )
        return jsonify({"reminder": reminder.to_dict()}), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to set payment due date")


@payments_bp.get("/upcoming")
@require_actor
def upcoming_payments_route():
    try:
        days = request.args.get("days", type=int)
        payments = schedule_service.get_upcoming_payments(g.actor, days)
        return jsonify({"payments": payments, "count": len(payments)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get upcoming payments")


@payments_bp.get("/overdue")
@require_actor
def overdue_payments_route():
    try:
        payments = schedule_service.get_overdue_payments(g.actor)
        return jsonify({"payments": payments, "count": len(payments)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get overdue payments")


@payments_bp.get("/uncollected-initial")
@require_actor
def uncollected_initial_payments_route():
    try:
        payments = schedule_service.get_uncollected_initial_payments(g.actor)
        return jsonify({"payments": payments, "count": len(payments)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get uncollected initial payments")


# =============================================================================
# REMINDERS
# =============================================================================

@payments_bp.get("/reminders")
@require_actor
def list_reminders_route():
    """Query: ?include_acknowledged=true to also return dismissed reminders."""
    try:
        include_acknowledged = request.args.get("include_acknowledged", "false").lower() == "true"
        reminders = schedule_service.list_reminders(g.actor, include_acknowledged)
        return jsonify({"reminders": [r.to_dict() for r in reminders], "count": len(reminders)}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to get reminders")


@payments_bp.post("/reminders/<int:reminder_id>/seen")
@require_actor
def mark_reminder_seen_route(reminder_id: int):
    try:
        reminder = schedule_service.mark_reminder_seen(g.actor, reminder_id)
        return jsonify({"reminder": reminder.to_dict()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to update reminder")


@payments_bp.post("/reminders/<int:reminder_id>/acknowledge")
@require_actor
def acknowledge_reminder_route(reminder_id: int):
    try:
        reminder = schedule_service.acknowledge_reminder(g.actor, reminder_id)
        return jsonify({"reminder": reminder.to_dict()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to acknowledge reminder")
