# Overview: Flask API routes for reporting; dashboards, pending rollups and salesman ledgers.

from flask import Blueprint, request, jsonify, g

from ..errors import AuthorizationError, LedgerError
from ..services import reporting_service
from ..decorators import (
    require_actor,
    require_permission,
    ledger_error_response,
    internal_error_response,
)


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _require_salesman_self_or_reports(salesman_id: int) -> None:
    """Salesmen read their own ledgers; staff with VIEW_REPORTS read anyone's."""
    if g.actor.has("VIEW_REPORTS"):
        return
    if g.actor.has("VIEW_OWN_LEDGER") and g.actor.user_id == salesman_id:
        return
    raise AuthorizationError(
        "You can only view your own salesman ledger",
        details={"salesman_id": salesman_id},
    )


@reports_bp.get("/dashboard")
@require_actor
@require_permission("VIEW_REPORTS")
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard_stats()), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to build dashboard")


@reports_bp.get("/brand-pending")
@require_actor
@require_permission("VIEW_REPORTS")
def brand_pending_route():
    try:
        salesman_id = request.args.get("salesman_id", type=int)
        rows = reporting_service.brand_pending_breakdown(salesman_id)
        return jsonify({"brands": rows}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to build brand pending breakdown")


@reports_bp.get("/salesmen")
@require_actor
@require_permission("VIEW_REPORTS")
def salesmen_performance_route():
    try:
        return jsonify({"salesmen": reporting_service.salesman_performance()}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to build salesman performance")


@reports_bp.get("/salesmen/<int:salesman_id>/dashboard")
@require_actor
def salesman_dashboard_route(salesman_id: int):
    try:
        _require_salesman_self_or_reports(salesman_id)
        return jsonify(reporting_service.salesman_dashboard(salesman_id)), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to build salesman dashboard")


@reports_bp.get("/salesmen/<int:salesman_id>/shops/<int:shop_id>/ledger")
@require_actor
def salesman_shop_ledger_route(salesman_id: int, shop_id: int):
    try:
        _require_salesman_self_or_reports(salesman_id)
        return jsonify(reporting_service.salesman_shop_ledger(salesman_id, shop_id)), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to build shop ledger")


@reports_bp.get("/pending-payments")
@require_actor
@require_permission("VIEW_REPORTS")
def pending_payments_route():
    try:
        rows = reporting_service.consolidated_pending_payments()
        return jsonify({
            "orders": rows,
            "count": len(rows),
            "total_pending_cents": sum(r["pending_cents"] for r in rows),
        }), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to build pending payments report")


@reports_bp.get("/shop-limits")
@require_actor
@require_permission("VIEW_REPORTS")
def shop_limits_route():
    try:
        rows = reporting_service.shop_limit_report(request.args.get("role"))
        return jsonify({"shops": rows}), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return internal_error_response("Failed to build shop limit report")
