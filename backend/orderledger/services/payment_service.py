# Overview: Service-layer operations for payment; records payments and keeps order ledgers consistent.

"""
Payment Recording Service

DESIGN PRINCIPLES:
- Payments are separate from orders (many-to-one relationship)
- Partial payments: any amount up to the order's current pending amount
- Append-only: payment amounts never change; client requests move
  pending -> completed | rejected exactly once
- paid_cents / pending_cents / payment_status are always rewritten from the
  full completed-payment history (ledger_math.recompute_from_payments)

CONCURRENCY:
- The order row is locked FOR UPDATE (BEGIN IMMEDIATE on SQLite) before the
  pending amount is read, and Order.version_id guards the write.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import AuthorizationError, InsufficientFundsError, NotFoundError, ValidationError
from ..models import Order, Payment, SalesmanShopAssignment, User
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    METHOD_CREDIT_BALANCE,
    VALID_PAYMENT_METHODS,
    PAYMENT_PENDING,
    PAYMENT_COMPLETED,
    PAYMENT_REJECTED,
)
from ..permissions import Role
from orderledger.time_utils import utcnow
from .assignment_service import authorize_order_access, is_shop_assigned
from .authz import ActorContext, require, require_any
from .concurrency import begin_write, lock_for_update, run_in_transaction
from .ledger_math import recompute_from_payments, format_cents
from . import audit_service


# =============================================================================
# LEDGER RECOMPUTATION
# =============================================================================

def completed_payments(order_id: int) -> list[Payment]:
    return (
        db.session.query(Payment)
        .filter(Payment.order_id == order_id, Payment.status == PAYMENT_COMPLETED)
        .order_by(Payment.id.asc())
        .all()
    )


def recompute_order_ledger(order: Order):
    """
    Rewrite the order's financial fields from its payment history.

    Must be called inside the caller's unit of work; does not commit.
    """
    state = recompute_from_payments(order.total_cents, completed_payments(order.id))
    order.paid_cents = state.paid_cents
    order.pending_cents = state.pending_cents
    order.payment_status = state.status
    return state


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _validate_amount(amount_cents) -> None:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("Payment amount must be an integer number of cents")
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be greater than 0", details={"amount_cents": amount_cents})


def _validate_method(method: str) -> None:
    # Wallet spending only happens at checkout
    if method not in VALID_PAYMENT_METHODS or method == METHOD_CREDIT_BALANCE:
        allowed = [m for m in VALID_PAYMENT_METHODS if m != METHOD_CREDIT_BALANCE]
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {allowed}")


def _check_against_pending(order: Order, amount_cents: int) -> None:
    if order.status == ORDER_STATUS_CANCELLED:
        raise ValidationError(
            "Cannot record payment for a cancelled order",
            details={"order_id": order.id, "order_number": order.order_number},
        )
    if amount_cents > order.pending_cents:
        raise InsufficientFundsError(
            f"Payment amount ({format_cents(amount_cents)}) exceeds pending amount "
            f"({format_cents(order.pending_cents)})",
            details={
                "order_id": order.id,
                "amount_cents": amount_cents,
                "pending_cents": order.pending_cents,
            },
        )


def _lock_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id).populate_existing()).first()
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    return order


def _authorize_payment_recording(actor: ActorContext, order: Order) -> None:
    if actor.has("RECORD_PAYMENTS"):
        return
    if actor.has("RECORD_FIELD_PAYMENTS"):
        if order.recorded_by_user_id == actor.user_id:
            return
        client = order.client
        if client is not None and (
            client.assigned_salesman_id == actor.user_id or is_shop_assigned(actor.user_id, client.id)
        ):
            return
        raise AuthorizationError(
            "You can only record payments for orders you created or clients assigned to you",
            details={"order_id": order.id},
        )
    raise AuthorizationError(
        f"Role '{actor.role.value}' cannot record payments",
        details={"required_permissions": ["RECORD_PAYMENTS", "RECORD_FIELD_PAYMENTS"]},
    )


# =============================================================================
# PAYMENT RECORDING
# =============================================================================

def _record_payment_locked(actor: ActorContext, order: Order, amount_cents: int, method: str, notes: str | None) -> Payment:
    """Inner write (no commit). Caller holds the order lock."""
    _check_against_pending(order, amount_cents)
    payment = Payment(
        order_id=order.id,
        amount_cents=amount_cents,
        payment_method=method,
        status=PAYMENT_COMPLETED,
        recorded_by_user_id=actor.user_id,
        notes=notes,
        created_at=utcnow(),
    )
    db.session.add(payment)
    db.session.flush()
    recompute_order_ledger(order)
    return payment


def record_payment(
    actor: ActorContext,
    order_id: int,
    amount_cents: int,
    method: str,
    notes: str | None = None,
) -> Payment:
    """
    Record a completed payment against an order.

    Raises:
        ValidationError: bad amount / method, cancelled order
        InsufficientFundsError: amount exceeds the order's pending amount
        AuthorizationError: actor may not record payments for this order
    """
    require_any(actor, "RECORD_PAYMENTS", "RECORD_FIELD_PAYMENTS")
    _validate_amount(amount_cents)
    _validate_method(method)

    def _op():
        begin_write()
        order = _lock_order(order_id)
        _authorize_payment_recording(actor, order)
        payment = _record_payment_locked(actor, order, amount_cents, method, notes)
        db.session.commit()
        return payment, order

    payment, order = run_in_transaction(
        _op,
        context={"order_id": order_id, "amount_cents": amount_cents, "actor_id": actor.user_id},
    )

    current_app.logger.info(
        "Payment of %s cents recorded on order %s (paid=%s pending=%s status=%s)",
        amount_cents, order.order_number, order.paid_cents, order.pending_cents, order.payment_status,
    )
    audit_service.record_activity(
        actor,
        "payment_recorded",
        "order",
        order_id,
        {
            "payment_id": payment.id,
            "amount_cents": amount_cents,
            "payment_method": method,
            "pending_cents": order.pending_cents,
        },
    )
    return payment


# =============================================================================
# CLIENT PAYMENT REQUESTS
# =============================================================================

def request_payment(
    actor: ActorContext,
    order_id: int,
    amount_cents: int,
    method: str,
    notes: str | None = None,
) -> Payment:
    """Owning client submits a payment for staff approval. The ledger is untouched."""
    require(actor, "REQUEST_PAYMENT")
    _validate_amount(amount_cents)
    _validate_method(method)

    def _op():
        begin_write()
        order = _lock_order(order_id)
        if order.user_id != actor.user_id:
            raise AuthorizationError("You can only submit payments for your own orders", details={"order_id": order_id})
        _check_against_pending(order, amount_cents)
        payment = Payment(
            order_id=order.id,
            amount_cents=amount_cents,
            payment_method=method,
            status=PAYMENT_PENDING,
            recorded_by_user_id=actor.user_id,
            notes=notes,
            created_at=utcnow(),
        )
        db.session.add(payment)
        db.session.commit()
        return payment

    payment = run_in_transaction(_op, context={"order_id": order_id, "amount_cents": amount_cents})

    current_app.logger.info("Payment request %s submitted for order %s", payment.id, order_id)
    audit_service.record_activity(
        actor, "payment_requested", "order", order_id, {"payment_id": payment.id, "amount_cents": amount_cents}
    )
    return payment


def _load_request_locked(payment_id: int) -> tuple[Payment, Order]:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment request not found", details={"payment_id": payment_id})
    order = _lock_order(payment.order_id)
    # Re-read after the order lock so a concurrent review is visible
    db.session.refresh(payment)
    if payment.status != PAYMENT_PENDING:
        raise ValidationError(
            f"Payment request has already been {payment.status}",
            details={"payment_id": payment_id, "status": payment.status},
        )
    return payment, order


def approve_payment_request(actor: ActorContext, payment_id: int) -> Payment:
    """Complete a client payment request; the amount is re-checked against current pending."""
    require(actor, "REVIEW_PAYMENT_REQUESTS")

    def _op():
        begin_write()
        payment, order = _load_request_locked(payment_id)
        authorize_order_access(actor, order, "REVIEW_PAYMENT_REQUESTS")
        _check_against_pending(order, payment.amount_cents)
        payment.status = PAYMENT_COMPLETED
        payment.reviewed_by_user_id = actor.user_id
        payment.reviewed_at = utcnow()
        db.session.flush()
        recompute_order_ledger(order)
        db.session.commit()
        return payment, order

    payment, order = run_in_transaction(_op, context={"payment_id": payment_id, "actor_id": actor.user_id})

    current_app.logger.info(
        "Payment request %s approved on order %s (pending=%s)", payment_id, order.order_number, order.pending_cents
    )
    audit_service.record_activity(
        actor, "payment_approved", "order", order.id, {"payment_id": payment_id, "amount_cents": payment.amount_cents}
    )
    return payment


def reject_payment_request(actor: ActorContext, payment_id: int, reason: str | None = None) -> Payment:
    require(actor, "REVIEW_PAYMENT_REQUESTS")

    def _op():
        begin_write()
        payment, order = _load_request_locked(payment_id)
        authorize_order_access(actor, order, "REVIEW_PAYMENT_REQUESTS")
        payment.status = PAYMENT_REJECTED
        payment.reviewed_by_user_id = actor.user_id
        payment.reviewed_at = utcnow()
        if reason:
            payment.notes = f"{payment.notes} | Rejected: {reason}" if payment.notes else f"Rejected: {reason}"
        db.session.commit()
        return payment

    payment = run_in_transaction(_op, context={"payment_id": payment_id, "actor_id": actor.user_id})

    current_app.logger.info("Payment request %s rejected", payment_id)
    audit_service.record_activity(
        actor, "payment_rejected", "order", payment.order_id, {"payment_id": payment_id, "reason": reason}
    )
    return payment


def list_payment_requests(actor: ActorContext, status: str = PAYMENT_PENDING) -> list[Payment]:
    """
    Requests visible to the reviewer.

    Salesmen see requests on orders they recorded or for shops assigned to
    them; admin and sub-admin see everything.
    """
    require(actor, "REVIEW_PAYMENT_REQUESTS")
    query = db.session.query(Payment).join(Order, Order.id == Payment.order_id)
    if status:
        query = query.filter(Payment.status == status)
    if actor.role == Role.SALESMAN:
        assigned_shops = db.session.query(SalesmanShopAssignment.shop_id).filter(
            SalesmanShopAssignment.salesman_id == actor.user_id
        )
        direct_clients = db.session.query(User.id).filter(User.assigned_salesman_id == actor.user_id)
        query = query.filter(
            or_(
                Order.recorded_by_user_id == actor.user_id,
                Order.user_id.in_(assigned_shops),
                Order.user_id.in_(direct_clients),
            )
        )
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()


# =============================================================================
# QUERIES / MAINTENANCE
# =============================================================================

def get_payment_summary(actor: ActorContext, order_id: int) -> dict:
    """Ledger state plus the full payment history for one order."""
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    authorize_order_access(actor, order, "VIEW_ALL_ORDERS")

    payments = (
        db.session.query(Payment)
        .filter(Payment.order_id == order_id)
        .order_by(Payment.id.asc())
        .all()
    )
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "total_cents": order.total_cents,
        "paid_cents": order.paid_cents,
        "pending_cents": order.pending_cents,
        "payment_status": order.payment_status,
        "payments": [p.to_dict() for p in payments],
    }


def reconcile_order_ledgers(fix: bool = False) -> list[dict]:
    """
    Recompute every order from its payments and report drift.

    With fix=True the stored values are rewritten; each order is fixed in
    its own locked unit of work.
    """
    drift = []
    order_ids = [row.id for row in db.session.query(Order.id).order_by(Order.id.asc()).all()]
    for order_id in order_ids:
        order = db.session.get(Order, order_id)
        state = recompute_from_payments(order.total_cents, completed_payments(order_id))
        stored = (order.paid_cents, order.pending_cents, order.payment_status)
        if stored == (state.paid_cents, state.pending_cents, state.status):
            continue
        entry = {
            "order_id": order_id,
            "order_number": order.order_number,
            "stored": {"paid_cents": stored[0], "pending_cents": stored[1], "payment_status": stored[2]},
            "recomputed": state.to_dict(),
            "fixed": False,
        }
        if fix:
            def _op(order_id=order_id):
                begin_write()
                locked = _lock_order(order_id)
                recompute_order_ledger(locked)
                db.session.commit()

            run_in_transaction(_op, context={"order_id": order_id, "operation": "reconcile"})
            entry["fixed"] = True
            current_app.logger.warning("Ledger drift fixed on order %s: %s", order_id, entry)
        drift.append(entry)
    return drift
