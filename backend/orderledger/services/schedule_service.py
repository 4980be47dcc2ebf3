# Overview: Service-layer operations for payment schedules; deferred initial payments, due dates and reminders.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import and_, or_

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import Order, PaymentReminder
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    INITIAL_PAYMENT_NOT_COLLECTED,
    INITIAL_PAYMENT_COLLECTED,
    METHOD_CASH,
    VALID_PAYMENT_METHODS,
    METHOD_CREDIT_BALANCE,
)
from ..permissions import Role
from orderledger.time_utils import utcnow, to_utc_z
from .assignment_service import authorize_order_access
from .authz import ActorContext, require
from .concurrency import begin_write, lock_for_update, run_in_transaction
from .payment_service import _authorize_payment_recording, _record_payment_locked
from . import audit_service


DUE_KIND_INITIAL = "initial"
DUE_KIND_PENDING = "pending"
VALID_DUE_KINDS = [DUE_KIND_INITIAL, DUE_KIND_PENDING]

REMINDER_INITIAL_DUE = "initial_due"
REMINDER_PENDING_DUE = "pending_due"


def _lock_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id).populate_existing()).first()
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    return order


def collect_initial_payment(actor: ActorContext, order_id: int, method: str = METHOD_CASH):
    """
    Collect a deferred initial payment.

    The amount goes through the normal payment path, so it can never exceed
    the order's current pending amount.
    """
    require(actor, "MANAGE_PAYMENT_SCHEDULE")
    if method not in VALID_PAYMENT_METHODS or method == METHOD_CREDIT_BALANCE:
        raise ValidationError(f"Invalid payment method: {method}")

    def _op():
        begin_write()
        order = _lock_order(order_id)
        if actor.role == Role.SALESMAN and order.recorded_by_user_id != actor.user_id:
            raise AuthorizationError(
                "Only the salesman who recorded the order can collect its initial payment",
                details={"order_id": order_id},
            )
        _authorize_payment_recording(actor, order)
        if order.initial_payment_status != INITIAL_PAYMENT_NOT_COLLECTED or not order.initial_payment_required_cents:
            raise ValidationError(
                "Order has no initial payment waiting to be collected",
                details={"order_id": order_id, "initial_payment_status": order.initial_payment_status},
            )
        payment = _record_payment_locked(
            actor, order, order.initial_payment_required_cents, method, "Initial payment collected"
        )
        order.initial_payment_status = INITIAL_PAYMENT_COLLECTED
        db.session.commit()
        return payment, order

    payment, order = run_in_transaction(_op, context={"order_id": order_id, "actor_id": actor.user_id})

    current_app.logger.info(
        "Initial payment of %s cents collected on order %s", payment.amount_cents, order.order_number
    )
    audit_service.record_activity(
        actor, "initial_payment_collected", "order", order_id, {"payment_id": payment.id, "amount_cents": payment.amount_cents}
    )
    return payment


def set_payment_due_date(actor: ActorContext, order_id: int, due_date: datetime, kind: str) -> PaymentReminder:
    require(actor, "MANAGE_PAYMENT_SCHEDULE")
    if kind not in VALID_DUE_KINDS:
        raise ValidationError(f"Invalid due date kind: {kind}. Must be one of {VALID_DUE_KINDS}")
    if not isinstance(due_date, datetime):
        raise ValidationError("due_date must be a datetime")

    def _op():
        begin_write()
        order = _lock_order(order_id)
        authorize_order_access(actor, order, "MANAGE_PAYMENT_SCHEDULE")
        if order.status == ORDER_STATUS_CANCELLED:
            raise ValidationError("Cannot schedule payments for a cancelled order", details={"order_id": order_id})

        if kind == DUE_KIND_INITIAL:
            if order.initial_payment_status != INITIAL_PAYMENT_NOT_COLLECTED:
                raise ValidationError(
                    "Order has no initial payment waiting to be collected", details={"order_id": order_id}
                )
            order.initial_payment_due_date = due_date
            reminder_type, amount = REMINDER_INITIAL_DUE, order.initial_payment_required_cents
        else:
            if order.pending_cents <= 0:
                raise ValidationError("Order has no pending amount", details={"order_id": order_id})
            order.pending_payment_due_date = due_date
            reminder_type, amount = REMINDER_PENDING_DUE, order.pending_cents

        reminder = PaymentReminder(
            order_id=order.id,
            user_id=order.user_id,
            reminder_type=reminder_type,
            due_date=due_date,
            amount_cents=amount,
            created_at=utcnow(),
        )
        db.session.add(reminder)
        db.session.commit()
        return reminder

    reminder = run_in_transaction(_op, context={"order_id": order_id, "kind": kind})

    current_app.logger.info("%s due date for order %s set to %s", kind, order_id, due_date)
    audit_service.record_activity(
        actor, "payment_due_date_set", "order", order_id, {"kind": kind, "due_date": due_date.isoformat()}
    )
    return reminder


def _scoped_orders(actor: ActorContext):
    query = db.session.query(Order).filter(Order.status != ORDER_STATUS_CANCELLED)
    if actor.role == Role.SALESMAN:
        return query.filter(Order.recorded_by_user_id == actor.user_id)
    if actor.role.is_client:
        return query.filter(Order.user_id == actor.user_id)
    require(actor, "VIEW_ALL_ORDERS")
    return query


def _due_entries(orders, start: datetime | None, end: datetime) -> list[dict]:
    entries = []
    for order in orders:
        if (
            order.initial_payment_status == INITIAL_PAYMENT_NOT_COLLECTED
            and order.initial_payment_due_date is not None
            and (start is None or order.initial_payment_due_date >= start)
            and order.initial_payment_due_date < end
        ):
            entries.append(_entry(order, DUE_KIND_INITIAL, order.initial_payment_due_date, order.initial_payment_required_cents))
        if (
            order.pending_cents > 0
            and order.pending_payment_due_date is not None
            and (start is None or order.pending_payment_due_date >= start)
            and order.pending_payment_due_date < end
        ):
            entries.append(_entry(order, DUE_KIND_PENDING, order.pending_payment_due_date, order.pending_cents))
    entries.sort(key=lambda e: (e["_due"], e["order_id"]))
    for entry in entries:
        del entry["_due"]
    return entries


def _entry(order: Order, kind: str, due: datetime, amount: int) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "client_id": order.user_id,
        "client_name": order.client.full_name if order.client else None,
        "kind": kind,
        "due_date": to_utc_z(due),
        "amount_cents": amount,
        "_due": due,
    }


def _with_due_dates(query):
    return query.filter(
        or_(
            and_(
                Order.initial_payment_status == INITIAL_PAYMENT_NOT_COLLECTED,
                Order.initial_payment_due_date.isnot(None),
            ),
            and_(Order.pending_cents > 0, Order.pending_payment_due_date.isnot(None)),
        )
    )


def get_upcoming_payments(actor: ActorContext, days: int | None = None) -> list[dict]:
    if days is None:
        days = current_app.config.get("UPCOMING_PAYMENT_WINDOW_DAYS", 30)
    if days <= 0:
        raise ValidationError("days must be positive", details={"days": days})
    now = utcnow()
    orders = _with_due_dates(_scoped_orders(actor)).all()
    return _due_entries(orders, now, now + timedelta(days=days))


def get_overdue_payments(actor: ActorContext) -> list[dict]:
    orders = _with_due_dates(_scoped_orders(actor)).all()
    return _due_entries(orders, None, utcnow())


# =============================================================================
# REMINDERS
# =============================================================================

def _scoped_reminders(actor: ActorContext):
    query = db.session.query(PaymentReminder)
    if actor.role == Role.SALESMAN:
        return query.join(Order, PaymentReminder.order_id == Order.id).filter(
            Order.recorded_by_user_id == actor.user_id
        )
    if actor.role.is_client:
        return query.filter(PaymentReminder.user_id == actor.user_id)
    require(actor, "VIEW_ALL_ORDERS")
    return query


def list_reminders(actor: ActorContext, include_acknowledged: bool = False) -> list[PaymentReminder]:
    """
    Reminders visible to the actor, soonest due first.

    Clients see their own, salesmen see those on orders they recorded,
    order managers see all. Acknowledged reminders are hidden unless asked for.
    """
    query = _scoped_reminders(actor)
    if not include_acknowledged:
        query = query.filter(PaymentReminder.is_acknowledged.is_(False))
    return query.order_by(PaymentReminder.due_date.asc(), PaymentReminder.id.asc()).all()


def _update_reminder(actor: ActorContext, reminder_id: int, acknowledge: bool) -> PaymentReminder:
    def _op():
        begin_write()
        reminder = _scoped_reminders(actor).filter(PaymentReminder.id == reminder_id).first()
        if reminder is None:
            raise NotFoundError("Reminder not found", details={"reminder_id": reminder_id})
        now = utcnow()
        if not reminder.is_seen:
            reminder.is_seen = True
            reminder.seen_at = now
        if acknowledge and not reminder.is_acknowledged:
            reminder.is_acknowledged = True
            reminder.acknowledged_at = now
        db.session.commit()
        return reminder

    return run_in_transaction(_op, context={"reminder_id": reminder_id, "actor_id": actor.user_id})


def mark_reminder_seen(actor: ActorContext, reminder_id: int) -> PaymentReminder:
    """Idempotent; the first seen_at is kept."""
    return _update_reminder(actor, reminder_id, acknowledge=False)


def acknowledge_reminder(actor: ActorContext, reminder_id: int) -> PaymentReminder:
    """Dismiss a reminder. Acknowledging also marks it seen."""
    reminder = _update_reminder(actor, reminder_id, acknowledge=True)
    audit_service.record_activity(
        actor, "payment_reminder_acknowledged", "order", reminder.order_id, {"reminder_id": reminder.id}
    )
    return reminder


def get_uncollected_initial_payments(actor: ActorContext) -> list[dict]:
    """Deferred initial payments not yet collected, with or without a due date. Newest orders first."""
    orders = (
        _scoped_orders(actor)
        .filter(
            Order.initial_payment_status == INITIAL_PAYMENT_NOT_COLLECTED,
            Order.initial_payment_required_cents.isnot(None),
            Order.initial_payment_required_cents > 0,
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [
        {
            "order_id": order.id,
            "order_number": order.order_number,
            "client_id": order.user_id,
            "client_name": order.client.full_name if order.client else None,
            "recorded_by_user_id": order.recorded_by_user_id,
            "total_cents": order.total_cents,
            "amount_cents": order.initial_payment_required_cents,
            "due_date": to_utc_z(order.initial_payment_due_date),
            "created_at": to_utc_z(order.created_at),
        }
        for order in orders
    ]
