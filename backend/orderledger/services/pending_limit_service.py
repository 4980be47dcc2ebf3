# Overview: Service-layer operations for client pending limits; evaluates and administers soft credit lines.

"""
Pending-Limit Service

A client's pending limit caps the total outstanding (unpaid) amount across
their open orders.

LIMIT SEMANTICS:
- pending_limit_cents IS NULL -> unbounded
- pending_limit_cents == 0    -> no pending allowed (full payment only)
- pending_limit_cents == N    -> current_pending + new_pending <= N

CURRENT PENDING:
- Sum of pending_cents over the client's orders with status != cancelled
  and payment_status != paid. The reporting views use the same filter.

validate_pending_limit() never raises for a limit breach; it returns a
PendingLimitCheck. The order engine turns an invalid result into
PendingLimitExceeded inside its own serialized unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import User, Order
from ..models.orders import ORDER_STATUS_CANCELLED
from ..permissions import Role
from .assignment_service import authorize_client_access
from .authz import ActorContext, require
from .concurrency import begin_write, lock_for_update, run_in_transaction
from .ledger_math import PAYMENT_STATUS_PAID, format_cents
from . import audit_service


@dataclass(frozen=True)
class PendingLimitCheck:
    valid: bool
    reason: str | None
    current_pending_cents: int
    new_pending_cents: int
    limit_cents: int | None
    total_after_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


def open_pending_filter():
    """Filter clauses shared by every 'outstanding pending' rollup."""
    return (
        Order.status != ORDER_STATUS_CANCELLED,
        Order.payment_status != PAYMENT_STATUS_PAID,
    )


def current_pending_cents(client_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Order.pending_cents), 0))
        .filter(Order.user_id == client_id, *open_pending_filter())
        .scalar()
    )
    return int(total or 0)


def evaluate_pending_limit(
    current_pending: int,
    limit_cents: int | None,
    order_total_cents: int,
    paid_now_cents: int,
    currency_symbol: str = "Rs.",
) -> PendingLimitCheck:
    """Pure decision over already-loaded numbers."""
    new_pending = max(0, order_total_cents - paid_now_cents)
    total_after = current_pending + new_pending

    if new_pending <= 0:
        return PendingLimitCheck(True, None, current_pending, 0, limit_cents, current_pending)

    if limit_cents is not None and total_after > limit_cents:
        reason = (
            f"Pending amount limit exceeded. Current pending: {format_cents(current_pending, currency_symbol)}, "
            f"New pending: {format_cents(new_pending, currency_symbol)}, "
            f"Limit: {format_cents(limit_cents, currency_symbol)}"
        )
        return PendingLimitCheck(False, reason, current_pending, new_pending, limit_cents, total_after)

    return PendingLimitCheck(True, None, current_pending, new_pending, limit_cents, total_after)


def validate_pending_limit(client_id: int, order_total_cents: int, paid_now_cents: int) -> PendingLimitCheck:
    """
    Check whether a new order keeps the client inside their pending limit.

    Reads the current state; callers that act on the answer must hold the
    client lock (order_service does).
    """
    client = db.session.get(User, client_id)
    if client is None:
        raise NotFoundError("Client not found", details={"client_id": client_id})
    return evaluate_pending_limit(
        current_pending_cents(client_id),
        client.pending_limit_cents,
        order_total_cents,
        paid_now_cents,
        current_app.config.get("CURRENCY_SYMBOL", "Rs."),
    )


def get_client_financial_status(actor: ActorContext, client_id: int) -> dict:
    """
    Limit, outstanding pending and lifetime totals for one client.

    Clients may read their own status; salesmen may read shops assigned to
    them; everyone else needs VIEW_CLIENT_FINANCIALS.
    """
    client = db.session.get(User, client_id)
    if client is None:
        raise NotFoundError("Client not found", details={"client_id": client_id})
    authorize_client_access(actor, client, "VIEW_CLIENT_FINANCIALS")

    pending = current_pending_cents(client_id)
    lifetime, paid = (
        db.session.query(
            func.coalesce(func.sum(Order.total_cents), 0),
            func.coalesce(func.sum(Order.paid_cents), 0),
        )
        .filter(Order.user_id == client_id, Order.status != ORDER_STATUS_CANCELLED)
        .one()
    )

    limit = client.pending_limit_cents
    if limit is None:
        remaining = None
        usage_pct = None
    else:
        remaining = max(0, limit - pending)
        usage_pct = round(pending * 100.0 / limit, 2) if limit > 0 else (100.0 if pending > 0 else 0.0)

    return {
        "client_id": client.id,
        "full_name": client.full_name,
        "role": client.role,
        "pending_limit_cents": limit,
        "current_pending_cents": pending,
        "remaining_limit_cents": remaining,
        "limit_usage_percent": usage_pct,
        "lifetime_value_cents": int(lifetime),
        "total_paid_cents": int(paid),
    }


def set_pending_limit(actor: ActorContext, client_id: int, limit_cents: int | None) -> User:
    """Set (or clear with None) a client's pending limit. Admin only."""
    require(actor, "SET_PENDING_LIMIT")

    if limit_cents is not None:
        if isinstance(limit_cents, bool) or not isinstance(limit_cents, int):
            raise ValidationError("Pending limit must be an integer amount in cents")
        if limit_cents < 0:
            raise ValidationError(
                "Pending limit cannot be negative", details={"limit_cents": limit_cents}
            )

    previous: dict = {}

    def _op():
        begin_write()
        client = lock_for_update(db.session.query(User).filter_by(id=client_id).populate_existing()).first()
        if client is None:
            raise NotFoundError("Client not found", details={"client_id": client_id})
        if not Role(client.role).is_client:
            raise ValidationError(
                "Pending limits apply to client accounts only",
                details={"client_id": client_id, "role": client.role},
            )
        previous["limit_cents"] = client.pending_limit_cents
        client.pending_limit_cents = limit_cents
        db.session.commit()
        return client

    client = run_in_transaction(_op, context={"client_id": client_id, "limit_cents": limit_cents})

    current_app.logger.info(
        "Pending limit for client %s changed %s -> %s by user %s",
        client_id, previous.get("limit_cents"), limit_cents, actor.user_id,
    )
    audit_service.record_activity(
        actor,
        "pending_limit_updated",
        "user",
        client_id,
        {"previous_limit_cents": previous.get("limit_cents"), "limit_cents": limit_cents},
    )
    return client


def check_pending_limit(actor: ActorContext, client_id: int, order_total_cents, paid_now_cents) -> PendingLimitCheck:
    """UI pre-check before checkout. Placement re-validates under the client lock."""
    for name, value in (("total_cents", order_total_cents), ("paid_cents", paid_now_cents)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"{name} must be a non-negative integer", details={name: value})
    client = db.session.get(User, client_id)
    if client is None:
        raise NotFoundError("Client not found", details={"client_id": client_id})
    authorize_client_access(actor, client, "VIEW_CLIENT_FINANCIALS")
    return validate_pending_limit(client_id, order_total_cents, paid_now_cents)
