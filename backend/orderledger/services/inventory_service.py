# Overview: Service-layer operations for inventory; keeps product stock and its append-only log in step.

"""
Inventory Stock Ledger (authoritative)

Stock model:
- Product.stock_quantity is the on-hand quantity.
- Every change writes exactly one InventoryLog row in the same transaction:
  previous_quantity, new_quantity, quantity_change = new - previous.

Business invariants:
- stock_quantity >= 0 always (also a CHECK constraint).
- Manual adjustments that would go negative are rejected.
- Order deductions clamp at 0 and log the change actually applied.

Concurrency:
- Every write is compare-and-set: the quantity is read under a row lock and
  written back with WHERE stock_quantity = <read value>. A lost race raises
  ConcurrencyConflict, which run_with_retry() retries.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import ConcurrencyConflict, NotFoundError, ValidationError
from ..models import Product, InventoryLog
from orderledger.time_utils import utcnow
from .authz import ActorContext, require
from .concurrency import begin_write, lock_for_update, run_in_transaction
from . import audit_service


def _apply_stock_change(
    product_id: int,
    delta: int,
    reason: str,
    *,
    user_id: int | None,
    order_id: int | None = None,
    clamp: bool = False,
) -> InventoryLog:
    """
    Inner compare-and-set stock write (no commit).

    clamp=False: a negative result raises ValidationError.
    clamp=True:  the result is floored at 0.
    """
    product = lock_for_update(
        db.session.query(Product).filter_by(id=product_id).populate_existing()
    ).first()
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})

    previous = product.stock_quantity
    new_quantity = previous + delta
    if new_quantity < 0:
        if not clamp:
            raise ValidationError(
                "Invalid adjustment: resulting quantity would be negative",
                details={
                    "product_id": product_id,
                    "current_quantity": previous,
                    "delta": delta,
                },
            )
        new_quantity = 0

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock_quantity == previous)
        .values(stock_quantity=new_quantity)
        .execution_options(synchronize_session=False)
    )
    db.session.expire(product, ["stock_quantity", "updated_at"])
    if result.rowcount != 1:
        raise ConcurrencyConflict(
            "Stock changed while updating, please retry",
            details={"product_id": product_id, "expected_quantity": previous},
        )

    log = InventoryLog(
        product_id=product_id,
        previous_quantity=previous,
        new_quantity=new_quantity,
        quantity_change=new_quantity - previous,
        reason=reason,
        order_id=order_id,
        created_by_user_id=user_id,
        created_at=utcnow(),
    )
    db.session.add(log)
    db.session.flush()
    return log


def adjust_stock(actor: ActorContext, product_id: int, delta: int, reason: str) -> InventoryLog:
    """
    Manual restock / correction by admin or sub-admin.

    Raises:
        ValidationError: delta is not a non-zero integer, reason missing, or
            the result would be negative
        NotFoundError: unknown product
    """
    require(actor, "ADJUST_INVENTORY")

    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError("Adjustment must be a non-zero integer quantity", details={"delta": delta})
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Adjustment reason is required")

    def _op():
        begin_write()
        log = _apply_stock_change(product_id, delta, reason, user_id=actor.user_id)
        db.session.commit()
        return log

    log = run_in_transaction(_op, context={"product_id": product_id, "delta": delta, "actor_id": actor.user_id})

    current_app.logger.info(
        "Stock for product %s adjusted %s -> %s (%s)",
        product_id, log.previous_quantity, log.new_quantity, reason,
    )
    audit_service.record_activity(
        actor,
        "stock_adjusted",
        "product",
        product_id,
        {"previous_quantity": log.previous_quantity, "new_quantity": log.new_quantity, "reason": reason},
    )
    return log


def deduct_stock_for_order(product_id: int, quantity: int, *, order_id: int, order_number: str, user_id: int | None) -> InventoryLog:
    """Order-path deduction inside the caller's transaction. Clamps at 0."""
    return _apply_stock_change(
        product_id,
        -quantity,
        f"Order #{order_number}",
        user_id=user_id,
        order_id=order_id,
        clamp=True,
    )


def get_inventory_logs(product_id: int, limit: int = 200) -> list[InventoryLog]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return (
        db.session.query(InventoryLog)
        .filter(InventoryLog.product_id == product_id)
        .order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
        .limit(limit)
        .all()
    )


def get_low_stock(threshold: int | None = None) -> list[Product]:
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock_quantity <= threshold)
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )
