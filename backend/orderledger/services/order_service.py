# Overview: Service-layer operations for orders; places, cancels and manages orders as single units of work.

"""
Order Placement Engine

ORDER PLACEMENT (one DB transaction, serialized per client):
1. Lock the client row (BEGIN IMMEDIATE on SQLite) before reading anything
   the decision depends on.
2. Price lines from the catalog by client role; total = subtotal.
3. Wallet orders need a balance covering the full total.
4. Split paid / pending; pending > 0 must fit the client's pending limit.
5. Insert order + items, deduct stock (clamped at 0, one log row per line),
   insert the initial payment, debit the wallet, recompute, commit.

Any failure rolls the whole unit back: there is no state in which an order
exists without its items, stock movements, payment or wallet debit.

Cancellation only flips status; paid / pending are never touched.
"""

from __future__ import annotations

import secrets
import string
import time

from flask import current_app

from ..extensions import db
from ..errors import (
    AuthorizationError,
    InsufficientFundsError,
    NotFoundError,
    PendingLimitExceeded,
    ValidationError,
)
from ..models import Order, OrderItem, Payment, Product, User
from ..models.orders import (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_CANCELLED,
    VALID_ORDER_STATUSES,
    CREATED_VIA_SELF_ORDER,
    CREATED_VIA_SALESMAN,
    CREATED_VIA_ADMIN,
    INITIAL_PAYMENT_NOT_COLLECTED,
    METHOD_CASH,
    METHOD_CREDIT_BALANCE,
    VALID_PAYMENT_METHODS,
    PAYMENT_COMPLETED,
)
from ..permissions import Role, SHOP_ROLES
from orderledger.time_utils import utcnow
from .assignment_service import (
    authorize_client_access,
    authorize_order_access,
    is_brand_assigned,
    is_shop_assigned,
)
from .authz import ActorContext, require
from .concurrency import begin_write, lock_for_update, run_in_transaction
from .ledger_math import compute_status, split_payment, format_cents
from .pending_limit_service import current_pending_cents, evaluate_pending_limit
from .payment_service import recompute_order_ledger
from . import audit_service, credit_service, inventory_service


_ORDER_NUMBER_ALPHABET = string.digits + string.ascii_uppercase
_ORDER_NUMBER_ATTEMPTS = 5


# =============================================================================
# HELPERS
# =============================================================================

def generate_order_number() -> str:
    """ORD-<epoch ms>-<9 random base36 chars>"""
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def _unique_order_number() -> str:
    for _ in range(_ORDER_NUMBER_ATTEMPTS):
        number = generate_order_number()
        taken = db.session.query(Order.id).filter(Order.order_number == number).first()
        if taken is None:
            return number
    raise ValidationError("Could not allocate a unique order number, please retry")


def unit_price_for(product: Product, client_role: Role) -> int:
    """Catalog price for the client's tier; tier prices fall back to price_cents."""
    if client_role == Role.BEAUTY_PARLOR and product.beauty_price_cents is not None:
        return product.beauty_price_cents
    if client_role == Role.RETAILER and product.retailer_price_cents is not None:
        return product.retailer_price_cents
    return product.price_cents


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _normalize_items(items) -> list[tuple[int, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")
    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", details={"index": index})
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if not _is_int(product_id):
            raise ValidationError("product_id must be an integer", details={"index": index})
        if not _is_int(quantity) or quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                details={"index": index, "product_id": product_id, "quantity": quantity},
            )
        lines.append((product_id, quantity))
    return lines


def _price_lines(lines, client_role: Role, brand_id: int | None = None):
    """Returns ([(product, quantity, unit_price, line_total)], subtotal)."""
    product_ids = sorted({pid for pid, _ in lines})
    products = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }
    priced = []
    subtotal = 0
    for product_id, quantity in lines:
        product = products.get(product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        if not product.is_active:
            raise ValidationError(f"Product {product.sku} is not available", details={"product_id": product_id})
        if brand_id is not None and product.brand_id != brand_id:
            raise ValidationError(
                f"Product {product.sku} does not belong to the selected brand",
                details={"product_id": product_id, "brand_id": brand_id},
            )
        unit_price = unit_price_for(product, client_role)
        line_total = unit_price * quantity
        subtotal += line_total
        priced.append((product, quantity, unit_price, line_total))
    return priced, subtotal


def _lock_client(client_id: int, allowed_roles) -> User:
    client = lock_for_update(db.session.query(User).filter_by(id=client_id).populate_existing()).first()
    if client is None:
        raise NotFoundError("Client not found", details={"client_id": client_id})
    if not client.is_active:
        raise ValidationError("Client account is inactive", details={"client_id": client_id})
    if Role(client.role) not in allowed_roles:
        raise ValidationError(
            f"Orders cannot be placed for a {client.role} account",
            details={"client_id": client_id, "role": client.role},
        )
    return client


# =============================================================================
# ORDER PLACEMENT
# =============================================================================

def _create_order(
    actor: ActorContext,
    *,
    client_id: int,
    lines,
    payment_method: str,
    paid_now_cents: int | None,
    created_via: str,
    allowed_client_roles,
    recorded_by_user_id: int | None,
    brand_id: int | None = None,
    declared_total_cents: int | None = None,
    deferred_initial_cents: int | None = None,
    notes: str | None = None,
) -> Order:
    context = {"client_id": client_id, "actor_id": actor.user_id, "order_number": None}

    def _op():
        begin_write()
        client = _lock_client(client_id, allowed_client_roles)
        client_role = Role(client.role)

        priced, subtotal = _price_lines(lines, client_role, brand_id)
        total = subtotal
        if declared_total_cents is not None and declared_total_cents != total:
            raise ValidationError(
                f"Order total mismatch: expected {format_cents(total)}, got {format_cents(declared_total_cents)}",
                details={"expected_total_cents": total, "declared_total_cents": declared_total_cents},
            )

        if deferred_initial_cents is not None and deferred_initial_cents > total:
            raise ValidationError(
                "Initial payment amount must be between 0 and total amount",
                details={"initial_payment_cents": deferred_initial_cents, "total_cents": total},
            )

        if payment_method == METHOD_CREDIT_BALANCE:
            if paid_now_cents is not None and paid_now_cents != total:
                raise ValidationError(
                    "Credit balance orders must be paid in full",
                    details={"paid_cents": paid_now_cents, "total_cents": total},
                )
            balance = credit_service.wallet_balance_cents(client_id, for_update=True)
            if balance is None or balance < total:
                raise InsufficientFundsError(
                    f"Insufficient credit balance. Available: {format_cents(balance or 0)}, "
                    f"Required: {format_cents(total)}",
                    details={"balance_cents": balance or 0, "total_cents": total},
                )

        split = split_payment(total, paid_now_cents)
        if split.pending_cents > 0:
            check = evaluate_pending_limit(
                current_pending_cents(client_id),
                client.pending_limit_cents,
                total,
                split.paid_cents,
                current_app.config.get("CURRENCY_SYMBOL", "Rs."),
            )
            if not check.valid:
                raise PendingLimitExceeded(check.reason, details=check.to_dict())

        order_number = _unique_order_number()
        context["order_number"] = order_number
        now = utcnow()

        order = Order(
            order_number=order_number,
            user_id=client_id,
            recorded_by_user_id=recorded_by_user_id,
            brand_id=brand_id,
            status=ORDER_STATUS_PENDING,
            created_via=created_via,
            payment_method=payment_method,
            subtotal_cents=subtotal,
            total_cents=total,
            paid_cents=0,
            pending_cents=total,
            payment_status=compute_status(0, total),
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        if deferred_initial_cents is not None:
            order.initial_payment_required_cents = deferred_initial_cents
            order.initial_payment_status = INITIAL_PAYMENT_NOT_COLLECTED
        db.session.add(order)
        db.session.flush()

        for product, quantity, unit_price, line_total in priced:
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                quantity=quantity,
                unit_price_cents=unit_price,
                line_total_cents=line_total,
                created_at=now,
            ))
        db.session.flush()

        for product, quantity, _, _ in priced:
            inventory_service.deduct_stock_for_order(
                product.id,
                quantity,
                order_id=order.id,
                order_number=order_number,
                user_id=actor.user_id,
            )

        if split.paid_cents > 0:
            db.session.add(Payment(
                order_id=order.id,
                amount_cents=split.paid_cents,
                payment_method=payment_method,
                status=PAYMENT_COMPLETED,
                recorded_by_user_id=actor.user_id,
                notes="Initial payment",
                created_at=now,
            ))
            db.session.flush()

        if payment_method == METHOD_CREDIT_BALANCE:
            try:
                credit_service.debit_for_order(
                    client_id,
                    total,
                    order_id=order.id,
                    order_number=order_number,
                    performed_by=actor.user_id,
                )
            except InsufficientFundsError:
                current_app.logger.critical(
                    "Wallet debit failed after order insert; rolling back order %s (client=%s amount=%s)",
                    order_number, client_id, total,
                )
                raise

        recompute_order_ledger(order)
        db.session.commit()
        return order

    order = run_in_transaction(_op, context=context)

    current_app.logger.info(
        "Order %s placed for client %s via %s: total=%s paid=%s pending=%s",
        order.order_number, client_id, created_via, order.total_cents, order.paid_cents, order.pending_cents,
    )
    audit_service.record_activity(
        actor,
        "order_created",
        "order",
        order.id,
        {
            "order_number": order.order_number,
            "client_id": client_id,
            "total_cents": order.total_cents,
            "paid_cents": order.paid_cents,
            "pending_cents": order.pending_cents,
            "created_via": created_via,
        },
    )
    return order


def place_order(
    actor: ActorContext,
    client_id: int,
    items,
    payment_method: str,
    initial_payment_cents: int | None = None,
    declared_total_cents: int | None = None,
    defer_initial_payment: bool = False,
    notes: str | None = None,
    created_via: str | None = None,
) -> Order:
    """
    Checkout path for clients (their own orders) and admins (any client).

    Args:
        initial_payment_cents: amount paid now; None means pay in full.
            With defer_initial_payment=True it is the amount due later and
            nothing is paid now.
        declared_total_cents: total the caller displayed; must equal the
            recomputed catalog total.

    Raises:
        ValidationError, PendingLimitExceeded, InsufficientFundsError,
        AuthorizationError, NotFoundError, PersistenceError, ConcurrencyConflict
    """
    require(actor, "PLACE_ORDER")

    if actor.role.is_client:
        if client_id != actor.user_id:
            raise AuthorizationError("Clients can only place orders for themselves", details={"client_id": client_id})
        via = CREATED_VIA_SELF_ORDER
    else:
        via = CREATED_VIA_ADMIN
    if created_via is not None:
        if created_via not in (CREATED_VIA_SELF_ORDER, CREATED_VIA_ADMIN):
            raise ValidationError(f"Invalid created_via: {created_via}")
        via = created_via

    lines = _normalize_items(items)
    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}")
    if initial_payment_cents is not None and (not _is_int(initial_payment_cents) or initial_payment_cents < 0):
        raise ValidationError(
            "Initial payment must be a non-negative integer number of cents",
            details={"initial_payment_cents": initial_payment_cents},
        )
    if declared_total_cents is not None and not _is_int(declared_total_cents):
        raise ValidationError("Declared total must be an integer number of cents")

    deferred = None
    paid_now = initial_payment_cents
    if defer_initial_payment:
        if payment_method == METHOD_CREDIT_BALANCE:
            raise ValidationError("Credit balance orders cannot defer payment")
        if not initial_payment_cents:
            raise ValidationError("A deferred initial payment needs an amount greater than 0")
        deferred = initial_payment_cents
        paid_now = 0

    return _create_order(
        actor,
        client_id=client_id,
        lines=lines,
        payment_method=payment_method,
        paid_now_cents=paid_now,
        created_via=via,
        allowed_client_roles={Role.RETAILER, Role.BEAUTY_PARLOR, Role.LOCAL_CUSTOMER},
        recorded_by_user_id=None if via == CREATED_VIA_SELF_ORDER else actor.user_id,
        declared_total_cents=declared_total_cents,
        deferred_initial_cents=deferred,
        notes=notes,
    )


def create_order_for_client(
    actor: ActorContext,
    client_id: int,
    items,
    paid_cents: int,
    brand_id: int | None = None,
    notes: str | None = None,
) -> Order:
    """
    Salesman field sale for an assigned retailer / beauty parlor.

    The amount collected on the spot is recorded as a cash payment; the
    rest stays pending against the shop's limit.
    """
    require(actor, "CREATE_ORDER_FOR_CLIENT")

    if not _is_int(paid_cents) or paid_cents < 0:
        raise ValidationError("Paid amount must be a non-negative integer number of cents", details={"paid_cents": paid_cents})
    lines = _normalize_items(items)

    client = db.session.get(User, client_id)
    if client is None:
        raise NotFoundError("Client not found", details={"client_id": client_id})
    if client.assigned_salesman_id != actor.user_id and not is_shop_assigned(actor.user_id, client_id):
        raise AuthorizationError(
            "Shop is not assigned to this salesman",
            details={"salesman_id": actor.user_id, "client_id": client_id},
        )
    if brand_id is not None and not is_brand_assigned(actor.user_id, brand_id):
        raise AuthorizationError(
            "Brand is not assigned to this salesman",
            details={"salesman_id": actor.user_id, "brand_id": brand_id},
        )

    return _create_order(
        actor,
        client_id=client_id,
        lines=lines,
        payment_method=METHOD_CASH,
        paid_now_cents=paid_cents,
        created_via=CREATED_VIA_SALESMAN,
        allowed_client_roles=SHOP_ROLES,
        recorded_by_user_id=actor.user_id,
        brand_id=brand_id,
        notes=notes,
    )


# =============================================================================
# LIFECYCLE
# =============================================================================

def _lock_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id).populate_existing()).first()
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    return order


def cancel_order(actor: ActorContext, order_id: int) -> Order:
    """Owning client cancels a still-pending order. Financial fields are untouched."""
    require(actor, "CANCEL_OWN_ORDER")

    def _op():
        begin_write()
        order = _lock_order(order_id)
        if order.user_id != actor.user_id:
            raise AuthorizationError("You can only cancel your own orders", details={"order_id": order_id})
        if order.status != ORDER_STATUS_PENDING:
            raise ValidationError(
                f"Only pending orders can be cancelled (current status: {order.status})",
                details={"order_id": order_id, "status": order.status},
            )
        order.status = ORDER_STATUS_CANCELLED
        order.cancelled_at = utcnow()
        db.session.commit()
        return order

    order = run_in_transaction(_op, context={"order_id": order_id, "actor_id": actor.user_id})

    current_app.logger.info("Order %s cancelled by client %s", order.order_number, actor.user_id)
    audit_service.record_activity(actor, "order_cancelled", "order", order_id, {"order_number": order.order_number})
    return order


def update_order_status(actor: ActorContext, order_id: int, status: str) -> Order:
    """Fulfilment status change by staff. Cancelled orders are terminal."""
    require(actor, "MANAGE_ORDERS")
    if status not in VALID_ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of {VALID_ORDER_STATUSES}")
    if status == ORDER_STATUS_CANCELLED:
        # Only the owning client cancels, through cancel_order.
        raise ValidationError(
            "Orders can only be cancelled by the owning client while pending",
            details={"order_id": order_id, "status": status},
        )

    previous = {}

    def _op():
        begin_write()
        order = _lock_order(order_id)
        if order.status == ORDER_STATUS_CANCELLED:
            raise ValidationError("Cancelled orders cannot change status", details={"order_id": order_id})
        previous["status"] = order.status
        order.status = status
        db.session.commit()
        return order

    order = run_in_transaction(_op, context={"order_id": order_id, "status": status})

    current_app.logger.info("Order %s status %s -> %s", order.order_number, previous.get("status"), status)
    audit_service.record_activity(
        actor, "order_status_updated", "order", order_id, {"from": previous.get("status"), "to": status}
    )
    return order


def assign_order(actor: ActorContext, order_id: int, sub_admin_id: int) -> Order:
    require(actor, "ASSIGN_ORDERS")

    def _op():
        begin_write()
        assignee = db.session.get(User, sub_admin_id)
        if assignee is None or not assignee.is_active:
            raise NotFoundError("Sub-admin not found", details={"sub_admin_id": sub_admin_id})
        if assignee.role != Role.SUB_ADMIN.value:
            raise ValidationError(
                "Orders can only be assigned to sub-admins",
                details={"user_id": sub_admin_id, "role": assignee.role},
            )
        order = _lock_order(order_id)
        order.assigned_to_user_id = sub_admin_id
        db.session.commit()
        return order

    order = run_in_transaction(_op, context={"order_id": order_id, "sub_admin_id": sub_admin_id})

    current_app.logger.info("Order %s assigned to sub-admin %s", order.order_number, sub_admin_id)
    audit_service.record_activity(actor, "order_assigned", "order", order_id, {"sub_admin_id": sub_admin_id})
    return order


# =============================================================================
# QUERIES
# =============================================================================

def get_order(actor: ActorContext, order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    authorize_order_access(actor, order, "VIEW_ALL_ORDERS")
    return order


def list_client_orders(actor: ActorContext, client_id: int, status: str | None = None) -> list[Order]:
    client = db.session.get(User, client_id)
    if client is None:
        raise NotFoundError("Client not found", details={"client_id": client_id})
    authorize_client_access(actor, client, "VIEW_ALL_ORDERS")

    query = db.session.query(Order).filter(Order.user_id == client_id)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()
