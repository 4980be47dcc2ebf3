from __future__ import annotations

from ..extensions import db
from orderledger.time_utils import to_utc_z


# =============================================================================
# ORDER STATUS (CONSTANTS)
# =============================================================================

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PROCESSING = "processing"
ORDER_STATUS_SHIPPED = "shipped"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"

VALID_ORDER_STATUSES = [
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
]

CREATED_VIA_SELF_ORDER = "self_order"
CREATED_VIA_SALESMAN = "salesman"
CREATED_VIA_ADMIN = "admin"

INITIAL_PAYMENT_NOT_COLLECTED = "not_collected"
INITIAL_PAYMENT_COLLECTED = "collected"


# =============================================================================
# PAYMENT METHODS / STATUS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_CARD = "card"
METHOD_CHEQUE = "cheque"
METHOD_CREDIT_BALANCE = "credit_balance"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_BANK_TRANSFER,
    METHOD_CARD,
    METHOD_CHEQUE,
    METHOD_CREDIT_BALANCE,
]

PAYMENT_PENDING = "pending"      # client-submitted request, not yet in the ledger
PAYMENT_COMPLETED = "completed"  # counts towards paid_cents
PAYMENT_REJECTED = "rejected"


class Order(db.Model):
    """
    One purchase transaction and its financial state.

    INVARIANTS:
    - paid_cents + pending_cents == total_cents (enforced by CHECK)
    - payment_status == ledger_math.compute_status(paid_cents, total_cents)
    - paid/pending/payment_status are written only by the order and payment
      engines, always from ledger_math.recompute_from_payments()
    - cancelled is terminal and never touches paid/pending
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("paid_cents + pending_cents = total_cents", name="ck_orders_ledger_balanced"),
        db.CheckConstraint("paid_cents >= 0 AND pending_cents >= 0", name="ck_orders_amounts_non_negative"),
        db.Index("ix_orders_user_status_payment", "user_id", "status", "payment_status"),
        db.Index("ix_orders_recorded_by_created", "recorded_by_user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False, unique=True)

    # Client the order belongs to
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # Salesman or staff member who entered the order on the client's behalf
    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    # Sub-admin handling fulfilment
    assigned_to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    created_via = db.Column(db.String(16), nullable=False, default=CREATED_VIA_SELF_ORDER)
    payment_method = db.Column(db.String(32), nullable=True)

    # Financial state (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    pending_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    # Scheduled collections
    initial_payment_required_cents = db.Column(db.Integer, nullable=True)
    initial_payment_status = db.Column(db.String(16), nullable=True)
    initial_payment_due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    pending_payment_due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("User", foreign_keys=[user_id])
    recorded_by = db.relationship("User", foreign_keys=[recorded_by_user_id])
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_user_id])
    brand = db.relationship("Brand")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Order {self.order_number} total={self.total_cents} paid={self.paid_cents} "
            f"pending={self.pending_cents} status={self.status}/{self.payment_status}>"
        )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "recorded_by_user_id": self.recorded_by_user_id,
            "assigned_to_user_id": self.assigned_to_user_id,
            "brand_id": self.brand_id,
            "status": self.status,
            "created_via": self.created_via,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "pending_cents": self.pending_cents,
            "payment_status": self.payment_status,
            "initial_payment_required_cents": self.initial_payment_required_cents,
            "initial_payment_status": self.initial_payment_status,
            "initial_payment_due_date": to_utc_z(self.initial_payment_due_date),
            "pending_payment_due_date": to_utc_z(self.pending_payment_due_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Line entry. unit_price_cents is captured at order time and never re-read."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    One payment event against an order.

    Append-only: amounts never change. Corrections are new records.
    Only COMPLETED payments count towards the order's paid_cents; PENDING rows
    are client-submitted requests awaiting staff approval.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_order_status", "order_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_COMPLETED, index=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    reviewed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True, order_by="Payment.id"))
    recorded_by = db.relationship("User", foreign_keys=[recorded_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "recorded_by_user_id": self.recorded_by_user_id,
            "reviewed_by_user_id": self.reviewed_by_user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "reviewed_at": to_utc_z(self.reviewed_at),
        }


class PaymentReminder(db.Model):
    """Created whenever staff schedule a due date for an order's collection."""
    __tablename__ = "payment_reminders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    reminder_type = db.Column(db.String(16), nullable=False)  # initial_due, pending_due
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    is_seen = db.Column(db.Boolean, nullable=False, default=False)
    seen_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_acknowledged = db.Column(db.Boolean, nullable=False, default=False, index=True)
    acknowledged_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "user_id": self.user_id,
            "reminder_type": self.reminder_type,
            "due_date": to_utc_z(self.due_date),
            "amount_cents": self.amount_cents,
            "is_seen": self.is_seen,
            "seen_at": to_utc_z(self.seen_at),
            "is_acknowledged": self.is_acknowledged,
            "acknowledged_at": to_utc_z(self.acknowledged_at),
            "created_at": to_utc_z(self.created_at),
        }
