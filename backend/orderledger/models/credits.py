from __future__ import annotations

from ..extensions import db
from orderledger.time_utils import to_utc_z


CREDIT_DEPOSIT = "deposit"
CREDIT_USAGE = "usage"
CREDIT_ADJUSTMENT = "adjustment"


class CreditWallet(db.Model):
    """Prepaid balance a client can spend instead of cash (user_credits)."""
    __tablename__ = "user_credits"
    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_user_credits_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    used_credit_cents = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "balance_cents": self.balance_cents,
            "used_credit_cents": self.used_credit_cents,
            "updated_at": to_utc_z(self.updated_at),
        }


class CreditTransaction(db.Model):
    """Append-only movement on a CreditWallet. amount_cents is signed."""
    __tablename__ = "credit_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False)  # deposit, usage, adjustment
    description = db.Column(db.String(255), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount_cents": self.amount_cents,
            "type": self.type,
            "description": self.description,
            "order_id": self.order_id,
            "performed_by_user_id": self.performed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
