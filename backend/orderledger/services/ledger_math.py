# Overview: Pure ledger arithmetic for order payment state.

"""
Ledger Arithmetic

All money is integer cents. Nothing in this module touches the database;
the order and payment engines call it for every write to
paid_cents / pending_cents / payment_status.

INVARIANTS (authoritative):
- paid + pending == total for every state produced here
- status == compute_status(paid, total)
- recompute_from_payments() is the baseline. apply_payment() is the delta
  path and must always agree with a full recompute over the extended history.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from ..errors import ValidationError


PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"

_COMPLETED = "completed"


@dataclass(frozen=True)
class LedgerState:
    paid_cents: int
    pending_cents: int
    status: str

    def to_dict(self) -> dict:
        return {
            "paid_cents": self.paid_cents,
            "pending_cents": self.pending_cents,
            "payment_status": self.status,
        }


def compute_status(paid_cents: int, total_cents: int) -> str:
    """paid >= total -> paid; 0 < paid < total -> partial; otherwise pending."""
    if paid_cents >= total_cents:
        return PAYMENT_STATUS_PAID
    if paid_cents > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_PENDING


def _state(total_cents: int, paid_cents: int) -> LedgerState:
    pending = max(0, total_cents - paid_cents)
    # Overpayment is impossible through the engines; clamp so the balance holds.
    paid = total_cents - pending
    return LedgerState(paid_cents=paid, pending_cents=pending, status=compute_status(paid, total_cents))


def recompute_from_payments(total_cents: int, payments: Iterable) -> LedgerState:
    """
    Derive paid / pending / status from the full payment history.

    ``payments`` may be Payment rows or mappings with ``amount_cents`` and
    ``status``; only completed payments count.
    """
    paid = 0
    for payment in payments:
        if isinstance(payment, dict):
            status, amount = payment.get("status"), payment.get("amount_cents")
        else:
            status, amount = payment.status, payment.amount_cents
        if status == _COMPLETED:
            paid += int(amount)
    return _state(total_cents, paid)


def apply_payment(state: LedgerState, total_cents: int, amount_cents: int) -> LedgerState:
    """Delta update for one more completed payment."""
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be greater than 0", details={"amount_cents": amount_cents})
    if amount_cents > state.pending_cents:
        raise ValidationError(
            f"Payment amount ({format_cents(amount_cents)}) exceeds pending amount "
            f"({format_cents(state.pending_cents)})",
            details={"amount_cents": amount_cents, "pending_cents": state.pending_cents},
        )
    return _state(total_cents, state.paid_cents + amount_cents)


def split_payment(total_cents: int, paid_now_cents: int | None) -> LedgerState:
    """Initial split for a new order. ``None`` means pay in full."""
    if total_cents < 0:
        raise ValidationError("Order total cannot be negative", details={"total_cents": total_cents})
    paid = total_cents if paid_now_cents is None else paid_now_cents
    if paid < 0 or paid > total_cents:
        raise ValidationError(
            "Initial payment amount must be between 0 and total amount",
            details={"paid_cents": paid, "total_cents": total_cents},
        )
    return _state(total_cents, paid)


def to_cents(value) -> int:
    """
    Convert a money value to integer cents (ROUND_HALF_UP).

    Accepts int (already cents is NOT assumed: 12 -> 1200), Decimal or str
    like "1234.50". Floats are rejected so binary rounding never enters the
    ledger.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError("Amount must be a decimal string or integer, not a float")
    if isinstance(value, int):
        return value * 100
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    if amount.as_tuple().exponent < -2:
        raise ValidationError("Amount cannot have more than two decimal places")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents: int, symbol: str = "Rs.") -> str:
    """4000050 -> 'Rs. 40,000.50'"""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{symbol} {whole:,}.{frac:02d}"
