# Overview: Service-layer operations for client credit wallets; balance changes plus append-only transactions.

"""
Credit Wallet Service

- One CreditWallet per client (created on first top-up).
- balance_cents never goes negative (CHECK + conditional update).
- Every balance change appends one CreditTransaction with the signed
  amount actually applied.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import InsufficientFundsError, NotFoundError, ValidationError
from ..models import CreditWallet, CreditTransaction, User
from ..models.credits import CREDIT_ADJUSTMENT, CREDIT_DEPOSIT, CREDIT_USAGE
from ..permissions import Role
from orderledger.time_utils import utcnow
from .assignment_service import authorize_client_access
from .authz import ActorContext, require
from .concurrency import begin_write, lock_for_update, run_in_transaction
from .ledger_math import format_cents
from . import audit_service


ADJUST_ADD = "add"
ADJUST_DEDUCT = "deduct"
ADJUST_SET = "adjustment"

VALID_ADJUST_TYPES = [ADJUST_ADD, ADJUST_DEDUCT, ADJUST_SET]


def get_wallet(user_id: int) -> dict:
    """Wallet snapshot; a client without a wallet has a zero balance."""
    wallet = db.session.query(CreditWallet).filter_by(user_id=user_id).first()
    if wallet is None:
        return {"user_id": user_id, "balance_cents": 0, "used_credit_cents": 0, "updated_at": None}
    return wallet.to_dict()


def list_credit_transactions(user_id: int, limit: int = 200) -> list[CreditTransaction]:
    return (
        db.session.query(CreditTransaction)
        .filter(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .limit(limit)
        .all()
    )


def adjust_credit(
    actor: ActorContext,
    user_id: int,
    amount_cents: int,
    adjust_type: str,
    description: str | None = None,
) -> CreditTransaction:
    """
    Admin wallet maintenance.

    add:        balance += amount (deposit)
    deduct:     balance -= amount, rejected if the balance would go negative
    adjustment: balance = amount; the transaction records the difference
    """
    require(actor, "MANAGE_CREDIT")

    if adjust_type not in VALID_ADJUST_TYPES:
        raise ValidationError(
            f"Invalid adjustment type: {adjust_type}. Must be one of {VALID_ADJUST_TYPES}"
        )
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("Amount must be an integer number of cents")
    if adjust_type == ADJUST_SET:
        if amount_cents < 0:
            raise ValidationError("Credit balance cannot be negative", details={"amount_cents": amount_cents})
    elif amount_cents <= 0:
        raise ValidationError("Amount must be greater than 0", details={"amount_cents": amount_cents})

    def _op():
        begin_write()
        client = db.session.get(User, user_id)
        if client is None:
            raise NotFoundError("Client not found", details={"user_id": user_id})
        if not Role(client.role).is_client:
            raise ValidationError("Credit wallets belong to client accounts only", details={"user_id": user_id})

        wallet = lock_for_update(db.session.query(CreditWallet).filter_by(user_id=user_id).populate_existing()).first()
        if wallet is None:
            wallet = CreditWallet(user_id=user_id, balance_cents=0, used_credit_cents=0)
            db.session.add(wallet)
            db.session.flush()

        current = wallet.balance_cents
        if adjust_type == ADJUST_ADD:
            new_balance, tx_type = current + amount_cents, CREDIT_DEPOSIT
        elif adjust_type == ADJUST_DEDUCT:
            if amount_cents > current:
                raise InsufficientFundsError(
                    f"Cannot deduct {format_cents(amount_cents)}: balance is {format_cents(current)}",
                    details={"amount_cents": amount_cents, "balance_cents": current},
                )
            new_balance, tx_type = current - amount_cents, CREDIT_ADJUSTMENT
        else:
            new_balance, tx_type = amount_cents, CREDIT_ADJUSTMENT

        wallet.balance_cents = new_balance
        tx = CreditTransaction(
            user_id=user_id,
            amount_cents=new_balance - current,
            type=tx_type,
            description=description or f"Credit {adjust_type}",
            performed_by_user_id=actor.user_id,
            created_at=utcnow(),
        )
        db.session.add(tx)
        db.session.commit()
        return tx

    tx = run_in_transaction(_op, context={"user_id": user_id, "amount_cents": amount_cents, "type": adjust_type})

    current_app.logger.info(
        "Credit %s for user %s: %s cents by user %s", adjust_type, user_id, tx.amount_cents, actor.user_id
    )
    audit_service.record_activity(
        actor, "credit_adjusted", "user", user_id, {"type": adjust_type, "amount_cents": tx.amount_cents}
    )
    return tx


def wallet_balance_cents(user_id: int, *, for_update: bool = False) -> int | None:
    """Current balance, or None when the client has no wallet."""
    query = db.session.query(CreditWallet).filter_by(user_id=user_id)
    if for_update:
        query = lock_for_update(query.populate_existing())
    wallet = query.first()
    return None if wallet is None else wallet.balance_cents


def debit_for_order(user_id: int, amount_cents: int, *, order_id: int, order_number: str, performed_by: int | None) -> CreditTransaction:
    """
    Inner atomic wallet debit for a credit_balance order (no commit).

    The UPDATE only matches while balance_cents >= amount, so two orders
    racing for the same balance cannot both spend it.
    """
    wallet = db.session.query(CreditWallet).filter_by(user_id=user_id).first()
    result = db.session.execute(
        update(CreditWallet)
        .where(CreditWallet.user_id == user_id, CreditWallet.balance_cents >= amount_cents)
        .values(
            balance_cents=CreditWallet.balance_cents - amount_cents,
            used_credit_cents=CreditWallet.used_credit_cents + amount_cents,
        )
        .execution_options(synchronize_session=False)
    )
    if wallet is not None:
        db.session.expire(wallet)
    if result.rowcount != 1:
        raise InsufficientFundsError(
            "Insufficient credit balance",
            details={"user_id": user_id, "amount_cents": amount_cents, "order_number": order_number},
        )

    tx = CreditTransaction(
        user_id=user_id,
        amount_cents=-amount_cents,
        type=CREDIT_USAGE,
        description=f"Payment for order {order_number}",
        order_id=order_id,
        performed_by_user_id=performed_by,
        created_at=utcnow(),
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def get_client_credit(actor: ActorContext, user_id: int) -> dict:
    """Wallet plus recent transactions, visible to the client and to staff."""
    client = db.session.get(User, user_id)
    if client is None:
        raise NotFoundError("Client not found", details={"user_id": user_id})
    authorize_client_access(actor, client, "VIEW_CLIENT_FINANCIALS")
    return {
        "wallet": get_wallet(user_id),
        "transactions": [tx.to_dict() for tx in list_credit_transactions(user_id)],
    }
