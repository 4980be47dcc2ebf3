"""
Credit wallet tests.
"""

import pytest

from conftest import actor_for
from orderledger.errors import AuthorizationError, InsufficientFundsError, NotFoundError, ValidationError
from orderledger.models import CreditTransaction
from orderledger.services import credit_service


class TestAdjustCredit:

    def test_add_creates_wallet(self, db_session, admin, retailer):
        tx = credit_service.adjust_credit(actor_for(admin), retailer.id, 20000, "add", "Advance")

        assert tx.amount_cents == 20000
        assert tx.type == "deposit"
        assert tx.description == "Advance"
        assert tx.performed_by_user_id == admin.id
        assert credit_service.get_wallet(retailer.id)["balance_cents"] == 20000

    def test_deduct(self, admin, retailer):
        actor = actor_for(admin)
        credit_service.adjust_credit(actor, retailer.id, 20000, "add")
        tx = credit_service.adjust_credit(actor, retailer.id, 7500, "deduct")

        assert tx.amount_cents == -7500
        assert tx.type == "adjustment"
        assert tx.description == "Credit deduct"
        assert credit_service.get_wallet(retailer.id)["balance_cents"] == 12500

    def test_deduct_more_than_balance(self, db_session, admin, retailer):
        actor = actor_for(admin)
        credit_service.adjust_credit(actor, retailer.id, 1000, "add")

        with pytest.raises(InsufficientFundsError) as exc:
            credit_service.adjust_credit(actor, retailer.id, 1001, "deduct")

        assert exc.value.details == {"amount_cents": 1001, "balance_cents": 1000}
        assert credit_service.get_wallet(retailer.id)["balance_cents"] == 1000
        assert db_session.query(CreditTransaction).count() == 1

    def test_set_records_difference(self, admin, retailer):
        actor = actor_for(admin)
        credit_service.adjust_credit(actor, retailer.id, 5000, "add")
        tx = credit_service.adjust_credit(actor, retailer.id, 2000, "adjustment")

        assert tx.amount_cents == -3000
        assert credit_service.get_wallet(retailer.id)["balance_cents"] == 2000

    def test_set_to_zero(self, admin, retailer):
        tx = credit_service.adjust_credit(actor_for(admin), retailer.id, 0, "adjustment")
        assert tx.amount_cents == 0

    @pytest.mark.parametrize(
        "amount,adjust_type",
        [(0, "add"), (-5, "deduct"), (-1, "adjustment"), ("10", "add"), (1.5, "add"), (100, "gift")],
    )
    def test_bad_input(self, admin, retailer, amount, adjust_type):
        with pytest.raises(ValidationError):
            credit_service.adjust_credit(actor_for(admin), retailer.id, amount, adjust_type)

    def test_staff_accounts_have_no_wallet(self, admin, salesman):
        with pytest.raises(ValidationError):
            credit_service.adjust_credit(actor_for(admin), salesman.id, 1000, "add")

    def test_unknown_client(self, admin):
        with pytest.raises(NotFoundError):
            credit_service.adjust_credit(actor_for(admin), 999, 1000, "add")

    def test_sub_admin_cannot_manage_credit(self, sub_admin, retailer):
        with pytest.raises(AuthorizationError):
            credit_service.adjust_credit(actor_for(sub_admin), retailer.id, 1000, "add")


class TestWalletReads:

    def test_missing_wallet_reads_as_zero(self, retailer):
        wallet = credit_service.get_wallet(retailer.id)
        assert wallet == {"user_id": retailer.id, "balance_cents": 0, "used_credit_cents": 0, "updated_at": None}
        assert credit_service.wallet_balance_cents(retailer.id) is None

    def test_client_reads_own_credit(self, admin, retailer):
        credit_service.adjust_credit(actor_for(admin), retailer.id, 3000, "add")
        credit_service.adjust_credit(actor_for(admin), retailer.id, 1000, "deduct")

        view = credit_service.get_client_credit(actor_for(retailer), retailer.id)
        assert view["wallet"]["balance_cents"] == 2000
        assert [tx["amount_cents"] for tx in view["transactions"]] == [-1000, 3000]

    def test_sub_admin_reads_any(self, sub_admin, retailer):
        assert credit_service.get_client_credit(actor_for(sub_admin), retailer.id)["transactions"] == []

    def test_other_client_denied(self, retailer, parlor):
        with pytest.raises(AuthorizationError):
            credit_service.get_client_credit(actor_for(parlor), retailer.id)

    def test_debit_never_overdraws(self, db_session, admin, retailer):
        credit_service.adjust_credit(actor_for(admin), retailer.id, 1000, "add")

        with pytest.raises(InsufficientFundsError):
            credit_service.debit_for_order(retailer.id, 1500, order_id=None, order_number="ORD-X", performed_by=None)
        db_session.rollback()

        assert credit_service.get_wallet(retailer.id)["balance_cents"] == 1000
