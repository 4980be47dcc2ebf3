"""
Order placement engine tests.

Verifies:
- Initial payment split and ledger consistency on every placement
- Pending limit rejections leave no trace (no order, no stock movement)
- Wallet orders, deferred initial payments, salesman field sales
- Cancellation and fulfilment status never touch paid / pending
"""

import re

import pytest

from conftest import actor_for, assert_ledger_consistent
from orderledger.errors import (
    AuthorizationError,
    InsufficientFundsError,
    NotFoundError,
    PendingLimitExceeded,
    ValidationError,
)
from orderledger.models import ActivityLog, CreditTransaction, InventoryLog, Order, Payment, Product
from orderledger.models.orders import (
    CREATED_VIA_ADMIN,
    CREATED_VIA_SALESMAN,
    CREATED_VIA_SELF_ORDER,
    INITIAL_PAYMENT_NOT_COLLECTED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
)
from orderledger.permissions import Role
from orderledger.services import credit_service, order_service
from orderledger.services.ledger_math import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
)
from orderledger.services.pending_limit_service import current_pending_cents


def _items(product, quantity=1):
    return [{"product_id": product.id, "quantity": quantity}]


# =============================================================================
# PLACEMENT: PAYMENT SPLIT
# =============================================================================

class TestPlaceOrder:

    def test_full_payment(self, db_session, retailer, product):
        order = order_service.place_order(actor_for(retailer), retailer.id, _items(product, 2), "cash")

        # Retailer tier price is Rs. 80.00
        assert order.total_cents == 16000
        assert order.paid_cents == 16000
        assert order.pending_cents == 0
        assert order.payment_status == PAYMENT_STATUS_PAID
        assert order.created_via == CREATED_VIA_SELF_ORDER
        assert order.recorded_by_user_id is None
        assert_ledger_consistent(order)

        payment = db_session.query(Payment).filter_by(order_id=order.id).one()
        assert payment.amount_cents == 16000
        assert payment.notes == "Initial payment"

    def test_partial_payment(self, retailer, product):
        order = order_service.place_order(
            actor_for(retailer), retailer.id, _items(product, 2), "cash", initial_payment_cents=6000
        )
        assert (order.paid_cents, order.pending_cents) == (6000, 10000)
        assert order.payment_status == PAYMENT_STATUS_PARTIAL
        assert_ledger_consistent(order)

    def test_zero_payment(self, db_session, retailer, product):
        order = order_service.place_order(
            actor_for(retailer), retailer.id, _items(product), "cash", initial_payment_cents=0
        )
        assert order.payment_status == PAYMENT_STATUS_PENDING
        assert order.pending_cents == 8000
        assert db_session.query(Payment).filter_by(order_id=order.id).count() == 0

    def test_tier_prices(self, parlor, customer, product):
        parlor_order = order_service.place_order(actor_for(parlor), parlor.id, _items(product), "cash")
        customer_order = order_service.place_order(actor_for(customer), customer.id, _items(product), "cash")
        assert parlor_order.total_cents == 7500
        assert customer_order.total_cents == 10000

    def test_items_captured_at_order_price(self, db_session, retailer, product):
        order = order_service.place_order(actor_for(retailer), retailer.id, _items(product, 3), "cash")

        product.retailer_price_cents = 9999
        db_session.commit()

        (line,) = db_session.get(Order, order.id).items
        assert line.quantity == 3
        assert line.unit_price_cents == 8000
        assert line.line_total_cents == 24000

    def test_stock_deducted_with_log(self, db_session, retailer, product):
        order = order_service.place_order(actor_for(retailer), retailer.id, _items(product, 4), "cash")

        assert db_session.get(Product, product.id).stock_quantity == 46
        log = db_session.query(InventoryLog).filter_by(product_id=product.id).one()
        assert (log.previous_quantity, log.new_quantity, log.quantity_change) == (50, 46, -4)
        assert log.reason == f"Order #{order.order_number}"
        assert log.order_id == order.id

    def test_stock_clamps_at_zero(self, db_session, retailer, make_product):
        scarce = make_product(price_cents=1000, stock_quantity=1)
        order_service.place_order(actor_for(retailer), retailer.id, _items(scarce, 3), "cash")

        assert db_session.get(Product, scarce.id).stock_quantity == 0
        log = db_session.query(InventoryLog).filter_by(product_id=scarce.id).one()
        assert (log.previous_quantity, log.new_quantity, log.quantity_change) == (1, 0, -1)

    def test_audit_row(self, db_session, retailer, product):
        order = order_service.place_order(
            actor_for(retailer), retailer.id, _items(product), "cash", initial_payment_cents=3000
        )
        entry = db_session.query(ActivityLog).filter_by(action_type="order_created").one()
        assert entry.entity_type == "order"
        assert entry.entity_id == order.id
        assert entry.actor_user_id == retailer.id
        assert entry.details["pending_cents"] == 5000

    def test_admin_places_for_client(self, admin, customer, product):
        order = order_service.place_order(actor_for(admin), customer.id, _items(product), "bank_transfer")
        assert order.created_via == CREATED_VIA_ADMIN
        assert order.recorded_by_user_id == admin.id
        assert order.user_id == customer.id


class TestPlaceOrderRejections:

    def test_limit_exceeded_is_atomic(self, db_session, retailer, product, make_order):
        make_order(retailer, 45000)

        with pytest.raises(PendingLimitExceeded) as exc:
            order_service.place_order(actor_for(retailer), retailer.id, _items(product), "cash", initial_payment_cents=0)

        assert exc.value.code == "PENDING_LIMIT_EXCEEDED"
        assert exc.value.details["current_pending_cents"] == 45000
        assert exc.value.details["new_pending_cents"] == 8000
        assert exc.value.details["limit_cents"] == 50000
        assert db_session.query(Order).count() == 1
        assert db_session.get(Product, product.id).stock_quantity == 50
        assert db_session.query(InventoryLog).count() == 0

    def test_zero_limit_requires_full_payment(self, customer, product):
        with pytest.raises(PendingLimitExceeded):
            order_service.place_order(
                actor_for(customer), customer.id, _items(product), "cash", initial_payment_cents=9999
            )
        order = order_service.place_order(actor_for(customer), customer.id, _items(product), "cash")
        assert order.pending_cents == 0

    def test_cancelled_orders_free_the_limit(self, retailer, product, make_order):
        make_order(retailer, 45000, status=ORDER_STATUS_CANCELLED)
        order = order_service.place_order(
            actor_for(retailer), retailer.id, _items(product), "cash", initial_payment_cents=0
        )
        assert order.pending_cents == 8000

    def test_declared_total_mismatch(self, db_session, retailer, product):
        with pytest.raises(ValidationError) as exc:
            order_service.place_order(
                actor_for(retailer), retailer.id, _items(product), "cash", declared_total_cents=7000
            )
        assert "Order total mismatch" in exc.value.message
        assert exc.value.details == {"expected_total_cents": 8000, "declared_total_cents": 7000}
        assert db_session.query(Order).count() == 0

    def test_declared_total_match(self, retailer, product):
        order = order_service.place_order(
            actor_for(retailer), retailer.id, _items(product), "cash", declared_total_cents=8000
        )
        assert order.total_cents == 8000

    def test_initial_payment_over_total(self, retailer, product):
        with pytest.raises(ValidationError):
            order_service.place_order(
                actor_for(retailer), retailer.id, _items(product), "cash", initial_payment_cents=8001
            )

    @pytest.mark.parametrize(
        "items",
        [
            [],
            None,
            [{"product_id": 1, "quantity": 0}],
            [{"product_id": 1, "quantity": -2}],
            [{"product_id": "1", "quantity": 1}],
            ["not-a-dict"],
        ],
    )
    def test_bad_items(self, retailer, items):
        with pytest.raises(ValidationError):
            order_service.place_order(actor_for(retailer), retailer.id, items, "cash")

    def test_unknown_product(self, retailer, db_session):
        with pytest.raises(NotFoundError):
            order_service.place_order(actor_for(retailer), retailer.id, [{"product_id": 999, "quantity": 1}], "cash")

    def test_inactive_product(self, retailer, make_product):
        retired = make_product(is_active=False)
        with pytest.raises(ValidationError):
            order_service.place_order(actor_for(retailer), retailer.id, _items(retired), "cash")

    def test_invalid_payment_method(self, retailer, product):
        with pytest.raises(ValidationError):
            order_service.place_order(actor_for(retailer), retailer.id, _items(product), "bitcoin")

    def test_client_cannot_order_for_another(self, retailer, parlor, product):
        with pytest.raises(AuthorizationError):
            order_service.place_order(actor_for(retailer), parlor.id, _items(product), "cash")

    @pytest.mark.parametrize("role", [Role.SUB_ADMIN, Role.SALESMAN])
    def test_staff_without_place_order(self, make_user, customer, product, role):
        staff = make_user(role, pending_limit_cents=None)
        with pytest.raises(AuthorizationError):
            order_service.place_order(actor_for(staff), customer.id, _items(product), "cash")

    def test_inactive_client(self, admin, make_user, product):
        dormant = make_user(Role.RETAILER, is_active=False)
        with pytest.raises(ValidationError):
            order_service.place_order(actor_for(admin), dormant.id, _items(product), "cash")

    def test_staff_account_cannot_be_ordered_for(self, admin, sub_admin, product):
        with pytest.raises(ValidationError):
            order_service.place_order(actor_for(admin), sub_admin.id, _items(product), "cash")


# =============================================================================
# CREDIT WALLET ORDERS
# =============================================================================

class TestCreditBalanceOrders:

    def test_wallet_debited(self, db_session, admin, customer, product):
        credit_service.adjust_credit(actor_for(admin), customer.id, 25000, "add")

        order = order_service.place_order(actor_for(customer), customer.id, _items(product), "credit_balance")

        assert order.payment_status == PAYMENT_STATUS_PAID
        wallet = credit_service.get_wallet(customer.id)
        assert wallet["balance_cents"] == 15000
        assert wallet["used_credit_cents"] == 10000
        usage = db_session.query(CreditTransaction).filter_by(order_id=order.id).one()
        assert usage.amount_cents == -10000
        assert usage.type == "usage"

    def test_insufficient_balance(self, db_session, admin, customer, product):
        credit_service.adjust_credit(actor_for(admin), customer.id, 5000, "add")

        with pytest.raises(InsufficientFundsError) as exc:
            order_service.place_order(actor_for(customer), customer.id, _items(product), "credit_balance")

        assert exc.value.details == {"balance_cents": 5000, "total_cents": 10000}
        assert db_session.query(Order).count() == 0
        assert credit_service.get_wallet(customer.id)["balance_cents"] == 5000
        assert db_session.get(Product, product.id).stock_quantity == 50

    def test_no_wallet(self, customer, product):
        with pytest.raises(InsufficientFundsError):
            order_service.place_order(actor_for(customer), customer.id, _items(product), "credit_balance")

    def test_partial_credit_payment_rejected(self, admin, customer, product):
        credit_service.adjust_credit(actor_for(admin), customer.id, 25000, "add")
        with pytest.raises(ValidationError):
            order_service.place_order(
                actor_for(customer), customer.id, _items(product), "credit_balance", initial_payment_cents=5000
            )


# =============================================================================
# DEFERRED INITIAL PAYMENT
# =============================================================================

class TestDeferredInitialPayment:

    def test_nothing_paid_now(self, db_session, retailer, product):
        order = order_service.place_order(
            actor_for(retailer), retailer.id, _items(product), "cash",
            initial_payment_cents=3000, defer_initial_payment=True,
        )
        assert order.paid_cents == 0
        assert order.pending_cents == 8000
        assert order.initial_payment_required_cents == 3000
        assert order.initial_payment_status == INITIAL_PAYMENT_NOT_COLLECTED
        assert db_session.query(Payment).filter_by(order_id=order.id).count() == 0

    def test_deferred_amount_counts_against_limit(self, retailer, product, make_order):
        make_order(retailer, 45000)
        with pytest.raises(PendingLimitExceeded):
            order_service.place_order(
                actor_for(retailer), retailer.id, _items(product), "cash",
                initial_payment_cents=3000, defer_initial_payment=True,
            )

    def test_deferred_with_credit_balance(self, retailer, product):
        with pytest.raises(ValidationError):
            order_service.place_order(
                actor_for(retailer), retailer.id, _items(product), "credit_balance",
                initial_payment_cents=3000, defer_initial_payment=True,
            )

    @pytest.mark.parametrize("amount", [None, 0])
    def test_deferred_needs_amount(self, retailer, product, amount):
        with pytest.raises(ValidationError):
            order_service.place_order(
                actor_for(retailer), retailer.id, _items(product), "cash",
                initial_payment_cents=amount, defer_initial_payment=True,
            )

    def test_deferred_over_total(self, retailer, product):
        with pytest.raises(ValidationError):
            order_service.place_order(
                actor_for(retailer), retailer.id, _items(product), "cash",
                initial_payment_cents=9000, defer_initial_payment=True,
            )


# =============================================================================
# SALESMAN FIELD SALES
# =============================================================================

class TestCreateOrderForClient:

    def test_assigned_shop(self, db_session, assigned_salesman, retailer, product, brand):
        order = order_service.create_order_for_client(
            actor_for(assigned_salesman), retailer.id, _items(product, 2), paid_cents=3000, brand_id=brand.id
        )
        assert order.created_via == CREATED_VIA_SALESMAN
        assert order.recorded_by_user_id == assigned_salesman.id
        assert order.brand_id == brand.id
        assert order.payment_method == "cash"
        assert (order.total_cents, order.paid_cents, order.pending_cents) == (16000, 3000, 13000)
        assert_ledger_consistent(order)

        payment = db_session.query(Payment).filter_by(order_id=order.id).one()
        assert payment.recorded_by_user_id == assigned_salesman.id

    def test_unassigned_shop(self, salesman, make_user, product):
        stranger = make_user(Role.RETAILER, pending_limit_cents=None)
        with pytest.raises(AuthorizationError):
            order_service.create_order_for_client(actor_for(salesman), stranger.id, _items(product), paid_cents=0)

    def test_unassigned_brand(self, assigned_salesman, retailer, other_brand, make_product):
        silk = make_product(brand=other_brand)
        with pytest.raises(AuthorizationError):
            order_service.create_order_for_client(
                actor_for(assigned_salesman), retailer.id, _items(silk), paid_cents=0, brand_id=other_brand.id
            )

    def test_product_outside_brand(self, assigned_salesman, retailer, brand, make_product):
        unbranded = make_product()
        with pytest.raises(ValidationError):
            order_service.create_order_for_client(
                actor_for(assigned_salesman), retailer.id, _items(unbranded), paid_cents=0, brand_id=brand.id
            )

    def test_shop_limit_applies(self, db_session, assigned_salesman, parlor, product, make_order):
        make_order(parlor, 48000)
        with pytest.raises(PendingLimitExceeded):
            order_service.create_order_for_client(
                actor_for(assigned_salesman), parlor.id, _items(product), paid_cents=0
            )
        assert db_session.query(Order).count() == 1

    def test_local_customer_is_not_a_shop(self, db_session, assigned_salesman, customer, product):
        customer.assigned_salesman_id = assigned_salesman.id
        db_session.commit()
        with pytest.raises(ValidationError):
            order_service.create_order_for_client(
                actor_for(assigned_salesman), customer.id, _items(product), paid_cents=0
            )

    def test_clients_cannot_use_field_sales(self, retailer, product):
        with pytest.raises(AuthorizationError):
            order_service.create_order_for_client(actor_for(retailer), retailer.id, _items(product), paid_cents=0)

    @pytest.mark.parametrize("paid", [-1, None, "100"])
    def test_bad_paid_amount(self, assigned_salesman, retailer, product, paid):
        with pytest.raises(ValidationError):
            order_service.create_order_for_client(actor_for(assigned_salesman), retailer.id, _items(product), paid)


# =============================================================================
# LIFECYCLE
# =============================================================================

class TestCancelOrder:

    def test_cancel_keeps_financials(self, retailer, make_order):
        order = make_order(retailer, 20000, paid_cents=5000)

        cancelled = order_service.cancel_order(actor_for(retailer), order.id)

        assert cancelled.status == ORDER_STATUS_CANCELLED
        assert cancelled.cancelled_at is not None
        assert (cancelled.paid_cents, cancelled.pending_cents) == (5000, 15000)
        assert current_pending_cents(retailer.id) == 0

    def test_only_own_orders(self, retailer, parlor, make_order):
        order = make_order(parlor, 1000)
        with pytest.raises(AuthorizationError):
            order_service.cancel_order(actor_for(retailer), order.id)

    def test_only_pending_orders(self, retailer, make_order):
        order = make_order(retailer, 1000, status=ORDER_STATUS_PROCESSING)
        with pytest.raises(ValidationError):
            order_service.cancel_order(actor_for(retailer), order.id)

    def test_staff_cannot_cancel(self, admin, retailer, make_order):
        order = make_order(retailer, 1000)
        with pytest.raises(AuthorizationError):
            order_service.cancel_order(actor_for(admin), order.id)

    def test_unknown_order(self, retailer):
        with pytest.raises(NotFoundError):
            order_service.cancel_order(actor_for(retailer), 424242)


class TestUpdateOrderStatus:

    def test_sub_admin_moves_status(self, db_session, sub_admin, retailer, make_order):
        order = make_order(retailer, 1000, paid_cents=400)
        updated = order_service.update_order_status(actor_for(sub_admin), order.id, ORDER_STATUS_PROCESSING)
        assert updated.status == ORDER_STATUS_PROCESSING
        assert (updated.paid_cents, updated.pending_cents) == (400, 600)

        entry = db_session.query(ActivityLog).filter_by(action_type="order_status_updated").one()
        assert entry.details == {"from": "pending", "to": "processing"}

    def test_invalid_status(self, sub_admin, retailer, make_order):
        order = make_order(retailer, 1000)
        with pytest.raises(ValidationError):
            order_service.update_order_status(actor_for(sub_admin), order.id, "lost")

    def test_cancelled_is_terminal(self, sub_admin, retailer, make_order):
        order = make_order(retailer, 1000, status=ORDER_STATUS_CANCELLED)
        with pytest.raises(ValidationError):
            order_service.update_order_status(actor_for(sub_admin), order.id, ORDER_STATUS_PROCESSING)

    @pytest.mark.parametrize("current", [ORDER_STATUS_PENDING, ORDER_STATUS_PROCESSING])
    def test_status_update_cannot_cancel(self, db_session, sub_admin, retailer, make_order, current):
        order = make_order(retailer, 1000, paid_cents=400, status=current)

        with pytest.raises(ValidationError) as exc:
            order_service.update_order_status(actor_for(sub_admin), order.id, ORDER_STATUS_CANCELLED)
        assert exc.value.details == {"order_id": order.id, "status": ORDER_STATUS_CANCELLED}

        db_session.expire_all()
        stored = db_session.get(Order, order.id)
        assert stored.status == current
        assert stored.cancelled_at is None

    def test_salesman_cannot_manage(self, salesman, retailer, make_order):
        order = make_order(retailer, 1000)
        with pytest.raises(AuthorizationError):
            order_service.update_order_status(actor_for(salesman), order.id, ORDER_STATUS_PROCESSING)


class TestAssignOrder:

    def test_admin_assigns_to_sub_admin(self, admin, sub_admin, retailer, make_order):
        order = make_order(retailer, 1000)
        assigned = order_service.assign_order(actor_for(admin), order.id, sub_admin.id)
        assert assigned.assigned_to_user_id == sub_admin.id

    def test_assignee_must_be_sub_admin(self, admin, salesman, retailer, make_order):
        order = make_order(retailer, 1000)
        with pytest.raises(ValidationError):
            order_service.assign_order(actor_for(admin), order.id, salesman.id)

    def test_sub_admin_cannot_assign(self, sub_admin, retailer, make_order):
        order = make_order(retailer, 1000)
        with pytest.raises(AuthorizationError):
            order_service.assign_order(actor_for(sub_admin), order.id, sub_admin.id)


# =============================================================================
# QUERIES / HELPERS
# =============================================================================

class TestQueries:

    def test_order_number_format(self):
        number = order_service.generate_order_number()
        assert re.fullmatch(r"ORD-\d{13}-[0-9A-Z]{9}", number)

    def test_order_numbers_are_unique(self, retailer, product):
        actor = actor_for(retailer)
        numbers = {
            order_service.place_order(actor, retailer.id, _items(product), "cash").order_number
            for _ in range(5)
        }
        assert len(numbers) == 5

    def test_get_order_scoping(self, retailer, parlor, sub_admin, assigned_salesman, make_order):
        order = make_order(retailer, 1000)
        assert order_service.get_order(actor_for(retailer), order.id).id == order.id
        assert order_service.get_order(actor_for(sub_admin), order.id).id == order.id
        assert order_service.get_order(actor_for(assigned_salesman), order.id).id == order.id
        with pytest.raises(AuthorizationError):
            order_service.get_order(actor_for(parlor), order.id)

    def test_list_client_orders(self, admin, retailer, make_order):
        make_order(retailer, 1000)
        make_order(retailer, 2000, status=ORDER_STATUS_CANCELLED)

        assert len(order_service.list_client_orders(actor_for(admin), retailer.id)) == 2
        cancelled = order_service.list_client_orders(actor_for(admin), retailer.id, status=ORDER_STATUS_CANCELLED)
        assert [o.total_cents for o in cancelled] == [2000]

    def test_unit_price_fallback(self, make_product):
        plain = make_product(price_cents=4321)
        assert order_service.unit_price_for(plain, Role.RETAILER) == 4321
        assert order_service.unit_price_for(plain, Role.BEAUTY_PARLOR) == 4321
