"""
Payment schedule tests: deferred initial payments, due dates and reminders.
"""

from datetime import datetime, timedelta

import pytest

from conftest import actor_for, assert_ledger_consistent
from orderledger.errors import AuthorizationError, NotFoundError, ValidationError
from orderledger.models import ActivityLog, Order, PaymentReminder
from orderledger.models.orders import (
    INITIAL_PAYMENT_COLLECTED,
    INITIAL_PAYMENT_NOT_COLLECTED,
    ORDER_STATUS_CANCELLED,
)
from orderledger.permissions import Role
from orderledger.services import schedule_service
from orderledger.time_utils import utcnow


@pytest.fixture
def deferred_order(make_order, retailer, salesman):
    """Rs. 100.00 order with Rs. 30.00 initial payment still to collect, entered by the salesman."""
    return make_order(
        retailer,
        10000,
        recorded_by=salesman,
        initial_payment_required_cents=3000,
        initial_payment_status=INITIAL_PAYMENT_NOT_COLLECTED,
    )


class TestCollectInitialPayment:

    def test_admin_collects(self, db_session, admin, deferred_order):
        payment = schedule_service.collect_initial_payment(actor_for(admin), deferred_order.id)

        assert payment.amount_cents == 3000
        assert payment.payment_method == "cash"
        assert payment.notes == "Initial payment collected"
        order = db_session.get(Order, deferred_order.id)
        assert order.initial_payment_status == INITIAL_PAYMENT_COLLECTED
        assert (order.paid_cents, order.pending_cents) == (3000, 7000)
        assert_ledger_consistent(order)

    def test_recording_salesman_collects(self, salesman, deferred_order):
        payment = schedule_service.collect_initial_payment(actor_for(salesman), deferred_order.id, "bank_transfer")
        assert payment.recorded_by_user_id == salesman.id

    def test_other_salesman_denied(self, make_user, deferred_order):
        rival = make_user(Role.SALESMAN, pending_limit_cents=None)
        with pytest.raises(AuthorizationError):
            schedule_service.collect_initial_payment(actor_for(rival), deferred_order.id)

    def test_collect_twice(self, admin, deferred_order):
        schedule_service.collect_initial_payment(actor_for(admin), deferred_order.id)
        with pytest.raises(ValidationError):
            schedule_service.collect_initial_payment(actor_for(admin), deferred_order.id)

    def test_nothing_to_collect(self, admin, retailer, make_order):
        order = make_order(retailer, 10000)
        with pytest.raises(ValidationError):
            schedule_service.collect_initial_payment(actor_for(admin), order.id)

    def test_credit_balance_method(self, admin, deferred_order):
        with pytest.raises(ValidationError):
            schedule_service.collect_initial_payment(actor_for(admin), deferred_order.id, "credit_balance")

    def test_clients_cannot_collect(self, retailer, deferred_order):
        with pytest.raises(AuthorizationError):
            schedule_service.collect_initial_payment(actor_for(retailer), deferred_order.id)

    def test_unknown_order(self, admin):
        with pytest.raises(NotFoundError):
            schedule_service.collect_initial_payment(actor_for(admin), 5150)


class TestSetPaymentDueDate:

    def test_pending_due_date(self, db_session, sub_admin, retailer, make_order):
        order = make_order(retailer, 10000, paid_cents=2500)
        due = datetime(2031, 3, 1, 9, 0)

        reminder = schedule_service.set_payment_due_date(actor_for(sub_admin), order.id, due, "pending")

        assert reminder.reminder_type == "pending_due"
        assert reminder.amount_cents == 7500
        assert reminder.user_id == retailer.id
        assert db_session.get(Order, order.id).pending_payment_due_date == due

    def test_initial_due_date(self, db_session, salesman, deferred_order):
        due = datetime(2031, 1, 15)
        reminder = schedule_service.set_payment_due_date(actor_for(salesman), deferred_order.id, due, "initial")

        assert reminder.reminder_type == "initial_due"
        assert reminder.amount_cents == 3000
        assert db_session.get(Order, deferred_order.id).initial_payment_due_date == due

    def test_initial_without_deferred_payment(self, admin, retailer, make_order):
        order = make_order(retailer, 10000)
        with pytest.raises(ValidationError):
            schedule_service.set_payment_due_date(actor_for(admin), order.id, datetime(2031, 1, 1), "initial")

    def test_paid_order_has_nothing_due(self, admin, retailer, make_order):
        order = make_order(retailer, 10000, paid_cents=10000)
        with pytest.raises(ValidationError):
            schedule_service.set_payment_due_date(actor_for(admin), order.id, datetime(2031, 1, 1), "pending")

    def test_cancelled_order(self, db_session, admin, retailer, make_order):
        order = make_order(retailer, 10000, status=ORDER_STATUS_CANCELLED)
        with pytest.raises(ValidationError):
            schedule_service.set_payment_due_date(actor_for(admin), order.id, datetime(2031, 1, 1), "pending")
        assert db_session.query(PaymentReminder).count() == 0

    def test_bad_kind_and_date(self, admin, retailer, make_order):
        order = make_order(retailer, 10000)
        with pytest.raises(ValidationError):
            schedule_service.set_payment_due_date(actor_for(admin), order.id, datetime(2031, 1, 1), "final")
        with pytest.raises(ValidationError):
            schedule_service.set_payment_due_date(actor_for(admin), order.id, "2031-01-01", "pending")

    def test_unassigned_salesman(self, salesman, make_user, make_order):
        shop = make_user(Role.RETAILER)
        order = make_order(shop, 10000)
        with pytest.raises(AuthorizationError):
            schedule_service.set_payment_due_date(actor_for(salesman), order.id, datetime(2031, 1, 1), "pending")


class TestUpcomingAndOverdue:

    def test_windows(self, admin, retailer, parlor, make_order):
        now = utcnow()
        soon = make_order(retailer, 10000, pending_payment_due_date=now + timedelta(days=5))
        make_order(retailer, 10000, pending_payment_due_date=now + timedelta(days=45))
        late = make_order(parlor, 10000, pending_payment_due_date=now - timedelta(days=2))
        make_order(parlor, 10000, paid_cents=10000, pending_payment_due_date=now - timedelta(days=2))
        make_order(parlor, 10000, status=ORDER_STATUS_CANCELLED, pending_payment_due_date=now - timedelta(days=1))

        upcoming = schedule_service.get_upcoming_payments(actor_for(admin), days=30)
        assert [e["order_id"] for e in upcoming] == [soon.id]
        assert upcoming[0]["kind"] == "pending"
        assert upcoming[0]["amount_cents"] == 10000
        assert upcoming[0]["client_name"] == "Corner Retail"
        assert upcoming[0]["due_date"].endswith("Z")

        overdue = schedule_service.get_overdue_payments(actor_for(admin))
        assert [e["order_id"] for e in overdue] == [late.id]

    def test_initial_entries(self, admin, make_order, retailer):
        order = make_order(
            retailer,
            10000,
            initial_payment_required_cents=4000,
            initial_payment_status=INITIAL_PAYMENT_NOT_COLLECTED,
            initial_payment_due_date=utcnow() + timedelta(days=1),
        )
        (entry,) = schedule_service.get_upcoming_payments(actor_for(admin), days=7)
        assert entry["order_id"] == order.id
        assert entry["kind"] == "initial"
        assert entry["amount_cents"] == 4000

    def test_sorted_by_due_date(self, admin, retailer, make_order):
        now = utcnow()
        later = make_order(retailer, 1000, pending_payment_due_date=now + timedelta(days=9))
        sooner = make_order(retailer, 1000, pending_payment_due_date=now + timedelta(days=3))
        upcoming = schedule_service.get_upcoming_payments(actor_for(admin), days=30)
        assert [e["order_id"] for e in upcoming] == [sooner.id, later.id]

    def test_scoping(self, salesman, retailer, parlor, make_order):
        due = utcnow() + timedelta(days=3)
        mine = make_order(retailer, 1000, recorded_by=salesman, pending_payment_due_date=due)
        make_order(parlor, 1000, pending_payment_due_date=due)
        make_order(retailer, 2000, pending_payment_due_date=due)

        salesman_view = schedule_service.get_upcoming_payments(actor_for(salesman), days=7)
        assert [e["order_id"] for e in salesman_view] == [mine.id]

        retailer_view = schedule_service.get_upcoming_payments(actor_for(retailer), days=7)
        assert {e["client_id"] for e in retailer_view} == {retailer.id}
        assert len(retailer_view) == 2

    @pytest.mark.parametrize("days", [0, -3])
    def test_days_must_be_positive(self, admin, days):
        with pytest.raises(ValidationError):
            schedule_service.get_upcoming_payments(actor_for(admin), days=days)


# =============================================================================
# REMINDERS
# =============================================================================

def _reminder(db_session, order, due, **kwargs):
    reminder = PaymentReminder(
        order_id=order.id,
        user_id=order.user_id,
        reminder_type=kwargs.pop("reminder_type", "pending_due"),
        due_date=due,
        amount_cents=kwargs.pop("amount_cents", order.pending_cents),
        **kwargs,
    )
    db_session.add(reminder)
    db_session.commit()
    return reminder


class TestReminders:

    def test_scheduled_due_date_is_listed(self, admin, retailer, deferred_order):
        schedule_service.set_payment_due_date(actor_for(admin), deferred_order.id, datetime(2031, 1, 15), "initial")

        (reminder,) = schedule_service.list_reminders(actor_for(retailer))
        data = reminder.to_dict()
        assert data["order_number"] == deferred_order.order_number
        assert data["reminder_type"] == "initial_due"
        assert data["amount_cents"] == 3000
        assert data["is_seen"] is False
        assert data["is_acknowledged"] is False

    def test_scoping(self, db_session, admin, salesman, retailer, parlor, make_user, make_order, deferred_order):
        other = make_order(parlor, 5000)
        mine = _reminder(db_session, deferred_order, datetime(2031, 1, 1))
        theirs = _reminder(db_session, other, datetime(2031, 2, 1))
        rival = make_user(Role.SALESMAN, pending_limit_cents=None)

        def ids(user):
            return [r.id for r in schedule_service.list_reminders(actor_for(user))]

        assert ids(retailer) == [mine.id]
        assert ids(parlor) == [theirs.id]
        assert ids(salesman) == [mine.id]
        assert ids(admin) == [mine.id, theirs.id]
        assert ids(rival) == []

    def test_sorted_by_due_date(self, db_session, admin, retailer, make_order):
        order = make_order(retailer, 10000)
        later = _reminder(db_session, order, datetime(2031, 5, 1))
        sooner = _reminder(db_session, order, datetime(2031, 4, 1))

        assert [r.id for r in schedule_service.list_reminders(actor_for(admin))] == [sooner.id, later.id]

    def test_mark_seen_keeps_first_timestamp(self, db_session, retailer, deferred_order):
        reminder = _reminder(db_session, deferred_order, datetime(2031, 1, 1))

        first = schedule_service.mark_reminder_seen(actor_for(retailer), reminder.id)
        seen_at = first.seen_at
        again = schedule_service.mark_reminder_seen(actor_for(retailer), reminder.id)

        assert again.is_seen is True
        assert seen_at is not None
        assert again.seen_at == seen_at
        assert again.is_acknowledged is False

    def test_acknowledge_hides_reminder(self, db_session, salesman, retailer, deferred_order):
        reminder = _reminder(db_session, deferred_order, datetime(2031, 1, 1))

        acknowledged = schedule_service.acknowledge_reminder(actor_for(salesman), reminder.id)

        assert acknowledged.is_acknowledged is True
        assert acknowledged.acknowledged_at is not None
        assert acknowledged.is_seen is True
        assert schedule_service.list_reminders(actor_for(retailer)) == []
        assert [r.id for r in schedule_service.list_reminders(actor_for(retailer), include_acknowledged=True)] == [
            reminder.id
        ]
        assert db_session.query(ActivityLog).filter_by(action_type="payment_reminder_acknowledged").count() == 1

    def test_other_client_cannot_touch(self, db_session, parlor, deferred_order):
        reminder = _reminder(db_session, deferred_order, datetime(2031, 1, 1))

        with pytest.raises(NotFoundError):
            schedule_service.acknowledge_reminder(actor_for(parlor), reminder.id)
        db_session.expire_all()
        assert db_session.get(PaymentReminder, reminder.id).is_acknowledged is False

    def test_unknown_reminder(self, admin):
        with pytest.raises(NotFoundError):
            schedule_service.mark_reminder_seen(actor_for(admin), 4040)


class TestUncollectedInitialPayments:

    def test_lists_undated_and_dated(self, admin, retailer, parlor, salesman, make_order, deferred_order):
        dated = make_order(
            parlor,
            8000,
            initial_payment_required_cents=2000,
            initial_payment_status=INITIAL_PAYMENT_NOT_COLLECTED,
            initial_payment_due_date=datetime(2031, 6, 1),
            created_at=utcnow() - timedelta(days=2),
        )
        make_order(
            retailer,
            8000,
            initial_payment_required_cents=2000,
            initial_payment_status=INITIAL_PAYMENT_COLLECTED,
        )
        make_order(
            retailer,
            8000,
            status=ORDER_STATUS_CANCELLED,
            initial_payment_required_cents=2000,
            initial_payment_status=INITIAL_PAYMENT_NOT_COLLECTED,
        )
        make_order(retailer, 8000)

        rows = schedule_service.get_uncollected_initial_payments(actor_for(admin))

        assert [r["order_id"] for r in rows] == [deferred_order.id, dated.id]
        assert rows[0]["due_date"] is None
        assert rows[0]["amount_cents"] == 3000
        assert rows[0]["client_name"] == "Corner Retail"
        assert rows[1]["due_date"] == "2031-06-01T00:00:00Z"

    def test_salesman_sees_own_orders(self, salesman, parlor, make_order, deferred_order):
        make_order(
            parlor,
            8000,
            initial_payment_required_cents=2000,
            initial_payment_status=INITIAL_PAYMENT_NOT_COLLECTED,
        )

        rows = schedule_service.get_uncollected_initial_payments(actor_for(salesman))
        assert [r["order_id"] for r in rows] == [deferred_order.id]
