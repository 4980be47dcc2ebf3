"""
Pytest fixtures for orderledger backend tests.

Provides an in-memory database, role fixtures, catalog fixtures and the
test client. Every test starts from empty tables.
"""

import itertools

import pytest

from orderledger import create_app
from orderledger.extensions import db
from orderledger.models import (
    Brand,
    Order,
    Payment,
    Product,
    SalesmanBrand,
    SalesmanShopAssignment,
    User,
)
from orderledger.models.orders import ORDER_STATUS_PENDING, PAYMENT_COMPLETED
from orderledger.permissions import Role
from orderledger.services.authz import ActorContext
from orderledger.services.ledger_math import compute_status
from orderledger.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# USERS
# =============================================================================

@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user(Role.RETAILER, pending_limit_cents=500000)."""
    counter = itertools.count(1)

    def _make(role, full_name=None, pending_limit_cents=0, is_active=True, **kwargs):
        n = next(counter)
        role_value = role.value if isinstance(role, Role) else role
        user = User(
            full_name=full_name or f"{role_value.replace('_', ' ').title()} {n}",
            email=f"{role_value}{n}@test.local",
            role=role_value,
            is_active=is_active,
            pending_limit_cents=pending_limit_cents,
            **kwargs,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user(Role.ADMIN, full_name="Admin", pending_limit_cents=None)


@pytest.fixture(scope='function')
def sub_admin(make_user):
    return make_user(Role.SUB_ADMIN, full_name="Sub Admin", pending_limit_cents=None)


@pytest.fixture(scope='function')
def salesman(make_user):
    return make_user(Role.SALESMAN, full_name="Salesman", pending_limit_cents=None)


@pytest.fixture(scope='function')
def retailer(make_user):
    """Retailer with a Rs. 500.00 pending limit."""
    return make_user(Role.RETAILER, full_name="Corner Retail", pending_limit_cents=50000)


@pytest.fixture(scope='function')
def parlor(make_user):
    return make_user(Role.BEAUTY_PARLOR, full_name="Bella Parlor", pending_limit_cents=50000)


@pytest.fixture(scope='function')
def customer(make_user):
    """Local customer with the default limit of 0 (full payment only)."""
    return make_user(Role.LOCAL_CUSTOMER, full_name="Walk-in Customer", pending_limit_cents=0)


# =============================================================================
# CATALOG
# =============================================================================

@pytest.fixture(scope='function')
def brand(db_session):
    brand = Brand(name="Glow", is_active=True)
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture(scope='function')
def other_brand(db_session):
    brand = Brand(name="Silk Touch", is_active=True)
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture(scope='function')
def make_product(db_session):
    counter = itertools.count(1)

    def _make(price_cents=10000, stock_quantity=50, brand=None, is_active=True, **kwargs):
        n = next(counter)
        product = Product(
            sku=f"SKU-{n:03d}",
            name=f"Product {n}",
            brand_id=brand.id if brand is not None else None,
            price_cents=price_cents,
            stock_quantity=stock_quantity,
            is_active=is_active,
            **kwargs,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product, brand):
    """Rs. 100.00 list price, Rs. 80.00 for retailers, Rs. 75.00 for beauty parlors."""
    return make_product(
        price_cents=10000,
        retailer_price_cents=8000,
        beauty_price_cents=7500,
        stock_quantity=50,
        brand=brand,
    )


@pytest.fixture(scope='function')
def assigned_salesman(db_session, salesman, retailer, parlor, brand):
    """Salesman with both shops and the Glow brand assigned."""
    for shop in (retailer, parlor):
        db_session.add(SalesmanShopAssignment(salesman_id=salesman.id, shop_id=shop.id))
        shop.assigned_salesman_id = salesman.id
    db_session.add(SalesmanBrand(salesman_id=salesman.id, brand_id=brand.id))
    db_session.commit()
    return salesman


# =============================================================================
# ORDERS (direct inserts for read-side tests)
# =============================================================================

@pytest.fixture(scope='function')
def make_order(db_session):
    """
    Insert a consistent order without going through the placement engine.

    paid_cents is backed by one completed payment so a recompute agrees.
    """
    counter = itertools.count(1)

    def _make(client, total_cents, paid_cents=0, status=ORDER_STATUS_PENDING, recorded_by=None, brand=None,
              created_at=None, **kwargs):
        n = next(counter)
        order = Order(
            order_number=f"ORD-TEST-{n:05d}",
            user_id=client.id,
            recorded_by_user_id=recorded_by.id if recorded_by is not None else None,
            brand_id=brand.id if brand is not None else None,
            status=status,
            created_via="salesman" if recorded_by is not None else "self_order",
            payment_method="cash",
            subtotal_cents=total_cents,
            total_cents=total_cents,
            paid_cents=paid_cents,
            pending_cents=total_cents - paid_cents,
            payment_status=compute_status(paid_cents, total_cents),
            created_at=created_at or utcnow(),
            **kwargs,
        )
        db_session.add(order)
        db_session.flush()
        if paid_cents > 0:
            db_session.add(Payment(
                order_id=order.id,
                amount_cents=paid_cents,
                payment_method="cash",
                status=PAYMENT_COMPLETED,
                recorded_by_user_id=(recorded_by or client).id,
            ))
        db_session.commit()
        return order

    return _make


# =============================================================================
# HELPERS
# =============================================================================

def actor_for(user) -> ActorContext:
    return ActorContext(user_id=user.id, role=Role(user.role))


def actor_headers(user) -> dict:
    return {'X-Actor-Id': str(user.id)}


def assert_ledger_consistent(order):
    """paid + pending == total and the status matches the amounts."""
    assert order.paid_cents + order.pending_cents == order.total_cents
    assert order.paid_cents >= 0 and order.pending_cents >= 0
    assert order.payment_status == compute_status(order.paid_cents, order.total_cents)
