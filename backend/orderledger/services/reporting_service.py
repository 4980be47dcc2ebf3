# Overview: Read-only aggregation views over persisted orders; dashboards and pending rollups.

"""
Reporting Views

Every rollup excludes cancelled orders. Pending rollups additionally
exclude fully paid orders, using the same filter as a client's current
pending (pending_limit_service.open_pending_filter), so the numbers here
always agree with what the limit check sees.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Brand, Order, Product, SalesmanShopAssignment, User
from ..models.orders import ORDER_STATUS_CANCELLED, ORDER_STATUS_PENDING
from ..permissions import Role, SHOP_ROLES
from orderledger.time_utils import start_of_today, to_utc_z
from .ledger_math import PAYMENT_STATUS_PAID
from .pending_limit_service import open_pending_filter


def _open_pending_sum():
    """SUM(pending) restricted to unpaid orders, for use next to other aggregates."""
    return func.coalesce(
        func.sum(case((Order.payment_status != PAYMENT_STATUS_PAID, Order.pending_cents), else_=0)), 0
    )


def _load_salesman(salesman_id: int) -> User:
    salesman = db.session.get(User, salesman_id)
    if salesman is None or salesman.role != Role.SALESMAN.value:
        raise NotFoundError("Salesman not found", details={"salesman_id": salesman_id})
    return salesman


def brand_pending_breakdown(salesman_id: int | None = None) -> list[dict]:
    """Outstanding pending per brand (orders without a brand grouped under None)."""
    query = (
        db.session.query(
            Order.brand_id,
            Brand.name,
            func.coalesce(func.sum(Order.pending_cents), 0),
            func.count(Order.id),
        )
        .outerjoin(Brand, Brand.id == Order.brand_id)
        .filter(*open_pending_filter())
        .filter(Order.pending_cents > 0)
    )
    if salesman_id is not None:
        query = query.filter(Order.recorded_by_user_id == salesman_id)
    rows = query.group_by(Order.brand_id, Brand.name).all()

    result = [
        {
            "brand_id": brand_id,
            "brand_name": name,
            "pending_cents": int(pending),
            "order_count": int(count),
        }
        for brand_id, name, pending, count in rows
    ]
    result.sort(key=lambda r: (-r["pending_cents"], r["brand_name"] or ""))
    return result


def _shop_breakdown(salesman_id: int) -> list[dict]:
    rows = (
        db.session.query(
            User.id,
            User.full_name,
            User.role,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_cents), 0),
            func.coalesce(func.sum(Order.paid_cents), 0),
            _open_pending_sum(),
        )
        .join(Order, Order.user_id == User.id)
        .filter(Order.recorded_by_user_id == salesman_id, Order.status != ORDER_STATUS_CANCELLED)
        .group_by(User.id, User.full_name, User.role)
        .order_by(User.full_name.asc())
        .all()
    )
    return [
        {
            "shop_id": shop_id,
            "shop_name": name,
            "role": role,
            "order_count": int(count),
            "total_sales_cents": int(total),
            "collected_cents": int(paid),
            "pending_cents": int(pending),
        }
        for shop_id, name, role, count, total, paid, pending in rows
    ]


def _salesman_stats(salesman_id: int) -> dict:
    order_count, total, paid, pending, today = (
        db.session.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_cents), 0),
            func.coalesce(func.sum(Order.paid_cents), 0),
            _open_pending_sum(),
            func.coalesce(func.sum(case((Order.created_at >= start_of_today(), 1), else_=0)), 0),
        )
        .filter(Order.recorded_by_user_id == salesman_id, Order.status != ORDER_STATUS_CANCELLED)
        .one()
    )
    shop_count = (
        db.session.query(func.count(SalesmanShopAssignment.id))
        .filter(SalesmanShopAssignment.salesman_id == salesman_id)
        .scalar()
    )
    return {
        "order_count": int(order_count),
        "total_sales_cents": int(total),
        "collected_cents": int(paid),
        "pending_cents": int(pending),
        "today_orders": int(today),
        "shop_count": int(shop_count or 0),
    }


def salesman_performance() -> list[dict]:
    """Per-salesman totals with a per-shop breakdown."""
    salesmen = (
        db.session.query(User)
        .filter(User.role == Role.SALESMAN.value)
        .order_by(User.full_name.asc())
        .all()
    )
    report = []
    for salesman in salesmen:
        entry = {
            "salesman_id": salesman.id,
            "salesman_name": salesman.full_name,
            "is_active": salesman.is_active,
        }
        entry.update(_salesman_stats(salesman.id))
        entry["shops"] = _shop_breakdown(salesman.id)
        report.append(entry)
    return report


def salesman_shop_ledger(salesman_id: int, shop_id: int) -> dict:
    """One shop's position as seen by its salesman: per-brand pending and the orders behind it."""
    _load_salesman(salesman_id)
    shop = db.session.get(User, shop_id)
    if shop is None or Role(shop.role) not in SHOP_ROLES:
        raise NotFoundError("Shop not found", details={"shop_id": shop_id})

    base = db.session.query(Order).filter(
        Order.user_id == shop_id,
        Order.recorded_by_user_id == salesman_id,
        Order.status != ORDER_STATUS_CANCELLED,
    )
    orders = base.order_by(Order.created_at.desc(), Order.id.desc()).all()

    brand_rows = (
        db.session.query(Order.brand_id, Brand.name, func.coalesce(func.sum(Order.pending_cents), 0))
        .outerjoin(Brand, Brand.id == Order.brand_id)
        .filter(
            Order.user_id == shop_id,
            Order.recorded_by_user_id == salesman_id,
            *open_pending_filter(),
        )
        .group_by(Order.brand_id, Brand.name)
        .all()
    )

    total_pending = sum(int(p) for _, _, p in brand_rows)
    return {
        "salesman_id": salesman_id,
        "shop": {
            "id": shop.id,
            "full_name": shop.full_name,
            "role": shop.role,
            "pending_limit_cents": shop.pending_limit_cents,
        },
        "total_sales_cents": sum(o.total_cents for o in orders),
        "collected_cents": sum(o.paid_cents for o in orders),
        "pending_cents": total_pending,
        "brands": [
            {"brand_id": bid, "brand_name": name, "pending_cents": int(pending)}
            for bid, name, pending in brand_rows
            if int(pending) > 0
        ],
        "orders": [o.to_dict() for o in orders],
    }


def salesman_dashboard(salesman_id: int) -> dict:
    salesman = _load_salesman(salesman_id)
    shops = (
        db.session.query(User)
        .join(SalesmanShopAssignment, SalesmanShopAssignment.shop_id == User.id)
        .filter(SalesmanShopAssignment.salesman_id == salesman_id)
        .order_by(User.full_name.asc())
        .all()
    )
    shop_ledgers = []
    for shop in shops:
        pending = (
            db.session.query(func.coalesce(func.sum(Order.pending_cents), 0))
            .filter(Order.user_id == shop.id, *open_pending_filter())
            .scalar()
        )
        limit = shop.pending_limit_cents
        shop_ledgers.append({
            "shop_id": shop.id,
            "shop_name": shop.full_name,
            "role": shop.role,
            "pending_cents": int(pending or 0),
            "pending_limit_cents": limit,
            "remaining_limit_cents": None if limit is None else max(0, limit - int(pending or 0)),
        })

    return {
        "salesman_id": salesman.id,
        "salesman_name": salesman.full_name,
        "stats": _salesman_stats(salesman_id),
        "brand_pending": brand_pending_breakdown(salesman_id),
        "shops": shop_ledgers,
    }


def dashboard_stats(low_stock_threshold: int | None = None) -> dict:
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)

    order_count, revenue, pending, pending_orders, today = (
        db.session.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.paid_cents), 0),
            _open_pending_sum(),
            func.coalesce(func.sum(case((Order.status == ORDER_STATUS_PENDING, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Order.created_at >= start_of_today(), 1), else_=0)), 0),
        )
        .filter(Order.status != ORDER_STATUS_CANCELLED)
        .one()
    )
    low_stock = (
        db.session.query(func.count(Product.id))
        .filter(Product.is_active.is_(True), Product.stock_quantity <= low_stock_threshold)
        .scalar()
    )
    return {
        "order_count": int(order_count),
        "revenue_collected_cents": int(revenue),
        "outstanding_pending_cents": int(pending),
        "pending_order_count": int(pending_orders),
        "today_orders": int(today),
        "low_stock_count": int(low_stock or 0),
    }


def consolidated_pending_payments() -> list[dict]:
    """Every open order that still has money outstanding, oldest first."""
    orders = (
        db.session.query(Order)
        .filter(*open_pending_filter())
        .filter(Order.pending_cents > 0)
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )
    return [
        {
            "order_id": o.id,
            "order_number": o.order_number,
            "client_id": o.user_id,
            "client_name": o.client.full_name if o.client else None,
            "client_role": o.client.role if o.client else None,
            "recorded_by_user_id": o.recorded_by_user_id,
            "total_cents": o.total_cents,
            "paid_cents": o.paid_cents,
            "pending_cents": o.pending_cents,
            "payment_status": o.payment_status,
            "pending_payment_due_date": to_utc_z(o.pending_payment_due_date),
            "created_at": to_utc_z(o.created_at),
        }
        for o in orders
    ]


def shop_limit_report(role: str | None = None) -> list[dict]:
    """Limit usage per retailer / beauty parlor."""
    roles = [r.value for r in SHOP_ROLES]
    if role is not None:
        if role not in roles:
            raise ValidationError(f"Invalid shop role: {role}. Must be one of {sorted(roles)}")
        roles = [role]

    pending_by_client = dict(
        db.session.query(Order.user_id, func.coalesce(func.sum(Order.pending_cents), 0))
        .filter(*open_pending_filter())
        .group_by(Order.user_id)
        .all()
    )
    shops = (
        db.session.query(User)
        .filter(User.role.in_(roles))
        .order_by(User.full_name.asc())
        .all()
    )
    report = []
    for shop in shops:
        used = int(pending_by_client.get(shop.id, 0))
        limit = shop.pending_limit_cents
        if limit is None:
            remaining, usage = None, None
        else:
            remaining = max(0, limit - used)
            usage = round(used * 100.0 / limit, 2) if limit > 0 else (100.0 if used > 0 else 0.0)
        report.append({
            "shop_id": shop.id,
            "shop_name": shop.full_name,
            "role": shop.role,
            "assigned_salesman_id": shop.assigned_salesman_id,
            "pending_limit_cents": limit,
            "used_cents": used,
            "remaining_cents": remaining,
            "usage_percent": usage,
        })
    return report
