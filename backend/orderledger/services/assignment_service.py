# Overview: Service-layer operations for salesman shop and brand assignments.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import User, Brand, SalesmanShopAssignment, SalesmanBrand
from ..permissions import Role
from orderledger.time_utils import utcnow
from .authz import ActorContext, require
from .concurrency import begin_write, run_in_transaction
from . import audit_service


def is_shop_assigned(salesman_id: int, shop_id: int) -> bool:
    return (
        db.session.query(SalesmanShopAssignment.id)
        .filter_by(salesman_id=salesman_id, shop_id=shop_id)
        .first()
        is not None
    )


def is_brand_assigned(salesman_id: int, brand_id: int) -> bool:
    return (
        db.session.query(SalesmanBrand.id)
        .filter_by(salesman_id=salesman_id, brand_id=brand_id)
        .first()
        is not None
    )


def get_assigned_shops(salesman_id: int) -> list[User]:
    return (
        db.session.query(User)
        .join(SalesmanShopAssignment, SalesmanShopAssignment.shop_id == User.id)
        .filter(SalesmanShopAssignment.salesman_id == salesman_id)
        .order_by(User.full_name.asc())
        .all()
    )


def get_assigned_brands(salesman_id: int) -> list[Brand]:
    return (
        db.session.query(Brand)
        .join(SalesmanBrand, SalesmanBrand.brand_id == Brand.id)
        .filter(SalesmanBrand.salesman_id == salesman_id)
        .order_by(Brand.name.asc())
        .all()
    )


def _load_user_with_role(user_id: int, roles, label: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"{label.capitalize()} not found", details={f"{label}_id": user_id})
    if Role(user.role) not in roles:
        raise ValidationError(
            f"User {user_id} is not a {label}",
            details={f"{label}_id": user_id, "role": user.role},
        )
    return user


def assign_shop(actor: ActorContext, salesman_id: int, shop_id: int) -> SalesmanShopAssignment:
    """Assign a retailer / beauty parlor to a salesman. Re-assigning is a no-op."""
    require(actor, "MANAGE_ASSIGNMENTS")

    def _op():
        begin_write()
        _load_user_with_role(salesman_id, {Role.SALESMAN}, "salesman")
        shop = _load_user_with_role(shop_id, {Role.RETAILER, Role.BEAUTY_PARLOR}, "shop")

        existing = db.session.query(SalesmanShopAssignment).filter_by(
            salesman_id=salesman_id, shop_id=shop_id
        ).first()
        if existing is not None:
            return existing

        assignment = SalesmanShopAssignment(
            salesman_id=salesman_id,
            shop_id=shop_id,
            assigned_by_user_id=actor.user_id,
            created_at=utcnow(),
        )
        db.session.add(assignment)
        if shop.assigned_salesman_id is None:
            shop.assigned_salesman_id = salesman_id
        db.session.commit()
        return assignment

    assignment = run_in_transaction(_op, context={"salesman_id": salesman_id, "shop_id": shop_id})

    current_app.logger.info("Shop %s assigned to salesman %s", shop_id, salesman_id)
    audit_service.record_activity(actor, "shop_assigned", "user", shop_id, {"salesman_id": salesman_id})
    return assignment


def unassign_shop(actor: ActorContext, salesman_id: int, shop_id: int) -> None:
    require(actor, "MANAGE_ASSIGNMENTS")

    def _op():
        begin_write()
        assignment = db.session.query(SalesmanShopAssignment).filter_by(
            salesman_id=salesman_id, shop_id=shop_id
        ).first()
        if assignment is None:
            raise NotFoundError(
                "Shop is not assigned to this salesman",
                details={"salesman_id": salesman_id, "shop_id": shop_id},
            )
        db.session.delete(assignment)
        shop = db.session.get(User, shop_id)
        if shop is not None and shop.assigned_salesman_id == salesman_id:
            shop.assigned_salesman_id = None
        db.session.commit()

    run_in_transaction(_op, context={"salesman_id": salesman_id, "shop_id": shop_id})

    current_app.logger.info("Shop %s unassigned from salesman %s", shop_id, salesman_id)
    audit_service.record_activity(actor, "shop_unassigned", "user", shop_id, {"salesman_id": salesman_id})


def assign_brands(actor: ActorContext, salesman_id: int, brand_ids: list[int]) -> list[Brand]:
    """Replace the salesman's brand set with brand_ids."""
    require(actor, "MANAGE_ASSIGNMENTS")

    if not isinstance(brand_ids, list) or any(
        isinstance(b, bool) or not isinstance(b, int) for b in brand_ids
    ):
        raise ValidationError("brand_ids must be a list of integers")
    wanted = sorted(set(brand_ids))

    def _op():
        begin_write()
        _load_user_with_role(salesman_id, {Role.SALESMAN}, "salesman")
        found = {b.id for b in db.session.query(Brand).filter(Brand.id.in_(wanted)).all()} if wanted else set()
        missing = [b for b in wanted if b not in found]
        if missing:
            raise NotFoundError("Brand not found", details={"brand_ids": missing})

        db.session.query(SalesmanBrand).filter_by(salesman_id=salesman_id).delete(synchronize_session=False)
        for brand_id in wanted:
            db.session.add(SalesmanBrand(salesman_id=salesman_id, brand_id=brand_id, created_at=utcnow()))
        db.session.commit()

    run_in_transaction(_op, context={"salesman_id": salesman_id, "brand_ids": wanted})

    current_app.logger.info("Salesman %s brands set to %s", salesman_id, wanted)
    audit_service.record_activity(actor, "brands_assigned", "user", salesman_id, {"brand_ids": wanted})
    return get_assigned_brands(salesman_id)


def authorize_client_access(actor: ActorContext, client: User, staff_permission: str) -> None:
    """
    Clients reach their own records, salesmen reach shops assigned to them,
    everyone else needs ``staff_permission``.
    """
    if actor.user_id == client.id:
        return
    if actor.role == Role.SALESMAN:
        if client.assigned_salesman_id == actor.user_id or is_shop_assigned(actor.user_id, client.id):
            return
        raise AuthorizationError(
            "Shop is not assigned to this salesman",
            details={"salesman_id": actor.user_id, "client_id": client.id},
        )
    require(actor, staff_permission)


def authorize_order_access(actor: ActorContext, order, staff_permission: str) -> None:
    """Order-level variant: salesmen also reach orders they recorded themselves."""
    if actor.user_id == order.user_id:
        return
    if actor.role == Role.SALESMAN:
        if order.recorded_by_user_id == actor.user_id:
            return
        client = order.client
        if client is not None and (
            client.assigned_salesman_id == actor.user_id or is_shop_assigned(actor.user_id, client.id)
        ):
            return
        raise AuthorizationError(
            "Order is not within this salesman's assignments",
            details={"salesman_id": actor.user_id, "order_id": order.id},
        )
    require(actor, staff_permission)
