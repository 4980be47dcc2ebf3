from __future__ import annotations

from ..extensions import db
from orderledger.permissions.roles import CLIENT_ROLES
from orderledger.time_utils import to_utc_z


class User(db.Model):
    """
    A person known to the ledger: a client (local customer, retailer,
    beauty parlor) or staff (salesman, sub-admin, admin).

    Credentials live with the external auth provider; this row only carries
    the role and the financial profile fields the ledger needs.

    pending_limit_cents:
    - NULL -> unbounded (no ceiling on outstanding pending)
    - 0    -> no pending allowed (every order must be paid in full)
    - N    -> outstanding pending across open orders may not exceed N
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "pending_limit_cents IS NULL OR pending_limit_cents >= 0",
            name="ck_users_pending_limit_non_negative",
        ),
        db.Index("ix_users_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    phone = db.Column(db.String(32), nullable=True)

    role = db.Column(db.String(32), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    pending_limit_cents = db.Column(db.Integer, nullable=True)

    assigned_salesman_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    assigned_salesman = db.relationship("User", remote_side=[id], foreign_keys=[assigned_salesman_id])

    def __init__(self, **kwargs):
        # Omitted limit: clients start strict, staff unbounded. An explicit None is kept.
        if "pending_limit_cents" not in kwargs:
            is_client = kwargs.get("role") in {r.value for r in CLIENT_ROLES}
            kwargs["pending_limit_cents"] = 0 if is_client else None
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "is_active": self.is_active,
            "pending_limit_cents": self.pending_limit_cents,
            "assigned_salesman_id": self.assigned_salesman_id,
            "created_at": to_utc_z(self.created_at),
        }


class SalesmanShopAssignment(db.Model):
    """Shops (retailers / beauty parlors) a salesman may take orders for."""
    __tablename__ = "salesman_shop_assignments"
    __table_args__ = (
        db.UniqueConstraint("salesman_id", "shop_id", name="uq_salesman_shop"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salesman_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    assigned_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("User", foreign_keys=[shop_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salesman_id": self.salesman_id,
            "shop_id": self.shop_id,
            "assigned_by_user_id": self.assigned_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class SalesmanBrand(db.Model):
    """Brands a salesman is allowed to sell."""
    __tablename__ = "salesman_brands"
    __table_args__ = (
        db.UniqueConstraint("salesman_id", "brand_id", name="uq_salesman_brand"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salesman_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    brand = db.relationship("Brand")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salesman_id": self.salesman_id,
            "brand_id": self.brand_id,
            "brand_name": self.brand.name if self.brand else None,
            "created_at": to_utc_z(self.created_at),
        }
