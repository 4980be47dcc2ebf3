"""
Salesman assignment tests.
"""

import pytest

from conftest import actor_for
from orderledger.errors import AuthorizationError, NotFoundError, ValidationError
from orderledger.models import SalesmanBrand, SalesmanShopAssignment, User
from orderledger.permissions import Role
from orderledger.services import assignment_service


class TestShopAssignment:

    def test_assign(self, db_session, admin, salesman, retailer):
        assignment = assignment_service.assign_shop(actor_for(admin), salesman.id, retailer.id)

        assert assignment.assigned_by_user_id == admin.id
        assert db_session.get(User, retailer.id).assigned_salesman_id == salesman.id
        assert assignment_service.is_shop_assigned(salesman.id, retailer.id)
        assert [s.id for s in assignment_service.get_assigned_shops(salesman.id)] == [retailer.id]

    def test_assign_is_idempotent(self, db_session, admin, salesman, retailer):
        first = assignment_service.assign_shop(actor_for(admin), salesman.id, retailer.id)
        second = assignment_service.assign_shop(actor_for(admin), salesman.id, retailer.id)

        assert first.id == second.id
        assert db_session.query(SalesmanShopAssignment).count() == 1

    def test_primary_salesman_kept(self, db_session, admin, salesman, retailer, make_user):
        backup = make_user(Role.SALESMAN, pending_limit_cents=None)
        assignment_service.assign_shop(actor_for(admin), salesman.id, retailer.id)
        assignment_service.assign_shop(actor_for(admin), backup.id, retailer.id)

        assert db_session.get(User, retailer.id).assigned_salesman_id == salesman.id
        assert assignment_service.is_shop_assigned(backup.id, retailer.id)

    def test_customers_are_not_shops(self, admin, salesman, customer):
        with pytest.raises(ValidationError):
            assignment_service.assign_shop(actor_for(admin), salesman.id, customer.id)

    def test_target_must_be_salesman(self, admin, sub_admin, retailer):
        with pytest.raises(ValidationError):
            assignment_service.assign_shop(actor_for(admin), sub_admin.id, retailer.id)

    def test_unknown_users(self, admin, salesman, retailer):
        with pytest.raises(NotFoundError):
            assignment_service.assign_shop(actor_for(admin), 9999, retailer.id)
        with pytest.raises(NotFoundError):
            assignment_service.assign_shop(actor_for(admin), salesman.id, 9999)

    def test_sub_admin_cannot_assign(self, sub_admin, salesman, retailer):
        with pytest.raises(AuthorizationError):
            assignment_service.assign_shop(actor_for(sub_admin), salesman.id, retailer.id)

    def test_unassign(self, db_session, admin, assigned_salesman, retailer):
        assignment_service.unassign_shop(actor_for(admin), assigned_salesman.id, retailer.id)

        assert not assignment_service.is_shop_assigned(assigned_salesman.id, retailer.id)
        assert db_session.get(User, retailer.id).assigned_salesman_id is None

    def test_unassign_missing(self, admin, salesman, retailer):
        with pytest.raises(NotFoundError):
            assignment_service.unassign_shop(actor_for(admin), salesman.id, retailer.id)


class TestBrandAssignment:

    def test_replace_brand_set(self, db_session, admin, assigned_salesman, brand, other_brand):
        brands = assignment_service.assign_brands(actor_for(admin), assigned_salesman.id, [other_brand.id])

        assert [b.name for b in brands] == ["Silk Touch"]
        assert not assignment_service.is_brand_assigned(assigned_salesman.id, brand.id)
        assert db_session.query(SalesmanBrand).count() == 1

    def test_duplicates_collapse(self, admin, salesman, brand, other_brand):
        brands = assignment_service.assign_brands(actor_for(admin), salesman.id, [brand.id, other_brand.id, brand.id])
        assert [b.name for b in brands] == ["Glow", "Silk Touch"]

    def test_clear(self, admin, assigned_salesman):
        assert assignment_service.assign_brands(actor_for(admin), assigned_salesman.id, []) == []

    def test_unknown_brand(self, db_session, admin, assigned_salesman, brand):
        with pytest.raises(NotFoundError) as exc:
            assignment_service.assign_brands(actor_for(admin), assigned_salesman.id, [brand.id, 4040])
        assert exc.value.details == {"brand_ids": [4040]}
        assert assignment_service.is_brand_assigned(assigned_salesman.id, brand.id)

    @pytest.mark.parametrize("brand_ids", ["1,2", [1, "2"], [True], None])
    def test_bad_brand_ids(self, admin, salesman, brand_ids):
        with pytest.raises(ValidationError):
            assignment_service.assign_brands(actor_for(admin), salesman.id, brand_ids)


class TestAccessHelpers:

    def test_client_access(self, retailer, parlor, sub_admin, assigned_salesman, make_user):
        stranger = make_user(Role.RETAILER)

        assignment_service.authorize_client_access(actor_for(retailer), retailer, "VIEW_CLIENT_FINANCIALS")
        assignment_service.authorize_client_access(actor_for(sub_admin), retailer, "VIEW_CLIENT_FINANCIALS")
        assignment_service.authorize_client_access(actor_for(assigned_salesman), parlor, "VIEW_CLIENT_FINANCIALS")

        with pytest.raises(AuthorizationError):
            assignment_service.authorize_client_access(actor_for(retailer), parlor, "VIEW_CLIENT_FINANCIALS")
        with pytest.raises(AuthorizationError):
            assignment_service.authorize_client_access(
                actor_for(assigned_salesman), stranger, "VIEW_CLIENT_FINANCIALS"
            )

    def test_order_access_for_recorder(self, salesman, make_user, make_order):
        shop = make_user(Role.RETAILER)
        recorded = make_order(shop, 1000, recorded_by=salesman)
        other = make_order(shop, 1000)

        assignment_service.authorize_order_access(actor_for(salesman), recorded, "VIEW_ALL_ORDERS")
        with pytest.raises(AuthorizationError):
            assignment_service.authorize_order_access(actor_for(salesman), other, "VIEW_ALL_ORDERS")
