# Overview: Closed set of roles and the capability table checked at the
# authorization boundary.

import enum


class Role(str, enum.Enum):
    ADMIN = "admin"
    SUB_ADMIN = "sub_admin"
    SALESMAN = "salesman"
    RETAILER = "retailer"
    BEAUTY_PARLOR = "beauty_parlor"
    LOCAL_CUSTOMER = "local_customer"

    @property
    def is_staff(self) -> bool:
        return self in STAFF_ROLES

    @property
    def is_client(self) -> bool:
        return self in CLIENT_ROLES

    @property
    def is_shop(self) -> bool:
        return self in SHOP_ROLES


STAFF_ROLES = frozenset({Role.ADMIN, Role.SUB_ADMIN, Role.SALESMAN})
CLIENT_ROLES = frozenset({Role.RETAILER, Role.BEAUTY_PARLOR, Role.LOCAL_CUSTOMER})
# Clients a salesman can visit and sell to on credit
SHOP_ROLES = frozenset({Role.RETAILER, Role.BEAUTY_PARLOR})


_CLIENT_PERMISSIONS = frozenset({
    "PLACE_ORDER",
    "CANCEL_OWN_ORDER",
    "REQUEST_PAYMENT",
})

DEFAULT_ROLE_PERMISSIONS = {
    Role.ADMIN: frozenset({
        "PLACE_ORDER",
        "VIEW_ALL_ORDERS",
        "MANAGE_ORDERS",
        "ASSIGN_ORDERS",
        "RECORD_PAYMENTS",
        "REVIEW_PAYMENT_REQUESTS",
        "MANAGE_PAYMENT_SCHEDULE",
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "MANAGE_CREDIT",
        "VIEW_CLIENT_FINANCIALS",
        "SET_PENDING_LIMIT",
        "MANAGE_ASSIGNMENTS",
        "VIEW_REPORTS",
    }),
    Role.SUB_ADMIN: frozenset({
        "VIEW_ALL_ORDERS",
        "MANAGE_ORDERS",
        "RECORD_PAYMENTS",
        "REVIEW_PAYMENT_REQUESTS",
        "MANAGE_PAYMENT_SCHEDULE",
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "VIEW_CLIENT_FINANCIALS",
        "VIEW_REPORTS",
    }),
    Role.SALESMAN: frozenset({
        "CREATE_ORDER_FOR_CLIENT",
        "RECORD_FIELD_PAYMENTS",
        "REVIEW_PAYMENT_REQUESTS",
        "MANAGE_PAYMENT_SCHEDULE",
        "VIEW_OWN_LEDGER",
    }),
    Role.RETAILER: _CLIENT_PERMISSIONS,
    Role.BEAUTY_PARLOR: _CLIENT_PERMISSIONS,
    Role.LOCAL_CUSTOMER: _CLIENT_PERMISSIONS,
}
