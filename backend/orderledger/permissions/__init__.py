# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    ORDER_PERMISSIONS,
    PAYMENT_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    CREDIT_PERMISSIONS,
    CLIENT_PERMISSIONS,
    REPORT_PERMISSIONS,
)
from .roles import Role, STAFF_ROLES, CLIENT_ROLES, SHOP_ROLES, DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
    role_has_permission,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "ORDER_PERMISSIONS",
    "PAYMENT_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "CREDIT_PERMISSIONS",
    "CLIENT_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "Role",
    "STAFF_ROLES",
    "CLIENT_ROLES",
    "SHOP_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
    "role_has_permission",
]
