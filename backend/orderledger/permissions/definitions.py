# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- ORDERS --

ORDER_PERMISSIONS = [
    (
        "PLACE_ORDER",
        "Place Order",
        "Check out an order for yourself",
        PermissionCategory.ORDERS,
    ),
    (
        "CREATE_ORDER_FOR_CLIENT",
        "Create Order For Client",
        "Enter a field sale on behalf of an assigned shop",
        PermissionCategory.ORDERS,
    ),
    (
        "CANCEL_OWN_ORDER",
        "Cancel Own Order",
        "Cancel your own order while it is still pending",
        PermissionCategory.ORDERS,
    ),
    (
        "VIEW_ALL_ORDERS",
        "View All Orders",
        "View any client's orders",
        PermissionCategory.ORDERS,
    ),
    (
        "MANAGE_ORDERS",
        "Manage Orders",
        "Change fulfilment status of orders",
        PermissionCategory.ORDERS,
    ),
    (
        "ASSIGN_ORDERS",
        "Assign Orders",
        "Assign orders to a sub-admin for fulfilment",
        PermissionCategory.ORDERS,
    ),
]


# -- PAYMENTS --

PAYMENT_PERMISSIONS = [
    (
        "RECORD_PAYMENTS",
        "Record Payments",
        "Record completed payments against any order",
        PermissionCategory.PAYMENTS,
    ),
    (
        "RECORD_FIELD_PAYMENTS",
        "Record Field Payments",
        "Record payments for orders you recorded or clients assigned to you",
        PermissionCategory.PAYMENTS,
    ),
    (
        "REQUEST_PAYMENT",
        "Request Payment",
        "Submit a payment for approval against your own order",
        PermissionCategory.PAYMENTS,
    ),
    (
        "REVIEW_PAYMENT_REQUESTS",
        "Review Payment Requests",
        "Approve or reject client payment requests",
        PermissionCategory.PAYMENTS,
    ),
    (
        "MANAGE_PAYMENT_SCHEDULE",
        "Manage Payment Schedule",
        "Collect initial payments and set due dates",
        PermissionCategory.PAYMENTS,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels and inventory logs",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Manually restock or correct product stock",
        PermissionCategory.INVENTORY,
    ),
]


# -- CREDIT --

CREDIT_PERMISSIONS = [
    (
        "MANAGE_CREDIT",
        "Manage Credit",
        "Top up, deduct or adjust client credit wallets",
        PermissionCategory.CREDIT,
    ),
]


# -- CLIENTS --

CLIENT_PERMISSIONS = [
    (
        "VIEW_CLIENT_FINANCIALS",
        "View Client Financials",
        "View any client's pending, limit and credit position",
        PermissionCategory.CLIENTS,
    ),
    (
        "SET_PENDING_LIMIT",
        "Set Pending Limit",
        "Change a client's pending amount limit",
        PermissionCategory.CLIENTS,
    ),
    (
        "MANAGE_ASSIGNMENTS",
        "Manage Assignments",
        "Assign shops and brands to salesmen",
        PermissionCategory.CLIENTS,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "View dashboards, pending breakdowns and salesman performance",
        PermissionCategory.REPORTS,
    ),
    (
        "VIEW_OWN_LEDGER",
        "View Own Ledger",
        "View your own salesman dashboard and shop ledgers",
        PermissionCategory.REPORTS,
    ),
]


PERMISSION_DEFINITIONS = (
    ORDER_PERMISSIONS
    + PAYMENT_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + CREDIT_PERMISSIONS
    + CLIENT_PERMISSIONS
    + REPORT_PERMISSIONS
)
