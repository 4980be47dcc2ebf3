# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and display."""
    ORDERS = "ORDERS"
    PAYMENTS = "PAYMENTS"
    INVENTORY = "INVENTORY"
    CREDIT = "CREDIT"
    CLIENTS = "CLIENTS"
    REPORTS = "REPORTS"
