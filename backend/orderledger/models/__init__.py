from .users import User, SalesmanShopAssignment, SalesmanBrand
from .catalog import Brand, Product
from .orders import Order, OrderItem, Payment, PaymentReminder
from .inventory import InventoryLog
from .credits import CreditWallet, CreditTransaction
from .activity import ActivityLog

__all__ = [
    'User', 'SalesmanShopAssignment', 'SalesmanBrand',
    'Brand', 'Product',
    'Order', 'OrderItem', 'Payment', 'PaymentReminder',
    'InventoryLog',
    'CreditWallet', 'CreditTransaction',
    'ActivityLog',
]
