from .auth import User, SessionToken
from .inventory import Product, InventoryTransaction
from .customers import Customer, CustomerRewardTransaction
from .sales import Sale, SaleItem

__all__ = [
    'User', 'SessionToken',
    'Product', 'InventoryTransaction',
    'Customer', 'CustomerRewardTransaction',
    'Sale', 'SaleItem',
]
