from .auth import User
from .catalog import Product, Supplier
from .customers import Customer
from .sales import Sale, SaleItem
from .purchases import Purchase, PurchaseItem
from .documents import Return, ReturnItem, DocumentSequence

__all__ = [
    'User',
    'Product', 'Supplier',
    'Customer',
    'Sale', 'SaleItem',
    'Purchase', 'PurchaseItem',
    'Return', 'ReturnItem', 'DocumentSequence',
]
