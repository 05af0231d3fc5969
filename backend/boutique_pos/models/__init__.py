from .auth import User, SessionToken, ROLES
from .inventory import Category, Product, StockRecord, StockAdjustment, ADJUSTMENT_TYPES
from .customers import Customer
from .sales import (
    Sale,
    SaleItem,
    Payment,
    PAYMENT_METHODS,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_REFUNDED,
)

__all__ = [
    'User', 'SessionToken', 'ROLES',
    'Category', 'Product', 'StockRecord', 'StockAdjustment', 'ADJUSTMENT_TYPES',
    'Customer',
    'Sale', 'SaleItem', 'Payment', 'PAYMENT_METHODS',
    'SALE_STATUS_COMPLETED', 'SALE_STATUS_REFUNDED',
]
