from .tenancy import Store
from .auth import User, SessionToken, ROLE_ADMIN, ROLE_MEDICAL_OWNER, ROLE_CASHIER
from .inventory import Product, Distributor
from .sales import Sale, SaleItem, PAYMENT_METHODS

__all__ = [
    'Store',
    'User', 'SessionToken', 'ROLE_ADMIN', 'ROLE_MEDICAL_OWNER', 'ROLE_CASHIER',
    'Product', 'Distributor',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
]
