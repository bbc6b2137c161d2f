from .tenancy import Shop
from .auth import User, SessionToken
from .multi_shop import MultiShopPermission
from .audit import AuditLogEntry, AuditAction

__all__ = [
    'Shop',
    'User', 'SessionToken',
    'MultiShopPermission',
    'AuditLogEntry', 'AuditAction',
]
