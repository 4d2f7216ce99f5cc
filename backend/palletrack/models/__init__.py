from .auth import User, SessionToken, LoginAttempt
from .locations import StorageLocation
from .products import ProductVariant, PRODUCT_CATEGORIES, DEFAULT_CATEGORY
from .inventory import CurrentInventory, InventoryLog, InventorySnapshot, InventoryEntry

__all__ = [
    'User', 'SessionToken', 'LoginAttempt',
    'StorageLocation',
    'ProductVariant', 'PRODUCT_CATEGORIES', 'DEFAULT_CATEGORY',
    'CurrentInventory', 'InventoryLog', 'InventorySnapshot', 'InventoryEntry',
]
