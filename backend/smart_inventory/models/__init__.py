from .branches import Branch
from .auth import Role, User, ROLE_SUPER_ADMIN, ROLE_BRANCH_MANAGER, ROLE_SALES_USER, DEFAULT_ROLES
from .inventory import (
    Product,
    InventoryRecord,
    StockMovement,
    MOVEMENT_ADD,
    MOVEMENT_ADJUST,
    MOVEMENT_TRANSFER_OUT,
    MOVEMENT_TRANSFER_IN,
    MOVEMENT_TYPES,
)
from .sales import Order, OrderItem

__all__ = [
    'Branch',
    'Role', 'User', 'ROLE_SUPER_ADMIN', 'ROLE_BRANCH_MANAGER', 'ROLE_SALES_USER', 'DEFAULT_ROLES',
    'Product', 'InventoryRecord', 'StockMovement',
    'MOVEMENT_ADD', 'MOVEMENT_ADJUST', 'MOVEMENT_TRANSFER_OUT', 'MOVEMENT_TRANSFER_IN', 'MOVEMENT_TYPES',
    'Order', 'OrderItem',
]
