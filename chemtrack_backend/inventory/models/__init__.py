"""
PATH: inventory/models/__init__.py

Inventory models export surface.
"""

from .item import Item, ItemComponent
from .lot import Lot
from .transaction import InventoryTransaction, InventoryTransactionLine

__all__ = [
    "Item",
    "ItemComponent",
    "Lot",
    "InventoryTransaction",
    "InventoryTransactionLine",
]
