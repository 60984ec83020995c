"""
Inventory views package exports.
"""

from .item import ItemViewSet
from .transaction import TransactionViewSet

__all__ = [
    "ItemViewSet",
    "TransactionViewSet",
]
