from .item import (
    ItemCreateSerializer,
    ItemSerializer,
    ItemUpdateSerializer,
    LotSerializer,
)
from .transaction import (
    InventoryTransactionSerializer,
    PostTransactionSerializer,
    ReverseTransactionSerializer,
)

__all__ = [
    "ItemSerializer",
    "ItemCreateSerializer",
    "ItemUpdateSerializer",
    "LotSerializer",
    "InventoryTransactionSerializer",
    "PostTransactionSerializer",
    "ReverseTransactionSerializer",
]
