# inventory/models/lot.py

"""
LOT

A uniquely identified sub-quantity of an Item (expiry, vendor lot, location).

CANONICAL MODEL:
- One row per (item, lot_number)
- Created the first time a ledger line references an unseen lot number
- quantity is SIGNED: negative lots are a backorder signal unless
  INVENTORY_ALLOW_NEGATIVE_LOTS is off (enforced in the ledger)
- quantity is mutated ONLY through atomic F() increments in the ledger
- Physically removed only through inventory.services.lots.delete_lot
"""

import uuid
from decimal import Decimal

from django.db import models

from .item import Item


class Lot(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    item = models.ForeignKey(
        Item,
        on_delete=models.CASCADE,
        related_name="lots",
    )

    lot_number = models.CharField(max_length=128)

    quantity = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        default=Decimal("0"),
        help_text="Signed on-hand quantity for this lot (ledger-managed only)",
    )

    expiry_date = models.DateField(null=True, blank=True)
    vendor_lot_number = models.CharField(max_length=128, blank=True, default="")
    location = models.CharField(max_length=128, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["item", "lot_number"]
        indexes = [
            models.Index(fields=["item", "expiry_date"], name="inv_lot_item_expiry_idx"),
            models.Index(fields=["lot_number"], name="inv_lot_number_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["item", "lot_number"],
                name="unique_lot_number_per_item",
            ),
        ]

    @property
    def is_empty(self) -> bool:
        return (self.quantity or Decimal("0")) == Decimal("0")

    def __str__(self):
        sku = getattr(self.item, "sku", "Item")
        return f"{sku} | Lot {self.lot_number} | {self.quantity}"
