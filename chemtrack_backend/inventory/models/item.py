# inventory/models/item.py

"""
ITEM (CATALOG ENTRY)

One catalog entry: a chemical, a solution or a finished product.

RULES:
- sku is unique
- qty_on_hand is DERIVED: always Σ Lot.quantity for the item
  (written only by inventory.services, never by catalog edits)
- lot_tracked flips to True the first time the ledger touches a lot
- Solutions/products may carry a bill of materials (ItemComponent rows)
- Never deleted while transaction lines reference it (PROTECT on the line FK)
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q, F


class Item(models.Model):
    class ItemType(models.TextChoices):
        CHEMICAL = "chemical", "Chemical"
        SOLUTION = "solution", "Solution"
        PRODUCT = "product", "Product"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku = models.CharField(max_length=64, unique=True)
    display_name = models.CharField(max_length=255)
    item_type = models.CharField(max_length=16, choices=ItemType.choices)

    uom = models.CharField(max_length=16, default="ea", help_text="Unit of measure")

    lot_tracked = models.BooleanField(default=False)

    # Derived aggregate, ledger-managed only
    qty_on_hand = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        default=Decimal("0"),
        help_text="Σ lot quantities (service-managed only)",
    )

    cost = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        null=True,
        blank=True,
        default=None,
        help_text="Default unit cost used when a ledger line carries none.",
    )

    description = models.TextField(blank=True, default="")

    # Chemical-only descriptive fields
    cas_number = models.CharField(max_length=32, blank=True, default="")
    location = models.CharField(max_length=128, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_name"]
        indexes = [
            models.Index(fields=["item_type", "display_name"], name="inv_item_type_name_idx"),
        ]

    def clean(self):
        if not (self.sku or "").strip():
            raise ValidationError({"sku": "sku is required"})

        if self.cost is not None and self.cost < Decimal("0"):
            raise ValidationError({"cost": "cost cannot be negative"})

    @property
    def has_bom(self) -> bool:
        return self.item_type != self.ItemType.CHEMICAL and self.components.exists()

    def __str__(self):
        return f"{self.sku} | {self.display_name}"


class ItemComponent(models.Model):
    """
    Bill-of-materials row: `parent` is made from `quantity` of `component`.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    parent = models.ForeignKey(
        Item,
        on_delete=models.CASCADE,
        related_name="components",
    )
    component = models.ForeignKey(
        Item,
        on_delete=models.PROTECT,
        related_name="used_in",
    )

    quantity = models.DecimalField(max_digits=18, decimal_places=4)
    uom = models.CharField(max_length=16, default="ea")

    class Meta:
        ordering = ["parent", "component"]
        constraints = [
            models.UniqueConstraint(
                fields=["parent", "component"],
                name="unique_bom_component_per_item",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="chk_itemcomponent_qty_gt_zero",
            ),
            models.CheckConstraint(
                condition=~Q(parent=F("component")),
                name="chk_itemcomponent_not_self",
            ),
        ]

    def __str__(self):
        return f"{self.parent.sku} <- {self.quantity} {self.uom} {self.component.sku}"
