# files/models/file.py

"""
FILE (RECIPE TEMPLATE + MASTER DOCUMENT)

A File is the template a batch run is started from:
- recipe fields (product/solution references, planned quantity/unit)
- planned components (FileComponent rows)
- optional master PDF that batch overlays are baked onto

Batches copy the recipe fields into their own snapshot at creation and never
read them from here again.
"""

import uuid
from decimal import Decimal

from django.db import models
from django.db.models import Q

from inventory.models import Item
from .folder import Folder


class File(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    file_name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")

    folder = models.ForeignKey(
        Folder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="files",
    )

    # Recipe
    product_ref = models.ForeignKey(
        Item,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="product_files",
    )
    solution_ref = models.ForeignKey(
        Item,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="solution_files",
    )
    recipe_qty = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    recipe_unit = models.CharField(max_length=16, blank=True, default="")

    # Master document
    pdf = models.BinaryField(null=True, blank=True, editable=False)
    pdf_content_type = models.CharField(max_length=64, blank=True, default="application/pdf")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["file_name"]
        indexes = [
            models.Index(fields=["folder", "file_name"], name="files_file_folder_name_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(recipe_qty__isnull=True) | Q(recipe_qty__gte=0),
                name="chk_file_recipe_qty_gte_zero",
            ),
        ]

    @property
    def has_master(self) -> bool:
        return bool(self.pdf)

    def __str__(self):
        return self.file_name


class FileComponent(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    file = models.ForeignKey(
        File,
        on_delete=models.CASCADE,
        related_name="components",
    )
    item = models.ForeignKey(
        Item,
        on_delete=models.PROTECT,
        related_name="file_components",
    )
    amount = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    unit = models.CharField(max_length=16, blank=True, default="")

    class Meta:
        ordering = ["file", "id"]

    def __str__(self):
        return f"{self.file.file_name} | {self.item.sku} | {self.amount} {self.unit}"
