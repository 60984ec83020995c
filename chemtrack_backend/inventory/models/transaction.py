# inventory/models/transaction.py

"""
INVENTORY LEDGER (APPEND-ONLY)

InventoryTransaction = one posted ledger entry (header).
InventoryTransactionLine = one submitted line with before/after snapshots.

GUARANTEES:
- Append-only (no updates, no deletes) for headers AND lines
- The header is persisted BEFORE any lot mutation
- A line whose item could not be resolved is still recorded
  (applied=False + error) so the audit trail shows what was asked for
- Corrections are NEW compensating entries (reversal_of), never edits
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .item import Item


class InventoryTransaction(models.Model):
    class TxnType(models.TextChoices):
        RECEIPT = "receipt", "Receipt"
        ISSUE = "issue", "Issue"
        ADJUSTMENT = "adjustment", "Adjustment"
        BUILD = "build", "Build"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    txn_type = models.CharField(max_length=16, choices=TxnType.choices)

    # Actor: FK + snapshot (the user row may change or disappear later)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_transactions",
    )
    actor_name = models.CharField(max_length=255, blank=True, default="")
    actor_email = models.CharField(max_length=255, blank=True, default="")

    memo = models.TextField(blank=True, default="")
    project = models.CharField(max_length=128, blank=True, default="")
    department = models.CharField(max_length=128, blank=True, default="")
    reason = models.CharField(max_length=255, blank=True, default="")

    # Originating document
    batch = models.ForeignKey(
        "batches.Batch",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="inventory_transactions",
    )
    work_order_id = models.CharField(max_length=64, blank=True, default="")
    ref_doc_type = models.CharField(max_length=32, blank=True, default="")

    # Compensating entry
    reversal_of = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversed_by",
    )

    effective_date = models.DateField(default=timezone.localdate)
    posted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-posted_at"]
        indexes = [
            models.Index(fields=["posted_at"], name="inv_txn_posted_idx"),
            models.Index(fields=["txn_type", "posted_at"], name="inv_txn_type_posted_idx"),
            models.Index(fields=["batch", "posted_at"], name="inv_txn_batch_posted_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("InventoryTransaction records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "InventoryTransaction records are immutable and cannot be deleted"
        )

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    def __str__(self):
        return f"{self.txn_type} | {self.posted_at:%Y-%m-%d %H:%M} | {self.actor_name or 'System'}"


class InventoryTransactionLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    transaction = models.ForeignKey(
        InventoryTransaction,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    line_no = models.PositiveIntegerField()

    # What the caller asked for (kept even when it could not be resolved)
    requested_item_id = models.CharField(max_length=64)

    item = models.ForeignKey(
        Item,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transaction_lines",
    )

    lot_number = models.CharField(max_length=128, blank=True, default="")
    quantity = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        help_text="Signed delta (negative = consumption)",
    )

    unit_cost = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    total_value = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)

    lot_qty_before = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    lot_qty_after = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    item_qty_before = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    item_qty_after = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)

    applied = models.BooleanField(default=False)
    error = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["transaction", "line_no"]
        indexes = [
            models.Index(fields=["item", "lot_number"], name="inv_line_item_lot_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["transaction", "line_no"],
                name="unique_line_no_per_transaction",
            ),
        ]

    def clean(self):
        if self.applied and not self.item_id:
            raise ValidationError("An applied line must reference an item")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("InventoryTransactionLine records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "InventoryTransactionLine records are immutable and cannot be deleted"
        )

    @property
    def value(self) -> Decimal:
        return self.total_value if self.total_value is not None else Decimal("0")

    def __str__(self):
        return f"#{self.line_no} | {self.requested_item_id} | {self.lot_number} | {self.quantity}"
