# batches/models/batch.py

"""
BATCH (ONE PRODUCTION RUN)

A Batch is one run started from a File template.

CANONICAL MODEL:
- run_number is sequential per File (allocated under a File row lock)
- snapshot is copied from the File at creation and NEVER re-read
- status follows batches.services.lifecycle (service-managed only)
- work order / consumption / solution are independent best-effort steps;
  their flags + step_errors are the persisted step status
- overlay history lives in BatchOverlay rows; signed_pdf is always
  re-bakeable from the File master + that history
- folder_path is a SNAPSHOT string taken at archive time, not a FK
- Non-deletable once referenced by an InventoryTransaction (audit safety)
"""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Batch(models.Model):
    class Status(models.TextChoices):
        DRAFT = "Draft", "Draft"
        IN_PROGRESS = "In Progress", "In Progress"
        REVIEW = "Review", "Review"
        COMPLETED = "Completed", "Completed"

    class WorkOrderStatus(models.TextChoices):
        NONE = "", "None"
        CREATING = "creating", "Creating"
        CREATED = "created", "Created"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    file = models.ForeignKey(
        "files.File",
        on_delete=models.PROTECT,
        related_name="batches",
    )
    run_number = models.PositiveIntegerField()

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.IN_PROGRESS,
    )

    # Recipe snapshot (immutable after creation)
    snapshot = models.JSONField(default=dict, blank=True)

    # [{item_id, lot_number, planned_amount, actual_amount, unit}]
    confirmed_components = models.JSONField(default=list, blank=True)

    # Work order (external ERP collaborator)
    work_order_id = models.CharField(max_length=64, blank=True, default="")
    work_order_created = models.BooleanField(default=False)
    work_order_status = models.CharField(
        max_length=16,
        choices=WorkOrderStatus.choices,
        blank=True,
        default=WorkOrderStatus.NONE,
    )
    work_order_quantity = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    work_order_created_at = models.DateTimeField(null=True, blank=True)
    work_order_completed_at = models.DateTimeField(null=True, blank=True)
    work_order_error = models.TextField(blank=True, default="")
    work_order_failed_at = models.DateTimeField(null=True, blank=True)

    # Component consumption
    chemicals_transacted = models.BooleanField(default=False)
    transaction_date = models.DateTimeField(null=True, blank=True)

    # Solution production
    solution_created = models.BooleanField(default=False)
    solution_lot_number = models.CharField(max_length=128, blank=True, default="")
    solution_quantity = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    solution_unit = models.CharField(max_length=16, blank=True, default="")
    solution_created_date = models.DateTimeField(null=True, blank=True)

    # Rejection (Review -> In Progress)
    was_rejected = models.BooleanField(default=False)
    rejection_reason = models.TextField(blank=True, default="")
    rejected_by = models.CharField(max_length=255, blank=True, default="")
    rejected_at = models.DateTimeField(null=True, blank=True)

    submitted_for_review_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Last error per step: {"work_order": "...", "chemicals": "...", "solution": "...", "bake": "..."}
    step_errors = models.JSONField(default=dict, blank=True)

    # Signed artifact (master + overlay history, baked)
    signed_pdf = models.BinaryField(null=True, blank=True, editable=False)
    signed_pdf_content_type = models.CharField(max_length=64, blank=True, default="")

    # Archive
    is_archived = models.BooleanField(default=False)
    archived_at = models.DateTimeField(null=True, blank=True)
    folder_path = models.CharField(max_length=1024, blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="batches",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="batch_status_created_idx"),
            models.Index(fields=["is_archived", "folder_path"], name="batch_archive_path_idx"),
            models.Index(fields=["work_order_id"], name="batch_work_order_id_idx"),
            models.Index(fields=["work_order_created", "work_order_status"], name="batch_work_order_state_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["file", "run_number"],
                name="unique_run_number_per_file",
            ),
            models.CheckConstraint(
                condition=Q(run_number__gte=1),
                name="chk_batch_run_number_gte_one",
            ),
            models.CheckConstraint(
                condition=Q(is_archived=False) | Q(status="Completed"),
                name="chk_batch_archived_only_when_completed",
            ),
        ]

    def save(self, *args, **kwargs):
        """
        The recipe snapshot is written once, at creation.
        """
        if not self._state.adding:
            stored = Batch.objects.filter(pk=self.pk).values_list("snapshot", flat=True).first()
            if stored is not None and stored != self.snapshot:
                raise ValidationError("Batch snapshot is immutable after creation")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """
        Audit safety: once a batch has posted ledger entries it must never be deleted.
        """
        if self.inventory_transactions.exists():
            raise ValidationError("Cannot delete Batch: it has inventory transactions.")
        return super().delete(*args, **kwargs)

    @property
    def file_name(self) -> str:
        return getattr(self.file, "file_name", "")

    @property
    def display_name(self) -> str:
        return f"{self.file_name}-Run-{self.run_number}.pdf"

    @property
    def has_signed_pdf(self) -> bool:
        return bool(self.signed_pdf)

    def __str__(self):
        return f"{self.file_name} | Run {self.run_number} | {self.status}"


class BatchOverlay(models.Model):
    """
    One hand-drawn annotation layer (PNG bytes), in application order.
    Append-only: history is only ever extended.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    batch = models.ForeignKey(
        Batch,
        on_delete=models.CASCADE,
        related_name="overlays",
    )
    sequence = models.PositiveIntegerField()
    image = models.BinaryField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["batch", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["batch", "sequence"],
                name="unique_overlay_sequence_per_batch",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("BatchOverlay records are append-only")
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"Batch {self.batch_id} | overlay #{self.sequence}"
