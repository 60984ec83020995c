"""
======================================================
PATH: batches/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Batch, BatchOverlay
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("files", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Batch",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("run_number", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("Draft", "Draft"),
                            ("In Progress", "In Progress"),
                            ("Review", "Review"),
                            ("Completed", "Completed"),
                        ],
                        default="In Progress",
                    ),
                ),
                ("snapshot", models.JSONField(default=dict, blank=True)),
                ("confirmed_components", models.JSONField(default=list, blank=True)),
                ("work_order_id", models.CharField(max_length=64, blank=True, default="")),
                ("work_order_created", models.BooleanField(default=False)),
                (
                    "work_order_status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("", "None"),
                            ("creating", "Creating"),
                            ("created", "Created"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        blank=True,
                        default="",
                    ),
                ),
                ("work_order_quantity", models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)),
                ("work_order_created_at", models.DateTimeField(null=True, blank=True)),
                ("work_order_completed_at", models.DateTimeField(null=True, blank=True)),
                ("work_order_error", models.TextField(blank=True, default="")),
                ("work_order_failed_at", models.DateTimeField(null=True, blank=True)),
                ("chemicals_transacted", models.BooleanField(default=False)),
                ("transaction_date", models.DateTimeField(null=True, blank=True)),
                ("solution_created", models.BooleanField(default=False)),
                ("solution_lot_number", models.CharField(max_length=128, blank=True, default="")),
                ("solution_quantity", models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)),
                ("solution_unit", models.CharField(max_length=16, blank=True, default="")),
                ("solution_created_date", models.DateTimeField(null=True, blank=True)),
                ("was_rejected", models.BooleanField(default=False)),
                ("rejection_reason", models.TextField(blank=True, default="")),
                ("rejected_by", models.CharField(max_length=255, blank=True, default="")),
                ("rejected_at", models.DateTimeField(null=True, blank=True)),
                ("submitted_for_review_at", models.DateTimeField(null=True, blank=True)),
                ("completed_at", models.DateTimeField(null=True, blank=True)),
                ("step_errors", models.JSONField(default=dict, blank=True)),
                ("signed_pdf", models.BinaryField(null=True, blank=True, editable=False)),
                ("signed_pdf_content_type", models.CharField(max_length=64, blank=True, default="")),
                ("is_archived", models.BooleanField(default=False)),
                ("archived_at", models.DateTimeField(null=True, blank=True)),
                ("folder_path", models.CharField(max_length=1024, blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "file",
                    models.ForeignKey(
                        to="files.file",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="batches",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        to=settings.AUTH_USER_MODEL,
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="batches",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="batch_status_created_idx"),
                    models.Index(fields=["is_archived", "folder_path"], name="batch_archive_path_idx"),
                    models.Index(fields=["work_order_id"], name="batch_work_order_id_idx"),
                    models.Index(
                        fields=["work_order_created", "work_order_status"],
                        name="batch_work_order_state_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["file", "run_number"],
                        name="unique_run_number_per_file",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(run_number__gte=1),
                        name="chk_batch_run_number_gte_one",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(is_archived=False) | models.Q(status="Completed"),
                        name="chk_batch_archived_only_when_completed",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BatchOverlay",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("sequence", models.PositiveIntegerField()),
                ("image", models.BinaryField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "batch",
                    models.ForeignKey(
                        to="batches.batch",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="overlays",
                    ),
                ),
            ],
            options={
                "ordering": ["batch", "sequence"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["batch", "sequence"],
                        name="unique_overlay_sequence_per_batch",
                    ),
                ],
            },
        ),
    ]
