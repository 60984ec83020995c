"""
======================================================
PATH: files/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Folder, File, FileComponent
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("inventory", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Folder",
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
                ("name", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "parent",
                    models.ForeignKey(
                        to="files.folder",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="children",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["parent", "name"],
                        name="unique_folder_name_per_parent",
                    ),
                    models.UniqueConstraint(
                        fields=["name"],
                        condition=models.Q(parent__isnull=True),
                        name="unique_root_folder_name",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="File",
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
                ("file_name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("recipe_qty", models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)),
                ("recipe_unit", models.CharField(max_length=16, blank=True, default="")),
                ("pdf", models.BinaryField(null=True, blank=True, editable=False)),
                ("pdf_content_type", models.CharField(max_length=64, blank=True, default="application/pdf")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "folder",
                    models.ForeignKey(
                        to="files.folder",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="files",
                    ),
                ),
                (
                    "product_ref",
                    models.ForeignKey(
                        to="inventory.item",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="product_files",
                    ),
                ),
                (
                    "solution_ref",
                    models.ForeignKey(
                        to="inventory.item",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="solution_files",
                    ),
                ),
            ],
            options={
                "ordering": ["file_name"],
                "indexes": [
                    models.Index(fields=["folder", "file_name"], name="files_file_folder_name_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(recipe_qty__isnull=True) | models.Q(recipe_qty__gte=0),
                        name="chk_file_recipe_qty_gte_zero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="FileComponent",
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
                ("amount", models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))),
                ("unit", models.CharField(max_length=16, blank=True, default="")),
                (
                    "file",
                    models.ForeignKey(
                        to="files.file",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="components",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        to="inventory.item",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="file_components",
                    ),
                ),
            ],
            options={
                "ordering": ["file", "id"],
            },
        ),
    ]
