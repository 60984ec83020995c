"""
======================================================
PATH: inventory/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Item, ItemComponent, Lot, InventoryTransaction,
InventoryTransactionLine

Note:
- InventoryTransaction.batch is added in 0002 (batches depends on files,
  which depends on this migration).
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Item",
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
                ("sku", models.CharField(max_length=64, unique=True)),
                ("display_name", models.CharField(max_length=255)),
                (
                    "item_type",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("chemical", "Chemical"),
                            ("solution", "Solution"),
                            ("product", "Product"),
                        ],
                    ),
                ),
                ("uom", models.CharField(max_length=16, default="ea", help_text="Unit of measure")),
                ("lot_tracked", models.BooleanField(default=False)),
                (
                    "qty_on_hand",
                    models.DecimalField(
                        max_digits=18,
                        decimal_places=4,
                        default=Decimal("0"),
                        help_text="Σ lot quantities (service-managed only)",
                    ),
                ),
                (
                    "cost",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=4,
                        null=True,
                        blank=True,
                        default=None,
                        help_text="Default unit cost used when a ledger line carries none.",
                    ),
                ),
                ("description", models.TextField(blank=True, default="")),
                ("cas_number", models.CharField(max_length=32, blank=True, default="")),
                ("location", models.CharField(max_length=128, blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["display_name"],
                "indexes": [
                    models.Index(fields=["item_type", "display_name"], name="inv_item_type_name_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ItemComponent",
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
                ("quantity", models.DecimalField(max_digits=18, decimal_places=4)),
                ("uom", models.CharField(max_length=16, default="ea")),
                (
                    "parent",
                    models.ForeignKey(
                        to="inventory.item",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="components",
                    ),
                ),
                (
                    "component",
                    models.ForeignKey(
                        to="inventory.item",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="used_in",
                    ),
                ),
            ],
            options={
                "ordering": ["parent", "component"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["parent", "component"],
                        name="unique_bom_component_per_item",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(quantity__gt=0),
                        name="chk_itemcomponent_qty_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=~models.Q(parent=models.F("component")),
                        name="chk_itemcomponent_not_self",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Lot",
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
                ("lot_number", models.CharField(max_length=128)),
                (
                    "quantity",
                    models.DecimalField(
                        max_digits=18,
                        decimal_places=4,
                        default=Decimal("0"),
                        help_text="Signed on-hand quantity for this lot (ledger-managed only)",
                    ),
                ),
                ("expiry_date", models.DateField(null=True, blank=True)),
                ("vendor_lot_number", models.CharField(max_length=128, blank=True, default="")),
                ("location", models.CharField(max_length=128, blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "item",
                    models.ForeignKey(
                        to="inventory.item",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lots",
                    ),
                ),
            ],
            options={
                "ordering": ["item", "lot_number"],
                "indexes": [
                    models.Index(fields=["item", "expiry_date"], name="inv_lot_item_expiry_idx"),
                    models.Index(fields=["lot_number"], name="inv_lot_number_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["item", "lot_number"],
                        name="unique_lot_number_per_item",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryTransaction",
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
                (
                    "txn_type",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("receipt", "Receipt"),
                            ("issue", "Issue"),
                            ("adjustment", "Adjustment"),
                            ("build", "Build"),
                        ],
                    ),
                ),
                ("actor_name", models.CharField(max_length=255, blank=True, default="")),
                ("actor_email", models.CharField(max_length=255, blank=True, default="")),
                ("memo", models.TextField(blank=True, default="")),
                ("project", models.CharField(max_length=128, blank=True, default="")),
                ("department", models.CharField(max_length=128, blank=True, default="")),
                ("reason", models.CharField(max_length=255, blank=True, default="")),
                ("work_order_id", models.CharField(max_length=64, blank=True, default="")),
                ("ref_doc_type", models.CharField(max_length=32, blank=True, default="")),
                ("effective_date", models.DateField(default=django.utils.timezone.localdate)),
                ("posted_at", models.DateTimeField(auto_now_add=True)),
                (
                    "actor",
                    models.ForeignKey(
                        to=settings.AUTH_USER_MODEL,
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="inventory_transactions",
                    ),
                ),
                (
                    "reversal_of",
                    models.OneToOneField(
                        to="inventory.inventorytransaction",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversed_by",
                    ),
                ),
            ],
            options={
                "ordering": ["-posted_at"],
                "indexes": [
                    models.Index(fields=["posted_at"], name="inv_txn_posted_idx"),
                    models.Index(fields=["txn_type", "posted_at"], name="inv_txn_type_posted_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryTransactionLine",
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
                ("line_no", models.PositiveIntegerField()),
                ("requested_item_id", models.CharField(max_length=64)),
                ("lot_number", models.CharField(max_length=128, blank=True, default="")),
                (
                    "quantity",
                    models.DecimalField(
                        max_digits=18,
                        decimal_places=4,
                        help_text="Signed delta (negative = consumption)",
                    ),
                ),
                ("unit_cost", models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)),
                ("total_value", models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)),
                ("lot_qty_before", models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)),
                ("lot_qty_after", models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)),
                ("item_qty_before", models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)),
                ("item_qty_after", models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)),
                ("applied", models.BooleanField(default=False)),
                ("error", models.TextField(blank=True, default="")),
                (
                    "transaction",
                    models.ForeignKey(
                        to="inventory.inventorytransaction",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        to="inventory.item",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transaction_lines",
                    ),
                ),
            ],
            options={
                "ordering": ["transaction", "line_no"],
                "indexes": [
                    models.Index(fields=["item", "lot_number"], name="inv_line_item_lot_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["transaction", "line_no"],
                        name="unique_line_no_per_transaction",
                    ),
                ],
            },
        ),
    ]
