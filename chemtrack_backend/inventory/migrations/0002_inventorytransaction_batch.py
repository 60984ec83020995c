"""
======================================================
PATH: inventory/migrations/0002_inventorytransaction_batch.py
======================================================
MIGRATION: ADD InventoryTransaction.batch (originating batch run)
"""

from __future__ import annotations

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    dependencies = [
        ("inventory", "0001_initial"),
        ("batches", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="inventorytransaction",
            name="batch",
            field=models.ForeignKey(
                to="batches.batch",
                null=True,
                blank=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="inventory_transactions",
            ),
        ),
        migrations.AddIndex(
            model_name="inventorytransaction",
            index=models.Index(fields=["batch", "posted_at"], name="inv_txn_batch_posted_idx"),
        ),
    ]
