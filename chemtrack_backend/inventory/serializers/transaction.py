# inventory/serializers/transaction.py
"""
======================================================
PATH: inventory/serializers/transaction.py
======================================================
INVENTORY TRANSACTION SERIALIZERS

Read:
- InventoryTransactionSerializer (header + lines)

Commands (validate input only, never write):
- PostTransactionSerializer
- ReverseTransactionSerializer

Line `item` is accepted as free text on purpose: an unknown id is recorded
on the ledger as an unapplied line instead of failing the whole request.
"""

from __future__ import annotations

from rest_framework import serializers

from inventory.models import InventoryTransaction, InventoryTransactionLine


class InventoryTransactionLineSerializer(serializers.ModelSerializer):
    item_sku = serializers.SerializerMethodField()

    class Meta:
        model = InventoryTransactionLine
        fields = [
            "line_no",
            "requested_item_id",
            "item",
            "item_sku",
            "lot_number",
            "quantity",
            "unit_cost",
            "total_value",
            "lot_qty_before",
            "lot_qty_after",
            "item_qty_before",
            "item_qty_after",
            "applied",
            "error",
        ]
        read_only_fields = fields

    def get_item_sku(self, obj) -> str | None:
        return obj.item.sku if obj.item_id else None


class InventoryTransactionSerializer(serializers.ModelSerializer):
    lines = InventoryTransactionLineSerializer(many=True, read_only=True)
    reversed_by = serializers.SerializerMethodField()

    class Meta:
        model = InventoryTransaction
        fields = [
            "id",
            "txn_type",
            "actor",
            "actor_name",
            "actor_email",
            "memo",
            "project",
            "department",
            "reason",
            "batch",
            "work_order_id",
            "ref_doc_type",
            "reversal_of",
            "reversed_by",
            "effective_date",
            "posted_at",
            "lines",
        ]
        read_only_fields = fields

    def get_reversed_by(self, obj) -> str | None:
        reversal = getattr(obj, "reversed_by", None)
        return str(reversal.pk) if reversal is not None else None


class TransactionLineInputSerializer(serializers.Serializer):
    item = serializers.CharField(max_length=64, allow_blank=True)
    lot = serializers.CharField(max_length=128)
    qty = serializers.DecimalField(max_digits=18, decimal_places=4)
    unit_cost = serializers.DecimalField(
        max_digits=12,
        decimal_places=4,
        required=False,
        allow_null=True,
        min_value=0,
    )
    expiry_date = serializers.DateField(required=False, allow_null=True)
    vendor_lot_number = serializers.CharField(max_length=128, required=False, allow_blank=True)
    location = serializers.CharField(max_length=128, required=False, allow_blank=True)


class PostTransactionSerializer(serializers.Serializer):
    txn_type = serializers.ChoiceField(choices=InventoryTransaction.TxnType.choices)
    lines = TransactionLineInputSerializer(many=True, allow_empty=False)
    memo = serializers.CharField(required=False, allow_blank=True, default="")
    project = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    department = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    work_order_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    effective_date = serializers.DateField(required=False, allow_null=True)


class ReverseTransactionSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)
