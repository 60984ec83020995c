# inventory/serializers/item.py
"""
======================================================
PATH: inventory/serializers/item.py
======================================================
ITEM / LOT SERIALIZERS

Purpose:
- Read shape for catalog entries and their lots.
- Command shapes for catalog create / descriptive edits.

Rules:
- qty_on_hand and lot quantities are READ-ONLY here; they only change
  through the ledger (inventory.services.ledger).
"""

from __future__ import annotations

from rest_framework import serializers

from inventory.models import Item, ItemComponent, Lot
from inventory.services.lots import EDITABLE_ITEM_FIELDS


class ItemComponentSerializer(serializers.ModelSerializer):
    component_id = serializers.UUIDField(source="component.id", read_only=True)
    component_sku = serializers.CharField(source="component.sku", read_only=True)
    component_name = serializers.CharField(source="component.display_name", read_only=True)

    class Meta:
        model = ItemComponent
        fields = ["component_id", "component_sku", "component_name", "quantity", "uom"]
        read_only_fields = fields


class LotSerializer(serializers.ModelSerializer):
    item_id = serializers.UUIDField(source="item.id", read_only=True)
    is_empty = serializers.BooleanField(read_only=True)

    class Meta:
        model = Lot
        fields = [
            "id",
            "item_id",
            "lot_number",
            "quantity",
            "expiry_date",
            "vendor_lot_number",
            "location",
            "is_empty",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ItemSerializer(serializers.ModelSerializer):
    components = ItemComponentSerializer(many=True, read_only=True)

    class Meta:
        model = Item
        fields = [
            "id",
            "sku",
            "display_name",
            "item_type",
            "uom",
            "lot_tracked",
            "qty_on_hand",
            "cost",
            "description",
            "cas_number",
            "location",
            "components",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BomLineSerializer(serializers.Serializer):
    item = serializers.UUIDField()
    qty = serializers.DecimalField(max_digits=18, decimal_places=4)
    uom = serializers.CharField(required=False, allow_blank=True, max_length=16)


class ItemCreateSerializer(serializers.Serializer):
    """
    Command serializer for catalog creation (does not touch the database).
    """

    sku = serializers.CharField(max_length=64)
    display_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    item_type = serializers.ChoiceField(choices=Item.ItemType.choices)
    uom = serializers.CharField(max_length=16, required=False, default="ea")
    lot_tracked = serializers.BooleanField(required=False, default=False)
    cost = serializers.DecimalField(
        max_digits=12,
        decimal_places=4,
        required=False,
        allow_null=True,
        min_value=0,
    )
    description = serializers.CharField(required=False, allow_blank=True, default="")
    cas_number = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    location = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    bom = BomLineSerializer(many=True, required=False)

    def validate_sku(self, value):
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("sku is required")
        return value

    def validate(self, attrs):
        if attrs.get("bom") and attrs.get("item_type") == Item.ItemType.CHEMICAL:
            raise serializers.ValidationError({"bom": "Chemicals cannot carry a bill of materials"})
        return attrs


class ItemUpdateSerializer(serializers.Serializer):
    """
    PATCH: descriptive fields only. Quantities are ledger-managed.
    """

    display_name = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    cas_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    location = serializers.CharField(max_length=128, required=False, allow_blank=True)
    cost = serializers.DecimalField(
        max_digits=12,
        decimal_places=4,
        required=False,
        allow_null=True,
        min_value=0,
    )

    def validate(self, attrs):
        incoming = set(self.initial_data.keys()) if hasattr(self.initial_data, "keys") else set()
        bad = sorted(incoming - set(EDITABLE_ITEM_FIELDS))
        if bad:
            raise serializers.ValidationError(
                {
                    "detail": (
                        f"Field(s) {bad} cannot be edited directly. "
                        "Quantities change only through inventory transactions."
                    )
                }
            )
        return attrs
