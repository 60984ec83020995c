# inventory/admin.py
"""
=====================================================
PATH: inventory/admin.py
=====================================================

Admin rules (audit-safe):
- Items: descriptive fields editable; qty_on_hand / lot_tracked are derived.
- Lots: read-only (quantities move only through the ledger).
- Transactions + lines: read-only, never deleted.
"""

from __future__ import annotations

from django.contrib import admin

from inventory.models import (
    InventoryTransaction,
    InventoryTransactionLine,
    Item,
    ItemComponent,
    Lot,
)


class ItemComponentInline(admin.TabularInline):
    model = ItemComponent
    fk_name = "parent"
    extra = 0
    autocomplete_fields = ("component",)


class LotInline(admin.TabularInline):
    model = Lot
    extra = 0
    can_delete = False
    fields = ("lot_number", "quantity", "expiry_date", "vendor_lot_number", "location")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ("sku", "display_name", "item_type", "uom", "qty_on_hand", "lot_tracked")
    list_filter = ("item_type", "lot_tracked")
    search_fields = ("sku", "display_name", "cas_number")
    readonly_fields = ("qty_on_hand", "lot_tracked", "created_at", "updated_at")
    inlines = [ItemComponentInline, LotInline]


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    list_display = ("item", "lot_number", "quantity", "expiry_date", "location")
    list_filter = ("expiry_date",)
    search_fields = ("lot_number", "item__sku", "item__display_name")
    readonly_fields = [f.name for f in Lot._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class InventoryTransactionLineInline(admin.TabularInline):
    model = InventoryTransactionLine
    extra = 0
    can_delete = False
    fields = (
        "line_no",
        "requested_item_id",
        "item",
        "lot_number",
        "quantity",
        "lot_qty_before",
        "lot_qty_after",
        "applied",
        "error",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(admin.ModelAdmin):
    list_display = ("posted_at", "txn_type", "actor_name", "batch", "ref_doc_type", "memo")
    list_filter = ("txn_type", "ref_doc_type", "posted_at")
    search_fields = ("memo", "project", "work_order_id", "actor_name")
    date_hierarchy = "posted_at"
    inlines = [InventoryTransactionLineInline]
    readonly_fields = [f.name for f in InventoryTransaction._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
