# batches/admin.py
"""
=====================================================
PATH: batches/admin.py
=====================================================

Admin rules:
- Batches are inspected here, not driven: lifecycle changes go through the
  API (batch engine) so steps, stamps and archiving happen consistently.
- Overlay history is append-only and shown read-only.
"""

from __future__ import annotations

from django.contrib import admin

from batches.models import Batch, BatchOverlay


class BatchOverlayInline(admin.TabularInline):
    model = BatchOverlay
    extra = 0
    can_delete = False
    fields = ("sequence", "created_at")
    readonly_fields = ("sequence", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    list_display = (
        "file",
        "run_number",
        "status",
        "work_order_status",
        "chemicals_transacted",
        "solution_created",
        "is_archived",
        "created_at",
    )
    list_filter = ("status", "is_archived", "work_order_status", "created_at")
    search_fields = ("file__file_name", "work_order_id", "solution_lot_number", "folder_path")
    ordering = ("-created_at",)
    inlines = [BatchOverlayInline]

    readonly_fields = [f.name for f in Batch._meta.fields if f.name != "signed_pdf"]
    exclude = ("signed_pdf",)

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.inventory_transactions.exists():
            return False
        return super().has_delete_permission(request, obj)
