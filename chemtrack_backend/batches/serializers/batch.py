# batches/serializers/batch.py
"""
======================================================
PATH: batches/serializers/batch.py
======================================================
BATCH SERIALIZERS

Read:
- BatchSerializer: full batch state. Binary artifacts are never inlined;
  `has_signed_pdf` tells the client whether the archive document endpoint
  will serve a signed copy.

Commands (validate input only; the batch engine does the writes):
- BatchCreateSerializer
- BatchUpdateSerializer
- BatchListQuerySerializer
"""

from __future__ import annotations

from rest_framework import serializers

from batches.models import Batch
from batches.services.actions import ACTION_TAGS, TAG_NONE
from batches.services.batch_service import UPDATABLE_FIELDS


class BatchSerializer(serializers.ModelSerializer):
    file_name = serializers.CharField(read_only=True)
    display_name = serializers.CharField(read_only=True)
    has_signed_pdf = serializers.BooleanField(read_only=True)
    overlay_count = serializers.SerializerMethodField()
    created_by = serializers.SerializerMethodField()

    class Meta:
        model = Batch
        fields = [
            "id",
            "file",
            "file_name",
            "display_name",
            "run_number",
            "status",
            "snapshot",
            "confirmed_components",
            # work order
            "work_order_id",
            "work_order_created",
            "work_order_status",
            "work_order_quantity",
            "work_order_created_at",
            "work_order_completed_at",
            "work_order_error",
            "work_order_failed_at",
            # steps
            "chemicals_transacted",
            "transaction_date",
            "solution_created",
            "solution_lot_number",
            "solution_quantity",
            "solution_unit",
            "solution_created_date",
            "step_errors",
            # review
            "submitted_for_review_at",
            "was_rejected",
            "rejection_reason",
            "rejected_by",
            "rejected_at",
            "completed_at",
            # artifact / archive
            "has_signed_pdf",
            "overlay_count",
            "is_archived",
            "archived_at",
            "folder_path",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_overlay_count(self, obj) -> int:
        return obj.overlays.count()

    def get_created_by(self, obj) -> str | None:
        user = obj.created_by
        return user.get_username() if user is not None else None


class BatchCreateSerializer(serializers.Serializer):
    file_id = serializers.UUIDField()
    overlay = serializers.CharField(
        required=False,
        allow_null=True,
        allow_blank=True,
        help_text="PNG annotation layer as a data:image/png;base64,... URL",
    )
    action = serializers.ChoiceField(choices=ACTION_TAGS, required=False, default=TAG_NONE)
    status = serializers.ChoiceField(choices=Batch.Status.choices, required=False, allow_null=True)

    # action payloads
    quantity = serializers.DecimalField(
        max_digits=18,
        decimal_places=4,
        required=False,
        allow_null=True,
        help_text="create_work_order: work order quantity (defaults to the recipe quantity)",
    )
    confirmation = serializers.DictField(
        required=False,
        allow_null=True,
        help_text="submit_review: {components, solution_lot_number, solution_quantity, solution_unit}",
    )

    def validate_overlay(self, value):
        value = (value or "").strip()
        return value or None


class BatchUpdateSerializer(serializers.Serializer):
    """
    PATCH: lifecycle + step requests. Anything else is rejected up front.
    """

    status = serializers.ChoiceField(choices=Batch.Status.choices, required=False)
    rejection_reason = serializers.CharField(required=False, allow_blank=True)

    confirmed_components = serializers.ListField(child=serializers.DictField(), required=False)
    solution_lot_number = serializers.CharField(max_length=128, required=False, allow_blank=True)
    solution_quantity = serializers.DecimalField(
        max_digits=18, decimal_places=4, required=False, allow_null=True
    )
    solution_unit = serializers.CharField(max_length=16, required=False, allow_blank=True)

    work_order_created = serializers.BooleanField(required=False)
    work_order_quantity = serializers.DecimalField(
        max_digits=18, decimal_places=4, required=False, allow_null=True
    )
    chemicals_transacted = serializers.BooleanField(required=False)
    solution_created = serializers.BooleanField(required=False)

    overlay = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate(self, attrs):
        incoming = set(self.initial_data.keys()) if hasattr(self.initial_data, "keys") else set()
        bad = sorted(incoming - set(UPDATABLE_FIELDS) - {"overlay"})
        if bad:
            raise serializers.ValidationError(
                {"detail": f"Field(s) {bad} cannot be updated directly."}
            )
        return attrs


class BatchListQuerySerializer(serializers.Serializer):
    file = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=Batch.Status.choices, required=False)
    is_archived = serializers.BooleanField(required=False, allow_null=True, default=None)


class ArchivedBatchSerializer(serializers.ModelSerializer):
    file_name = serializers.CharField(read_only=True)
    display_name = serializers.CharField(read_only=True)
    has_signed_pdf = serializers.BooleanField(read_only=True)

    class Meta:
        model = Batch
        fields = [
            "id",
            "file",
            "file_name",
            "display_name",
            "run_number",
            "status",
            "completed_at",
            "is_archived",
            "archived_at",
            "folder_path",
            "has_signed_pdf",
        ]
        read_only_fields = fields


class ArchiveMoveSerializer(serializers.Serializer):
    folder_id = serializers.UUIDField(required=False, allow_null=True)
