# batches/views/batch.py
"""
======================================================
PATH: batches/views/batch.py
======================================================
BATCH VIEWSET

Thin HTTP layer over batches.services.batch_service:
- create   : start a run from a File (optional overlay + action)
- PATCH    : lifecycle transitions, overlays, step requests
- DELETE   : refused (409) once the batch has ledger entries
- retry    : re-run one best-effort step
- work-order / archive helpers

Embedded step failures never fail the request: the response carries the
step flags and `step_errors` for the client to inspect.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from batches.serializers import (
    BatchCreateSerializer,
    BatchListQuerySerializer,
    BatchSerializer,
    BatchUpdateSerializer,
)
from batches.services.actions import parse_action
from batches.services.archive import archive_batch
from batches.services.batch_service import (
    create_batch,
    delete_batch,
    get_batch,
    get_work_order_status,
    list_batches,
    retry_step,
    update_batch,
)
from batches.services.exceptions import (
    BatchDeletionError,
    BatchNotFound,
    BatchServiceError,
)
from files.services.exceptions import FileNotFound, FileStoreError


def error_response(exc: Exception) -> Response:
    """
    Domain error -> HTTP: not found 404, conflicting delete 409, else 400.
    """
    if isinstance(exc, (BatchNotFound, FileNotFound)):
        http_status = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, BatchDeletionError):
        http_status = status.HTTP_409_CONFLICT
    else:
        http_status = status.HTTP_400_BAD_REQUEST
    return Response({"detail": str(exc)}, status=http_status)


class BatchViewSet(
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = BatchSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        params = BatchListQuerySerializer(data=self.request.query_params)
        params.is_valid(raise_exception=True)
        v = params.validated_data

        return list_batches(
            file_id=v.get("file"),
            status=v.get("status"),
            is_archived=v.get("is_archived"),
        )

    @extend_schema(
        parameters=[
            OpenApiParameter(name="file", type=str, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="is_archived", type=bool, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, pk=None):
        try:
            batch = get_batch(pk)
        except BatchServiceError as exc:
            return error_response(exc)
        return Response(BatchSerializer(batch).data)

    # -------------------------------------------------
    # CREATE
    # -------------------------------------------------
    @extend_schema(request=BatchCreateSerializer, responses={201: BatchSerializer})
    def create(self, request, *args, **kwargs):
        command = BatchCreateSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            batch_action = parse_action(
                v.get("action"),
                {"quantity": v.get("quantity"), "confirmation": v.get("confirmation")},
            )
            batch = create_batch(
                file_id=v["file_id"],
                overlay=v.get("overlay"),
                action=batch_action,
                status=v.get("status"),
                user=request.user,
            )
        except (BatchServiceError, FileStoreError) as exc:
            return error_response(exc)

        return Response(BatchSerializer(batch).data, status=status.HTTP_201_CREATED)

    # -------------------------------------------------
    # UPDATE
    # -------------------------------------------------
    @extend_schema(request=BatchUpdateSerializer, responses={200: BatchSerializer})
    def partial_update(self, request, pk=None):
        command = BatchUpdateSerializer(data=request.data, partial=True)
        command.is_valid(raise_exception=True)

        changes = dict(command.validated_data)
        overlay = (changes.pop("overlay", None) or "").strip() or None

        try:
            batch = update_batch(batch_id=pk, changes=changes, overlay=overlay, user=request.user)
        except (BatchServiceError, FileStoreError) as exc:
            return error_response(exc)

        return Response(BatchSerializer(batch).data, status=status.HTTP_200_OK)

    # -------------------------------------------------
    # DELETE
    # -------------------------------------------------
    @extend_schema(
        responses={
            204: OpenApiResponse(description="Deleted"),
            409: OpenApiResponse(description="Batch has inventory transactions"),
        },
    )
    def destroy(self, request, pk=None):
        try:
            delete_batch(batch_id=pk)
        except BatchServiceError as exc:
            return error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # -------------------------------------------------
    # ACTIONS
    # -------------------------------------------------
    @extend_schema(request=None, responses={200: BatchSerializer})
    @action(detail=True, methods=["post"], url_path=r"retry/(?P<step>[^/.]+)")
    def retry(self, request, pk=None, step=None):
        """
        POST /api/batches/batches/{id}/retry/{work_order|chemicals|solution}/
        """
        try:
            batch = retry_step(batch_id=pk, step=step, user=request.user)
        except BatchServiceError as exc:
            return error_response(exc)
        return Response(BatchSerializer(batch).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="work-order")
    def work_order(self, request, pk=None):
        try:
            state = get_work_order_status(pk)
        except BatchServiceError as exc:
            return error_response(exc)

        return Response(
            {
                "batch_id": str(pk),
                "created": state.created,
                "status": state.status,
                "work_order_id": state.work_order_id,
                "quantity": str(state.quantity) if state.quantity is not None else None,
                "error": state.error,
                "created_at": state.created_at,
                "completed_at": state.completed_at,
                "failed_at": state.failed_at,
            }
        )

    @extend_schema(request=None, responses={200: BatchSerializer})
    @action(detail=True, methods=["post"], url_path="archive")
    def archive(self, request, pk=None):
        """
        Idempotent: archiving an archived batch returns it unchanged.
        """
        try:
            archive_batch(batch_id=pk)
            batch = get_batch(pk)
        except BatchServiceError as exc:
            return error_response(exc)
        return Response(BatchSerializer(batch).data, status=status.HTTP_200_OK)
