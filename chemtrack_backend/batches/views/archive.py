# batches/views/archive.py
"""
======================================================
PATH: batches/views/archive.py
======================================================
ARCHIVE VIEWSET (READ-MOSTLY)

- GET  /api/batches/archive/?folder_path=Parent / Child
- GET  /api/batches/archive/folders/
- GET  /api/batches/archive/{id}/           (document as data URL)
- GET  /api/batches/archive/{id}/document/  (raw PDF bytes)
- POST /api/batches/archive/{id}/move/      {"folder_id": <uuid>|null}
"""

from __future__ import annotations

from django.http import HttpResponse
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from batches.serializers import ArchivedBatchSerializer, ArchiveMoveSerializer
from batches.services.archive import (
    get_archived,
    list_archive_folders,
    list_archived,
    move_archived,
)
from batches.services.exceptions import BatchServiceError
from batches.views.batch import error_response


class ArchiveViewSet(
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = ArchivedBatchSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        folder_path = self.request.query_params.get("folder_path")
        return list_archived(folder_path=folder_path.strip() if folder_path is not None else None)

    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="folder_path",
                type=str,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Exact folder path snapshot, e.g. "QC / 2024" or "Root".',
            ),
        ],
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, pk=None):
        try:
            doc = get_archived(pk)
        except BatchServiceError as exc:
            return error_response(exc)

        data = ArchivedBatchSerializer(doc.batch).data
        data["file_name"] = doc.file_name
        data["document"] = doc.document
        data["document_source"] = doc.source
        return Response(data)

    @action(detail=False, methods=["get"], url_path="folders")
    def folders(self, request):
        rows = list_archive_folders()
        results = [
            {
                "folder_path": row.folder_path,
                "file_count": row.file_count,
                "last_archived_at": row.last_archived_at,
            }
            for row in rows
        ]
        return Response({"count": len(results), "results": results})

    @extend_schema(
        responses={
            (200, "application/pdf"): OpenApiResponse(description="Signed copy, else the master"),
            404: OpenApiResponse(description="Not archived, or no document"),
        },
    )
    @action(detail=True, methods=["get"], url_path="document")
    def document(self, request, pk=None):
        try:
            doc = get_archived(pk)
        except BatchServiceError as exc:
            return error_response(exc)

        batch = doc.batch
        if doc.source == "signed":
            content, content_type = bytes(batch.signed_pdf), batch.signed_pdf_content_type
        elif doc.source == "master":
            content, content_type = bytes(batch.file.pdf), batch.file.pdf_content_type
        else:
            return Response({"detail": "No document for this batch"}, status=status.HTTP_404_NOT_FOUND)

        response = HttpResponse(content, content_type=content_type or "application/pdf")
        response["Content-Disposition"] = f'inline; filename="{doc.file_name}"'
        return response

    @extend_schema(request=ArchiveMoveSerializer, responses={200: ArchivedBatchSerializer})
    @action(detail=True, methods=["post"], url_path="move")
    def move(self, request, pk=None):
        command = ArchiveMoveSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        try:
            batch = move_archived(batch_id=pk, folder_id=command.validated_data.get("folder_id"))
        except BatchServiceError as exc:
            return error_response(exc)

        return Response(ArchivedBatchSerializer(batch).data, status=status.HTTP_200_OK)
