# inventory/views/transaction.py
"""
======================================================
PATH: inventory/views/transaction.py
======================================================
INVENTORY TRANSACTION VIEWSET

- list / retrieve : read the append-only ledger
- create          : post a transaction (lines applied one by one)
- reverse         : compensating adjustment (once per transaction)

There is no update and no delete: corrections are reversals.
"""

from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import extend_schema

from inventory.models import InventoryTransaction
from inventory.serializers import (
    InventoryTransactionSerializer,
    PostTransactionSerializer,
    ReverseTransactionSerializer,
)
from inventory.services.exceptions import InventoryServiceError, TransactionNotFound
from inventory.services.ledger import get_transaction, post_transaction, reverse_transaction


class TransactionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = InventoryTransactionSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["txn_type", "batch", "ref_doc_type"]

    def get_queryset(self):
        return (
            InventoryTransaction.objects.select_related("batch", "reversal_of", "reversed_by")
            .prefetch_related("lines", "lines__item")
            .order_by("-posted_at")
        )

    @extend_schema(request=PostTransactionSerializer, responses={201: InventoryTransactionSerializer})
    def create(self, request, *args, **kwargs):
        """
        POST /api/inventory/transactions/

        201 even when some lines were skipped: inspect lines[].applied / error.
        """
        command = PostTransactionSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            txn = post_transaction(
                txn_type=v["txn_type"],
                lines=[dict(line) for line in v["lines"]],
                actor=request.user,
                memo=v.get("memo", ""),
                project=v.get("project", ""),
                department=v.get("department", ""),
                reason=v.get("reason", ""),
                work_order_id=v.get("work_order_id", ""),
                ref_doc_type="manual",
                effective_date=v.get("effective_date"),
            )
        except InventoryServiceError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        txn = get_transaction(txn.pk)
        return Response(InventoryTransactionSerializer(txn).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=ReverseTransactionSerializer, responses={201: InventoryTransactionSerializer})
    @action(detail=True, methods=["post"], url_path="reverse")
    def reverse(self, request, pk=None):
        command = ReverseTransactionSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        try:
            reversal = reverse_transaction(
                txn_id=pk,
                actor=request.user,
                reason=command.validated_data.get("reason", ""),
            )
        except TransactionNotFound as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except InventoryServiceError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        reversal = get_transaction(reversal.pk)
        return Response(InventoryTransactionSerializer(reversal).data, status=status.HTTP_201_CREATED)
