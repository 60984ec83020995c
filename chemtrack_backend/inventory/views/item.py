# inventory/views/item.py
"""
======================================================
PATH: inventory/views/item.py
======================================================
ITEM VIEWSET

Purpose:
- Catalog entries (create / read / descriptive PATCH)
- Lot listing, explicit lot deletion, per-lot history
- Per-item transaction list + stats

RULES:
- Quantities are NEVER edited here; every quantity change is a ledger post
  (POST /api/inventory/transactions/).
- PUT and DELETE on items are not exposed.
"""

from __future__ import annotations

from django.db.models import Q
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.models import Item
from inventory.serializers import (
    InventoryTransactionSerializer,
    ItemCreateSerializer,
    ItemSerializer,
    ItemUpdateSerializer,
    LotSerializer,
)
from inventory.services.exceptions import (
    InventoryServiceError,
    ItemNotFound,
    LotNotFound,
)
from inventory.services.ledger import (
    get_lot_history,
    item_transaction_stats,
    list_transactions_by_item,
)
from inventory.services.lots import create_item, delete_lot, list_lots, update_item


def _error_response(exc: InventoryServiceError) -> Response:
    if isinstance(exc, (ItemNotFound, LotNotFound)):
        return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
    return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)


def _truthy(raw) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes")


class ItemViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    GET    /api/inventory/items/?item_type=&lot_tracked=&q=
    POST   /api/inventory/items/
    GET    /api/inventory/items/{id}/
    PATCH  /api/inventory/items/{id}/
    GET    /api/inventory/items/{id}/lots/?include_empty=true
    DELETE /api/inventory/items/{id}/lots/{lot_number}/
    GET    /api/inventory/items/{id}/lots/{lot_number}/history/
    GET    /api/inventory/items/{id}/transactions/
    GET    /api/inventory/items/{id}/stats/
    """

    serializer_class = ItemSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["item_type", "lot_tracked"]

    def get_queryset(self):
        qs = Item.objects.prefetch_related("components", "components__component").order_by("display_name")

        q = (self.request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(
                Q(sku__icontains=q)
                | Q(display_name__icontains=q)
                | Q(cas_number__icontains=q)
            )
        return qs

    # -------------------------------------------------
    # CREATE
    # -------------------------------------------------
    @extend_schema(request=ItemCreateSerializer, responses={201: ItemSerializer})
    def create(self, request, *args, **kwargs):
        command = ItemCreateSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            item = create_item(
                sku=v["sku"],
                display_name=v.get("display_name") or v["sku"],
                item_type=v["item_type"],
                uom=v.get("uom") or "ea",
                lot_tracked=v.get("lot_tracked", False),
                cost=v.get("cost"),
                description=v.get("description", ""),
                cas_number=v.get("cas_number", ""),
                location=v.get("location", ""),
                bom=[
                    {"item": str(row["item"]), "qty": row["qty"], "uom": row.get("uom") or ""}
                    for row in v.get("bom") or []
                ],
            )
        except InventoryServiceError as exc:
            return _error_response(exc)

        return Response(ItemSerializer(item).data, status=status.HTTP_201_CREATED)

    # -------------------------------------------------
    # UPDATE (descriptive only)
    # -------------------------------------------------
    @extend_schema(request=ItemUpdateSerializer, responses={200: ItemSerializer})
    def partial_update(self, request, *args, **kwargs):
        item = self.get_object()

        command = ItemUpdateSerializer(data=request.data, partial=True)
        command.is_valid(raise_exception=True)

        try:
            item = update_item(item.pk, **command.validated_data)
        except InventoryServiceError as exc:
            return _error_response(exc)

        return Response(ItemSerializer(item).data, status=status.HTTP_200_OK)

    # -------------------------------------------------
    # LOTS
    # -------------------------------------------------
    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="include_empty",
                type=bool,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Include lots whose quantity is exactly zero.",
            ),
        ],
        responses={200: LotSerializer(many=True)},
    )
    @action(detail=True, methods=["get"], url_path="lots")
    def lots(self, request, pk=None):
        try:
            qs = list_lots(pk, include_empty=_truthy(request.query_params.get("include_empty")))
        except InventoryServiceError as exc:
            return _error_response(exc)

        data = LotSerializer(qs, many=True).data
        return Response({"count": len(data), "results": data})

    @extend_schema(
        responses={
            200: OpenApiResponse(description="Removed lot number and its last quantity"),
            404: OpenApiResponse(description="Unknown item or lot"),
        },
    )
    @action(detail=True, methods=["delete"], url_path=r"lots/(?P<lot_number>[^/]+)")
    def remove_lot(self, request, pk=None, lot_number=None):
        try:
            removed = delete_lot(pk, lot_number)
        except InventoryServiceError as exc:
            return _error_response(exc)

        return Response(
            {"lot_number": removed.lot_number, "quantity": str(removed.quantity)},
            status=status.HTTP_200_OK,
        )

    @extend_schema(responses={200: InventoryTransactionSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path=r"lots/(?P<lot_number>[^/]+)/history")
    def lot_history(self, request, pk=None, lot_number=None):
        try:
            qs = get_lot_history(pk, lot_number)
        except InventoryServiceError as exc:
            return _error_response(exc)

        data = InventoryTransactionSerializer(qs, many=True).data
        return Response({"count": len(data), "results": data})

    # -------------------------------------------------
    # LEDGER VIEWS
    # -------------------------------------------------
    @extend_schema(responses={200: InventoryTransactionSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="transactions")
    def transactions(self, request, pk=None):
        try:
            qs = list_transactions_by_item(pk)
        except InventoryServiceError as exc:
            return _error_response(exc)

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(InventoryTransactionSerializer(page, many=True).data)
        return Response(InventoryTransactionSerializer(qs, many=True).data)

    @action(detail=True, methods=["get"], url_path="stats")
    def stats(self, request, pk=None):
        try:
            s = item_transaction_stats(pk)
        except InventoryServiceError as exc:
            return _error_response(exc)

        return Response(
            {
                "item_id": str(pk),
                "total_transactions": s.total_transactions,
                "receipts": s.receipts,
                "issues": s.issues,
                "adjustments": s.adjustments,
                "builds": s.builds,
                "total_received": str(s.total_received),
                "total_issued": str(s.total_issued),
                "total_adjusted": str(s.total_adjusted),
                "total_built": str(s.total_built),
                "by_type": {
                    k: {"transactions": v["transactions"], "quantity": str(v["quantity"])}
                    for k, v in s.by_type.items()
                },
            }
        )
