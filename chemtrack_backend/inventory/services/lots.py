# inventory/services/lots.py

"""
LOT STORE SERVICE

Purpose:
- Item lookup for everything that needs a catalog entry (ledger, batches).
- Lot listing / explicit lot deletion.
- Keep Item.qty_on_hand == Σ Lot.quantity (the only place it is written).
- Catalog entry creation (with optional bill of materials).

Rules:
- qty_on_hand is always RECOMPUTED from the lot rows, never incremented
- deleting a lot recomputes the aggregate in the same DB transaction
- malformed ids are treated the same as missing ids (ItemNotFound)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.db.models import Sum

from inventory.models import Item, ItemComponent, Lot
from inventory.services.exceptions import (
    InventoryServiceError,
    ItemNotFound,
    LotNotFound,
)

logger = logging.getLogger("inventory.lots")

QUANTITY_STEP = Decimal("0.0001")

EDITABLE_ITEM_FIELDS = ("display_name", "description", "cas_number", "location", "cost")


@dataclass(frozen=True)
class DeletedLot:
    lot_number: str
    quantity: Decimal


def to_quantity(value, *, field: str = "qty") -> Decimal:
    """
    Parse a signed quantity into a Decimal with 4 decimal places.

    Raises InventoryServiceError for missing / non-numeric / non-finite values.
    """
    if value is None or value == "":
        raise InventoryServiceError(f"{field} is required")

    if isinstance(value, bool):
        # guardrail: bool is an int subclass in Python
        raise InventoryServiceError(f"{field} must be a number")

    try:
        qty = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InventoryServiceError(f"{field} must be a number")

    if not qty.is_finite():
        raise InventoryServiceError(f"{field} must be a finite number")

    return qty.quantize(QUANTITY_STEP)


def parse_item_id(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, Item):
        return value.pk
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def get_item(item_id) -> Item:
    pk = parse_item_id(item_id)
    if pk is None:
        raise ItemNotFound(f"Item {item_id} not found")

    try:
        return Item.objects.get(pk=pk)
    except Item.DoesNotExist:
        raise ItemNotFound(f"Item {item_id} not found")


def list_lots(item_id, *, include_empty: bool = False):
    item = get_item(item_id)
    qs = Lot.objects.filter(item=item).order_by("expiry_date", "lot_number")
    if not include_empty:
        qs = qs.exclude(quantity=Decimal("0"))
    return qs


def recompute_qty_on_hand(item: Item, *, lot_tracked: bool | None = None) -> Decimal:
    """
    Recompute and persist the derived aggregate from ALL of the item's lots.

    Callers that mutate lots must hold the Item row lock.
    """
    total = Lot.objects.filter(item_id=item.pk).aggregate(total=Sum("quantity"))["total"]
    total = (total or Decimal("0")).quantize(QUANTITY_STEP)

    updates = {"qty_on_hand": total}
    if lot_tracked is not None:
        updates["lot_tracked"] = lot_tracked

    Item.objects.filter(pk=item.pk).update(**updates)

    item.qty_on_hand = total
    if lot_tracked is not None:
        item.lot_tracked = lot_tracked
    return total


@transaction.atomic
def delete_lot(item_id, lot_number: str) -> DeletedLot:
    item = get_item(item_id)
    locked = Item.objects.select_for_update().get(pk=item.pk)

    lot_number = (lot_number or "").strip()
    lot = Lot.objects.filter(item=locked, lot_number=lot_number).first()
    if lot is None:
        raise LotNotFound(f"Lot {lot_number} not found for item {locked.sku}")

    removed = DeletedLot(lot_number=lot.lot_number, quantity=lot.quantity)
    lot.delete()

    total = recompute_qty_on_hand(locked)

    logger.info(
        "Lot deleted",
        extra={
            "item_id": str(locked.pk),
            "lot_number": removed.lot_number,
            "removed_quantity": str(removed.quantity),
            "qty_on_hand": str(total),
        },
    )
    return removed


@transaction.atomic
def create_item(
    *,
    sku: str,
    display_name: str,
    item_type: str,
    uom: str = "ea",
    lot_tracked: bool = False,
    cost=None,
    description: str = "",
    cas_number: str = "",
    location: str = "",
    bom=None,
) -> Item:
    """
    Create a catalog entry. `bom` is a list of {"item": <id>, "qty": n, "uom": "g"}
    and is only accepted for solutions and products.
    """
    sku = (sku or "").strip()
    if not sku:
        raise InventoryServiceError("sku is required")

    if item_type not in Item.ItemType.values:
        raise InventoryServiceError(f"Unknown item_type: {item_type}")

    bom = list(bom or [])
    if bom and item_type == Item.ItemType.CHEMICAL:
        raise InventoryServiceError("Chemicals cannot carry a bill of materials")

    if Item.objects.filter(sku=sku).exists():
        raise InventoryServiceError(f"An item with sku {sku} already exists")

    try:
        item = Item.objects.create(
            sku=sku,
            display_name=(display_name or sku).strip(),
            item_type=item_type,
            uom=(uom or "ea").strip(),
            lot_tracked=bool(lot_tracked),
            cost=cost,
            description=description or "",
            cas_number=(cas_number or "") if item_type == Item.ItemType.CHEMICAL else "",
            location=(location or "") if item_type == Item.ItemType.CHEMICAL else "",
        )
    except IntegrityError as exc:
        raise InventoryServiceError(str(exc)) from exc

    for row in bom:
        component = get_item(row.get("item"))
        qty = to_quantity(row.get("qty"), field="bom qty")
        if qty <= 0:
            raise InventoryServiceError("bom qty must be greater than zero")
        if component.pk == item.pk:
            raise InventoryServiceError("An item cannot be its own component")

        ItemComponent.objects.create(
            parent=item,
            component=component,
            quantity=qty,
            uom=(row.get("uom") or component.uom or "ea"),
        )

    return item


@transaction.atomic
def update_item(item_id, **changes) -> Item:
    """
    Catalog edit of descriptive fields only; quantities stay ledger-managed.
    """
    item = get_item(item_id)

    bad = sorted(set(changes) - set(EDITABLE_ITEM_FIELDS))
    if bad:
        raise InventoryServiceError(f"Field(s) {bad} cannot be edited directly")

    for field, value in changes.items():
        setattr(item, field, value if value is not None or field == "cost" else "")

    item.save(update_fields=[*changes.keys(), "updated_at"])
    return item
