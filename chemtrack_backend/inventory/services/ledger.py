# inventory/services/ledger.py

"""
INVENTORY LEDGER SERVICE

Purpose:
- Append immutable InventoryTransaction rows and apply their signed
  quantity deltas to the lot store.

Posting contract (post_transaction):
1) Persist the header FIRST in its own DB transaction (durable even if a
   later line fails).
2) Per line, inside its own savepoint with the Item row locked:
   - unknown / malformed item -> line recorded unapplied, logged, skipped
   - unseen lot number -> lot created with quantity 0
   - lot.quantity += qty as an atomic F() increment
   - item.qty_on_hand recomputed from ALL the item's lots
   - lot_tracked flipped on
   - immutable line row written with before/after snapshots
3) No cross-line atomicity: earlier lines stay applied if a later one fails.
4) No dedup: posting the same payload twice applies it twice.

Negative lots:
- INVENTORY_ALLOW_NEGATIVE_LOTS=True (default): allowed, backorder signal.
- False: a transaction whose lines would drive any lot below zero is
  rejected whole before anything is persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, F, Sum
from django.utils import timezone

from inventory.models import InventoryTransaction, InventoryTransactionLine, Item, Lot
from inventory.services.exceptions import (
    InvalidTransactionError,
    InventoryServiceError,
    NegativeLotQuantityError,
    ReversalError,
    TransactionNotFound,
)
from inventory.services.lots import (
    get_item,
    parse_item_id,
    recompute_qty_on_hand,
    to_quantity,
)

logger = logging.getLogger("inventory.ledger")

SYSTEM_ACTOR_NAME = "System"


class _LineRejected(Exception):
    """Internal: a single line cannot be applied; recorded and skipped."""


@dataclass(frozen=True)
class LineRequest:
    line_no: int
    requested_item_id: str
    lot_number: str
    quantity: Decimal
    unit_cost: Decimal | None = None
    expiry_date: date | None = None
    vendor_lot_number: str = ""
    location: str = ""


@dataclass
class ItemTransactionStats:
    total_transactions: int = 0
    receipts: int = 0
    issues: int = 0
    adjustments: int = 0
    builds: int = 0
    total_received: Decimal = Decimal("0")
    total_issued: Decimal = Decimal("0")
    total_adjusted: Decimal = Decimal("0")
    total_built: Decimal = Decimal("0")
    by_type: dict = field(default_factory=dict)


# -------------------------------------------------
# Payload normalization
# -------------------------------------------------
def _to_optional_cost(value) -> Decimal | None:
    if value is None or value == "":
        return None
    cost = to_quantity(value, field="unit_cost")
    if cost < 0:
        raise InvalidTransactionError("unit_cost cannot be negative")
    return cost


def _to_optional_date(value) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise InvalidTransactionError(f"Invalid date: {value}")


def _normalize_lines(lines) -> list[LineRequest]:
    if not isinstance(lines, (list, tuple)) or not lines:
        raise InvalidTransactionError("lines must be a non-empty list")

    requests: list[LineRequest] = []
    for idx, raw in enumerate(lines, start=1):
        if not isinstance(raw, dict):
            raise InvalidTransactionError(f"Line {idx} must be an object")

        try:
            qty = to_quantity(raw.get("qty"), field=f"line {idx} qty")
            unit_cost = _to_optional_cost(raw.get("unit_cost"))
        except InventoryServiceError as exc:
            raise InvalidTransactionError(str(exc)) from exc

        lot_number = str(raw.get("lot") or "").strip()
        if len(lot_number) > 128:
            raise InvalidTransactionError(f"Line {idx}: lot number is too long")

        item_ref = raw.get("item")
        if isinstance(item_ref, Item):
            item_ref = item_ref.pk

        requests.append(
            LineRequest(
                line_no=idx,
                requested_item_id=str(item_ref if item_ref is not None else "").strip()[:64],
                lot_number=lot_number,
                quantity=qty,
                unit_cost=unit_cost,
                expiry_date=_to_optional_date(raw.get("expiry_date")),
                vendor_lot_number=str(raw.get("vendor_lot_number") or "").strip(),
                location=str(raw.get("location") or "").strip(),
            )
        )
    return requests


def _actor_snapshot(actor) -> tuple[object | None, str, str]:
    if actor is None or not getattr(actor, "is_authenticated", False):
        return None, SYSTEM_ACTOR_NAME, ""

    name = ""
    if hasattr(actor, "get_full_name"):
        name = (actor.get_full_name() or "").strip()
    if not name and hasattr(actor, "get_username"):
        name = actor.get_username()
    return actor, name or SYSTEM_ACTOR_NAME, getattr(actor, "email", "") or ""


def negative_lots_allowed() -> bool:
    return bool(getattr(settings, "INVENTORY_ALLOW_NEGATIVE_LOTS", True))


def _ensure_no_negative_lots(requests: list[LineRequest]) -> None:
    """
    Strict-mode pre-check: walk the lines in order with a running balance
    per (item, lot) and reject the whole transaction on the first negative.
    """
    balances: dict[tuple, Decimal] = {}
    for req in requests:
        pk = parse_item_id(req.requested_item_id)
        if pk is None or not req.lot_number:
            continue

        key = (pk, req.lot_number)
        if key not in balances:
            current = (
                Lot.objects.filter(item_id=pk, lot_number=req.lot_number)
                .values_list("quantity", flat=True)
                .first()
            )
            balances[key] = current or Decimal("0")

        balances[key] += req.quantity
        if balances[key] < 0:
            raise NegativeLotQuantityError(
                f"Line {req.line_no}: lot {req.lot_number} would go negative ({balances[key]})"
            )


# -------------------------------------------------
# Line application
# -------------------------------------------------
def _apply_line(txn: InventoryTransaction, req: LineRequest, *, strict: bool) -> InventoryTransactionLine:
    resolved_item_id = None
    try:
        with transaction.atomic():
            pk = parse_item_id(req.requested_item_id)
            item = Item.objects.select_for_update().filter(pk=pk).first() if pk else None
            if item is None:
                raise _LineRejected(f"Item {req.requested_item_id or '<blank>'} not found")
            resolved_item_id = item.pk

            if not req.lot_number:
                raise _LineRejected("lot is required")

            item_before = item.qty_on_hand

            lot, created = Lot.objects.get_or_create(
                item=item,
                lot_number=req.lot_number,
                defaults={
                    "quantity": Decimal("0"),
                    "expiry_date": req.expiry_date,
                    "vendor_lot_number": req.vendor_lot_number,
                    "location": req.location,
                },
            )
            lot_before = Decimal("0") if created else lot.quantity

            updates = {"quantity": F("quantity") + req.quantity}
            if txn.txn_type == InventoryTransaction.TxnType.RECEIPT:
                if req.expiry_date:
                    updates["expiry_date"] = req.expiry_date
                if req.vendor_lot_number:
                    updates["vendor_lot_number"] = req.vendor_lot_number
                if req.location:
                    updates["location"] = req.location
            Lot.objects.filter(pk=lot.pk).update(**updates)

            lot.refresh_from_db(fields=["quantity"])
            if strict and lot.quantity < 0:
                raise _LineRejected(f"Lot {req.lot_number} would go negative ({lot.quantity})")

            item_after = recompute_qty_on_hand(item, lot_tracked=True)

            unit_cost = req.unit_cost if req.unit_cost is not None else item.cost
            total_value = (req.quantity * unit_cost).quantize(Decimal("0.0001")) if unit_cost is not None else None

            return InventoryTransactionLine.objects.create(
                transaction=txn,
                line_no=req.line_no,
                requested_item_id=req.requested_item_id,
                item=item,
                lot_number=req.lot_number,
                quantity=req.quantity,
                unit_cost=unit_cost,
                total_value=total_value,
                lot_qty_before=lot_before,
                lot_qty_after=lot.quantity,
                item_qty_before=item_before,
                item_qty_after=item_after,
                applied=True,
            )
    except _LineRejected as exc:
        logger.warning(
            "Ledger line skipped",
            extra={
                "transaction_id": str(txn.pk),
                "line_no": req.line_no,
                "requested_item_id": req.requested_item_id,
                "lot_number": req.lot_number,
                "reason": str(exc),
            },
        )
        return InventoryTransactionLine.objects.create(
            transaction=txn,
            line_no=req.line_no,
            requested_item_id=req.requested_item_id,
            item_id=resolved_item_id,
            lot_number=req.lot_number,
            quantity=req.quantity,
            unit_cost=req.unit_cost,
            applied=False,
            error=str(exc),
        )


# -------------------------------------------------
# Public API
# -------------------------------------------------
def post_transaction(
    *,
    txn_type: str,
    lines,
    actor=None,
    memo: str = "",
    project: str = "",
    department: str = "",
    reason: str = "",
    batch=None,
    work_order_id: str = "",
    ref_doc_type: str = "",
    effective_date=None,
    reversal_of: InventoryTransaction | None = None,
) -> InventoryTransaction:
    """
    Post one ledger transaction. Returns the header; inspect `lines` for
    per-line `applied` / `error`.

    Deliberately NOT wrapped in a single atomic block (see module docstring).
    """
    if txn_type not in InventoryTransaction.TxnType.values:
        raise InvalidTransactionError(f"Unknown txn_type: {txn_type}")

    requests = _normalize_lines(lines)
    strict = not negative_lots_allowed()
    if strict:
        _ensure_no_negative_lots(requests)

    actor_user, actor_name, actor_email = _actor_snapshot(actor)

    try:
        with transaction.atomic():
            txn = InventoryTransaction.objects.create(
                txn_type=txn_type,
                actor=actor_user,
                actor_name=actor_name,
                actor_email=actor_email,
                memo=memo or "",
                project=project or "",
                department=department or "",
                reason=reason or "",
                batch=batch,
                work_order_id=work_order_id or "",
                ref_doc_type=ref_doc_type or "",
                effective_date=_to_optional_date(effective_date) or timezone.localdate(),
                reversal_of=reversal_of,
            )
    except (ValidationError, IntegrityError) as exc:
        if reversal_of is not None:
            raise ReversalError(f"Transaction {reversal_of.pk} is already reversed") from exc
        raise InvalidTransactionError(str(exc)) from exc

    applied = 0
    for req in requests:
        line = _apply_line(txn, req, strict=strict)
        applied += int(line.applied)

    logger.info(
        "Inventory transaction posted",
        extra={
            "transaction_id": str(txn.pk),
            "txn_type": txn_type,
            "lines": len(requests),
            "applied_lines": applied,
            "batch_id": str(batch.pk) if batch is not None else None,
            "actor": actor_name,
        },
    )
    return txn


def get_transaction(txn_id) -> InventoryTransaction:
    pk = parse_item_id(txn_id)
    if pk is None:
        raise TransactionNotFound(f"Transaction {txn_id} not found")

    txn = (
        InventoryTransaction.objects.select_related("batch", "reversal_of")
        .prefetch_related("lines", "lines__item")
        .filter(pk=pk)
        .first()
    )
    if txn is None:
        raise TransactionNotFound(f"Transaction {txn_id} not found")
    return txn


def list_transactions_by_item(item_id):
    item = get_item(item_id)
    return (
        InventoryTransaction.objects.filter(lines__item=item)
        .distinct()
        .select_related("batch")
        .prefetch_related("lines", "lines__item")
        .order_by("-posted_at")
    )


def get_lot_history(item_id, lot_number: str):
    item = get_item(item_id)
    return (
        InventoryTransaction.objects.filter(
            lines__item=item,
            lines__lot_number=(lot_number or "").strip(),
        )
        .distinct()
        .select_related("batch")
        .prefetch_related("lines", "lines__item")
        .order_by("-posted_at")
    )


def reverse_transaction(*, txn_id, actor=None, reason: str = "") -> InventoryTransaction:
    """
    Post a compensating `adjustment` negating every APPLIED line of the original.

    - a transaction can be reversed only once
    - a reversal cannot itself be reversed
    """
    original = get_transaction(txn_id)

    if original.reversal_of_id is not None:
        raise ReversalError("A reversal cannot itself be reversed")

    if InventoryTransaction.objects.filter(reversal_of=original).exists():
        raise ReversalError(f"Transaction {original.pk} is already reversed")

    lines = [
        {
            "item": str(line.item_id),
            "lot": line.lot_number,
            "qty": -line.quantity,
            "unit_cost": line.unit_cost,
        }
        for line in original.lines.all()
        if line.applied and line.item_id
    ]
    if not lines:
        raise ReversalError("Transaction has no applied lines to reverse")

    return post_transaction(
        txn_type=InventoryTransaction.TxnType.ADJUSTMENT,
        lines=lines,
        actor=actor,
        memo=f"Reversal of {original.txn_type} {original.pk}",
        reason=reason or "Transaction reversal",
        batch=original.batch,
        work_order_id=original.work_order_id,
        ref_doc_type="reversal",
        reversal_of=original,
    )


def item_transaction_stats(item_id) -> ItemTransactionStats:
    item = get_item(item_id)

    rows = (
        InventoryTransactionLine.objects.filter(item=item, applied=True)
        .values("transaction__txn_type")
        .annotate(
            txns=Count("transaction", distinct=True),
            qty=Sum("quantity"),
        )
    )

    stats = ItemTransactionStats()
    stats.total_transactions = (
        InventoryTransactionLine.objects.filter(item=item, applied=True)
        .values("transaction")
        .distinct()
        .count()
    )

    Type = InventoryTransaction.TxnType
    for row in rows:
        txn_type = row["transaction__txn_type"]
        count = int(row["txns"] or 0)
        qty = row["qty"] or Decimal("0")
        stats.by_type[txn_type] = {"transactions": count, "quantity": qty}

        if txn_type == Type.RECEIPT:
            stats.receipts, stats.total_received = count, qty
        elif txn_type == Type.ISSUE:
            stats.issues, stats.total_issued = count, abs(qty)
        elif txn_type == Type.ADJUSTMENT:
            stats.adjustments, stats.total_adjusted = count, qty
        elif txn_type == Type.BUILD:
            stats.builds, stats.total_built = count, qty

    return stats
