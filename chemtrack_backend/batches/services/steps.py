# batches/services/steps.py

"""
BATCH SIDE-EFFECT STEPS

Each step is independently best-effort:
- work_order : create the external work order
- chemicals  : post an `issue` of the confirmed component amounts
- solution   : post a `build` producing the solution lot
- bake       : re-bake the signed artifact from master + overlay history

Contract for every step:
- operates on an already-locked, in-memory Batch (caller saves it)
- already-completed steps are no-ops (safe to retry)
- success sets the step's flag/timestamp and clears step_errors[step]
- failure is logged (logger.exception) and written to step_errors[step];
  it NEVER propagates to the caller
- ledger posts run inside a savepoint: an error escaping post_transaction
  rolls back that step's header and lines together, so the step stays
  all-or-nothing and a retry never posts the same consumption twice
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from batches.models import Batch
from batches.services.work_orders import get_work_order_client
from documents.compositor import CompositorError, bake_history, decode_overlay
from inventory.models import InventoryTransaction
from inventory.services.ledger import post_transaction

logger = logging.getLogger("batches.steps")

STEP_WORK_ORDER = "work_order"
STEP_CHEMICALS = "chemicals"
STEP_SOLUTION = "solution"
STEP_WORK_ORDER_COMPLETION = "work_order_completion"
STEP_BAKE = "bake"

RETRYABLE_STEPS = (STEP_WORK_ORDER, STEP_CHEMICALS, STEP_SOLUTION)

PRODUCTION_DEPARTMENT = "Production"
PDF_CONTENT_TYPE = "application/pdf"


class StepFailed(Exception):
    """Internal: a step precondition is not met."""


# -------------------------------------------------
# step_errors bookkeeping
# -------------------------------------------------
def _record_error(batch: Batch, step: str, exc: Exception) -> None:
    errors = dict(batch.step_errors or {})
    errors[step] = str(exc) or exc.__class__.__name__
    batch.step_errors = errors


def _clear_error(batch: Batch, step: str) -> None:
    errors = dict(batch.step_errors or {})
    if errors.pop(step, None) is not None:
        batch.step_errors = errors


def _fail(batch: Batch, step: str, exc: Exception) -> bool:
    if isinstance(exc, StepFailed):
        logger.warning(
            "Batch step skipped",
            extra={"batch_id": str(batch.pk), "step": step, "reason": str(exc)},
        )
    else:
        logger.exception(
            "Batch step failed",
            extra={"batch_id": str(batch.pk), "step": step},
        )
    _record_error(batch, step, exc)
    return False


def actor_name(user) -> str:
    if user is None or not getattr(user, "is_authenticated", False):
        return "System"
    full = (user.get_full_name() or "").strip() if hasattr(user, "get_full_name") else ""
    return full or user.get_username()


def _snapshot_decimal(value) -> Decimal | None:
    if value in (None, ""):
        return None
    return Decimal(str(value))


# -------------------------------------------------
# Work order
# -------------------------------------------------
def default_work_order_quantity(batch: Batch) -> Decimal:
    return (
        batch.work_order_quantity
        or batch.solution_quantity
        or _snapshot_decimal((batch.snapshot or {}).get("recipe_qty"))
        or Decimal("1")
    )


def run_work_order_step(batch: Batch, *, quantity: Decimal | None = None) -> bool:
    if batch.work_order_created:
        return True

    qty = quantity or default_work_order_quantity(batch)
    batch.work_order_quantity = qty
    batch.work_order_status = Batch.WorkOrderStatus.CREATING

    try:
        result = get_work_order_client().create_work_order(batch, qty)
    except Exception as exc:
        batch.work_order_status = Batch.WorkOrderStatus.FAILED
        batch.work_order_error = str(exc)
        batch.work_order_failed_at = timezone.now()
        return _fail(batch, STEP_WORK_ORDER, exc)

    batch.work_order_id = result.external_id
    batch.work_order_created = True
    batch.work_order_status = Batch.WorkOrderStatus.CREATED
    batch.work_order_created_at = timezone.now()
    batch.work_order_error = ""
    batch.work_order_failed_at = None
    _clear_error(batch, STEP_WORK_ORDER)

    logger.info(
        "Work order created",
        extra={"batch_id": str(batch.pk), "work_order_id": result.external_id, "quantity": str(qty)},
    )
    return True


def complete_work_order_step(batch: Batch) -> bool:
    if not (batch.work_order_created and batch.work_order_id):
        return True
    if batch.work_order_status == Batch.WorkOrderStatus.COMPLETED:
        return True

    try:
        get_work_order_client().complete_work_order(batch.work_order_id)
    except Exception as exc:
        return _fail(batch, STEP_WORK_ORDER_COMPLETION, exc)

    batch.work_order_status = Batch.WorkOrderStatus.COMPLETED
    batch.work_order_completed_at = timezone.now()
    _clear_error(batch, STEP_WORK_ORDER_COMPLETION)
    return True


# -------------------------------------------------
# Ledger steps
# -------------------------------------------------
def consumption_lines(batch: Batch) -> list[dict]:
    """
    One negative line per confirmed component. Components lacking an item,
    a lot or an amount are dropped.
    """
    lines = []
    for comp in batch.confirmed_components or []:
        item_id = (comp.get("item_id") or "").strip()
        lot_number = (comp.get("lot_number") or "").strip()
        amount = comp.get("actual_amount")
        if amount in (None, ""):
            amount = comp.get("planned_amount")
        if not item_id or not lot_number or amount in (None, ""):
            continue
        lines.append({"item": item_id, "lot": lot_number, "qty": -Decimal(str(amount))})
    return lines


def _unapplied_summary(txn: InventoryTransaction) -> str:
    skipped = [f"line {line.line_no}: {line.error}" for line in txn.lines.all() if not line.applied]
    return "; ".join(skipped)


def run_chemicals_step(batch: Batch, *, user=None) -> bool:
    if batch.chemicals_transacted:
        return True

    try:
        lines = consumption_lines(batch)
        if not lines:
            raise StepFailed("No confirmed components with an item, lot and amount to consume")

        with transaction.atomic():
            txn = post_transaction(
                txn_type=InventoryTransaction.TxnType.ISSUE,
                lines=lines,
                actor=user,
                memo=f"Chemical consumption for batch {batch.run_number}",
                project=f"Batch-{batch.pk}",
                department=PRODUCTION_DEPARTMENT,
                batch=batch,
                work_order_id=batch.work_order_id,
                ref_doc_type="batch",
            )
    except Exception as exc:
        return _fail(batch, STEP_CHEMICALS, exc)

    batch.chemicals_transacted = True
    batch.transaction_date = timezone.now()

    skipped = _unapplied_summary(txn)
    if skipped:
        _record_error(batch, STEP_CHEMICALS, StepFailed(f"Posted with skipped lines: {skipped}"))
    else:
        _clear_error(batch, STEP_CHEMICALS)
    return True


def run_solution_step(batch: Batch, *, user=None) -> bool:
    if batch.solution_created:
        return True

    snapshot = batch.snapshot or {}
    try:
        lot_number = (batch.solution_lot_number or "").strip()
        if not lot_number:
            raise StepFailed("No solution lot number")

        solution_ref = snapshot.get("solution_ref")
        if not solution_ref:
            raise StepFailed("Batch snapshot has no solution item")

        quantity = batch.solution_quantity or _snapshot_decimal(snapshot.get("recipe_qty"))
        if quantity is None or quantity <= 0:
            raise StepFailed("No solution quantity (and no recipe quantity to default to)")

        batch.solution_quantity = quantity
        batch.solution_unit = batch.solution_unit or snapshot.get("recipe_unit") or ""

        with transaction.atomic():
            txn = post_transaction(
                txn_type=InventoryTransaction.TxnType.BUILD,
                lines=[{"item": solution_ref, "lot": lot_number, "qty": quantity}],
                actor=user,
                memo=f"Solution lot created from batch {batch.run_number}",
                project=f"Batch-{batch.pk}",
                department=PRODUCTION_DEPARTMENT,
                batch=batch,
                work_order_id=batch.work_order_id,
                ref_doc_type="batch",
            )

        skipped = _unapplied_summary(txn)
        if skipped:
            raise StepFailed(f"Solution lot not produced: {skipped}")
    except Exception as exc:
        return _fail(batch, STEP_SOLUTION, exc)

    batch.solution_created = True
    batch.solution_created_date = timezone.now()
    _clear_error(batch, STEP_SOLUTION)
    return True


# -------------------------------------------------
# Signed artifact
# -------------------------------------------------
def bake_overlays(batch: Batch, *, master_pdf: bytes, history: list, overlay) -> bytes | None:
    """
    Re-bake master + history + new overlay. Returns the decoded overlay image
    to append to the history, or None on failure (artifact left untouched).
    """
    try:
        image = decode_overlay(overlay)
        signed = bake_history(master_pdf, [*history, image])
    except CompositorError as exc:
        _fail(batch, STEP_BAKE, exc)
        return None

    batch.signed_pdf = signed
    batch.signed_pdf_content_type = PDF_CONTENT_TYPE
    _clear_error(batch, STEP_BAKE)
    return image
