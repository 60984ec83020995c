# batches/services/batch_service.py

"""
BATCH ENGINE

Orchestrates one production run:
- recipe snapshot at creation (never re-read from the File)
- run number allocation (max + 1 under a File row lock, released before
  any action step runs)
- signed artifact baking (master + full overlay history)
- best-effort side-effect steps (work order, consumption, solution)
- lifecycle transitions + exactly-once archive on completion

Fatal (raised): FileNotFound, BatchNotFound, InvalidBatchTransitionError,
InvalidBatchActionError, InvalidBatchUpdateError, BatchDeletionError,
UnknownStepError.

Recoverable (logged + recorded in step_errors, never raised): every step
in batches.services.steps. Callers inspect work_order_created,
chemicals_transacted, solution_created and step_errors.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from batches.models import Batch, BatchOverlay
from batches.services import lifecycle, steps
from batches.services.actions import (
    BatchAction,
    ConfirmedComponent,
    CreateWorkOrder,
    NoAction,
    SubmitReview,
    parse_decimal,
)
from batches.services.archive import archive_batch
from batches.services.exceptions import (
    ArchiveError,
    BatchDeletionError,
    BatchNotFound,
    InvalidBatchActionError,
    InvalidBatchUpdateError,
    UnknownStepError,
)
from files.services.providers import FileTemplate, get_file
from inventory.models import InventoryTransaction

logger = logging.getLogger("batches")

UPDATABLE_FIELDS = {
    "status",
    "rejection_reason",
    "confirmed_components",
    "solution_lot_number",
    "solution_quantity",
    "solution_unit",
    "work_order_created",
    "work_order_quantity",
    "chemicals_transacted",
    "solution_created",
}


@dataclass(frozen=True)
class WorkOrderState:
    created: bool
    status: str
    work_order_id: str
    quantity: Decimal | None
    error: str
    created_at: datetime | None
    completed_at: datetime | None
    failed_at: datetime | None


# -------------------------------------------------
# Helpers
# -------------------------------------------------
def _parse_batch_id(batch_id) -> uuid.UUID:
    if isinstance(batch_id, uuid.UUID):
        return batch_id
    try:
        return uuid.UUID(str(batch_id).strip())
    except (TypeError, ValueError, AttributeError):
        raise BatchNotFound(f"Batch {batch_id} not found")


def _lock_batch(batch_id) -> Batch:
    pk = _parse_batch_id(batch_id)
    batch = Batch.objects.select_for_update().filter(pk=pk).first()
    if batch is None:
        raise BatchNotFound(f"Batch {batch_id} not found")
    return batch


def _user_or_none(user):
    return user if user is not None and getattr(user, "is_authenticated", False) else None


def build_snapshot(template: FileTemplate) -> dict:
    return {
        "product_ref": template.product_ref,
        "solution_ref": template.solution_ref,
        "recipe_qty": str(template.recipe_qty) if template.recipe_qty is not None else None,
        "recipe_unit": template.recipe_unit,
        "components": [c.as_dict() for c in template.components],
    }


def _next_run_number(file_id) -> int:
    last = Batch.objects.filter(file_id=file_id).aggregate(last=Max("run_number"))["last"]
    return int(last or 0) + 1


def _overlay_history(batch: Batch) -> list[bytes]:
    return [bytes(o.image) for o in batch.overlays.order_by("sequence")]


def _apply_confirmation_fields(batch: Batch, changes: dict) -> None:
    # Confirmation data is frozen once its ledger step has posted
    if "confirmed_components" in changes and not batch.chemicals_transacted:
        raw = changes.get("confirmed_components") or []
        if not isinstance(raw, (list, tuple)):
            raise InvalidBatchActionError("confirmed_components must be a list")
        batch.confirmed_components = [ConfirmedComponent.from_dict(c).as_dict() for c in raw]

    if "solution_lot_number" in changes and not batch.solution_created:
        batch.solution_lot_number = str(changes.get("solution_lot_number") or "").strip()

    if "solution_quantity" in changes and not batch.solution_created:
        batch.solution_quantity = parse_decimal(changes.get("solution_quantity"), field_name="solution_quantity")

    if "solution_unit" in changes and not batch.solution_created:
        batch.solution_unit = str(changes.get("solution_unit") or "").strip()


def _run_action(batch: Batch, action: BatchAction, *, user=None) -> None:
    if isinstance(action, NoAction):
        return

    if isinstance(action, CreateWorkOrder):
        steps.run_work_order_step(batch, quantity=action.quantity)
        return

    if isinstance(action, SubmitReview):
        conf = action.confirmation
        if conf.components:
            batch.confirmed_components = [c.as_dict() for c in conf.components]
        if conf.solution_lot_number:
            batch.solution_lot_number = conf.solution_lot_number
            batch.solution_quantity = conf.solution_quantity
            batch.solution_unit = conf.solution_unit

        if conf.components:
            steps.run_chemicals_step(batch, user=user)
        if conf.solution_lot_number:
            steps.run_solution_step(batch, user=user)
        return

    raise InvalidBatchActionError(f"Unsupported batch action: {action!r}")


# -------------------------------------------------
# Create
# -------------------------------------------------
def create_batch(
    *,
    file_id,
    overlay=None,
    action: BatchAction | None = None,
    status: str | None = None,
    user=None,
) -> Batch:
    """
    Start a run against a File template.

    `action` is a parsed variant (see batches.services.actions.parse_action).
    The batch and its run number are committed before the action runs.
    """
    status = lifecycle.validate_initial_status(status)
    action = action or NoAction()
    if not isinstance(action, (NoAction, CreateWorkOrder, SubmitReview)):
        raise InvalidBatchActionError(f"Unsupported batch action: {action!r}")

    with transaction.atomic():
        template = get_file(file_id, lock=True)

        batch = Batch(
            file_id=template.id,
            run_number=_next_run_number(template.id),
            status=status,
            snapshot=build_snapshot(template),
            created_by=_user_or_none(user),
        )

        image = None
        if overlay is not None and template.has_master:
            image = steps.bake_overlays(batch, master_pdf=template.master_pdf, history=[], overlay=overlay)
        elif overlay is not None:
            logger.info("Overlay ignored: file has no master document", extra={"file_id": str(template.id)})

        if status == Batch.Status.REVIEW:
            batch.submitted_for_review_at = timezone.now()

        batch.save()

        if image is not None:
            BatchOverlay.objects.create(batch=batch, sequence=1, image=image)

    # Steps may call the ERP; only the batch row is held from here on
    if not isinstance(action, NoAction):
        with transaction.atomic():
            batch = _lock_batch(batch.pk)
            _run_action(batch, action, user=user)
            batch.save()

    logger.info(
        "Batch created",
        extra={
            "batch_id": str(batch.pk),
            "file_id": str(template.id),
            "run_number": batch.run_number,
            "status": batch.status,
            "action": action.tag,
            "step_errors": sorted((batch.step_errors or {}).keys()),
        },
    )
    return get_batch(batch.pk)


# -------------------------------------------------
# Update
# -------------------------------------------------
def update_batch(*, batch_id, changes: dict | None = None, overlay=None, user=None) -> Batch:
    changes = dict(changes or {})
    bad = sorted(set(changes) - UPDATABLE_FIELDS)
    if bad:
        raise InvalidBatchUpdateError(f"Field(s) {bad} cannot be updated directly")

    with transaction.atomic():
        batch = _lock_batch(batch_id)
        prev_status = batch.status

        target = changes.get("status") or None
        transitioning = lifecycle.is_transition(from_status=prev_status, to_status=target)
        if transitioning:
            lifecycle.validate_transition(batch=batch, target_status=target)

        _apply_confirmation_fields(batch, changes)

        if "work_order_quantity" in changes and not batch.work_order_created:
            batch.work_order_quantity = parse_decimal(changes.get("work_order_quantity"), field_name="work_order_quantity")

        # Signed artifact: always re-baked from the master through the whole history
        if overlay is not None:
            template = get_file(batch.file_id)
            if template.has_master:
                history = _overlay_history(batch)
                image = steps.bake_overlays(batch, master_pdf=template.master_pdf, history=history, overlay=overlay)
                if image is not None:
                    BatchOverlay.objects.create(batch=batch, sequence=len(history) + 1, image=image)
            else:
                logger.info("Overlay ignored: file has no master document", extra={"batch_id": str(batch.pk)})

        # Newly requested steps
        if changes.get("work_order_created") and not batch.work_order_created:
            steps.run_work_order_step(batch, quantity=batch.work_order_quantity)

        if changes.get("chemicals_transacted") and not batch.chemicals_transacted and batch.confirmed_components:
            steps.run_chemicals_step(batch, user=user)

        if changes.get("solution_created") and not batch.solution_created and batch.solution_lot_number:
            steps.run_solution_step(batch, user=user)

        # Lifecycle entry actions
        completed_now = False
        if transitioning:
            now = timezone.now()
            if target == Batch.Status.REVIEW:
                batch.submitted_for_review_at = now

            if lifecycle.is_rejection(from_status=prev_status, to_status=target):
                batch.was_rejected = True
                batch.rejection_reason = str(changes.get("rejection_reason") or "").strip()
                batch.rejected_by = steps.actor_name(user)
                batch.rejected_at = now

            if lifecycle.is_completion(from_status=prev_status, to_status=target):
                batch.completed_at = now
                steps.complete_work_order_step(batch)
                completed_now = True

            batch.status = target

        batch.save()

    if transitioning:
        logger.info(
            "Batch status changed",
            extra={"batch_id": str(batch.pk), "from": prev_status, "to": target},
        )

    if completed_now:
        try:
            archive_batch(batch_id=batch.pk)
        except ArchiveError:
            logger.exception("Archive on completion failed", extra={"batch_id": str(batch.pk)})

    return get_batch(batch.pk)


# -------------------------------------------------
# Retry
# -------------------------------------------------
def retry_step(*, batch_id, step: str, user=None) -> Batch:
    """
    Re-run ONE step with the data stored on the batch. Completed steps are no-ops.
    """
    if step not in steps.RETRYABLE_STEPS:
        raise UnknownStepError(
            f"Unknown step '{step}'. Expected one of: {', '.join(steps.RETRYABLE_STEPS)}"
        )

    with transaction.atomic():
        batch = _lock_batch(batch_id)

        if step == steps.STEP_WORK_ORDER:
            ok = steps.run_work_order_step(batch, quantity=batch.work_order_quantity)
        elif step == steps.STEP_CHEMICALS:
            ok = steps.run_chemicals_step(batch, user=user)
        else:
            ok = steps.run_solution_step(batch, user=user)

        batch.save()

    logger.info("Batch step retried", extra={"batch_id": str(batch.pk), "step": step, "ok": ok})
    return get_batch(batch.pk)


# -------------------------------------------------
# Read / delete
# -------------------------------------------------
def get_batch(batch_id) -> Batch:
    pk = _parse_batch_id(batch_id)
    batch = Batch.objects.select_related("file").filter(pk=pk).first()
    if batch is None:
        raise BatchNotFound(f"Batch {batch_id} not found")
    return batch


def list_batches(*, file_id=None, status: str | None = None, is_archived: bool | None = None):
    qs = Batch.objects.select_related("file").order_by("-created_at")
    if file_id:
        qs = qs.filter(file_id=file_id)
    if status:
        qs = qs.filter(status=status)
    if is_archived is not None:
        qs = qs.filter(is_archived=is_archived)
    return qs


@transaction.atomic
def delete_batch(*, batch_id) -> None:
    batch = _lock_batch(batch_id)

    if InventoryTransaction.objects.filter(batch=batch).exists():
        raise BatchDeletionError(
            f"Batch {batch.pk} has inventory transactions and cannot be deleted"
        )

    batch.delete()
    logger.info("Batch deleted", extra={"batch_id": str(batch_id)})


def get_work_order_status(batch_id) -> WorkOrderState:
    batch = get_batch(batch_id)
    return WorkOrderState(
        created=batch.work_order_created,
        status=batch.work_order_status,
        work_order_id=batch.work_order_id,
        quantity=batch.work_order_quantity,
        error=batch.work_order_error,
        created_at=batch.work_order_created_at,
        completed_at=batch.work_order_completed_at,
        failed_at=batch.work_order_failed_at,
    )
