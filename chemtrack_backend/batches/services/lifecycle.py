"""
BATCH LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for Batch entities.

    Draft -> In Progress -> Review -> Completed
                  ^           |
                  +-----------+   (rejection)

DESIGN PRINCIPLES:
- No database writes
- No ledger posting
- No side effects
- Single source of truth
"""

from batches.models import Batch
from batches.services.exceptions import InvalidBatchTransitionError

Status = Batch.Status

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Status.COMPLETED,
}

INITIAL_STATES = {
    Status.DRAFT,
    Status.IN_PROGRESS,
    Status.REVIEW,
}

ALLOWED_TRANSITIONS = {
    Status.DRAFT: {
        Status.IN_PROGRESS,
    },
    Status.IN_PROGRESS: {
        Status.REVIEW,
    },
    Status.REVIEW: {
        Status.IN_PROGRESS,
        Status.COMPLETED,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def is_transition(*, from_status: str, to_status: str | None) -> bool:
    """Same-status updates are no-ops, not transitions."""
    return bool(to_status) and to_status != from_status


def is_rejection(*, from_status: str, to_status: str) -> bool:
    return from_status == Status.REVIEW and to_status == Status.IN_PROGRESS


def is_completion(*, from_status: str, to_status: str) -> bool:
    return from_status != Status.COMPLETED and to_status == Status.COMPLETED


def validate_initial_status(status: str | None) -> str:
    status = status or Status.IN_PROGRESS
    if status not in Status.values:
        raise InvalidBatchTransitionError(f"Unknown batch status '{status}'")

    if status not in INITIAL_STATES:
        raise InvalidBatchTransitionError(
            f"A batch cannot be created with status '{status}'"
        )
    return status


def validate_transition(*, batch: Batch, target_status: str):
    if target_status not in Status.values:
        raise InvalidBatchTransitionError(f"Unknown batch status '{target_status}'")

    if not can_transition(
        from_status=batch.status,
        to_status=target_status,
    ):
        raise InvalidBatchTransitionError(
            f"Batch {batch.id} cannot transition from "
            f"'{batch.status}' to '{target_status}'"
        )
