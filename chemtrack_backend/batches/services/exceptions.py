# batches/services/exceptions.py

"""
BATCH SERVICE ERRORS

Centralized domain errors for the batch engine and the archive.

Only FATAL conditions are raised to callers. Embedded step failures
(work order, consumption, solution, bake) are logged and recorded on the
batch instead (see batches.services.steps).
"""


class BatchServiceError(Exception):
    """Base exception for all batch service failures."""


class BatchNotFound(BatchServiceError):
    """Raised when a batch id is unknown or malformed."""


class InvalidBatchTransitionError(BatchServiceError):
    """Raised when a requested status change is not an allowed transition."""


class InvalidBatchActionError(BatchServiceError):
    """Raised when an action tag or its payload cannot be parsed."""


class InvalidBatchUpdateError(BatchServiceError):
    """Raised when an update touches fields that are not client-editable."""


class BatchDeletionError(BatchServiceError):
    """Raised when a batch is still referenced by ledger entries."""


class UnknownStepError(BatchServiceError):
    """Raised when a retry names a step that does not exist."""


class ArchiveError(BatchServiceError):
    """Raised when a batch cannot be archived / looked up in the archive."""


class WorkOrderError(BatchServiceError):
    """Raised by work-order clients; always caught by the work-order step."""
