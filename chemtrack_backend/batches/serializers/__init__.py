from .batch import (
    ArchivedBatchSerializer,
    ArchiveMoveSerializer,
    BatchCreateSerializer,
    BatchListQuerySerializer,
    BatchSerializer,
    BatchUpdateSerializer,
)

__all__ = [
    "BatchSerializer",
    "BatchCreateSerializer",
    "BatchUpdateSerializer",
    "BatchListQuerySerializer",
    "ArchivedBatchSerializer",
    "ArchiveMoveSerializer",
]
