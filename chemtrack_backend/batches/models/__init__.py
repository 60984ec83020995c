# batches/models/__init__.py

from .batch import Batch as Batch
from .batch import BatchOverlay as BatchOverlay

__all__ = ["Batch", "BatchOverlay"]
