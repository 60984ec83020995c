"""
Batches views package exports.
"""

from .archive import ArchiveViewSet
from .batch import BatchViewSet

__all__ = [
    "ArchiveViewSet",
    "BatchViewSet",
]
