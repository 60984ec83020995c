# batches/services/archive.py

"""
BATCH ARCHIVE

Completed batches are stamped archived exactly once, with a SNAPSHOT of
their File's folder path ("Parent / Child", or "Root" for root-level files).
The path is a plain string: later folder renames/moves do not rewrite it.

Rules:
- only Completed batches can be archived
- archiving an already archived batch is a no-op (row locked)
- the folder walk is cycle-safe
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from django.db import transaction
from django.db.models import Count, Max
from django.utils import timezone

from batches.models import Batch
from batches.services.exceptions import ArchiveError, BatchNotFound
from documents.compositor import to_data_url
from files.services.exceptions import FileNotFound, FolderNotFound
from files.services.providers import get_file, get_folder

logger = logging.getLogger("batches.archive")

ROOT_FOLDER_PATH = "Root"
FOLDER_PATH_SEPARATOR = " / "


@dataclass(frozen=True)
class ArchivedDocument:
    batch: Batch
    file_name: str
    document: str | None
    source: str | None  # "signed" | "master" | None


@dataclass(frozen=True)
class ArchiveFolder:
    folder_path: str
    file_count: int
    last_archived_at: datetime | None


def build_folder_path(folder_id) -> str:
    if not folder_id:
        return ROOT_FOLDER_PATH

    names: list[str] = []
    seen = set()
    current = folder_id
    while current:
        if current in seen:
            logger.warning("Folder cycle detected", extra={"folder_id": str(current)})
            break
        seen.add(current)

        try:
            node = get_folder(current)
        except FolderNotFound:
            break

        names.append(node.name)
        current = node.parent_id

    if not names:
        return ROOT_FOLDER_PATH
    return FOLDER_PATH_SEPARATOR.join(reversed(names))


def _parse_batch_id(batch_id) -> uuid.UUID | None:
    if isinstance(batch_id, uuid.UUID):
        return batch_id
    try:
        return uuid.UUID(str(batch_id).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def _lock_batch(batch_id) -> Batch:
    pk = _parse_batch_id(batch_id)
    batch = Batch.objects.select_for_update().filter(pk=pk).first() if pk else None
    if batch is None:
        raise BatchNotFound(f"Batch {batch_id} not found")
    return batch


@transaction.atomic
def archive_batch(*, batch_id) -> Batch:
    batch = _lock_batch(batch_id)

    if batch.status != Batch.Status.COMPLETED:
        raise ArchiveError(f"Batch {batch.pk} is '{batch.status}'; only completed batches can be archived")

    if batch.is_archived:
        return batch

    try:
        template = get_file(batch.file_id)
    except FileNotFound as exc:
        raise ArchiveError(str(exc)) from exc

    batch.folder_path = build_folder_path(template.folder_id)
    batch.is_archived = True
    batch.archived_at = timezone.now()
    batch.save(update_fields=["folder_path", "is_archived", "archived_at", "updated_at"])

    logger.info(
        "Batch archived",
        extra={"batch_id": str(batch.pk), "folder_path": batch.folder_path},
    )
    return batch


def list_archived(*, folder_path: str | None = None):
    qs = Batch.objects.filter(is_archived=True).select_related("file")
    if folder_path is not None:
        qs = qs.filter(folder_path=folder_path)
    return qs.order_by("-archived_at")


def get_archived(batch_id) -> ArchivedDocument:
    pk = _parse_batch_id(batch_id)
    batch = None
    if pk is not None:
        batch = Batch.objects.select_related("file").filter(pk=pk, is_archived=True).first()
    if batch is None:
        raise BatchNotFound(f"Archived batch {batch_id} not found")

    document, source = None, None
    if batch.signed_pdf:
        document = to_data_url(batch.signed_pdf, batch.signed_pdf_content_type or "application/pdf")
        source = "signed"
    elif batch.file.pdf:
        document = to_data_url(batch.file.pdf, batch.file.pdf_content_type or "application/pdf")
        source = "master"

    return ArchivedDocument(
        batch=batch,
        file_name=batch.display_name,
        document=document,
        source=source,
    )


def list_archive_folders() -> list[ArchiveFolder]:
    rows = (
        Batch.objects.filter(is_archived=True)
        .values("folder_path")
        .annotate(file_count=Count("id"), last_archived_at=Max("archived_at"))
        .order_by("folder_path")
    )
    return [
        ArchiveFolder(
            folder_path=row["folder_path"],
            file_count=int(row["file_count"] or 0),
            last_archived_at=row["last_archived_at"],
        )
        for row in rows
    ]


@transaction.atomic
def move_archived(*, batch_id, folder_id=None) -> Batch:
    """
    Re-snapshot the folder path of an archived batch (root when folder_id is None).
    """
    batch = _lock_batch(batch_id)
    if not batch.is_archived:
        raise ArchiveError(f"Batch {batch.pk} is not archived")

    if folder_id:
        try:
            get_folder(folder_id)
        except FolderNotFound as exc:
            raise ArchiveError(str(exc)) from exc

    batch.folder_path = build_folder_path(folder_id)
    batch.save(update_fields=["folder_path", "updated_at"])

    logger.info(
        "Archived batch moved",
        extra={"batch_id": str(batch.pk), "folder_path": batch.folder_path},
    )
    return batch
