# files/services/providers.py

"""
FILE / FOLDER PROVIDERS

Read-only contract the batch engine and archive consume:
- get_file(id)   -> FileTemplate (recipe + components + optional master PDF)
- get_folder(id) -> FolderNode (name + parent pointer)

Returned values are frozen dataclasses, never model instances, so callers
cannot write back into the template store.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from files.models import File, Folder
from files.services.exceptions import FileNotFound, FolderNotFound


@dataclass(frozen=True)
class ComponentSpec:
    item_id: str
    amount: Decimal
    unit: str

    def as_dict(self) -> dict:
        return {"item_id": self.item_id, "amount": str(self.amount), "unit": self.unit}


@dataclass(frozen=True)
class FileTemplate:
    id: uuid.UUID
    file_name: str
    product_ref: str | None
    solution_ref: str | None
    recipe_qty: Decimal | None
    recipe_unit: str
    components: tuple[ComponentSpec, ...]
    folder_id: uuid.UUID | None
    master_pdf: bytes | None = None

    @property
    def has_master(self) -> bool:
        return bool(self.master_pdf)


@dataclass(frozen=True)
class FolderNode:
    id: uuid.UUID
    name: str
    parent_id: uuid.UUID | None


def _parse_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def _to_bytes(value) -> bytes | None:
    if value is None:
        return None
    data = bytes(value)
    return data or None


def _file_queryset(*, lock: bool = False):
    qs = File.objects.all()
    if lock:
        return qs.select_for_update()
    return qs.prefetch_related("components")


def get_file(file_id, *, lock: bool = False) -> FileTemplate:
    """
    `lock=True` takes a row lock on the File (callers must be inside
    transaction.atomic); used to serialize run-number allocation.
    """
    pk = _parse_uuid(file_id)
    if pk is None:
        raise FileNotFound(f"File {file_id} not found")

    obj = _file_queryset(lock=lock).filter(pk=pk).first()
    if obj is None:
        raise FileNotFound(f"File {file_id} not found")

    components = tuple(
        ComponentSpec(
            item_id=str(c.item_id),
            amount=c.amount,
            unit=c.unit or "",
        )
        for c in obj.components.all().order_by("id")
    )

    return FileTemplate(
        id=obj.pk,
        file_name=obj.file_name,
        product_ref=str(obj.product_ref_id) if obj.product_ref_id else None,
        solution_ref=str(obj.solution_ref_id) if obj.solution_ref_id else None,
        recipe_qty=obj.recipe_qty,
        recipe_unit=obj.recipe_unit or "",
        components=components,
        folder_id=obj.folder_id,
        master_pdf=_to_bytes(obj.pdf),
    )


def get_folder(folder_id) -> FolderNode:
    pk = _parse_uuid(folder_id)
    if pk is None:
        raise FolderNotFound(f"Folder {folder_id} not found")

    row = Folder.objects.filter(pk=pk).values("id", "name", "parent_id").first()
    if row is None:
        raise FolderNotFound(f"Folder {folder_id} not found")

    return FolderNode(id=row["id"], name=row["name"], parent_id=row["parent_id"])
