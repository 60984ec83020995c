# files/models/folder.py

"""
FOLDER

Tree of folders holding File templates. Folder names are unique per parent.
Archive folder paths are computed from this chain at archive time and then
stored as plain strings on the batch (they do not follow later renames).
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Folder(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)

    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["parent", "name"],
                name="unique_folder_name_per_parent",
            ),
            # NULL parents are distinct in SQL; keep root names unique too
            models.UniqueConstraint(
                fields=["name"],
                condition=Q(parent__isnull=True),
                name="unique_root_folder_name",
            ),
        ]

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})

        if self.pk and self.parent_id == self.pk:
            raise ValidationError({"parent": "A folder cannot be its own parent"})

    def __str__(self):
        return self.name
