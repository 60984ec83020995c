"""
PATH: files/models/__init__.py

Template store export surface.
"""

from .folder import Folder
from .file import File, FileComponent

__all__ = [
    "Folder",
    "File",
    "FileComponent",
]
