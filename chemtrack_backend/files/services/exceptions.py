# files/services/exceptions.py

"""
TEMPLATE STORE ERRORS
"""


class FileStoreError(Exception):
    """Base exception for file/folder lookups."""


class FileNotFound(FileStoreError):
    """Raised when a File id is unknown or malformed."""


class FolderNotFound(FileStoreError):
    """Raised when a Folder id is unknown or malformed."""
