# inventory/services/exceptions.py

"""
INVENTORY SERVICE ERRORS

Centralized domain errors for the lot store and the ledger.
"""


class InventoryServiceError(Exception):
    """Base exception for all inventory service failures."""


class ItemNotFound(InventoryServiceError):
    """Raised when a direct item lookup finds nothing (or the id is malformed)."""


class LotNotFound(InventoryServiceError):
    """Raised when an item has no lot with the requested lot number."""


class TransactionNotFound(InventoryServiceError):
    """Raised when a ledger transaction lookup finds nothing."""


class InvalidTransactionError(InventoryServiceError):
    """Raised when a transaction payload is structurally unusable."""


class NegativeLotQuantityError(InventoryServiceError):
    """Raised in strict mode when a transaction would drive a lot below zero."""


class ReversalError(InventoryServiceError):
    """Raised when a transaction cannot be reversed."""
