"""
Storage Package

The ledger's persistence port plus in-memory and JSON-file adapters.
"""

from ledgerflow.services.storage.interface import (
    ROW_TYPES,
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from ledgerflow.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from ledgerflow.services.storage.json_file import JsonFileLedgerStorage

__all__ = [
    "ROW_TYPES",
    "AuditStorageInterface",
    "DuplicateError",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
]
