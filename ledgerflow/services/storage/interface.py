"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in memory for tests and embedding
2. Persist it to a JSON file (or a real database later)
3. Keep ledger logic decoupled from storage implementation

The interface mirrors a unit-of-work handle: fetch rows by type, insert,
delete, and one save() that commits everything staged since the last save.
Rows handed out by fetch() are live; edits to them are committed by save().

Persistence calls are synchronous and either succeed or raise StorageError.
There is no retry at this layer.
"""

from abc import ABC, abstractmethod
from typing import Optional, TypeVar
from uuid import UUID

from ledgerflow.models.audit import AuditEvent
from ledgerflow.models.ledger import (
    Account,
    CustomCategory,
    FixedPayment,
    Transaction,
)


Row = TypeVar("Row", Account, Transaction, FixedPayment, CustomCategory)

ROW_TYPES: tuple[type, ...] = (Account, Transaction, FixedPayment, CustomCategory)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (memory, JSON file, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    def fetch(self, model: type[Row]) -> list[Row]:
        """
        Fetch every live row of one type, in insertion order.

        Args:
            model: One of Account, Transaction, FixedPayment, CustomCategory

        Returns:
            List of live row objects
        """
        pass

    @abstractmethod
    def insert(self, row: Row) -> None:
        """
        Stage a new row.

        Raises:
            DuplicateError: If a row of the same type and id exists
        """
        pass

    @abstractmethod
    def delete(self, row: Row) -> None:
        """
        Stage removal of a row.

        Raises:
            NotFoundError: If the row doesn't exist
        """
        pass

    @abstractmethod
    def save(self) -> None:
        """
        Commit everything staged since the last save.

        Raises:
            StorageError: If the commit fails
        """
        pass

    def get(self, model: type[Row], row_id: Optional[UUID]) -> Optional[Row]:
        """Look up one row by id."""
        if row_id is None:
            return None
        for row in self.fetch(model):
            if row.id == row_id:
                return row
        return None


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
