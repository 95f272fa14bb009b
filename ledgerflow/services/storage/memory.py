"""
In-Memory Storage Implementation

Keeps every row in insertion-ordered dicts keyed by id. save() is the
commit point; subclasses override _persist() to write the committed
state somewhere durable.
"""

from typing import Optional
from uuid import UUID

from ledgerflow.models.audit import AuditEvent
from ledgerflow.services.storage.interface import (
    ROW_TYPES,
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    Row,
    StorageError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    In-memory implementation of ledger storage.

    Single-writer: the engine serializes access, so no locking here.
    """

    def __init__(self):
        self._tables: dict[type, dict[UUID, object]] = {model: {} for model in ROW_TYPES}
        self.save_count = 0

    def _table(self, model: type) -> dict[UUID, object]:
        try:
            return self._tables[model]
        except KeyError:
            raise StorageError(f"Unsupported row type: {model.__name__}")

    def fetch(self, model: type[Row]) -> list[Row]:
        return list(self._table(model).values())

    def insert(self, row: Row) -> None:
        table = self._table(type(row))
        if row.id in table:
            raise DuplicateError(f"{type(row).__name__} {row.id} already exists")
        table[row.id] = row

    def delete(self, row: Row) -> None:
        table = self._table(type(row))
        if row.id not in table:
            raise NotFoundError(f"{type(row).__name__} {row.id} not found")
        del table[row.id]

    def save(self) -> None:
        self._persist()
        self.save_count += 1

    def _persist(self) -> None:
        """Hook for durable subclasses. Nothing to do in memory."""
        pass


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self, max_events: Optional[int] = None):
        self._events: list[AuditEvent] = []
        self._max_events = max_events

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        if self._max_events is not None and len(self._events) > self._max_events:
            del self._events[: len(self._events) - self._max_events]
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
