"""Tests for the audit logger."""

from decimal import Decimal
from uuid import uuid4

from ledgerflow.audit import AuditLogger
from ledgerflow.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from ledgerflow.models.ledger import TransactionType
from ledgerflow.models.results import DeclineReason, MutationResult, ValidationIssue
from ledgerflow.services.storage import InMemoryAuditStorage


class BrokenAuditStorage(InMemoryAuditStorage):
    """Audit sink that always fails."""

    def append_event(self, event):
        raise RuntimeError("disk full")


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_persists_events(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        assert logger.log(AuditEventBuilder.backup_exported(3)) is True
        assert len(storage.get_recent_events()) == 1

    def test_without_storage(self):
        logger = AuditLogger()
        assert logger.storage is None
        assert logger.log(AuditEventBuilder.backup_exported(3)) is True

    def test_broken_storage_never_raises(self):
        logger = AuditLogger(BrokenAuditStorage())
        assert logger.log(AuditEventBuilder.backup_exported(3)) is False

    def test_declined_result_is_returned(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        result = MutationResult.declined([
            ValidationIssue(field="amount", reason=DeclineReason.INVALID_AMOUNT, message="Amount must be positive"),
        ])

        assert logger.log_declined("add_transaction", result) is result
        event = storage.get_recent_events(limit=1)[0]
        assert event.event_type == AuditEventType.MUTATION_DECLINED
        assert event.severity == AuditSeverity.WARNING

    def test_persistence_failure_is_an_error(self):
        storage = InMemoryAuditStorage()
        AuditLogger(storage).log_persistence_failed("refresh", OSError("read-only"))
        event = storage.get_recent_events(limit=1)[0]
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "read-only"
        assert event.details["operation"] == "refresh"

    def test_log_dict_is_json_friendly(self):
        event = AuditEventBuilder.transaction_changed(
            AuditEventType.TRANSACTION_ADDED, uuid4(), "Expense", "12.50", uuid4()
        )
        log_dict = event.to_log_dict()
        assert isinstance(log_dict["event_id"], str)
        assert log_dict["event_type"] == "transaction_added"
        assert log_dict["details"]["amount"] == "12.50"


class TestEngineAuditTrail:
    """Mutations through the engine leave an audit trail."""

    def test_transaction_lifecycle(self, engine, cash_account, audit_storage):
        result = engine.add_transaction(TransactionType.EXPENSE, Decimal("8.20"), cash_account.id, "Hawker & Kopitiam")
        (txn_id,) = result.transaction_ids
        engine.delete_transaction(txn_id)

        events = audit_storage.get_events_by_entity("transaction", txn_id)
        assert [e.event_type for e in events] == [
            AuditEventType.TRANSACTION_ADDED,
            AuditEventType.TRANSACTION_DELETED,
        ]
        assert events[0].details["amount"] == "8.20"

    def test_declined_mutation(self, engine, audit_storage):
        result = engine.add_transaction(TransactionType.EXPENSE, Decimal("5"), uuid4())
        assert not result
        event = audit_storage.get_recent_events(limit=1)[0]
        assert event.event_type == AuditEventType.MUTATION_DECLINED
        assert event.error_code == DeclineReason.ACCOUNT_NOT_FOUND.value
