"""
Audit Models for LedgerFlow

Every significant action in the engine is logged for audit purposes:
1. Traceability of every balance change
2. Debugging information when totals drift
3. Visibility into what the Fixed-Payment Poster did while nobody watched

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    POOL_SYNCED = "pool_synced"

    # Ledger entries
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSFER_RECORDED = "transfer_recorded"
    MUTATION_DECLINED = "mutation_declined"

    # Plans and categories
    FIXED_PAYMENT_SAVED = "fixed_payment_saved"
    FIXED_PAYMENT_DELETED = "fixed_payment_deleted"
    FIXED_PAYMENT_POSTED = "fixed_payment_posted"
    FIXED_PAYMENT_DEDUPLICATED = "fixed_payment_deduplicated"
    FIXED_PAYMENT_RETIRED = "fixed_payment_retired"
    CUSTOM_CATEGORY_SAVED = "custom_category_saved"
    CUSTOM_CATEGORY_DELETED = "custom_category_deleted"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_REJECTED = "backup_rejected"

    # System events
    PERSISTENCE_FAILED = "persistence_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'fixed_payment')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(txn_id, "Expense", "12.50", account_id)
        event = AuditEventBuilder.mutation_declined("add_transaction", "quota_exceeded", msg)
    """

    @staticmethod
    def account_changed(
        event_type: AuditEventType,
        account_id: UUID,
        display_name: str,
    ) -> AuditEvent:
        verb = {
            AuditEventType.ACCOUNT_CREATED: "created",
            AuditEventType.ACCOUNT_UPDATED: "updated",
            AuditEventType.ACCOUNT_DELETED: "deleted",
        }.get(event_type, "changed")
        return AuditEvent(
            event_type=event_type,
            entity_type="account",
            entity_id=account_id,
            description=f"Account {verb}: {display_name}",
            details={"display_name": display_name},
        )

    @staticmethod
    def pool_synced(bank_name: str, account_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POOL_SYNCED,
            severity=AuditSeverity.DEBUG,
            entity_type="pool",
            description=f"Credit pool synced for {bank_name} ({account_count} accounts)",
            details={"bank_name": bank_name, "account_count": account_count},
        )

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        transaction_id: UUID,
        kind: str,
        amount: str,
        account_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{kind} {amount} ({event_type.value.split('_')[-1]})",
            details={
                "kind": kind,
                "amount": amount,
                "account_id": str(account_id),
            },
        )

    @staticmethod
    def transfer_recorded(
        out_leg_id: UUID,
        in_leg_id: UUID,
        amount: str,
        from_account_id: UUID,
        to_account_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_RECORDED,
            entity_type="transaction",
            entity_id=out_leg_id,
            description=f"Transfer of {amount} recorded",
            details={
                "in_leg_id": str(in_leg_id),
                "amount": amount,
                "from_account_id": str(from_account_id),
                "to_account_id": str(to_account_id),
            },
        )

    @staticmethod
    def mutation_declined(
        operation: str,
        reason: str,
        message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_DECLINED,
            severity=AuditSeverity.WARNING,
            description=f"{operation} declined: {reason}",
            error_code=reason,
            error_message=message,
            details={"operation": operation},
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.replace('_', ' ').capitalize()} {event_type.value.split('_')[-1]}: {name}",
            details={"name": name},
        )

    @staticmethod
    def fixed_payment_posted(
        definition_id: UUID,
        transaction_id: UUID,
        amount: str,
        due_date: datetime,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_PAYMENT_POSTED,
            entity_type="fixed_payment",
            entity_id=definition_id,
            description=f"Fixed payment of {amount} posted for {due_date.date().isoformat()}",
            details={
                "transaction_id": str(transaction_id),
                "amount": amount,
                "due_date": due_date.isoformat(),
            },
        )

    @staticmethod
    def fixed_payment_deduplicated(
        definition_id: UUID,
        existing_transaction_id: UUID,
        due_date: datetime,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_PAYMENT_DEDUPLICATED,
            severity=AuditSeverity.WARNING,
            entity_type="fixed_payment",
            entity_id=definition_id,
            description=f"Fixed payment for {due_date.date().isoformat()} already posted",
            details={
                "existing_transaction_id": str(existing_transaction_id),
                "due_date": due_date.isoformat(),
            },
        )

    @staticmethod
    def fixed_payment_retired(definition_id: UUID, name: str, why: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_PAYMENT_RETIRED,
            entity_type="fixed_payment",
            entity_id=definition_id,
            description=f"Fixed payment retired: {name}",
            details={"name": name, "reason": why},
        )

    @staticmethod
    def backup_exported(item_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description=f"Backup exported ({item_count} items)",
            details={"item_count": item_count},
        )

    @staticmethod
    def backup_imported(strategy: str, item_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            entity_type="backup",
            description=f"Backup imported with {strategy} ({item_count} items)",
            details={"strategy": strategy, "item_count": item_count},
        )

    @staticmethod
    def backup_rejected(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description="Backup rejected",
            error_message=error_message,
        )

    @staticmethod
    def persistence_failed(
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Persistence failed during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
