"""
Audit Logger

DESIGN DECISION: Every significant action in the engine is logged.
This provides:
1. Traceability of every balance change
2. Debugging capability when totals look wrong
3. A record of what the Fixed-Payment Poster did on launch

The audit logger:
- Is synchronous, like the engine it serves
- Gracefully handles failures (a broken audit sink never fails a mutation)
- Logs locally through structlog and optionally persists to audit storage
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from ledgerflow.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity
from ledgerflow.models.ledger import Account, Transaction
from ledgerflow.models.results import MutationResult
from ledgerflow.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and therefore structlog) to stderr at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger("ledgerflow").setLevel(level.upper())


def _money(amount: Decimal) -> str:
    return format(amount, "f")


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledgerflow.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # ===== CONVENIENCE WRAPPERS =====

    def log_account(self, event_type: AuditEventType, account: Account) -> None:
        self.log(AuditEventBuilder.account_changed(event_type, account.id, account.display_name))

    def log_pool_synced(self, bank_name: str, account_count: int) -> None:
        self.log(AuditEventBuilder.pool_synced(bank_name, account_count))

    def log_transaction(self, event_type: AuditEventType, txn: Transaction) -> None:
        self.log(
            AuditEventBuilder.transaction_changed(
                event_type=event_type,
                transaction_id=txn.id,
                kind=txn.type.value,
                amount=_money(txn.amount),
                account_id=txn.account_id,
            )
        )

    def log_transfer(self, out_leg: Transaction, in_leg: Transaction) -> None:
        self.log(
            AuditEventBuilder.transfer_recorded(
                out_leg_id=out_leg.id,
                in_leg_id=in_leg.id,
                amount=_money(out_leg.amount),
                from_account_id=out_leg.account_id,
                to_account_id=in_leg.account_id,
            )
        )

    def log_declined(self, operation: str, result: MutationResult) -> MutationResult:
        """Record a declined mutation and hand the result back."""
        reason = result.reason.value if result.reason else "unknown"
        self.log(AuditEventBuilder.mutation_declined(operation, reason, result.message))
        return result

    def log_entity(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        name: str,
    ) -> None:
        self.log(AuditEventBuilder.entity_changed(event_type, entity_type, entity_id, name))

    def log_persistence_failed(self, operation: str, error: Exception) -> None:
        self.log(AuditEventBuilder.persistence_failed(operation, str(error)))
