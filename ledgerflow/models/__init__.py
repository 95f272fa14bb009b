"""
Data Models Package

This package contains all Pydantic models used in LedgerFlow.
Stored rows live in `ledger`, call outcomes in `results`, audit trail in `audit`.
"""

from ledgerflow.models.ledger import (
    DEFAULT_PROFILE_NAME,
    FIXED_PAYMENT_CATEGORY,
    Account,
    AccountType,
    CustomCategory,
    CustomCategoryKind,
    FixedPayment,
    FixedPaymentFrequency,
    FixedPaymentType,
    Transaction,
    TransactionCategory,
    TransactionType,
    TransferLeg,
)
from ledgerflow.models.results import (
    DeclineReason,
    FixedPaymentState,
    FixedPaymentStatus,
    ImportResult,
    ImportStrategy,
    MutationResult,
    PeriodTotals,
    PeriodWindow,
    PostingReport,
    ValidationIssue,
)
from ledgerflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger rows
    "DEFAULT_PROFILE_NAME",
    "FIXED_PAYMENT_CATEGORY",
    "Account",
    "AccountType",
    "CustomCategory",
    "CustomCategoryKind",
    "FixedPayment",
    "FixedPaymentFrequency",
    "FixedPaymentType",
    "Transaction",
    "TransactionCategory",
    "TransactionType",
    "TransferLeg",
    # Results
    "DeclineReason",
    "FixedPaymentState",
    "FixedPaymentStatus",
    "ImportResult",
    "ImportStrategy",
    "MutationResult",
    "PeriodTotals",
    "PeriodWindow",
    "PostingReport",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
