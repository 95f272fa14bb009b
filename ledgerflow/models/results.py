"""
Result Models for LedgerFlow

Everything the engine hands back to a caller that is not a stored row:
validation issues, mutation outcomes, period windows and totals,
posting reports and import summaries.

DESIGN DECISION: Validation failures are values, not exceptions.
A declined mutation returns a falsy MutationResult carrying the issues,
so callers can branch on `if result:` and still show a message.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


ONE_SECOND = timedelta(seconds=1)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class DeclineReason(str, Enum):
    """Why a mutation was declined."""
    INVALID_AMOUNT = "invalid_amount"
    ACCOUNT_NOT_FOUND = "account_not_found"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    SAME_ACCOUNT = "same_account"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSFER_NOT_EDITABLE = "transfer_not_editable"
    INVALID_ACCOUNT_TYPE = "invalid_account_type"
    NOT_FOUND = "not_found"
    INVALID_FIELD = "invalid_field"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Input with the issue"
    )
    reason: DeclineReason = Field(
        ...,
        description="Machine-readable issue type"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class MutationResult(BaseModel):
    """
    Outcome of a Ledger Mutator call.

    Truthy when the mutation was applied and committed.
    """

    success: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    transaction_ids: list[UUID] = Field(
        default_factory=list,
        description="Rows created or touched by the mutation"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="Account / definition / category id for non-transaction mutations"
    )

    def __bool__(self) -> bool:
        return self.success

    @property
    def reason(self) -> Optional[DeclineReason]:
        return self.issues[0].reason if self.issues else None

    @property
    def message(self) -> str:
        return "; ".join(issue.message for issue in self.issues)

    @classmethod
    def ok(
        cls,
        transaction_ids: Optional[list[UUID]] = None,
        entity_id: Optional[UUID] = None,
    ) -> "MutationResult":
        return cls(success=True, transaction_ids=transaction_ids or [], entity_id=entity_id)

    @classmethod
    def declined(cls, issues: list[ValidationIssue]) -> "MutationResult":
        return cls(success=False, issues=issues)


# =============================================================================
# PERIOD MODELS
# =============================================================================

class PeriodWindow(BaseModel):
    """
    A billing period. `end` is the last second inside the window,
    so the window is [start, end + 1s).
    """
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def next_start(self) -> datetime:
        return self.end + ONE_SECOND

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.next_start


class PeriodTotals(BaseModel):
    """Expense and income sums inside one billing period."""
    model_config = ConfigDict(frozen=True)

    expense: Decimal = Decimal("0")
    income: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


# =============================================================================
# FIXED PAYMENT MODELS
# =============================================================================

class FixedPaymentState(str, Enum):
    """Where a definition stands in the current cycle."""
    PENDING = "pending"
    DUE = "due"
    POSTED_THIS_CYCLE = "posted_this_cycle"
    RETIRED = "retired"
    SKIPPED = "skipped"


class FixedPaymentStatus(BaseModel):
    """Result of evaluating one definition against "now"."""

    definition_id: UUID
    state: FixedPaymentState
    due_date: Optional[datetime] = None
    detail: str = ""


class PostingReport(BaseModel):
    """What one Fixed-Payment Poster run did."""

    ran_at: datetime
    posted_transaction_ids: list[UUID] = Field(default_factory=list)
    deduplicated_definition_ids: list[UUID] = Field(default_factory=list)
    retired_definition_ids: list[UUID] = Field(default_factory=list)
    skipped_definition_ids: list[UUID] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(
            self.posted_transaction_ids
            or self.deduplicated_definition_ids
            or self.retired_definition_ids
        )


# =============================================================================
# BACKUP MODELS
# =============================================================================

class ImportStrategy(str, Enum):
    """How a backup snapshot is reconciled with the live store."""
    MERGE = "merge"
    REPLACE_ALL = "replace_all"


class ImportResult(BaseModel):
    """Per-entity counts of an import."""

    strategy: ImportStrategy
    accounts_inserted: int = 0
    accounts_updated: int = 0
    transactions_inserted: int = 0
    transactions_updated: int = 0
    fixed_payments_inserted: int = 0
    fixed_payments_updated: int = 0
    custom_categories_inserted: int = 0
    custom_categories_updated: int = 0

    @property
    def total_items(self) -> int:
        return (
            self.accounts_inserted + self.accounts_updated
            + self.transactions_inserted + self.transactions_updated
            + self.fixed_payments_inserted + self.fixed_payments_updated
            + self.custom_categories_inserted + self.custom_categories_updated
        )
