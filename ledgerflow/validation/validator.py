"""
Mutation Guards

DESIGN DECISION: Every Ledger Mutator entry point is checked here first.
Each check returns a list of ValidationIssue; an empty list means the
mutation may proceed. Nothing in this module touches storage or balances,
so a declined mutation provably changed nothing.

Checks are collected, not short-circuited, except where a later check
needs an earlier one to have passed (funds need an existing source).

IMPORTANT: Validation NEVER silently fixes issues.
It reports them to the caller through a declined MutationResult.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledgerflow.models.ledger import Account, Transaction, TransactionType
from ledgerflow.models.results import DeclineReason, ValidationIssue
from ledgerflow.validation.entitlements import EntitlementPolicy


class LedgerValidator:
    """
    Guards for ledger mutations.

    Quota checks go through the injected EntitlementPolicy; everything
    else is a pure function of its arguments.
    """

    def __init__(self, entitlements: EntitlementPolicy):
        self._entitlements = entitlements

    # ===== SINGLE CHECKS =====

    @staticmethod
    def check_amount(amount: Decimal, field: str = "amount") -> list[ValidationIssue]:
        if amount is None or amount <= 0:
            return [ValidationIssue(
                field=field,
                reason=DeclineReason.INVALID_AMOUNT,
                message=f"Amount must be greater than zero (got {amount})",
            )]
        return []

    @staticmethod
    def check_account(
        account: Optional[Account],
        account_id: Optional[UUID],
        field: str = "account_id",
    ) -> list[ValidationIssue]:
        if account is None:
            return [ValidationIssue(
                field=field,
                reason=DeclineReason.ACCOUNT_NOT_FOUND,
                message=f"Account {account_id} does not exist",
            )]
        return []

    def check_entry_quota(self, monthly_count: int) -> list[ValidationIssue]:
        if not self._entitlements.can_add_transaction(monthly_count):
            return [ValidationIssue(
                field="quota",
                reason=DeclineReason.QUOTA_EXCEEDED,
                message=f"Monthly entry limit reached ({monthly_count} this month)",
            )]
        return []

    def check_account_quota(self, account_count: int) -> list[ValidationIssue]:
        if not self._entitlements.can_add_account(account_count):
            return [ValidationIssue(
                field="quota",
                reason=DeclineReason.QUOTA_EXCEEDED,
                message=f"Account limit reached ({account_count} accounts)",
            )]
        return []

    @staticmethod
    def check_not_transfer(kind: TransactionType, field: str = "type") -> list[ValidationIssue]:
        if kind == TransactionType.TRANSFER:
            return [ValidationIssue(
                field=field,
                reason=DeclineReason.TRANSFER_NOT_EDITABLE,
                message="Transfers are recorded and removed through the transfer operations",
            )]
        return []

    # ===== COMPOSITE CHECKS =====

    def validate_new_transaction(
        self,
        kind: TransactionType,
        amount: Decimal,
        account: Optional[Account],
        account_id: UUID,
        monthly_count: int,
    ) -> list[ValidationIssue]:
        """Guards for add_transaction."""
        issues = self.check_not_transfer(kind)
        issues += self.check_amount(amount)
        issues += self.check_account(account, account_id)
        issues += self.check_entry_quota(monthly_count)
        return issues

    def validate_transaction_update(
        self,
        existing: Optional[Transaction],
        transaction_id: UUID,
        kind: TransactionType,
        amount: Decimal,
        account: Optional[Account],
        account_id: UUID,
    ) -> list[ValidationIssue]:
        """Guards for update_transaction."""
        if existing is None:
            return [ValidationIssue(
                field="transaction_id",
                reason=DeclineReason.TRANSACTION_NOT_FOUND,
                message=f"Transaction {transaction_id} does not exist",
            )]
        issues = self.check_not_transfer(existing.type)
        if not issues:
            issues = self.check_not_transfer(kind)
        issues += self.check_amount(amount)
        issues += self.check_account(account, account_id)
        return issues

    def validate_transfer(
        self,
        source: Optional[Account],
        source_id: UUID,
        target: Optional[Account],
        target_id: UUID,
        amount: Decimal,
        monthly_count: int,
        credit_card_payment: bool = False,
    ) -> list[ValidationIssue]:
        """
        Guards for transfer_between_accounts and pay_credit_card.

        A credit card payment additionally needs a cash source and a
        credit target.
        """
        issues = self.check_amount(amount)

        if source_id == target_id:
            issues.append(ValidationIssue(
                field="to_account_id",
                reason=DeclineReason.SAME_ACCOUNT,
                message="Source and target account must differ",
            ))

        issues += self.check_account(source, source_id, field="from_account_id")
        issues += self.check_account(target, target_id, field="to_account_id")

        if credit_card_payment and source is not None and target is not None:
            if not source.is_cash or not target.is_credit:
                issues.append(ValidationIssue(
                    field="to_account_id",
                    reason=DeclineReason.INVALID_ACCOUNT_TYPE,
                    message="A card payment moves money from a cash account to a credit account",
                ))

        if source is not None and source.is_cash and amount is not None and amount > 0:
            if source.balance < amount:
                issues.append(ValidationIssue(
                    field="amount",
                    reason=DeclineReason.INSUFFICIENT_FUNDS,
                    message=(
                        f"{source.display_name} has {source.balance}, "
                        f"cannot move {amount}"
                    ),
                ))

        issues += self.check_entry_quota(monthly_count)
        return issues
