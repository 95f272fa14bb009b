"""
Ledger Mutator

The only writer of balances, transfer legs, pool values and plan rows.

DESIGN DECISION: Every entry point follows the same shape:
1. Validate (LedgerValidator) - a declined result means nothing changed
2. Apply the row change and its balance side effects together
3. Commit once through storage.save()
4. Signal change so derived caches are dropped

Balance rules:
- Cash accounts carry a stored balance. Expenses debit it, incomes credit
  it, a "Transfer Out" leg debits it, a "Transfer In" leg credits it.
- Credit accounts never have their stored balance touched by entries;
  their available credit is derived from history by the pool queries.

Persistence failures are logged as audit events and re-raised unchanged.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from ledgerflow.audit.logger import AuditLogger
from ledgerflow.models.audit import AuditEventType
from ledgerflow.models.ledger import (
    Account,
    AccountType,
    CustomCategory,
    FixedPayment,
    Transaction,
    TransactionCategory,
    TransactionType,
    TransferLeg,
)
from ledgerflow.models.results import (
    DeclineReason,
    MutationResult,
    ValidationIssue,
)
from ledgerflow.queries.periods import month_window
from ledgerflow.queries.pool import CreditPool
from ledgerflow.services.storage.interface import LedgerStorageInterface, StorageError
from ledgerflow.validation.validator import LedgerValidator


def _not_found(
    field: str,
    what: str,
    row_id: UUID,
    reason: DeclineReason = DeclineReason.NOT_FOUND,
) -> MutationResult:
    return MutationResult.declined([ValidationIssue(
        field=field,
        reason=reason,
        message=f"{what} {row_id} does not exist",
    )])


def _cash_effect(txn: Transaction) -> Decimal:
    """Signed change a row makes to its account's cash balance."""
    if txn.type == TransactionType.EXPENSE:
        return -txn.amount
    if txn.type == TransactionType.INCOME:
        return txn.amount
    leg = txn.transfer_leg
    if leg == TransferLeg.OUT:
        return -txn.amount
    if leg == TransferLeg.IN:
        return txn.amount
    return Decimal("0")


class LedgerMutator:
    """
    Validated, atomic mutations of the ledger.

    Usage:
        mutator = LedgerMutator(storage, validator, pool, audit, clock, on_change)
        result = mutator.add_transaction(TransactionType.EXPENSE, Decimal("50"), cash.id, "Food & Drinks")
        if not result:
            print(result.message)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: LedgerValidator,
        pool: CreditPool,
        audit: AuditLogger,
        clock: Callable[[], datetime] = datetime.now,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self._storage = storage
        self._validator = validator
        self._pool = pool
        self._audit = audit
        self._clock = clock
        self._on_change = on_change or (lambda: None)

    # ===== COMMIT =====

    def _commit(self, operation: str) -> None:
        try:
            self._storage.save()
        except StorageError as e:
            self._audit.log_persistence_failed(operation, e)
            raise
        finally:
            self._on_change()

    def _apply_cash(self, txn: Transaction, sign: int = 1) -> None:
        account = self._storage.get(Account, txn.account_id)
        if account is not None and account.is_cash:
            account.balance += sign * _cash_effect(txn)

    # ===== QUERIES =====

    def monthly_transaction_count(self, now: Optional[datetime] = None) -> int:
        """Rows of every kind dated inside the calendar month of `now`."""
        window = month_window(now or self._clock())
        return sum(1 for txn in self._storage.fetch(Transaction) if window.contains(txn.date))

    def has_potential_duplicate(
        self,
        kind: TransactionType,
        amount: Decimal,
        account_id: UUID,
        on: datetime,
    ) -> bool:
        """Is there already an entry of this kind and amount on this account that day?"""
        day = on.date()
        return any(
            txn.type == kind
            and txn.amount == amount
            and txn.account_id == account_id
            and txn.date.date() == day
            for txn in self._storage.fetch(Transaction)
        )

    # ===== TRANSACTIONS =====

    def add_transaction(
        self,
        kind: TransactionType,
        amount: Decimal,
        account_id: UUID,
        category_name: str = "",
        date: Optional[datetime] = None,
        note: str = "",
    ) -> MutationResult:
        """Record an expense or income. Transfers go through transfer_between_accounts."""
        account = self._storage.get(Account, account_id)
        issues = self._validator.validate_new_transaction(
            kind=kind,
            amount=amount,
            account=account,
            account_id=account_id,
            monthly_count=self.monthly_transaction_count(),
        )
        if issues:
            return self._audit.log_declined("add_transaction", MutationResult.declined(issues))

        txn = Transaction(
            type=kind,
            amount=amount,
            account_id=account_id,
            category_name=category_name,
            date=date or self._clock(),
            note=note,
        )
        self._storage.insert(txn)
        self._apply_cash(txn)
        self._commit("add_transaction")

        self._audit.log_transaction(AuditEventType.TRANSACTION_ADDED, txn)
        return MutationResult.ok(transaction_ids=[txn.id])

    def update_transaction(
        self,
        transaction_id: UUID,
        kind: TransactionType,
        amount: Decimal,
        account_id: UUID,
        category_name: str = "",
        date: Optional[datetime] = None,
        note: str = "",
    ) -> MutationResult:
        """
        Replace an expense or income in place.

        The old effect is reversed from a copy taken before any field is
        touched, then the new effect is applied to the (possibly new) account.
        """
        existing = self._storage.get(Transaction, transaction_id)
        account = self._storage.get(Account, account_id)
        issues = self._validator.validate_transaction_update(
            existing=existing,
            transaction_id=transaction_id,
            kind=kind,
            amount=amount,
            account=account,
            account_id=account_id,
        )
        if issues:
            return self._audit.log_declined("update_transaction", MutationResult.declined(issues))

        before = existing.model_copy()
        self._apply_cash(before, sign=-1)

        existing.type = kind
        existing.amount = amount
        existing.account_id = account_id
        existing.category_name = category_name or before.category_name
        existing.date = date or before.date
        existing.note = note
        existing.category = TransactionCategory.from_name(existing.category_name)

        self._apply_cash(existing)
        self._commit("update_transaction")

        self._audit.log_transaction(AuditEventType.TRANSACTION_UPDATED, existing)
        return MutationResult.ok(transaction_ids=[existing.id])

    def _transfer_partner(self, leg_row: Transaction) -> Optional[Transaction]:
        leg = leg_row.transfer_leg
        if leg is None:
            return None
        for txn in self._storage.fetch(Transaction):
            if (
                txn.id != leg_row.id
                and txn.is_transfer
                and txn.transfer_leg == leg.opposite
                and txn.amount == leg_row.amount
                and txn.date == leg_row.date
                and txn.note == leg_row.note
                and txn.account_id != leg_row.account_id
            ):
                return txn
        return None

    def delete_transaction(self, transaction_id: UUID) -> MutationResult:
        """
        Remove an entry and reverse its balance effect.

        Deleting either leg of a transfer removes both legs.
        """
        txn = self._storage.get(Transaction, transaction_id)
        if txn is None:
            return self._audit.log_declined(
                "delete_transaction",
                _not_found(
                    "transaction_id", "Transaction", transaction_id,
                    DeclineReason.TRANSACTION_NOT_FOUND,
                ),
            )

        doomed = [txn]
        partner = self._transfer_partner(txn)
        if partner is not None:
            doomed.append(partner)

        for row in doomed:
            self._apply_cash(row, sign=-1)
            self._storage.delete(row)
        self._commit("delete_transaction")

        for row in doomed:
            self._audit.log_transaction(AuditEventType.TRANSACTION_DELETED, row)
        return MutationResult.ok(transaction_ids=[row.id for row in doomed])

    # ===== TRANSFERS =====

    def _record_transfer(
        self,
        operation: str,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        date: Optional[datetime],
        note: str,
        credit_card_payment: bool,
    ) -> MutationResult:
        source = self._storage.get(Account, from_account_id)
        target = self._storage.get(Account, to_account_id)
        issues = self._validator.validate_transfer(
            source=source,
            source_id=from_account_id,
            target=target,
            target_id=to_account_id,
            amount=amount,
            monthly_count=self.monthly_transaction_count(),
            credit_card_payment=credit_card_payment,
        )
        if issues:
            return self._audit.log_declined(operation, MutationResult.declined(issues))

        when = date or self._clock()
        out_leg = Transaction(
            type=TransactionType.TRANSFER,
            amount=amount,
            account_id=from_account_id,
            category_name=TransferLeg.OUT.value,
            date=when,
            note=note,
        )
        in_leg = Transaction(
            type=TransactionType.TRANSFER,
            amount=amount,
            account_id=to_account_id,
            category_name=TransferLeg.IN.value,
            date=when,
            note=note,
        )
        for leg in (out_leg, in_leg):
            self._storage.insert(leg)
            self._apply_cash(leg)
        self._commit(operation)

        self._audit.log_transfer(out_leg, in_leg)
        return MutationResult.ok(transaction_ids=[out_leg.id, in_leg.id])

    def transfer_between_accounts(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        date: Optional[datetime] = None,
        note: str = "",
    ) -> MutationResult:
        """Move money between any two accounts as a pair of transfer legs."""
        return self._record_transfer(
            "transfer_between_accounts",
            from_account_id, to_account_id, amount, date, note,
            credit_card_payment=False,
        )

    def pay_credit_card(
        self,
        from_cash_account_id: UUID,
        to_credit_account_id: UUID,
        amount: Decimal,
        date: Optional[datetime] = None,
        note: str = "",
    ) -> MutationResult:
        """Pay a credit card from a cash account."""
        return self._record_transfer(
            "pay_credit_card",
            from_cash_account_id, to_credit_account_id, amount, date, note,
            credit_card_payment=True,
        )

    # ===== ACCOUNTS =====

    def _sync_banks(self, *bank_names: str) -> None:
        seen = set()
        for bank in bank_names:
            key = bank.strip().casefold()
            if not key or key in seen:
                continue
            seen.add(key)
            count = self._pool.sync_pool(bank)
            if count:
                self._audit.log_pool_synced(bank, count)

    def _adopt_pool_values(self, account: Account) -> None:
        if not account.is_pooled:
            return
        limit = self._pool.bank_credit_limit(account.bank_name)
        baseline = self._pool.bank_available_baseline(account.bank_name)
        if limit is not None:
            account.credit_limit = limit
        if baseline is not None:
            account.balance = baseline

    def add_account(self, account: Account) -> MutationResult:
        """
        Create an account.

        Bank and account names are stored upper-cased. A pooled credit
        account takes the bank's existing shared limit and baseline.
        """
        count = len(self._storage.fetch(Account))
        issues = self._validator.check_account_quota(count)
        if issues:
            return self._audit.log_declined("add_account", MutationResult.declined(issues))

        account.bank_name = account.bank_name.strip().upper()
        account.account_name = account.account_name.strip().upper()
        self._adopt_pool_values(account)

        self._storage.insert(account)
        self._sync_banks(account.bank_name)
        self._commit("add_account")

        self._audit.log_account(AuditEventType.ACCOUNT_CREATED, account)
        return MutationResult.ok(entity_id=account.id)

    def update_account(
        self,
        account_id: UUID,
        bank_name: Optional[str] = None,
        account_name: Optional[str] = None,
        account_type: Optional[AccountType] = None,
        balance: Optional[Decimal] = None,
        credit_limit: Optional[Decimal] = None,
        is_in_combined_credit_pool: Optional[bool] = None,
        billing_cycle_start_day: Optional[int] = None,
        profile_name: Optional[str] = None,
        color_hex: Optional[str] = None,
    ) -> MutationResult:
        """
        Edit an account. Omitted arguments keep their current value.

        Pools at both the old and the new bank are re-synced.
        """
        account = self._storage.get(Account, account_id)
        if account is None:
            return self._audit.log_declined(
                "update_account", _not_found("account_id", "Account", account_id, DeclineReason.ACCOUNT_NOT_FOUND)
            )
        issues = []
        if billing_cycle_start_day is not None and not 1 <= billing_cycle_start_day <= 31:
            issues.append(ValidationIssue(
                field="billing_cycle_start_day",
                reason=DeclineReason.INVALID_FIELD,
                message=f"Billing cycle start day must be 1-31 (got {billing_cycle_start_day})",
            ))
        if credit_limit is not None and credit_limit < 0:
            issues.append(ValidationIssue(
                field="credit_limit",
                reason=DeclineReason.INVALID_AMOUNT,
                message=f"Credit limit cannot be negative (got {credit_limit})",
            ))
        if issues:
            return self._audit.log_declined("update_account", MutationResult.declined(issues))

        old_bank = account.bank_name
        if bank_name is not None:
            account.bank_name = bank_name.strip().upper()
        if account_name is not None:
            account.account_name = account_name.strip().upper()
        if account_type is not None and account_type != account.type:
            account.type = account_type
            account.icon_system_name = account_type.default_icon
        if balance is not None:
            account.balance = balance
        if credit_limit is not None:
            account.credit_limit = credit_limit
        if is_in_combined_credit_pool is not None:
            account.is_in_combined_credit_pool = is_in_combined_credit_pool
        if billing_cycle_start_day is not None:
            account.billing_cycle_start_day = billing_cycle_start_day
        if profile_name is not None:
            account.profile_name = profile_name.strip() or account.profile_name
        if color_hex is not None:
            account.color_hex = color_hex

        if account.is_cash:
            account.credit_limit = Decimal("0")
            account.is_in_combined_credit_pool = False
        self._adopt_pool_values(account)

        self._sync_banks(old_bank, account.bank_name)
        self._commit("update_account")

        self._audit.log_account(AuditEventType.ACCOUNT_UPDATED, account)
        return MutationResult.ok(entity_id=account.id)

    def delete_account(self, account_id: UUID) -> MutationResult:
        """Delete an account together with every entry it owns."""
        account = self._storage.get(Account, account_id)
        if account is None:
            return self._audit.log_declined(
                "delete_account", _not_found("account_id", "Account", account_id, DeclineReason.ACCOUNT_NOT_FOUND)
            )

        owned = [txn for txn in self._storage.fetch(Transaction) if txn.account_id == account_id]
        for txn in owned:
            self._storage.delete(txn)
        self._storage.delete(account)
        self._sync_banks(account.bank_name)
        self._commit("delete_account")

        self._audit.log_account(AuditEventType.ACCOUNT_DELETED, account)
        return MutationResult.ok(transaction_ids=[txn.id for txn in owned], entity_id=account.id)

    # ===== FIXED PAYMENTS & CUSTOM CATEGORIES =====

    def _save_row(self, model: type, row, operation: str) -> bool:
        """Insert, or overwrite the stored row with the same id. True if inserted."""
        existing = self._storage.get(model, row.id)
        if existing is None:
            self._storage.insert(row)
            inserted = True
        else:
            for name in model.model_fields:
                setattr(existing, name, getattr(row, name))
            inserted = False
        self._commit(operation)
        return inserted

    def save_fixed_payment(self, payment: FixedPayment) -> MutationResult:
        """Create or replace a fixed payment definition."""
        issues = self._validator.check_amount(payment.amount)
        if payment.charge_account_id is not None:
            account = self._storage.get(Account, payment.charge_account_id)
            issues += self._validator.check_account(
                account, payment.charge_account_id, field="charge_account_id"
            )
        if issues:
            return self._audit.log_declined("save_fixed_payment", MutationResult.declined(issues))

        self._save_row(FixedPayment, payment, "save_fixed_payment")
        self._audit.log_entity(
            AuditEventType.FIXED_PAYMENT_SAVED, "fixed_payment", payment.id, payment.name
        )
        return MutationResult.ok(entity_id=payment.id)

    def delete_fixed_payment(self, payment_id: UUID) -> MutationResult:
        payment = self._storage.get(FixedPayment, payment_id)
        if payment is None:
            return self._audit.log_declined(
                "delete_fixed_payment", _not_found("payment_id", "Fixed payment", payment_id)
            )
        self._storage.delete(payment)
        self._commit("delete_fixed_payment")
        self._audit.log_entity(
            AuditEventType.FIXED_PAYMENT_DELETED, "fixed_payment", payment.id, payment.name
        )
        return MutationResult.ok(entity_id=payment.id)

    def save_custom_category(self, category: CustomCategory) -> MutationResult:
        """Create or rename a custom category."""
        self._save_row(CustomCategory, category, "save_custom_category")
        self._audit.log_entity(
            AuditEventType.CUSTOM_CATEGORY_SAVED, "custom_category", category.id, category.name
        )
        return MutationResult.ok(entity_id=category.id)

    def delete_custom_category(self, category_id: UUID) -> MutationResult:
        category = self._storage.get(CustomCategory, category_id)
        if category is None:
            return self._audit.log_declined(
                "delete_custom_category", _not_found("category_id", "Category", category_id)
            )
        self._storage.delete(category)
        self._commit("delete_custom_category")
        self._audit.log_entity(
            AuditEventType.CUSTOM_CATEGORY_DELETED, "custom_category", category.id, category.name
        )
        return MutationResult.ok(entity_id=category.id)
