"""
Ledger Engine

This module ties together all the components behind one facade:
1. Reads (accounts, transactions, periods, totals, pools)
2. Writes (Ledger Mutator, Fixed-Payment Poster)
3. Backup export / import

DESIGN DECISION: The engine enforces the boundaries:
- Every public entry point runs under one re-entrant lock, so concurrent
  callers see a single writer
- Every mutation drops the totals cache
- Every step is audited

Time comes from an injected clock; the engine never calls datetime.now()
directly, so tests can freeze it.
"""

import functools
import threading
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import structlog

from ledgerflow.audit import AuditLogger, configure_logging
from ledgerflow.backup import (
    BackupDecodeError,
    decode_snapshot,
    encode_snapshot,
    export_snapshot,
    import_snapshot,
)
from ledgerflow.config import LedgerSettings, get_settings
from ledgerflow.ledger import FixedPaymentPoster, LedgerMutator
from ledgerflow.models.audit import AuditEventBuilder
from ledgerflow.models.ledger import (
    Account,
    CustomCategory,
    CustomCategoryKind,
    FixedPayment,
    Transaction,
    TransactionType,
)
from ledgerflow.models.results import (
    FixedPaymentStatus,
    ImportResult,
    ImportStrategy,
    MutationResult,
    PeriodTotals,
    PeriodWindow,
    PostingReport,
)
from ledgerflow.queries import CreditPool, PeriodTotalsCache, account_period
from ledgerflow.services.storage import (
    AuditStorageInterface,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from ledgerflow.validation import EntitlementPolicy, LedgerValidator, UnlimitedEntitlements


logger = structlog.get_logger(__name__)


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class LedgerEngine:
    """
    Single entry point for hosts (UI, CLI, widgets, tests).

    Usage:
        engine = LedgerEngine(InMemoryLedgerStorage())
        cash = Account(bank_name="DBS", account_name="Savings", type=AccountType.CASH, balance=Decimal("1000"))
        engine.add_account(cash)
        engine.add_transaction(TransactionType.EXPENSE, Decimal("50"), cash.id, "Food & Drinks")
        engine.period_totals(cash.id)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        entitlements: Optional[EntitlementPolicy] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._lock = threading.RLock()
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._clock = clock
        self._audit = audit_logger or AuditLogger()

        self._totals = PeriodTotalsCache(storage)
        self._pool = CreditPool(storage)
        self._mutator = LedgerMutator(
            storage=storage,
            validator=LedgerValidator(entitlements or UnlimitedEntitlements()),
            pool=self._pool,
            audit=self._audit,
            clock=clock,
            on_change=self._totals.invalidate,
        )
        self._poster = FixedPaymentPoster(
            storage=storage,
            audit=self._audit,
            settings=self._settings,
            on_change=self._totals.invalidate,
        )

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    def now(self) -> datetime:
        return self._clock()

    def _save(self, operation: str) -> None:
        try:
            self._storage.save()
        except StorageError as e:
            self._audit.log_persistence_failed(operation, e)
            raise
        finally:
            self._totals.invalidate()

    # ===== READS =====

    @_locked
    def accounts(self, profile_name: Optional[str] = None) -> list[Account]:
        """Accounts ordered by bank then account name, optionally for one profile."""
        rows = self._storage.fetch(Account)
        if profile_name is not None:
            rows = [a for a in rows if a.profile_name == profile_name]
        return sorted(rows, key=lambda a: (a.bank_name, a.account_name))

    @_locked
    def account(self, account_id: UUID) -> Optional[Account]:
        return self._storage.get(Account, account_id)

    @_locked
    def transactions(
        self,
        account_id: Optional[UUID] = None,
        profile_name: Optional[str] = None,
    ) -> list[Transaction]:
        """
        Entries newest first.

        With a profile, only entries owned by that profile's accounts.
        """
        rows = self._storage.fetch(Transaction)
        if account_id is not None:
            rows = [t for t in rows if t.account_id == account_id]
        if profile_name is not None:
            owned = {a.id for a in self._storage.fetch(Account) if a.profile_name == profile_name}
            rows = [t for t in rows if t.account_id in owned]
        return sorted(rows, key=lambda t: t.date, reverse=True)

    @_locked
    def fixed_payments(self, profile_name: Optional[str] = None) -> list[FixedPayment]:
        rows = self._storage.fetch(FixedPayment)
        if profile_name is not None:
            rows = [p for p in rows if p.profile_name == profile_name]
        return rows

    @_locked
    def custom_categories(self, kind: Optional[CustomCategoryKind] = None) -> list[CustomCategory]:
        rows = self._storage.fetch(CustomCategory)
        if kind is not None:
            rows = [c for c in rows if c.kind == kind]
        return sorted(rows, key=lambda c: c.name.casefold())

    # ===== PERIODS & TOTALS =====

    @_locked
    def period(self, account_id: UUID, month_offset: int = 0) -> Optional[PeriodWindow]:
        account = self._storage.get(Account, account_id)
        if account is None:
            return None
        return account_period(account, month_offset, self._clock())

    @_locked
    def period_totals(self, account_id: UUID, month_offset: int = 0) -> PeriodTotals:
        return self._totals.totals(account_id, month_offset, self._clock())

    @property
    def totals_cache_size(self) -> int:
        with self._lock:
            return len(self._totals)

    # ===== CREDIT POOLS =====

    @_locked
    def bank_credit_limit(self, bank_name: str) -> Optional[Decimal]:
        return self._pool.bank_credit_limit(bank_name)

    @_locked
    def bank_available_baseline(self, bank_name: str) -> Optional[Decimal]:
        return self._pool.bank_available_baseline(bank_name)

    @_locked
    def sync_pool(self, bank_name: str) -> int:
        """Re-sync one bank's pool and commit."""
        count = self._pool.sync_pool(bank_name)
        self._save("sync_pool")
        if count:
            self._audit.log_pool_synced(bank_name, count)
        return count

    @_locked
    def pool_index(self) -> dict[str, list[UUID]]:
        return self._pool.pool_index()

    @_locked
    def pool_account_ids(self, account_id: UUID) -> list[UUID]:
        return self._pool.pool_account_ids(account_id)

    @_locked
    def pooled_card_count(self, account_id: UUID) -> int:
        return self._pool.pooled_card_count(account_id)

    @_locked
    def shared_available_credit(self, account_id: UUID) -> Decimal:
        return self._pool.shared_available_credit(account_id)

    # ===== FIXED PAYMENTS =====

    @_locked
    def refresh(self) -> PostingReport:
        """Post due fixed payments. Call on launch and whenever the host resumes."""
        return self._poster.apply_due(self._clock())

    @_locked
    def fixed_payment_status(self, payment_id: UUID) -> Optional[FixedPaymentStatus]:
        payment = self._storage.get(FixedPayment, payment_id)
        if payment is None:
            return None
        return self._poster.evaluate(payment, self._clock())

    @_locked
    def planned_outflow(self, month_offset: int = 0) -> Decimal:
        return self._poster.planned_outflow(self._clock(), month_offset)

    # ===== MUTATIONS =====

    @_locked
    def monthly_transaction_count(self) -> int:
        return self._mutator.monthly_transaction_count(self._clock())

    @_locked
    def has_potential_duplicate(
        self,
        kind: TransactionType,
        amount: Decimal,
        account_id: UUID,
        on: datetime,
    ) -> bool:
        return self._mutator.has_potential_duplicate(kind, amount, account_id, on)

    @_locked
    def add_transaction(
        self,
        kind: TransactionType,
        amount: Decimal,
        account_id: UUID,
        category_name: str = "",
        date: Optional[datetime] = None,
        note: str = "",
    ) -> MutationResult:
        return self._mutator.add_transaction(kind, amount, account_id, category_name, date, note)

    @_locked
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
        return self._mutator.update_transaction(
            transaction_id, kind, amount, account_id, category_name, date, note
        )

    @_locked
    def delete_transaction(self, transaction_id: UUID) -> MutationResult:
        return self._mutator.delete_transaction(transaction_id)

    @_locked
    def transfer_between_accounts(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        date: Optional[datetime] = None,
        note: str = "",
    ) -> MutationResult:
        return self._mutator.transfer_between_accounts(from_account_id, to_account_id, amount, date, note)

    @_locked
    def pay_credit_card(
        self,
        from_cash_account_id: UUID,
        to_credit_account_id: UUID,
        amount: Decimal,
        date: Optional[datetime] = None,
        note: str = "",
    ) -> MutationResult:
        return self._mutator.pay_credit_card(from_cash_account_id, to_credit_account_id, amount, date, note)

    @_locked
    def add_account(self, account: Account) -> MutationResult:
        if not account.profile_name:
            account.profile_name = self._settings.default_profile_name
        return self._mutator.add_account(account)

    @_locked
    def update_account(self, account_id: UUID, **changes) -> MutationResult:
        """Keyword arguments as LedgerMutator.update_account."""
        return self._mutator.update_account(account_id, **changes)

    @_locked
    def delete_account(self, account_id: UUID) -> MutationResult:
        return self._mutator.delete_account(account_id)

    @_locked
    def save_fixed_payment(self, payment: FixedPayment) -> MutationResult:
        return self._mutator.save_fixed_payment(payment)

    @_locked
    def delete_fixed_payment(self, payment_id: UUID) -> MutationResult:
        return self._mutator.delete_fixed_payment(payment_id)

    @_locked
    def save_custom_category(self, category: CustomCategory) -> MutationResult:
        return self._mutator.save_custom_category(category)

    @_locked
    def delete_custom_category(self, category_id: UUID) -> MutationResult:
        return self._mutator.delete_custom_category(category_id)

    # ===== BACKUP =====

    @_locked
    def export_backup(self) -> bytes:
        """Serialize the whole store (every profile) as backup JSON."""
        snapshot = export_snapshot(self._storage, self._clock())
        data = encode_snapshot(snapshot, indent=self._settings.backup_indent)
        self._audit.log(AuditEventBuilder.backup_exported(snapshot.item_count))
        return data

    @_locked
    def import_backup(
        self,
        data: bytes,
        strategy: ImportStrategy = ImportStrategy.MERGE,
    ) -> ImportResult:
        """
        Decode backup bytes and apply them to the store.

        Raises:
            UnsupportedBackupVersion / InvalidBackupData: nothing was changed
            StorageError: the final commit failed
        """
        try:
            snapshot = decode_snapshot(data)
        except BackupDecodeError as e:
            self._audit.log(AuditEventBuilder.backup_rejected(str(e)))
            raise

        try:
            result = import_snapshot(snapshot, self._storage, strategy)
        except StorageError as e:
            self._audit.log_persistence_failed("import_backup", e)
            raise
        finally:
            self._totals.invalidate()

        self._audit.log(AuditEventBuilder.backup_imported(strategy.value, result.total_items))
        return result


def create_engine(
    settings: Optional[LedgerSettings] = None,
    entitlements: Optional[EntitlementPolicy] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> LedgerEngine:
    """
    Factory function to create a ready engine from settings.

    Uses a JSON file store when LEDGER_DATA_FILE is set, otherwise keeps
    the ledger in memory.
    """
    app_settings = get_settings().app
    settings = settings or get_settings().ledger
    configure_logging("DEBUG" if app_settings.debug_mode else app_settings.log_level)

    if settings.data_file:
        storage = JsonFileLedgerStorage(settings.data_file, indent=settings.backup_indent, clock=clock)
    else:
        storage = InMemoryLedgerStorage()

    logger.info(
        "Engine created",
        environment=app_settings.app_environment,
        storage=type(storage).__name__,
    )
    return LedgerEngine(
        storage=storage,
        entitlements=entitlements,
        audit_logger=AuditLogger(audit_storage),
        settings=settings,
        clock=clock,
    )
