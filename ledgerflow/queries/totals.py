"""
Totals Cache

Per-account expense/income sums inside a billing period, memoized.

Cache key: (account_id, month_offset, calendar day of now). Entries
from any other day are dropped as soon as a lookup arrives for a new day,
so a cached answer never outlives the day it was computed for. Any ledger
mutation clears the whole cache through invalidate().

Transfers are excluded from both sums.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from ledgerflow.models.ledger import Account, Transaction, TransactionType
from ledgerflow.models.results import PeriodTotals
from ledgerflow.queries.periods import account_period
from ledgerflow.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)


class PeriodTotalsCache:
    """Memoized period totals over a ledger store."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage
        self._entries: dict[tuple[UUID, int, date], PeriodTotals] = {}
        self._day: Optional[date] = None

    def __len__(self) -> int:
        return len(self._entries)

    def invalidate(self) -> None:
        if self._entries:
            logger.debug("Totals cache invalidated", entries=len(self._entries))
        self._entries.clear()

    def totals(self, account_id: UUID, month_offset: int, now: datetime) -> PeriodTotals:
        """
        Expense and income of one account in one billing period.

        Unknown accounts give zero totals, which are not cached.
        """
        today = now.date()
        if today != self._day:
            if self._entries:
                logger.debug("Totals cache rolled over", entries=len(self._entries), day=str(today))
            self._entries.clear()
            self._day = today

        key = (account_id, month_offset, today)
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        account = self._storage.get(Account, account_id)
        if account is None:
            return PeriodTotals()

        window = account_period(account, month_offset, now)
        expense = Decimal("0")
        income = Decimal("0")
        for txn in self._storage.fetch(Transaction):
            if txn.account_id != account_id or not window.contains(txn.date):
                continue
            if txn.type == TransactionType.EXPENSE:
                expense += txn.amount
            elif txn.type == TransactionType.INCOME:
                income += txn.amount

        result = PeriodTotals(expense=expense, income=income)
        self._entries[key] = result
        return result
