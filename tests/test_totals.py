"""Tests for period totals and their cache."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from ledgerflow.models.ledger import Account, AccountType, Transaction, TransactionType
from ledgerflow.queries.totals import PeriodTotalsCache
from ledgerflow.services.storage import InMemoryLedgerStorage


def _entry(account, kind, amount, when, leg=""):
    return Transaction(
        type=kind,
        amount=Decimal(amount),
        account_id=account.id,
        category_name=leg,
        date=when,
    )


class TestPeriodTotalsCache:
    """Tests for PeriodTotalsCache."""

    def setup_method(self):
        self.storage = InMemoryLedgerStorage()
        self.account = Account(type=AccountType.CASH, balance=Decimal("100"))
        self.storage.insert(self.account)
        self.cache = PeriodTotalsCache(self.storage)
        self.now = datetime(2026, 3, 16, 12, 0)

    def test_sums_inside_period_only(self):
        """Entries outside the window and transfers are ignored."""
        self.storage.insert(_entry(self.account, TransactionType.EXPENSE, "30", datetime(2026, 3, 2)))
        self.storage.insert(_entry(self.account, TransactionType.INCOME, "100", datetime(2026, 3, 31, 23, 59, 59)))
        self.storage.insert(_entry(self.account, TransactionType.EXPENSE, "999", datetime(2026, 2, 28)))
        self.storage.insert(_entry(self.account, TransactionType.TRANSFER, "50", datetime(2026, 3, 3), "Transfer Out"))

        totals = self.cache.totals(self.account.id, 0, self.now)
        assert totals.expense == Decimal("30")
        assert totals.income == Decimal("100")

    def test_result_is_cached_until_invalidated(self):
        self.storage.insert(_entry(self.account, TransactionType.EXPENSE, "10", datetime(2026, 3, 2)))
        assert self.cache.totals(self.account.id, 0, self.now).expense == Decimal("10")
        assert len(self.cache) == 1

        # A write behind the cache's back is not seen until invalidation
        self.storage.insert(_entry(self.account, TransactionType.EXPENSE, "5", datetime(2026, 3, 3)))
        assert self.cache.totals(self.account.id, 0, self.now).expense == Decimal("10")

        self.cache.invalidate()
        assert len(self.cache) == 0
        assert self.cache.totals(self.account.id, 0, self.now).expense == Decimal("15")

    def test_key_includes_calendar_day(self):
        self.cache.totals(self.account.id, 0, self.now)
        self.cache.totals(self.account.id, 0, self.now.replace(hour=23))
        assert len(self.cache) == 1

    def test_new_day_drops_older_entries(self):
        """A long-running read-only host does not accumulate past days."""
        self.cache.totals(self.account.id, 0, self.now)
        self.cache.totals(self.account.id, -1, self.now)
        assert len(self.cache) == 2

        for day in (17, 18, 19):
            self.cache.totals(self.account.id, 0, datetime(2026, 3, day))
            assert len(self.cache) == 1

    def test_unknown_account_is_zero_and_not_cached(self):
        totals = self.cache.totals(uuid4(), 0, self.now)
        assert totals.expense == Decimal("0")
        assert totals.income == Decimal("0")
        assert len(self.cache) == 0


class TestEngineInvalidation:
    """Every mutation through the engine drops cached totals."""

    def test_add_transaction_invalidates(self, engine, cash_account):
        assert engine.period_totals(cash_account.id).expense == Decimal("0")
        assert engine.totals_cache_size == 1

        engine.add_transaction(TransactionType.EXPENSE, Decimal("20"), cash_account.id, "Groceries")
        assert engine.totals_cache_size == 0
        assert engine.period_totals(cash_account.id).expense == Decimal("20")

    def test_credit_period_uses_start_day(self, engine, credit_account, clock):
        """On 16 March a day-25 card is in the 25 Feb - 24 Mar window."""
        engine.add_transaction(TransactionType.EXPENSE, Decimal("40"), credit_account.id, date=datetime(2026, 2, 26))
        engine.add_transaction(TransactionType.EXPENSE, Decimal("7"), credit_account.id, date=datetime(2026, 2, 24))
        assert engine.period_totals(credit_account.id).expense == Decimal("40")
        assert engine.period_totals(credit_account.id, -1).expense == Decimal("7")
