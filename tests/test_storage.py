"""Tests for the storage backends."""

import os
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from ledgerflow.models.audit import AuditEventBuilder, AuditEventType
from ledgerflow.models.ledger import (
    Account,
    AccountType,
    CustomCategory,
    FixedPayment,
    Transaction,
    TransactionType,
)
from ledgerflow.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    NotFoundError,
    StorageError,
)


def _cash(balance="100"):
    return Account(bank_name="DBS", account_name="Savings", type=AccountType.CASH, balance=Decimal(balance))


class TestInMemoryLedgerStorage:
    """Tests for InMemoryLedgerStorage."""

    def setup_method(self):
        self.storage = InMemoryLedgerStorage()

    def test_fetch_keeps_insertion_order(self):
        rows = [_cash(), _cash(), _cash()]
        for row in rows:
            self.storage.insert(row)
        assert self.storage.fetch(Account) == rows
        assert self.storage.fetch(Transaction) == []

    def test_fetch_returns_live_rows(self):
        account = _cash()
        self.storage.insert(account)
        self.storage.fetch(Account)[0].balance = Decimal("5")
        assert self.storage.get(Account, account.id).balance == Decimal("5")

    def test_duplicate_insert(self):
        account = _cash()
        self.storage.insert(account)
        with pytest.raises(DuplicateError):
            self.storage.insert(account)

    def test_delete_missing_row(self):
        with pytest.raises(NotFoundError):
            self.storage.delete(_cash())

    def test_get(self):
        account = _cash()
        self.storage.insert(account)
        assert self.storage.get(Account, account.id) is account
        assert self.storage.get(Account, uuid4()) is None
        assert self.storage.get(Account, None) is None

    def test_unsupported_row_type(self):
        with pytest.raises(StorageError):
            self.storage.fetch(dict)

    def test_save_counts_commits(self):
        self.storage.save()
        self.storage.save()
        assert self.storage.save_count == 2


class TestJsonFileLedgerStorage:
    """Tests for JsonFileLedgerStorage."""

    def test_missing_file_starts_empty(self, tmp_path):
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        assert storage.fetch(Account) == []
        assert not (tmp_path / "ledger.json").exists()

    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "nested" / "ledger.json"
        account = _cash("812.45")
        txn = Transaction(
            type=TransactionType.INCOME,
            amount=Decimal("3200"),
            account_id=account.id,
            category_name="Salary",
            date=datetime(2026, 3, 1, 9, 0),
        )
        plan = FixedPayment(name="Rent", amount=Decimal("1800"), start_date=datetime(2026, 1, 1))
        category = CustomCategory(name="Pets")

        storage = JsonFileLedgerStorage(path)
        for row in (account, txn, plan, category):
            storage.insert(row)
        storage.save()

        reloaded = JsonFileLedgerStorage(path)
        assert reloaded.get(Account, account.id).balance == Decimal("812.45")
        assert reloaded.get(Transaction, txn.id).category_name == "Salary"
        assert reloaded.get(FixedPayment, plan.id).name == "Rent"
        assert reloaded.get(CustomCategory, category.id).name == "Pets"

    def test_nothing_written_until_save(self, tmp_path):
        path = tmp_path / "ledger.json"
        storage = JsonFileLedgerStorage(path)
        storage.insert(_cash())
        assert not path.exists()
        storage.save()
        assert path.exists()

    def test_no_temp_files_left(self, tmp_path):
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        storage.insert(_cash())
        storage.save()
        assert os.listdir(tmp_path) == ["ledger.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("{ not json")
        with pytest.raises(StorageError):
            JsonFileLedgerStorage(path)

    def test_unsupported_version_in_file(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text('{"version": 3, "exportedAt": "2026-01-01T00:00:00"}')
        with pytest.raises(StorageError):
            JsonFileLedgerStorage(path)

    def test_unwritable_target(self, tmp_path):
        """A directory where the file should be makes the commit fail."""
        path = tmp_path / "ledger.json"
        storage = JsonFileLedgerStorage(path)
        path.mkdir()
        storage.insert(_cash())
        with pytest.raises(StorageError):
            storage.save()
        assert storage.save_count == 0


class TestInMemoryAuditStorage:
    """Tests for InMemoryAuditStorage."""

    def test_recent_events_newest_first(self):
        storage = InMemoryAuditStorage()
        first = AuditEventBuilder.backup_exported(1)
        second = AuditEventBuilder.backup_exported(2)
        storage.append_event(first)
        storage.append_event(second)
        assert storage.get_recent_events() == [second, first]
        assert storage.get_recent_events(limit=1) == [second]

    def test_max_events_drops_oldest(self):
        storage = InMemoryAuditStorage(max_events=2)
        events = [AuditEventBuilder.backup_exported(i) for i in range(3)]
        for event in events:
            storage.append_event(event)
        assert storage.get_recent_events() == [events[2], events[1]]

    def test_events_by_entity(self):
        storage = InMemoryAuditStorage()
        account_id = uuid4()
        created = AuditEventBuilder.account_changed(AuditEventType.ACCOUNT_CREATED, account_id, "DBS Savings")
        storage.append_event(created)
        storage.append_event(AuditEventBuilder.backup_exported(1))
        assert storage.get_events_by_entity("account", account_id) == [created]
