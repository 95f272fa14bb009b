"""Tests for the backup codec and import/export."""

import json
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledgerflow.backup import (
    BackupSnapshot,
    InvalidBackupData,
    UnsupportedBackupVersion,
    decode_snapshot,
    import_snapshot,
)
from ledgerflow.engine import LedgerEngine
from ledgerflow.models.audit import AuditEventType
from ledgerflow.models.ledger import (
    CustomCategory,
    CustomCategoryKind,
    FixedPayment,
    FixedPaymentType,
    TransactionCategory,
    TransactionType,
)
from ledgerflow.models.results import ImportStrategy
from ledgerflow.services.storage import InMemoryLedgerStorage


def _account_payload(**overrides):
    payload = {
        "id": str(uuid4()),
        "bankName": "OCBC",
        "accountName": "360",
        "currentCredit": "0",
        "amount": "250.00",
        "type": "Cash",
        "colorHex": "#34C759",
        "iconSystemName": "banknote",
        "isInCombinedCreditPool": False,
    }
    payload.update(overrides)
    return payload


def _transaction_payload(account_id, **overrides):
    payload = {
        "id": str(uuid4()),
        "type": "Expense",
        "amount": "12.50",
        "accountId": str(account_id),
        "categoryName": "Groceries",
        "date": "2026-03-01T10:00:00",
        "note": "",
    }
    payload.update(overrides)
    return payload


def _plan_payload(**overrides):
    payload = {
        "id": str(uuid4()),
        "name": "Gym",
        "amount": "80",
        "type": "Subscription",
        "frequency": "Monthly",
        "startDate": "2026-01-01T00:00:00",
        "note": "",
    }
    payload.update(overrides)
    return payload


def _category_payload(**overrides):
    payload = {"id": str(uuid4()), "name": "Pets", "kind": "Expense"}
    payload.update(overrides)
    return payload


# Sections that parse as JSON but break an entity invariant
BROKEN_SECTIONS = [
    {"accounts": [_account_payload(currentCredit="-1")]},
    {"customCategories": [_category_payload(name="")]},
    {"customCategories": [_category_payload(name="   ")]},
    {"fixedPayments": [_plan_payload(chargeDay=40)]},
    {"fixedPayments": [_plan_payload(cycles=-1)]},
    {"fixedPayments": [_plan_payload(outstandingAmount="-5")]},
]


def _backup(**sections):
    payload = {
        "version": 1,
        "exportedAt": "2026-03-16T12:00:00",
        "accounts": [],
        "transactions": [],
    }
    payload.update(sections)
    return json.dumps(payload).encode("utf-8")


class TestEncoding:
    """Tests for what export_backup writes."""

    def test_wire_format(self, engine, cash_account):
        payload = json.loads(engine.export_backup())
        assert payload["version"] == 1
        assert payload["exportedAt"] == "2026-03-16T12:00:00"

        (account,) = payload["accounts"]
        assert account["id"] == str(cash_account.id)
        assert account["amount"] == "1000"
        assert account["currentCredit"] == "0"
        assert account["isInCombinedCreditPool"] is False

    def test_export_is_deterministic(self, engine, cash_account):
        assert engine.export_backup() == engine.export_backup()

    def test_export_is_audited(self, engine, cash_account, audit_storage):
        engine.export_backup()
        event = audit_storage.get_recent_events(limit=1)[0]
        assert event.event_type == AuditEventType.BACKUP_EXPORTED
        assert event.details["item_count"] == 1


class TestRoundTrip:
    """Export from one engine, import into a fresh one."""

    def test_identities_and_fields_survive(self, engine, cash_account, credit_account, audit_logger, settings, clock):
        engine.add_transaction(TransactionType.EXPENSE, Decimal("42.10"), cash_account.id, "Hawker & Kopitiam", note="lunch")
        engine.transfer_between_accounts(cash_account.id, credit_account.id, Decimal("100"), note="top up")
        engine.save_fixed_payment(FixedPayment(
            name="Spotify",
            amount=Decimal("10.98"),
            type=FixedPaymentType.SUBSCRIPTION,
            start_date=datetime(2026, 1, 10),
            charge_account_id=credit_account.id,
            charge_day=10,
        ))
        engine.save_custom_category(CustomCategory(name="Pets", kind=CustomCategoryKind.EXPENSE))

        fresh = LedgerEngine(
            storage=InMemoryLedgerStorage(),
            audit_logger=audit_logger,
            settings=settings,
            clock=clock,
        )
        result = fresh.import_backup(engine.export_backup())

        assert result.accounts_inserted == 2
        assert result.transactions_inserted == 3
        assert result.fixed_payments_inserted == 1
        assert result.custom_categories_inserted == 1
        assert result.total_items == 7

        for original, copy in (
            (engine.accounts(), fresh.accounts()),
            (engine.transactions(), fresh.transactions()),
            (engine.fixed_payments(), fresh.fixed_payments()),
            (engine.custom_categories(), fresh.custom_categories()),
        ):
            assert [row.model_dump() for row in copy] == [row.model_dump() for row in original]

    def test_reimport_updates_instead_of_duplicating(self, engine, cash_account):
        data = engine.export_backup()
        result = engine.import_backup(data)
        assert result.accounts_inserted == 0
        assert result.accounts_updated == 1
        assert len(engine.accounts()) == 1


class TestDecodeErrors:
    """Malformed input is rejected before anything is applied."""

    def test_newer_version(self):
        with pytest.raises(UnsupportedBackupVersion) as exc_info:
            decode_snapshot(_backup(version=2))
        assert exc_info.value.version == 2

    @pytest.mark.parametrize(
        "data",
        [
            b"not json",
            b"[1, 2]",
            b'{"accounts": []}',
            b'{"version": "1", "exportedAt": "2026-03-16T12:00:00"}',
            b'{"version": true, "exportedAt": "2026-03-16T12:00:00"}',
        ],
    )
    def test_invalid_shapes(self, data):
        with pytest.raises(InvalidBackupData):
            decode_snapshot(data)

    def test_missing_required_field(self):
        account = _account_payload()
        del account["colorHex"]
        with pytest.raises(InvalidBackupData):
            decode_snapshot(_backup(accounts=[account]))

    def test_non_positive_amount(self):
        account = _account_payload()
        txn = _transaction_payload(account["id"], amount="0")
        with pytest.raises(InvalidBackupData):
            decode_snapshot(_backup(accounts=[account], transactions=[txn]))

    @pytest.mark.parametrize("sections", BROKEN_SECTIONS)
    def test_entity_invariants(self, sections):
        with pytest.raises(InvalidBackupData):
            decode_snapshot(_backup(**sections))


class TestHistoricalShapes:
    """Files written by earlier releases still load."""

    def test_legacy_category_enum(self):
        txn = _transaction_payload(uuid4(), category="Groceries")
        del txn["categoryName"]
        snapshot = decode_snapshot(_backup(transactions=[txn]))
        model = snapshot.transactions[0].to_model()
        assert model.category_name == "Groceries"
        assert model.category == TransactionCategory.GROCERIES

    def test_no_category_at_all(self):
        txn = _transaction_payload(uuid4())
        del txn["categoryName"]
        snapshot = decode_snapshot(_backup(transactions=[txn]))
        assert snapshot.transactions[0].category_name == "Other"

    def test_unknown_legacy_category(self):
        txn = _transaction_payload(uuid4(), category="Space Travel")
        del txn["categoryName"]
        with pytest.raises(InvalidBackupData):
            decode_snapshot(_backup(transactions=[txn]))

    def test_account_defaults(self):
        snapshot = decode_snapshot(_backup(accounts=[_account_payload()]))
        account = snapshot.accounts[0].to_model()
        assert account.profile_name == "Personal"
        assert account.billing_cycle_start_day == 1

    def test_charge_day_from_charge_date(self):
        plan = {
            "id": str(uuid4()),
            "name": "Insurance",
            "amount": "120",
            "type": "Insurance",
            "frequency": "Monthly",
            "startDate": "2025-06-01T00:00:00",
            "chargeDate": "2025-06-18T00:00:00",
            "categoryName": "Insurance",
            "note": "",
        }
        snapshot = decode_snapshot(_backup(fixedPayments=[plan]))
        payment = snapshot.fixed_payments[0].to_model()
        assert payment.charge_day == 18
        assert payment.type_name == ""

    def test_optional_sections_absent(self):
        snapshot = decode_snapshot(_backup())
        assert snapshot.fixed_payments is None
        assert snapshot.custom_categories is None
        assert snapshot.item_count == 0

    def test_unknown_sections_ignored(self):
        snapshot = decode_snapshot(_backup(budgets=[{"id": "x"}], savingsGoals=[]))
        assert snapshot.accounts == []

    def test_utc_timestamp_becomes_local(self):
        txn = _transaction_payload(uuid4(), date="2026-03-01T10:00:00Z")
        snapshot = decode_snapshot(_backup(transactions=[txn]))
        expected = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert snapshot.transactions[0].date == expected
        assert snapshot.transactions[0].date.tzinfo is None

    def test_decimal_as_number_or_string(self):
        account = _account_payload(amount=250.1, currentCredit="0.00")
        snapshot = decode_snapshot(_backup(accounts=[account]))
        assert snapshot.accounts[0].amount == Decimal("250.1")
        assert snapshot.accounts[0].current_credit == Decimal("0")


class TestImportStrategies:
    """Tests for merge and replace-all imports."""

    def test_merge_updates_in_place(self, engine, cash_account):
        engine.add_transaction(TransactionType.EXPENSE, Decimal("10"), cash_account.id, "Groceries")
        payload = _account_payload(id=str(cash_account.id), bankName="POSB", amount="75")
        other = _account_payload()

        result = engine.import_backup(_backup(accounts=[payload, other]))
        assert result.strategy == ImportStrategy.MERGE
        assert (result.accounts_inserted, result.accounts_updated) == (1, 1)
        assert cash_account.bank_name == "POSB"
        assert cash_account.balance == Decimal("75")
        assert engine.account(cash_account.id) is cash_account
        assert len(engine.transactions()) == 1

    def test_merge_keeps_rows_missing_from_backup(self, engine, cash_account):
        engine.import_backup(_backup(accounts=[_account_payload()]))
        assert len(engine.accounts()) == 2

    def test_replace_all(self, engine, cash_account):
        engine.add_transaction(TransactionType.EXPENSE, Decimal("5"), cash_account.id)
        engine.save_custom_category(CustomCategory(name="Pets"))
        incoming = _account_payload()

        result = engine.import_backup(_backup(accounts=[incoming]), ImportStrategy.REPLACE_ALL)
        assert result.accounts_inserted == 1
        assert [str(a.id) for a in engine.accounts()] == [incoming["id"]]
        assert engine.transactions() == []
        assert engine.custom_categories() == []

    def test_import_drops_cached_totals(self, engine, cash_account):
        engine.period_totals(cash_account.id)
        assert engine.totals_cache_size == 1
        txn = _transaction_payload(cash_account.id, date="2026-03-10T08:00:00")
        engine.import_backup(_backup(transactions=[txn]))
        assert engine.totals_cache_size == 0
        assert engine.period_totals(cash_account.id).expense == Decimal("12.50")

    def test_rejected_backup_changes_nothing(self, engine, cash_account, audit_storage, storage):
        saves = storage.save_count
        with pytest.raises(UnsupportedBackupVersion):
            engine.import_backup(_backup(version=7), ImportStrategy.REPLACE_ALL)

        assert engine.accounts() == [cash_account]
        assert storage.save_count == saves
        event = audit_storage.get_recent_events(limit=1)[0]
        assert event.event_type == AuditEventType.BACKUP_REJECTED

    def test_successful_import_is_audited(self, engine, audit_storage):
        engine.import_backup(_backup(accounts=[_account_payload()]))
        event = audit_storage.get_recent_events(limit=1)[0]
        assert event.event_type == AuditEventType.BACKUP_IMPORTED
        assert event.details == {"strategy": "merge", "item_count": 1}

    @pytest.mark.parametrize("sections", BROKEN_SECTIONS)
    def test_replace_all_rejects_broken_items(self, engine, cash_account, audit_storage, storage, sections):
        engine.add_transaction(TransactionType.EXPENSE, Decimal("5"), cash_account.id)
        saves = storage.save_count

        with pytest.raises(InvalidBackupData):
            engine.import_backup(_backup(**sections), ImportStrategy.REPLACE_ALL)

        assert engine.accounts() == [cash_account]
        assert len(engine.transactions()) == 1
        assert storage.save_count == saves
        event = audit_storage.get_recent_events(limit=1)[0]
        assert event.event_type == AuditEventType.BACKUP_REJECTED

    def test_snapshot_checked_before_delete(self, engine, cash_account, storage):
        """A blank category name fits the wire shape but not the entity."""
        engine.add_transaction(TransactionType.EXPENSE, Decimal("5"), cash_account.id)
        payload = json.loads(_backup(customCategories=[_category_payload(name="   ")]))
        snapshot = BackupSnapshot.model_validate(payload)

        with pytest.raises(InvalidBackupData):
            import_snapshot(snapshot, storage, ImportStrategy.REPLACE_ALL)

        assert engine.accounts() == [cash_account]
        assert len(engine.transactions()) == 1
