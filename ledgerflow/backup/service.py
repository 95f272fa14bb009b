"""
Backup Service

Moves snapshots between the codec and a live store.

Import strategies:
- MERGE: upsert every item by id; nothing is deleted.
- REPLACE_ALL: delete every live row (transactions, accounts, fixed
  payments, custom categories, in that order), then insert the snapshot.

Either way the store is committed once, at the end. Callers must
invalidate any derived caches afterwards.
"""

from datetime import datetime

import structlog
from pydantic import ValidationError

from ledgerflow.backup.codec import InvalidBackupData, build_snapshot
from ledgerflow.backup.snapshot import BackupSnapshot
from ledgerflow.models.ledger import (
    Account,
    CustomCategory,
    FixedPayment,
    Transaction,
)
from ledgerflow.models.results import ImportResult, ImportStrategy
from ledgerflow.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)


def export_snapshot(storage: LedgerStorageInterface, exported_at: datetime) -> BackupSnapshot:
    """Snapshot everything the store holds."""
    return build_snapshot(
        accounts=storage.fetch(Account),
        transactions=storage.fetch(Transaction),
        fixed_payments=storage.fetch(FixedPayment),
        custom_categories=storage.fetch(CustomCategory),
        exported_at=exported_at,
    )


def _upsert(storage: LedgerStorageInterface, model: type, incoming: list) -> tuple[int, int]:
    existing = {row.id: row for row in storage.fetch(model)}
    inserted = updated = 0
    for fresh in incoming:
        row = existing.get(fresh.id)
        if row is not None:
            # Update the live row in place
            for name in model.model_fields:
                if name != "id":
                    setattr(row, name, getattr(fresh, name))
            updated += 1
        else:
            storage.insert(fresh)
            existing[fresh.id] = fresh
            inserted += 1
    return inserted, updated


def import_snapshot(
    snapshot: BackupSnapshot,
    storage: LedgerStorageInterface,
    strategy: ImportStrategy,
) -> ImportResult:
    """
    Apply a decoded snapshot to the store.

    Every entity is built before anything is deleted, so a snapshot that
    breaks an entity invariant leaves the store untouched.

    Raises:
        InvalidBackupData: An item cannot be turned into an entity
        StorageError: If the final commit fails
    """
    try:
        incoming = snapshot.to_models()
    except ValidationError as e:
        raise InvalidBackupData(str(e)) from e

    if strategy == ImportStrategy.REPLACE_ALL:
        for model in (Transaction, Account, FixedPayment, CustomCategory):
            for row in storage.fetch(model):
                storage.delete(row)

    result = ImportResult(strategy=strategy)
    result.accounts_inserted, result.accounts_updated = _upsert(
        storage, Account, incoming[Account]
    )
    result.transactions_inserted, result.transactions_updated = _upsert(
        storage, Transaction, incoming[Transaction]
    )
    result.fixed_payments_inserted, result.fixed_payments_updated = _upsert(
        storage, FixedPayment, incoming[FixedPayment]
    )
    result.custom_categories_inserted, result.custom_categories_updated = _upsert(
        storage, CustomCategory, incoming[CustomCategory]
    )

    storage.save()

    logger.info(
        "Backup applied",
        strategy=strategy.value,
        total_items=result.total_items,
    )
    return result
