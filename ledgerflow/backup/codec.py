"""
Backup Codec

Turns a BackupSnapshot into bytes and back.

- Decimals are written as JSON strings so no precision is lost.
- Reading accepts decimals as numbers or strings; JSON numbers are parsed
  straight to Decimal, never through float.
- The version is checked before anything else is validated, so a file
  from a newer release fails with UnsupportedBackupVersion rather than
  a field-level complaint.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Union

import structlog
from pydantic import ValidationError

from ledgerflow.backup.snapshot import (
    BACKUP_VERSION,
    AccountDTO,
    BackupSnapshot,
    CustomCategoryDTO,
    FixedPaymentDTO,
    TransactionDTO,
)
from ledgerflow.models.ledger import (
    Account,
    CustomCategory,
    FixedPayment,
    Transaction,
)


logger = structlog.get_logger(__name__)


class BackupDecodeError(Exception):
    """Base exception for backups that cannot be read."""
    pass


class UnsupportedBackupVersion(BackupDecodeError):
    """The backup was written with a version this engine doesn't read."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported backup version: {version}")


class InvalidBackupData(BackupDecodeError):
    """The backup is malformed or misses required data."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Invalid backup data: {detail}")


def build_snapshot(
    accounts: list[Account],
    transactions: list[Transaction],
    fixed_payments: list[FixedPayment],
    custom_categories: list[CustomCategory],
    exported_at: datetime,
) -> BackupSnapshot:
    """Capture the given rows as a version-1 snapshot."""
    return BackupSnapshot(
        version=BACKUP_VERSION,
        exported_at=exported_at,
        accounts=[AccountDTO.from_model(a) for a in accounts],
        transactions=[TransactionDTO.from_model(t) for t in transactions],
        fixed_payments=[FixedPaymentDTO.from_model(p) for p in fixed_payments],
        custom_categories=[CustomCategoryDTO.from_model(c) for c in custom_categories],
    )


def encode_snapshot(snapshot: BackupSnapshot, indent: int = 2) -> bytes:
    """
    Serialize a snapshot to UTF-8 JSON.

    Keys are sorted so two exports of the same data are byte-identical.
    """
    payload = snapshot.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(payload, indent=indent or None, sort_keys=True).encode("utf-8")


def decode_snapshot(data: Union[bytes, str]) -> BackupSnapshot:
    """
    Parse and validate backup bytes.

    Raises:
        UnsupportedBackupVersion: version is anything but 1
        InvalidBackupData: not JSON, not an object, a required field is
            missing or malformed, or an item breaks an entity invariant
    """
    try:
        payload = json.loads(data, parse_float=Decimal)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidBackupData(f"not valid JSON ({e})") from e

    if not isinstance(payload, dict):
        raise InvalidBackupData("top-level value must be an object")

    version = payload.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        raise InvalidBackupData("missing or non-integer version")
    if version != BACKUP_VERSION:
        raise UnsupportedBackupVersion(version)

    try:
        snapshot = BackupSnapshot.model_validate(payload)
        # Every item must also satisfy the entity invariants it will be stored under
        snapshot.to_models()
    except ValidationError as e:
        raise InvalidBackupData(str(e)) from e

    logger.debug(
        "Backup decoded",
        accounts=len(snapshot.accounts),
        transactions=len(snapshot.transactions),
    )
    return snapshot
