"""
Backup Package

Versioned JSON snapshots of the whole ledger, with merge and
replace-all import.
"""

from ledgerflow.backup.snapshot import (
    BACKUP_VERSION,
    AccountDTO,
    BackupSnapshot,
    CustomCategoryDTO,
    FixedPaymentDTO,
    TransactionDTO,
)
from ledgerflow.backup.codec import (
    BackupDecodeError,
    InvalidBackupData,
    UnsupportedBackupVersion,
    build_snapshot,
    decode_snapshot,
    encode_snapshot,
)
from ledgerflow.backup.service import export_snapshot, import_snapshot

__all__ = [
    "BACKUP_VERSION",
    "AccountDTO",
    "BackupSnapshot",
    "CustomCategoryDTO",
    "FixedPaymentDTO",
    "TransactionDTO",
    "BackupDecodeError",
    "InvalidBackupData",
    "UnsupportedBackupVersion",
    "build_snapshot",
    "decode_snapshot",
    "encode_snapshot",
    "export_snapshot",
    "import_snapshot",
]
