"""
JSON File Storage Implementation

Durable storage that keeps the working set in memory and writes the whole
ledger to one JSON file on every save(). The file uses the backup format,
so a data file is also a valid backup.

Writes go to a temporary sibling first and are swapped in with
os.replace, so a crash mid-write leaves the previous file intact.
"""

import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Union

import structlog

from ledgerflow.backup.codec import (
    BackupDecodeError,
    build_snapshot,
    decode_snapshot,
    encode_snapshot,
)
from ledgerflow.models.ledger import (
    Account,
    CustomCategory,
    FixedPayment,
    Transaction,
)
from ledgerflow.services.storage.interface import StorageError
from ledgerflow.services.storage.memory import InMemoryLedgerStorage


logger = structlog.get_logger(__name__)


class JsonFileLedgerStorage(InMemoryLedgerStorage):
    """
    File-backed ledger storage.

    Usage:
        storage = JsonFileLedgerStorage("~/ledger.json")
        storage.insert(account)
        storage.save()
    """

    def __init__(
        self,
        path: Union[str, Path],
        indent: int = 2,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__()
        self.path = Path(path).expanduser()
        self._indent = indent
        self._clock = clock
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            snapshot = decode_snapshot(self.path.read_bytes())
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e
        except BackupDecodeError as e:
            raise StorageError(f"Corrupt data file {self.path}: {e}") from e

        for rows in snapshot.to_models().values():
            for row in rows:
                self.insert(row)

        logger.info(
            "Ledger loaded",
            path=str(self.path),
            items=snapshot.item_count,
        )

    def _persist(self) -> None:
        snapshot = build_snapshot(
            accounts=self.fetch(Account),
            transactions=self.fetch(Transaction),
            fixed_payments=self.fetch(FixedPayment),
            custom_categories=self.fetch(CustomCategory),
            exported_at=self._clock(),
        )
        data = encode_snapshot(snapshot, indent=self._indent)

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("Ledger write failed", path=str(self.path), error=str(e))
            raise StorageError(f"Cannot write {self.path}: {e}") from e

        logger.debug("Ledger saved", path=str(self.path), bytes=len(data))
