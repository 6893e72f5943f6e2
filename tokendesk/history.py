"""User-visible transaction history, newest first, unique by hash."""

import json
from pathlib import Path
from typing import Iterator, Optional, Union

from loguru import logger

from .models import RecordStatus, TransactionRecord


class TransactionHistory:
    """
    Ordered list of transaction records keyed by hash.

    Inserting a hash that is already present is rejected. When ``path`` is
    given the list is loaded from and saved to that JSON file, which plays the
    role of the browser's local storage; it is not synced anywhere.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        self._records: list[TransactionRecord] = []
        if self.path is not None and self.path.exists():
            self._load()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TransactionRecord]:
        return iter(self._records)

    def __contains__(self, tx_hash: object) -> bool:
        return any(r.hash == tx_hash for r in self._records)

    def get(self, tx_hash: str) -> Optional[TransactionRecord]:
        for record in self._records:
            if record.hash == tx_hash:
                return record
        return None

    def append(self, record: TransactionRecord) -> bool:
        """Add ``record`` at the front. Returns False if its hash is already present."""
        if record.hash in self:
            logger.debug(f"Transaction {record.hash} already in history, skipping")
            return False
        self._records.insert(0, record)
        self._save()
        return True

    def update_status(self, tx_hash: str, status: RecordStatus) -> Optional[TransactionRecord]:
        for i, record in enumerate(self._records):
            if record.hash == tx_hash:
                updated = record.with_status(status)
                self._records[i] = updated
                self._save()
                return updated
        return None

    def recent(self, limit: int = 5) -> list[TransactionRecord]:
        return self._records[:limit]

    def clear(self) -> None:
        self._records.clear()
        self._save()

    def _load(self) -> None:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            for item in data:
                record = TransactionRecord.from_dict(item)
                if record.hash not in self:
                    self._records.append(record)
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Ignoring unreadable history file {self.path}: {e}")
            self._records = []

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in self._records], f, indent=2)
