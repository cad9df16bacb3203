"""JSON-file feedback store.

Records are kept in memory and the whole file is rewritten atomically after
each append: write to a temp file in the same directory, then replace.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path

from ensemblescore.core.categories import Category
from ensemblescore.core.logging import get_logger
from ensemblescore.store.base import FeedbackRecord, select_recent

_logger = get_logger("store.json")

STORE_VERSION = 1


class JsonFeedbackStore:
    """JSON-file based feedback store with atomic saves.

    Existing records are loaded lazily on first access.
    """

    def __init__(self, store_path: Path) -> None:
        """Initialize the JSON feedback store.

        Args:
            store_path: Path to the JSON file for storing records.
        """
        self.store_path = store_path
        self._records: list[FeedbackRecord] = []
        self._loaded = False
        self._lock = asyncio.Lock()

    async def record(self, record: FeedbackRecord) -> None:
        async with self._lock:
            self._ensure_loaded()
            self._records.append(record)
            await asyncio.to_thread(self._save)

    async def fetch_recent(
        self, category: Category | None = None, limit: int | None = 50
    ) -> list[FeedbackRecord]:
        async with self._lock:
            self._ensure_loaded()
            return select_recent(self._records, category, limit)

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._records = self._load()
        self._loaded = True

    def _load(self) -> list[FeedbackRecord]:
        """Load records from the JSON file, or nothing if it does not exist."""
        if not self.store_path.exists():
            return []
        with open(self.store_path, encoding="utf-8") as f:
            data = json.load(f)
        records = [FeedbackRecord.from_dict(r) for r in data.get("records", [])]
        _logger.debug("store.loaded", path=str(self.store_path), records=len(records))
        return records

    def _save(self) -> None:
        """Save records to the JSON file with an atomic replace."""
        data = {
            "version": STORE_VERSION,
            "records": [r.to_dict() for r in self._records],
        }
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=self.store_path.parent,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            json.dump(data, f, indent=2)
            temp_path = Path(f.name)
        try:
            os.replace(temp_path, self.store_path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
