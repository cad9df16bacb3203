"""In-memory feedback store."""

from __future__ import annotations

from collections import deque

from ensemblescore.core.categories import Category
from ensemblescore.store.base import FeedbackRecord, select_recent


class InMemoryFeedbackStore:
    """Keeps records in process memory, optionally bounded.

    Args:
        max_records: Oldest records are dropped beyond this many. Unbounded
            when None.
    """

    def __init__(self, max_records: int | None = None) -> None:
        self._records: deque[FeedbackRecord] = deque(maxlen=max_records)

    @property
    def max_records(self) -> int | None:
        return self._records.maxlen

    async def record(self, record: FeedbackRecord) -> None:
        self._records.append(record)

    async def fetch_recent(
        self, category: Category | None = None, limit: int | None = 50
    ) -> list[FeedbackRecord]:
        return select_recent(list(self._records), category, limit)

    def __len__(self) -> int:
        return len(self._records)
