"""Bounded per-category learning history and training buffer.

Both are FIFO ring buffers: once full, each append evicts the oldest entry.
Retraining and online learning read snapshots of the training buffer and
never drain it.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from ensemblescore.utils.time import utc_now

T = TypeVar("T")


@dataclass(frozen=True)
class LearningCycle:
    """One recorded feedback event.

    Attributes:
        suggestion_text: The suggestion that was scored.
        actual_score: Ground-truth (human) score.
        predicted_score: Score the ensemble predicted.
        prediction_error: |actual_score - predicted_score|.
        validator_scores: Per-validator scores at feedback time.
        timestamp: When the cycle was recorded.
    """

    suggestion_text: str
    actual_score: float
    predicted_score: float
    prediction_error: float
    validator_scores: Mapping[str, float]
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def accuracy(self) -> float:
        return 1.0 - self.prediction_error


@dataclass(frozen=True)
class TrainingPoint:
    """One labelled example for model fitting.

    Attributes:
        suggestion_text: The suggestion text.
        context: Caller-supplied context passed to the feature extractor.
        actual_score: Label.
        validator_scores: Per-validator scores at feedback time.
        timestamp: When the point was buffered.
    """

    suggestion_text: str
    context: Mapping[str, Any]
    actual_score: float
    validator_scores: Mapping[str, float]
    timestamp: datetime = field(default_factory=utc_now)


class BoundedBuffer(Generic[T]):
    """Append-only FIFO ring buffer with a fixed capacity."""

    def __init__(self, max_size: int) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._items: deque[T] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        # maxlen is always set in __init__
        return self._items.maxlen or 0

    def append(self, item: T) -> None:
        self._items.append(item)

    def snapshot(self) -> list[T]:
        """Return a copy of the entries, oldest first."""
        return list(self._items)

    def tail(self, count: int) -> list[T]:
        """Return up to ``count`` most recent entries, oldest first."""
        if count <= 0:
            return []
        items = list(self._items)
        return items[-count:]

    def head(self, count: int) -> list[T]:
        """Return up to ``count`` oldest entries."""
        if count <= 0:
            return []
        items = list(self._items)
        return items[:count]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)


class LearningHistory(BoundedBuffer[LearningCycle]):
    """Bounded history of learning cycles for one category."""

    def errors(self) -> list[float]:
        return [cycle.prediction_error for cycle in self._items]

    @property
    def last_cycle(self) -> LearningCycle | None:
        return self._items[-1] if self._items else None


class TrainingBuffer(BoundedBuffer[TrainingPoint]):
    """Bounded buffer of training points for one category."""
