"""Feedback record and storage protocol."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ensemblescore.core.categories import Category
from ensemblescore.utils.time import utc_now


@dataclass
class FeedbackRecord:
    """Persisted outcome of one processed feedback event.

    Holds everything needed to replay the event through the engine again.
    """

    category: Category
    suggestion_text: str
    actual_score: float
    predicted_score: float
    prediction_error: float
    validator_scores: dict[str, float]
    context: dict[str, Any] = field(default_factory=dict)
    weight_adjustments: dict[str, float] = field(default_factory=dict)
    retrained: bool = False
    insights: list[str] = field(default_factory=list)
    error_message: str | None = None
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "category": self.category.value,
            "suggestion_text": self.suggestion_text,
            "context": self.context,
            "actual_score": self.actual_score,
            "predicted_score": self.predicted_score,
            "prediction_error": self.prediction_error,
            "validator_scores": self.validator_scores,
            "weight_adjustments": self.weight_adjustments,
            "retrained": self.retrained,
            "insights": self.insights,
            "error_message": self.error_message,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FeedbackRecord:
        return cls(
            record_id=data["record_id"],
            category=Category(data["category"]),
            suggestion_text=data["suggestion_text"],
            context=dict(data.get("context") or {}),
            actual_score=float(data["actual_score"]),
            predicted_score=float(data["predicted_score"]),
            prediction_error=float(data["prediction_error"]),
            validator_scores={k: float(v) for k, v in data["validator_scores"].items()},
            weight_adjustments={
                k: float(v) for k, v in (data.get("weight_adjustments") or {}).items()
            },
            retrained=bool(data.get("retrained", False)),
            insights=list(data.get("insights") or []),
            error_message=data.get("error_message"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@runtime_checkable
class FeedbackStore(Protocol):
    """Protocol for feedback storage backends.

    The engine only appends records and reads recent ones back; it does not
    depend on the storage schema.
    """

    async def record(self, record: FeedbackRecord) -> None:
        """Durably append one record."""
        ...

    async def fetch_recent(
        self, category: Category | None = None, limit: int | None = 50
    ) -> list[FeedbackRecord]:
        """Return up to ``limit`` most recent records, oldest first.

        Args:
            category: Only records of this category; all categories when None.
            limit: Maximum records to return; all when None.
        """
        ...


def select_recent(
    records: list[FeedbackRecord], category: Category | None, limit: int | None
) -> list[FeedbackRecord]:
    """Filter by category and keep the last ``limit`` records in order."""
    selected = [r for r in records if category is None or r.category is category]
    if limit is not None:
        selected = selected[-limit:] if limit > 0 else []
    return selected
