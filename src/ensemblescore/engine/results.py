"""Result objects returned by the orchestrator.

Every public orchestrator call returns one of these, fully populated even on
failure: unexpected errors land in ``error_message`` and the remaining fields
keep their safe defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ensemblescore.core.categories import Category
from ensemblescore.learning.online import OnlineLearningResult
from ensemblescore.learning.retraining import RetrainingResult
from ensemblescore.learning.trends import DriftDetection, PerformanceTrends
from ensemblescore.utils.time import utc_now


@dataclass
class FeedbackResult:
    """Outcome of processing one feedback event."""

    category: Category
    suggestion_text: str
    prediction_error: float = 0.0
    actual_score: float = 0.0
    predicted_score: float = 0.0
    current_accuracy: float = 0.0
    weight_adjustments: dict[str, float] = field(default_factory=dict)
    retraining: RetrainingResult | None = None
    insights: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None
    duration_seconds: float = 0.0
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error_message is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "suggestion_text": self.suggestion_text,
            "prediction_error": self.prediction_error,
            "actual_score": self.actual_score,
            "predicted_score": self.predicted_score,
            "current_accuracy": self.current_accuracy,
            "weight_adjustments": dict(self.weight_adjustments),
            "retraining": self.retraining.to_dict() if self.retraining else None,
            "insights": list(self.insights),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }


@dataclass
class ContinuousLearningResult:
    """Outcome of one continuous learning pass over a category."""

    category: Category
    trends: PerformanceTrends = field(default_factory=PerformanceTrends)
    drift: DriftDetection = field(default_factory=DriftDetection)
    online_learning: OnlineLearningResult | None = None
    recommendations: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None
    duration_seconds: float = 0.0
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "trends": self.trends.to_dict(),
            "drift": self.drift.to_dict(),
            "online_learning": (
                self.online_learning.to_dict() if self.online_learning else None
            ),
            "recommendations": list(self.recommendations),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }
