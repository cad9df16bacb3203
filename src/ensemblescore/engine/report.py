"""Read-only learning report across all categories."""

from __future__ import annotations

import statistics
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ensemblescore.core.categories import Category, OptimizationStrategy
from ensemblescore.core.constants import (
    HIGH_AVERAGE_ERROR_THRESHOLD,
    LOW_EFFECTIVENESS_THRESHOLD,
    SYSTEM_ACCURACY_TARGET,
)
from ensemblescore.engine.state import CategoryState
from ensemblescore.learning.trends import TrendAnalyzer
from ensemblescore.utils.time import utc_now

LOW_EFFECTIVENESS_RECOMMENDATION = (
    "Low learning effectiveness - review learning rate and training data quality"
)
HIGH_ERROR_RECOMMENDATION = (
    "High prediction error - consider feature engineering improvements"
)
SYSTEM_ACCURACY_RECOMMENDATION = (
    "System-wide accuracy below target - comprehensive optimization needed"
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class CategoryReport:
    """Learning statistics of one category."""

    category: Category
    total_cycles: int = 0
    average_error: float = 0.0
    learning_trend: float = 0.0
    last_cycle_at: datetime | None = None
    current_accuracy: float = 0.0
    adaptation_count: int = 0
    last_adaptation: datetime | None = None
    learning_effectiveness: float = 0.0
    current_weights: dict[str, float] = field(default_factory=dict)
    optimization_strategy: OptimizationStrategy = OptimizationStrategy.GRADIENT_BASED
    has_trained_model: bool = False
    prediction_count: int = 0
    average_ensemble_score: float = 0.0
    average_confidence: float = 0.0
    validator_performance: dict[str, float] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "total_cycles": self.total_cycles,
            "average_error": self.average_error,
            "learning_trend": self.learning_trend,
            "last_cycle_at": _iso(self.last_cycle_at),
            "current_accuracy": self.current_accuracy,
            "adaptation_count": self.adaptation_count,
            "last_adaptation": _iso(self.last_adaptation),
            "learning_effectiveness": self.learning_effectiveness,
            "current_weights": dict(self.current_weights),
            "optimization_strategy": self.optimization_strategy.value,
            "has_trained_model": self.has_trained_model,
            "prediction_count": self.prediction_count,
            "average_ensemble_score": self.average_ensemble_score,
            "average_confidence": self.average_confidence,
            "validator_performance": dict(self.validator_performance),
            "recommendations": list(self.recommendations),
        }


@dataclass
class OverallStatistics:
    """Aggregates across every category report."""

    average_accuracy: float = 0.0
    average_effectiveness: float = 0.0
    total_adaptations: int = 0
    best_category: Category | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "average_accuracy": self.average_accuracy,
            "average_effectiveness": self.average_effectiveness,
            "total_adaptations": self.total_adaptations,
            "best_category": self.best_category.value if self.best_category else None,
        }


@dataclass
class LearningReport:
    """Snapshot of learning progress for every category."""

    categories: dict[Category, CategoryReport] = field(default_factory=dict)
    overall: OverallStatistics = field(default_factory=OverallStatistics)
    system_recommendations: list[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=utc_now)
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "categories": {c.value: r.to_dict() for c, r in self.categories.items()},
            "overall": self.overall.to_dict(),
            "system_recommendations": list(self.system_recommendations),
            "error_message": self.error_message,
        }


def build_category_report(state: CategoryState, analyzer: TrendAnalyzer) -> CategoryReport:
    """Summarize one category without mutating it."""
    model_state = state.model_state
    history = state.history
    report = CategoryReport(
        category=state.category,
        current_accuracy=model_state.current_accuracy,
        adaptation_count=state.weights.adaptation_count,
        last_adaptation=state.weights.last_adaptation,
        current_weights=dict(state.weights.current_weights),
        optimization_strategy=state.configuration.optimization_strategy,
        has_trained_model=model_state.trained_model is not None,
        prediction_count=state.performance.total_predictions,
        average_ensemble_score=state.performance.average_score,
        average_confidence=state.performance.average_confidence,
        validator_performance=dict(state.performance.validator_scores),
    )
    if history:
        errors = history.errors()
        report.total_cycles = len(errors)
        report.average_error = statistics.fmean(errors)
        report.learning_trend = analyzer.learning_trend(history)
        last = history.last_cycle
        report.last_cycle_at = last.timestamp if last else None
    report.learning_effectiveness = analyzer.learning_effectiveness(
        history, model_state.current_accuracy
    )

    if report.learning_effectiveness < LOW_EFFECTIVENESS_THRESHOLD:
        report.recommendations.append(LOW_EFFECTIVENESS_RECOMMENDATION)
    if report.average_error > HIGH_AVERAGE_ERROR_THRESHOLD:
        report.recommendations.append(HIGH_ERROR_RECOMMENDATION)
    return report


def build_overall_statistics(reports: Iterable[CategoryReport]) -> OverallStatistics:
    report_list = list(reports)
    if not report_list:
        return OverallStatistics()
    best = max(report_list, key=lambda r: r.current_accuracy)
    return OverallStatistics(
        average_accuracy=statistics.fmean(r.current_accuracy for r in report_list),
        average_effectiveness=statistics.fmean(r.learning_effectiveness for r in report_list),
        total_adaptations=sum(r.adaptation_count for r in report_list),
        best_category=best.category,
    )


def build_report(states: Iterable[CategoryState], analyzer: TrendAnalyzer) -> LearningReport:
    """Build the full learning report for every category state."""
    report = LearningReport()
    for state in states:
        report.categories[state.category] = build_category_report(state, analyzer)
    report.overall = build_overall_statistics(report.categories.values())
    if report.overall.average_accuracy < SYSTEM_ACCURACY_TARGET:
        report.system_recommendations.append(SYSTEM_ACCURACY_RECOMMENDATION)
    return report
