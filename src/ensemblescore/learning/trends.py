"""Trend and drift analysis over a category's learning history.

Everything here is derived on demand from the history; nothing is stored.
Drift compares the accuracy of the trailing window of cycles against all
cycles before it.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from dataclasses import dataclass

from ensemblescore.core.config import LearningConfig
from ensemblescore.core.constants import (
    EFFECTIVENESS_BASELINE_CYCLES,
    HIGH_ERROR_INSIGHT_THRESHOLD,
    INSIGHT_TREND_DELTA,
    INSIGHT_TREND_WINDOW,
    LEARNING_TREND_WINDOW,
    MIN_CYCLES_FOR_EFFECTIVENESS,
    MIN_CYCLES_FOR_TRENDS,
)
from ensemblescore.core.logging import get_logger
from ensemblescore.learning.history import LearningHistory

_logger = get_logger("trends")

HIGH_ERROR_INSIGHT = "High prediction error detected - consider validator recalibration"
DECLINING_INSIGHT = "Prediction accuracy is declining - model drift detected"
IMPROVING_INSIGHT = "Prediction accuracy is improving - adaptive learning is effective"


@dataclass(frozen=True)
class PerformanceTrends:
    """Rolling statistics over the trend window.

    Attributes:
        average_error: Mean prediction error in the window.
        error_trend: OLS slope of prediction error by position (positive = worsening).
        accuracy_stability: 1 / (1 + population stddev of accuracy), in (0, 1].
        requires_optimization: Whether error level or trend crossed its threshold.
        cycles_analyzed: Cycles in the window; 0 for neutral trends.
    """

    average_error: float = 0.0
    error_trend: float = 0.0
    accuracy_stability: float = 1.0
    requires_optimization: bool = False
    cycles_analyzed: int = 0

    def to_dict(self) -> dict[str, float | bool | int]:
        return {
            "average_error": self.average_error,
            "error_trend": self.error_trend,
            "accuracy_stability": self.accuracy_stability,
            "requires_optimization": self.requires_optimization,
            "cycles_analyzed": self.cycles_analyzed,
        }


@dataclass(frozen=True)
class DriftDetection:
    """Result of comparing recent accuracy against historical accuracy.

    Attributes:
        drift_detected: Whether accuracy_drift exceeded the drift threshold.
        severity: accuracy_drift / drift_threshold.
        accuracy_drift: |recent_accuracy - historical_accuracy|.
        recent_accuracy: Mean accuracy of the trailing window.
        historical_accuracy: Mean accuracy of all earlier cycles.
    """

    drift_detected: bool = False
    severity: float = 0.0
    accuracy_drift: float = 0.0
    recent_accuracy: float = 0.0
    historical_accuracy: float = 0.0

    def to_dict(self) -> dict[str, float | bool]:
        return {
            "drift_detected": self.drift_detected,
            "severity": self.severity,
            "accuracy_drift": self.accuracy_drift,
            "recent_accuracy": self.recent_accuracy,
            "historical_accuracy": self.historical_accuracy,
        }


def linear_trend(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of ``values`` against their index.

    slope = (n·Σxy − Σx·Σy) / (n·Σx² − (Σx)²)

    Returns:
        The slope, or 0.0 for fewer than two values.
    """
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * y for i, y in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def stability(accuracies: Sequence[float]) -> float:
    """Map accuracy spread to (0, 1]; identical accuracies give 1.0."""
    if len(accuracies) < 2:
        return 1.0
    return 1.0 / (1.0 + statistics.pstdev(accuracies))


class TrendAnalyzer:
    """Derives trends, drift, and insights from a LearningHistory."""

    def __init__(self, config: LearningConfig) -> None:
        self._config = config

    def analyze_trends(self, history: LearningHistory) -> PerformanceTrends:
        """Compute rolling trends over the last ``trend_analysis_window`` cycles.

        Fewer than five cycles in the window yields neutral trends.
        """
        window = history.tail(self._config.trend_analysis_window)
        if len(window) < MIN_CYCLES_FOR_TRENDS:
            return PerformanceTrends()

        errors = [cycle.prediction_error for cycle in window]
        average_error = statistics.fmean(errors)
        error_trend = linear_trend(errors)
        accuracy_stability = stability([1.0 - e for e in errors])
        requires_optimization = (
            average_error > self._config.error_threshold_for_optimization
            or error_trend > self._config.trend_threshold_for_optimization
        )
        return PerformanceTrends(
            average_error=average_error,
            error_trend=error_trend,
            accuracy_stability=accuracy_stability,
            requires_optimization=requires_optimization,
            cycles_analyzed=len(window),
        )

    def detect_drift(self, history: LearningHistory) -> DriftDetection:
        """Compare the trailing ``drift_detection_window`` against earlier cycles.

        Requires at least ``min_samples_for_drift_detection`` cycles. An empty
        historical segment reports no drift.
        """
        cycles = history.snapshot()
        if len(cycles) < self._config.min_samples_for_drift_detection:
            return DriftDetection()

        window = self._config.drift_detection_window
        recent = cycles[-window:]
        historical = cycles[:-window]
        if not historical or not recent:
            return DriftDetection()

        recent_accuracy = statistics.fmean(c.accuracy for c in recent)
        historical_accuracy = statistics.fmean(c.accuracy for c in historical)
        accuracy_drift = abs(recent_accuracy - historical_accuracy)
        threshold = self._config.drift_threshold
        detection = DriftDetection(
            drift_detected=accuracy_drift > threshold,
            severity=accuracy_drift / threshold,
            accuracy_drift=accuracy_drift,
            recent_accuracy=recent_accuracy,
            historical_accuracy=historical_accuracy,
        )
        if detection.drift_detected:
            _logger.info(
                "trends.drift_detected",
                severity=round(detection.severity, 4),
                recent_accuracy=round(recent_accuracy, 4),
                historical_accuracy=round(historical_accuracy, 4),
            )
        return detection

    # =========================================================================
    # Reporting helpers
    # =========================================================================

    def learning_trend(self, history: LearningHistory) -> float:
        """Positive when error is falling over the last ten cycles.

        Returns 0.0 with fewer than five cycles.
        """
        if len(history) < MIN_CYCLES_FOR_TRENDS:
            return 0.0
        recent = [c.prediction_error for c in history.tail(LEARNING_TREND_WINDOW)]
        return -linear_trend(recent)

    def learning_effectiveness(self, history: LearningHistory, current_accuracy: float) -> float:
        """Relative accuracy gain over the first five cycles.

        Formula:
            initial = 1 - mean(error of first 5 cycles)
            effectiveness = (current_accuracy - initial) / max(initial, 0.1)

        With fewer than ten cycles there is no baseline yet and the current
        accuracy is returned as-is.
        """
        if len(history) < MIN_CYCLES_FOR_EFFECTIVENESS:
            return current_accuracy
        baseline = history.head(EFFECTIVENESS_BASELINE_CYCLES)
        initial = 1.0 - statistics.fmean(c.prediction_error for c in baseline)
        return (current_accuracy - initial) / max(initial, 0.1)

    def insights(self, history: LearningHistory, prediction_error: float) -> list[str]:
        """Human-readable observations about the latest cycle and recent direction."""
        insights: list[str] = []
        if prediction_error > HIGH_ERROR_INSIGHT_THRESHOLD:
            insights.append(HIGH_ERROR_INSIGHT)

        recent = history.tail(INSIGHT_TREND_WINDOW)
        if len(recent) >= INSIGHT_TREND_WINDOW:
            change = recent[-1].prediction_error - recent[0].prediction_error
            if change > INSIGHT_TREND_DELTA:
                insights.append(DECLINING_INSIGHT)
            elif change < -INSIGHT_TREND_DELTA:
                insights.append(IMPROVING_INSIGHT)
        return insights
