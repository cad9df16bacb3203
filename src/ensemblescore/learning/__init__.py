"""Online learning components: history, trends, weights, retraining.

Submodules:
    history: Bounded learning history and training buffer.
    trends: Trend, drift, and insight analysis.
    weights: Adaptive weight controller and ensemble combination.
    retraining: Retraining scheduler state machine.
    online: Pluggable online learning strategies.
"""

from ensemblescore.learning.history import (
    LearningCycle,
    LearningHistory,
    TrainingBuffer,
    TrainingPoint,
)
from ensemblescore.learning.trends import DriftDetection, PerformanceTrends, TrendAnalyzer
from ensemblescore.learning.weights import AdaptiveWeightController, EnsembleScore, WeightState

__all__ = [
    "AdaptiveWeightController",
    "DriftDetection",
    "EnsembleScore",
    "LearningCycle",
    "LearningHistory",
    "PerformanceTrends",
    "TrainingBuffer",
    "TrainingPoint",
    "TrendAnalyzer",
    "WeightState",
]
