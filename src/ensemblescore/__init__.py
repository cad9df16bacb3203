"""Adaptive ensemble scoring and continuous learning engine.

Combines per-validator quality signals into one calibrated score per
suggestion category and keeps the combination calibrated from feedback.
"""

__version__ = "0.4.0"

from ensemblescore.core.categories import (
    Category,
    EnsembleConfiguration,
    OptimizationStrategy,
    ValidatorSignal,
    default_configurations,
)
from ensemblescore.core.config import EngineConfig, LearningConfig
from ensemblescore.core.errors import (
    ConfigurationError,
    EnsembleError,
    FeedbackValidationError,
)
from ensemblescore.engine.orchestrator import EnsembleOrchestrator

__all__ = [
    "Category",
    "ConfigurationError",
    "EngineConfig",
    "EnsembleConfiguration",
    "EnsembleError",
    "EnsembleOrchestrator",
    "FeedbackValidationError",
    "LearningConfig",
    "OptimizationStrategy",
    "ValidatorSignal",
    "__version__",
    "default_configurations",
]
