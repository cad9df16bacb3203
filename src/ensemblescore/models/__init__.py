"""Model variants and the multi-model predictor.

Sub-models share the ``SubModel`` protocol and are held in a ``ModelBundle``
keyed by ``ModelKind``.
"""

from ensemblescore.models.base import (
    ModelBundle,
    ModelKind,
    ModelMetrics,
    ModelState,
    SubModel,
    SubPrediction,
)
from ensemblescore.models.predictor import MultiModelPredictor, Prediction

__all__ = [
    "ModelBundle",
    "ModelKind",
    "ModelMetrics",
    "ModelState",
    "MultiModelPredictor",
    "Prediction",
    "SubModel",
    "SubPrediction",
]
