"""Pluggable feature importance strategies.

Importance is optional interpretability output attached to predictions.
The default strategy computes nothing.
"""

from __future__ import annotations

from typing import Protocol

from ensemblescore.features import FeatureSet
from ensemblescore.models.base import ModelBundle, ModelKind


class FeatureImportanceStrategy(Protocol):
    """Computes per-feature importance for a prediction."""

    def compute(self, bundle: ModelBundle, features: FeatureSet) -> dict[str, float]:
        ...


class NoFeatureImportance:
    """Default strategy: no importance output."""

    def compute(self, bundle: ModelBundle, features: FeatureSet) -> dict[str, float]:
        return {}


class ModelFeatureImportance:
    """Reads impurity-based importances from the regression sub-model.

    Returns an empty map when the bundle has no regression model or the
    model exposes no importances.
    """

    def compute(self, bundle: ModelBundle, features: FeatureSet) -> dict[str, float]:
        model = bundle.get(ModelKind.REGRESSION)
        importances = getattr(model, "feature_importances", None)
        if importances is None or len(importances) != len(bundle.feature_names):
            return {}
        return {
            name: float(value)
            for name, value in zip(bundle.feature_names, importances, strict=True)
        }
