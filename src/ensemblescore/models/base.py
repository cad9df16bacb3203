"""Shared model types: sub-model protocol, bundles, and model state.

A ModelBundle holds whichever sub-models could be fitted for a category,
keyed by ModelKind. The predictor selects sub-models by presence in the
bundle, never by inspecting their types.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable

import numpy as np

from ensemblescore.core.categories import Category
from ensemblescore.utils.time import utc_now


class ModelKind(str, Enum):
    """Variant of a sub-model inside a bundle."""

    REGRESSION = "regression"
    """Single gradient-boosted regression model."""

    ENSEMBLE = "ensemble"
    """Weighted ensemble of base learners."""

    TRANSFER = "transfer"
    """Linear model warm-started from another estimator."""


@dataclass(frozen=True)
class SubPrediction:
    """Output of one sub-model.

    Attributes:
        score: Predicted quality score, clipped to [0, 1].
        confidence: Sub-model confidence in [0, 1].
        breakdown: Optional finer-grained values (e.g. base learner scores).
    """

    score: float
    confidence: float
    breakdown: Mapping[str, float] = field(default_factory=dict)


@runtime_checkable
class SubModel(Protocol):
    """Uniform prediction capability shared by every model variant."""

    def predict(self, vector: np.ndarray) -> SubPrediction:
        ...


@dataclass(frozen=True)
class ModelMetrics:
    """Holdout evaluation of a fitted bundle."""

    mae: float
    rmse: float
    evaluated_samples: int

    @property
    def accuracy(self) -> float:
        return min(1.0, max(0.0, 1.0 - self.mae))


@dataclass(frozen=True)
class ModelBundle:
    """All sub-models fitted for one category.

    Attributes:
        feature_names: Feature order expected by every sub-model.
        sub_models: Fitted sub-models by kind; absent kinds are unavailable.
        metrics: Holdout evaluation of the combined prediction.
        trained_at: When fitting finished.
        training_samples: Points the bundle was fitted from.
    """

    feature_names: tuple[str, ...]
    sub_models: Mapping[ModelKind, SubModel]
    metrics: ModelMetrics | None = None
    trained_at: datetime = field(default_factory=utc_now)
    training_samples: int = 0

    @property
    def available_kinds(self) -> list[ModelKind]:
        return [kind for kind in ModelKind if kind in self.sub_models]

    def get(self, kind: ModelKind) -> SubModel | None:
        return self.sub_models.get(kind)


@dataclass(frozen=True)
class ModelState:
    """Model and accuracy of one category.

    Immutable: retraining and online learning build a new instance and swap
    it in under the category lock, so reading the attribute always yields a
    consistent snapshot.

    Attributes:
        category: Owning category.
        trained_model: Fitted bundle, or None before the first retraining.
        current_accuracy: Moving-average (or freshly evaluated) accuracy in [0, 1].
        sample_count: Feedback events observed.
        last_update: When this state was created.
    """

    category: Category
    trained_model: ModelBundle | None = None
    current_accuracy: float = 0.5
    sample_count: int = 0
    last_update: datetime = field(default_factory=utc_now)


def clip_score(value: float) -> float:
    """Clip a raw model output into [0, 1]."""
    return float(np.clip(value, 0.0, 1.0))
