"""Online learning strategies.

An online update takes the most recent training points and returns a
(possibly new) ModelState. Strategies must not mutate the ModelState or
bundle they are given; the caller swaps the returned state in under the
category lock.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from ensemblescore.core.logging import get_logger
from ensemblescore.features import FeatureExtractor
from ensemblescore.learning.history import TrainingPoint
from ensemblescore.models.base import ModelBundle, ModelKind, ModelState
from ensemblescore.models.training import build_matrix, evaluate_bundle
from ensemblescore.models.transfer import TransferModel
from ensemblescore.utils.time import utc_now

_logger = get_logger("online")


@dataclass
class OnlineLearningResult:
    """Outcome of one online update.

    Attributes:
        success: Whether the strategy ran and its state was swapped in.
        reason: Why the update did not run (empty on success).
        strategy: Name of the strategy used.
        batch_size: Training points passed to the strategy.
        previous_accuracy: Accuracy before the update.
        new_accuracy: Accuracy after the update.
        improvement: new_accuracy - previous_accuracy.
    """

    success: bool = False
    reason: str = ""
    strategy: str = ""
    batch_size: int = 0
    previous_accuracy: float = 0.0
    new_accuracy: float = 0.0
    improvement: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "reason": self.reason,
            "strategy": self.strategy,
            "batch_size": self.batch_size,
            "previous_accuracy": self.previous_accuracy,
            "new_accuracy": self.new_accuracy,
            "improvement": self.improvement,
        }


class OnlineLearningStrategy(Protocol):
    """Incrementally updates a category model from a batch of points."""

    name: str

    def update(
        self,
        model_state: ModelState,
        points: Sequence[TrainingPoint],
        extractor: FeatureExtractor,
    ) -> ModelState:
        ...


class IdentityOnlineLearning:
    """Default strategy: leaves the model and its accuracy unchanged."""

    name = "identity"

    def update(
        self,
        model_state: ModelState,
        points: Sequence[TrainingPoint],
        extractor: FeatureExtractor,
    ) -> ModelState:
        return model_state


class PartialFitOnlineLearning:
    """Fine-tunes the transfer sub-model with ``partial_fit``.

    Accuracy is re-evaluated on the batch afterwards. Bundles without a
    transfer model are only re-evaluated; a state without any bundle is
    returned unchanged.
    """

    name = "partial_fit"

    def update(
        self,
        model_state: ModelState,
        points: Sequence[TrainingPoint],
        extractor: FeatureExtractor,
    ) -> ModelState:
        bundle = model_state.trained_model
        if bundle is None or not points:
            return model_state

        X, y, _ = build_matrix(points, extractor)
        sub_models = dict(bundle.sub_models)
        transfer = sub_models.get(ModelKind.TRANSFER)
        if isinstance(transfer, TransferModel):
            sub_models[ModelKind.TRANSFER] = transfer.partial_fit(X, y)

        updated = ModelBundle(
            feature_names=bundle.feature_names,
            sub_models=sub_models,
            metrics=bundle.metrics,
            trained_at=bundle.trained_at,
            training_samples=bundle.training_samples,
        )
        metrics = evaluate_bundle(updated, X, y)
        _logger.debug(
            "online.partial_fit_applied",
            category=model_state.category.value,
            batch_size=len(points),
            fine_tuned=ModelKind.TRANSFER in sub_models,
            accuracy=round(metrics.accuracy, 4),
        )
        return ModelState(
            category=model_state.category,
            trained_model=updated,
            current_accuracy=metrics.accuracy,
            sample_count=model_state.sample_count,
            last_update=utc_now(),
        )
