"""Fitting and evaluating model bundles from buffered training points.

Runs synchronously and is CPU-bound; the retraining scheduler calls it
through ``asyncio.to_thread`` so the event loop keeps serving feedback.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error
from sklearn.model_selection import train_test_split

from ensemblescore.core.errors import ConfigurationError, InsufficientDataError
from ensemblescore.core.logging import get_logger
from ensemblescore.features import FeatureExtractor
from ensemblescore.learning.history import TrainingPoint
from ensemblescore.models.base import ModelBundle, ModelKind, ModelMetrics, SubModel
from ensemblescore.models.ensemble import BaseLearnerEnsemble
from ensemblescore.models.predictor import MultiModelPredictor
from ensemblescore.models.regression import RegressionModel
from ensemblescore.models.transfer import TransferModel

_logger = get_logger("training")

MIN_FIT_SAMPLES = 2
"""Fewest points any sub-model can be fitted from."""

HOLDOUT_FRACTION = 0.2
MIN_SAMPLES_FOR_HOLDOUT = 10
"""Below this the bundle is evaluated on its own training points."""


def build_matrix(
    points: Sequence[TrainingPoint], extractor: FeatureExtractor
) -> tuple[np.ndarray, np.ndarray, tuple[str, ...]]:
    """Extract features for every point.

    Returns:
        (X, y, feature_names) with X of shape (n_points, n_features).
    """
    feature_sets = [extractor.extract_features(p.suggestion_text, p.context) for p in points]
    names = feature_sets[0].names if feature_sets else ()
    X = np.vstack([fs.to_vector() for fs in feature_sets]) if feature_sets else np.empty((0, 0))
    y = np.asarray([p.actual_score for p in points], dtype=np.float64)
    return X, y, names


def evaluate_bundle(
    bundle: ModelBundle, X: np.ndarray, y: np.ndarray, predictor: MultiModelPredictor | None = None
) -> ModelMetrics:
    """Evaluate the combined bundle prediction on (X, y)."""
    predictor = predictor or MultiModelPredictor()
    predictions = np.asarray([predictor.predict_vector(bundle, row).score for row in X])
    return ModelMetrics(
        mae=float(mean_absolute_error(y, predictions)),
        rmse=float(np.sqrt(mean_squared_error(y, predictions))),
        evaluated_samples=len(y),
    )


def fit_bundle(
    points: Sequence[TrainingPoint],
    extractor: FeatureExtractor,
    random_state: int | None = None,
    transfer_source: Any | None = None,
) -> ModelBundle:
    """Fit every available sub-model and evaluate the combined prediction.

    Args:
        points: Training points (a snapshot; not mutated).
        extractor: Feature extractor used for training and later prediction.
        random_state: Seed for splits and estimators.
        transfer_source: Fitted linear estimator to warm-start the transfer
            model from. The transfer model is skipped when None or unusable.

    Returns:
        A bundle carrying holdout metrics.

    Raises:
        InsufficientDataError: If fewer than two points are given.
    """
    if len(points) < MIN_FIT_SAMPLES:
        raise InsufficientDataError(len(points), MIN_FIT_SAMPLES)

    X, y, names = build_matrix(points, extractor)
    if len(points) >= MIN_SAMPLES_FOR_HOLDOUT:
        X_train, X_eval, y_train, y_eval = train_test_split(
            X, y, test_size=HOLDOUT_FRACTION, random_state=random_state
        )
    else:
        X_train, X_eval, y_train, y_eval = X, X, y, y

    sub_models: dict[ModelKind, SubModel] = {
        ModelKind.REGRESSION: RegressionModel.fit(
            X_train, y_train, X_eval, y_eval, random_state=random_state
        ),
        ModelKind.ENSEMBLE: BaseLearnerEnsemble.fit(
            X_train, y_train, X_eval, y_eval, random_state=random_state
        ),
    }
    if transfer_source is not None:
        try:
            sub_models[ModelKind.TRANSFER] = TransferModel.fit(
                transfer_source, X_train, y_train, X_eval, y_eval, random_state=random_state
            )
        except ConfigurationError as exc:
            _logger.warning("training.transfer_skipped", reason=str(exc))

    unevaluated = ModelBundle(
        feature_names=names,
        sub_models=sub_models,
        training_samples=len(points),
    )
    metrics = evaluate_bundle(unevaluated, X_eval, y_eval)
    bundle = ModelBundle(
        feature_names=names,
        sub_models=sub_models,
        metrics=metrics,
        training_samples=len(points),
    )
    _logger.info(
        "training.bundle_fitted",
        samples=len(points),
        sub_models=[k.value for k in bundle.available_kinds],
        mae=round(metrics.mae, 4),
        rmse=round(metrics.rmse, 4),
    )
    return bundle
