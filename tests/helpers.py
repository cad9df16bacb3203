"""Shared test helpers: stub models, fake fitters, sample data."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from ensemblescore.features import FeatureExtractor
from ensemblescore.learning.history import TrainingPoint
from ensemblescore.models.base import ModelBundle, ModelKind, ModelMetrics, SubPrediction


class StubSubModel:
    """Sub-model returning a fixed prediction."""

    def __init__(self, score: float, confidence: float) -> None:
        self.score = score
        self.confidence = confidence

    def predict(self, vector: np.ndarray) -> SubPrediction:
        return SubPrediction(score=self.score, confidence=self.confidence)


class FailingSubModel:
    """Sub-model whose predict always raises."""

    def predict(self, vector: np.ndarray) -> SubPrediction:
        raise RuntimeError("model unavailable")


def make_bundle(accuracy: float = 0.9, score: float = 0.8, confidence: float = 0.6) -> ModelBundle:
    """Bundle with one stub regression model and the given holdout accuracy."""
    return ModelBundle(
        feature_names=("word_count",),
        sub_models={ModelKind.REGRESSION: StubSubModel(score, confidence)},
        metrics=ModelMetrics(mae=1.0 - accuracy, rmse=1.0 - accuracy, evaluated_samples=10),
        training_samples=10,
    )


class FakeFitter:
    """Bundle fitter that records its calls and returns a stub bundle."""

    def __init__(self, accuracy: float = 0.9, error: Exception | None = None) -> None:
        self.accuracy = accuracy
        self.error = error
        self.calls: list[int] = []

    def __call__(
        self,
        points: Sequence[TrainingPoint],
        extractor: FeatureExtractor,
        random_state: int | None,
        transfer_source: Any,
    ) -> ModelBundle:
        self.calls.append(len(points))
        if self.error is not None:
            raise self.error
        return make_bundle(accuracy=self.accuracy)


def training_point(text: str, score: float, **context: Any) -> TrainingPoint:
    return TrainingPoint(
        suggestion_text=text,
        context=context,
        actual_score=score,
        validator_scores={"causal_validator": score},
    )


SAMPLE_SUGGESTIONS = [
    "Add an index to the orders query to reduce latency by 40%",
    "Refactor the cache module",
    "Validate the API input schema and add a test for each method",
    "Use async database calls to improve throughput",
    "Remove the deprecated legacy credential handling. It is a security risk.",
    "Improve quality",
    "Extract the retry logic into a function and verify it with tests",
    "Replace the thread lock with an async lock to reduce CPU usage by 15%",
    "Simplify the config class",
    "Migrate the json serialization to a faster module. Measure memory before and after.",
]


def sample_points(count: int = 20) -> list[TrainingPoint]:
    """Training points whose label grows with suggestion length."""
    points = []
    for i in range(count):
        text = SAMPLE_SUGGESTIONS[i % len(SAMPLE_SUGGESTIONS)]
        score = min(1.0, 0.2 + len(text) / 120.0)
        points.append(training_point(text, round(score, 3), source="review"))
    return points
