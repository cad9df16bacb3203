"""Learning configuration model.

Defines the thresholds, window sizes, and policies that drive online weight
adaptation, drift detection, retraining, and online learning.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class LearningConfig(BaseModel):
    """Configuration for the adaptive learning loop.

    One instance is shared by every category; all per-category state is
    sized and triggered from these values.
    """

    base_learning_rate: float = Field(
        default=0.01,
        gt=0.0,
        le=1.0,
        description="Step size applied to relative validator performance when "
        "computing weight deltas.",
    )
    error_threshold_for_adaptation: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Prediction error above which weight deltas are computed.",
    )
    accuracy_threshold_for_retraining: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Retrain when the accuracy moving average drops below this.",
    )
    adaptation_count_for_retraining: int = Field(
        default=50,
        gt=0,
        description="Retrain once this many weight adaptations have accumulated.",
    )
    retraining_interval: timedelta = Field(
        default=timedelta(hours=24),
        description="Retrain when more than this much time passed since the last "
        "retraining. Accepts seconds or ISO 8601 durations in YAML.",
    )
    max_history_size: int = Field(
        default=1000,
        gt=0,
        description="Learning cycles kept per category (oldest evicted first).",
    )
    max_training_buffer_size: int = Field(
        default=500,
        gt=0,
        description="Training points kept per category (oldest evicted first).",
    )
    min_samples_for_retraining: int = Field(
        default=50,
        gt=0,
        description="Training points needed before a model can be fitted.",
    )
    trend_analysis_window: int = Field(
        default=20,
        gt=0,
        description="Trailing cycles used for trend analysis.",
    )
    error_threshold_for_optimization: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Average windowed error above which optimization is required.",
    )
    trend_threshold_for_optimization: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Error slope above which optimization is required.",
    )
    min_samples_for_drift_detection: int = Field(
        default=100,
        gt=0,
        description="History length needed before drift is evaluated.",
    )
    drift_detection_window: int = Field(
        default=50,
        gt=0,
        description="Trailing cycles treated as the recent segment for drift.",
    )
    drift_threshold: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="Accuracy difference between recent and historical segments "
        "that counts as drift.",
    )
    min_samples_for_online_learning: int = Field(
        default=10,
        gt=0,
        description="Training points needed before an online update runs.",
    )
    online_learning_batch_size: int = Field(
        default=25,
        gt=0,
        description="Most recent training points passed to an online update.",
    )
    initial_accuracy: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Accuracy moving average before any feedback arrives.",
    )
    replacement_policy: Literal["always", "if_better"] = Field(
        default="always",
        description="always: a successful fit replaces the model regardless of "
        "accuracy. if_better: replace only when the new accuracy is not lower.",
    )
    retrain_in_background: bool = Field(
        default=False,
        description="Run retraining as a background task instead of inside the "
        "feedback call.",
    )
    random_state: int | None = Field(
        default=42,
        description="Seed passed to scikit-learn estimators. None for nondeterministic fits.",
    )

    @model_validator(mode="after")
    def _validate_windows(self) -> LearningConfig:
        if self.drift_detection_window >= self.min_samples_for_drift_detection:
            raise ValueError(
                f"drift_detection_window ({self.drift_detection_window}) must be "
                f"smaller than min_samples_for_drift_detection "
                f"({self.min_samples_for_drift_detection})"
            )
        if self.min_samples_for_retraining > self.max_training_buffer_size:
            raise ValueError(
                f"min_samples_for_retraining ({self.min_samples_for_retraining}) "
                f"exceeds max_training_buffer_size ({self.max_training_buffer_size})"
            )
        if self.min_samples_for_drift_detection > self.max_history_size:
            raise ValueError(
                f"min_samples_for_drift_detection "
                f"({self.min_samples_for_drift_detection}) exceeds "
                f"max_history_size ({self.max_history_size})"
            )
        if self.retraining_interval <= timedelta(0):
            raise ValueError("retraining_interval must be positive")
        return self
