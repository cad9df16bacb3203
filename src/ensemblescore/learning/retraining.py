"""Retraining scheduler.

Decides when a category's model should be refitted and performs the refit.

State machine (per category, held on CategoryState):

    IDLE ──evaluate──▶ EVALUATING ──no trigger──▶ IDLE
                           │
                        trigger
                           ▼
                      RETRAINING ──fit ok / insufficient data / fit failed──▶ IDLE

A retrain is triggered when ANY of:
- current accuracy < accuracy_threshold_for_retraining
- adaptation count ≥ adaptation_count_for_retraining
- time since last retraining > retraining_interval

Fitting runs in a worker thread without the category lock; the lock is only
taken to swap in the new ModelState and reset the adaptation counters.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from ensemblescore.core.config import LearningConfig
from ensemblescore.core.errors import InsufficientDataError
from ensemblescore.core.logging import get_logger
from ensemblescore.features import FeatureExtractor
from ensemblescore.learning.history import TrainingPoint
from ensemblescore.models.base import ModelBundle, ModelState
from ensemblescore.models.training import MIN_FIT_SAMPLES, fit_bundle
from ensemblescore.utils.time import utc_now

if TYPE_CHECKING:
    from ensemblescore.engine.state import CategoryState
    from ensemblescore.learning.weights import WeightState

_logger = get_logger("retraining")

INSUFFICIENT_DATA = "insufficient data"
NOT_BETTER = "new model not better"

BundleFitter = Callable[[Sequence[TrainingPoint], FeatureExtractor, int | None, Any], ModelBundle]


class SchedulerState(str, Enum):
    """Retraining state of one category."""

    IDLE = "idle"
    """No evaluation or retraining in progress."""

    EVALUATING = "evaluating"
    """Trigger conditions are being checked."""

    RETRAINING = "retraining"
    """A refit is pending or running; further evaluations return no triggers."""


class RetrainTrigger(str, Enum):
    """Reason a retrain was triggered."""

    LOW_ACCURACY = "low_accuracy"
    ADAPTATION_LIMIT = "adaptation_limit"
    INTERVAL_ELAPSED = "interval_elapsed"


class ReplacementPolicy(str, Enum):
    """Whether a freshly fitted model replaces the current one unconditionally."""

    ALWAYS = "always"
    """Replace regardless of accuracy."""

    IF_BETTER = "if_better"
    """Replace only when the new accuracy is not lower than the current one."""


@dataclass
class RetrainingResult:
    """Outcome of one retraining attempt.

    Attributes:
        success: Whether a model was fitted and swapped in.
        reason: Why the attempt did not succeed (empty on success).
        triggers: Conditions that caused the attempt.
        scheduled: True when retraining was handed to a background task
            and has not completed yet.
        replaced: Whether the category's ModelState was replaced.
        previous_accuracy: Accuracy before the attempt.
        new_accuracy: Holdout accuracy of the new model, if fitted.
        mae: Holdout mean absolute error, if fitted.
        rmse: Holdout root mean squared error, if fitted.
        training_samples: Points used for fitting.
        duration_seconds: Wall time of the attempt.
    """

    success: bool = False
    reason: str = ""
    triggers: list[RetrainTrigger] = field(default_factory=list)
    scheduled: bool = False
    replaced: bool = False
    previous_accuracy: float = 0.0
    new_accuracy: float | None = None
    mae: float | None = None
    rmse: float | None = None
    training_samples: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "reason": self.reason,
            "triggers": [t.value for t in self.triggers],
            "scheduled": self.scheduled,
            "replaced": self.replaced,
            "previous_accuracy": self.previous_accuracy,
            "new_accuracy": self.new_accuracy,
            "mae": self.mae,
            "rmse": self.rmse,
            "training_samples": self.training_samples,
            "duration_seconds": self.duration_seconds,
        }


class RetrainingScheduler:
    """Evaluates retrain triggers and refits category models.

    One scheduler serves every category; per-category progress lives in
    ``CategoryState.scheduler_state``.
    """

    def __init__(
        self,
        config: LearningConfig,
        extractor: FeatureExtractor,
        fitter: BundleFitter | None = None,
    ) -> None:
        self._config = config
        self._extractor = extractor
        self._fitter: BundleFitter = fitter or fit_bundle
        self._policy = ReplacementPolicy(config.replacement_policy)

    @property
    def policy(self) -> ReplacementPolicy:
        return self._policy

    def should_retrain(
        self,
        model_state: ModelState,
        weight_state: WeightState,
        now: datetime | None = None,
    ) -> list[RetrainTrigger]:
        """Return every trigger condition that currently holds.

        An empty list means no retrain is needed.
        """
        now = now or utc_now()
        triggers: list[RetrainTrigger] = []
        if model_state.current_accuracy < self._config.accuracy_threshold_for_retraining:
            triggers.append(RetrainTrigger.LOW_ACCURACY)
        if weight_state.adaptation_count >= self._config.adaptation_count_for_retraining:
            triggers.append(RetrainTrigger.ADAPTATION_LIMIT)
        if now - weight_state.last_retraining > self._config.retraining_interval:
            triggers.append(RetrainTrigger.INTERVAL_ELAPSED)
        return triggers

    def evaluate(self, state: CategoryState, now: datetime | None = None) -> list[RetrainTrigger]:
        """Check triggers for a category and advance its state machine.

        While a retrain is pending or running no triggers are returned. When
        triggers are returned the category stays in RETRAINING until
        ``retrain`` completes, so the caller must follow up with ``retrain``.
        """
        if state.scheduler_state is SchedulerState.RETRAINING:
            return []
        self._set_state(state, SchedulerState.EVALUATING)
        triggers = self.should_retrain(state.model_state, state.weights, now)
        if triggers:
            self._set_state(state, SchedulerState.RETRAINING, triggers=triggers)
        else:
            self._set_state(state, SchedulerState.IDLE)
        return triggers

    async def retrain(
        self,
        state: CategoryState,
        triggers: Sequence[RetrainTrigger] = (),
        now: datetime | None = None,
    ) -> RetrainingResult:
        """Fit a new model from the category's training buffer.

        Insufficient data and fitting failures are reported through the
        result; this method does not raise for them. The category always
        ends in IDLE.
        """
        started = time.monotonic()
        self._set_state(state, SchedulerState.RETRAINING, triggers=list(triggers))
        result = RetrainingResult(
            triggers=list(triggers),
            previous_accuracy=state.model_state.current_accuracy,
        )
        adaptations_at_start = state.weights.adaptation_count
        try:
            points = state.buffer.snapshot()
            result.training_samples = len(points)
            required = max(self._config.min_samples_for_retraining, MIN_FIT_SAMPLES)
            if len(points) < required:
                self._skip_insufficient(state, result, len(points), required)
                return result

            try:
                bundle = await asyncio.to_thread(
                    self._fitter,
                    points,
                    self._extractor,
                    self._config.random_state,
                    state.transfer_source,
                )
            except InsufficientDataError as exc:
                self._skip_insufficient(state, result, exc.available, exc.required)
                return result
            except Exception as exc:
                result.reason = f"{type(exc).__name__}: {exc}"
                _logger.exception(
                    "retraining.fit_failed",
                    category=state.category.value,
                    error=str(exc),
                )
                return result

            metrics = bundle.metrics
            new_accuracy = metrics.accuracy if metrics else 0.0
            result.new_accuracy = new_accuracy
            if metrics is not None:
                result.mae = metrics.mae
                result.rmse = metrics.rmse

            swap_time = now or utc_now()
            async with state.lock:
                current = state.model_state
                should_replace = (
                    self._policy is ReplacementPolicy.ALWAYS
                    or current.trained_model is None
                    or new_accuracy >= current.current_accuracy
                )
                if should_replace:
                    state.model_state = ModelState(
                        category=state.category,
                        trained_model=bundle,
                        current_accuracy=new_accuracy,
                        sample_count=current.sample_count,
                        last_update=swap_time,
                    )
                # keep adaptations recorded while the fit was running
                state.weights.adaptation_count = max(
                    0, state.weights.adaptation_count - adaptations_at_start
                )
                state.weights.last_retraining = swap_time

            result.replaced = should_replace
            result.success = should_replace
            if not should_replace:
                result.reason = NOT_BETTER
            _logger.info(
                "retraining.completed",
                category=state.category.value,
                replaced=should_replace,
                previous_accuracy=round(result.previous_accuracy, 4),
                new_accuracy=round(new_accuracy, 4),
                samples=len(points),
                triggers=[t.value for t in triggers],
            )
            return result
        finally:
            result.duration_seconds = time.monotonic() - started
            self._set_state(state, SchedulerState.IDLE)

    def _skip_insufficient(
        self,
        state: CategoryState,
        result: RetrainingResult,
        available: int,
        required: int,
    ) -> None:
        result.reason = INSUFFICIENT_DATA
        _logger.info(
            "retraining.skipped",
            category=state.category.value,
            reason=INSUFFICIENT_DATA,
            available=available,
            required=required,
        )

    def _set_state(
        self,
        state: CategoryState,
        new_state: SchedulerState,
        triggers: Sequence[RetrainTrigger] = (),
    ) -> None:
        old_state = state.scheduler_state
        if old_state is new_state:
            return
        state.scheduler_state = new_state
        _logger.debug(
            "retraining.state_changed",
            category=state.category.value,
            from_state=old_state.value,
            to_state=new_state.value,
            triggers=[t.value for t in triggers],
        )
