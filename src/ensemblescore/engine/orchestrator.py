"""Ensemble orchestrator: the public façade of the engine.

Per feedback event the orchestrator records a learning cycle, adapts
ensemble weights when the error is large enough, buffers a training point,
updates the accuracy moving average, lets the retraining scheduler decide on
a refit, derives insights, and persists the outcome.

Each of those steps is fault-isolated: a failing step is logged and the
cycle continues. Only malformed input fails the call, and it does so before
any state is touched.

Concurrency: each category has its own asyncio.Lock. Feedback for one
category is serialized; different categories proceed independently. Model
fitting runs in a worker thread and only takes the lock to swap in the new
model.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar

from ensemblescore.core.categories import (
    Category,
    EnsembleConfiguration,
    ValidatorSignal,
    is_unit_interval,
)
from ensemblescore.core.config import EngineConfig, LearningConfig
from ensemblescore.core.constants import ACCURACY_EMA_DECAY
from ensemblescore.core.errors import FeedbackValidationError
from ensemblescore.core.logging import LearningContext, get_logger, with_context
from ensemblescore.engine.report import LearningReport, build_report
from ensemblescore.engine.results import ContinuousLearningResult, FeedbackResult
from ensemblescore.engine.state import CategoryState, CategoryStateStore
from ensemblescore.features import FeatureExtractor, TextFeatureExtractor
from ensemblescore.learning.history import LearningCycle, TrainingPoint
from ensemblescore.learning.online import (
    IdentityOnlineLearning,
    OnlineLearningResult,
    OnlineLearningStrategy,
)
from ensemblescore.learning.retraining import (
    INSUFFICIENT_DATA,
    BundleFitter,
    RetrainingResult,
    RetrainingScheduler,
    RetrainTrigger,
)
from ensemblescore.learning.trends import DriftDetection, PerformanceTrends, TrendAnalyzer
from ensemblescore.learning.weights import AdaptiveWeightController, EnsembleScore
from ensemblescore.models.importance import FeatureImportanceStrategy
from ensemblescore.models.predictor import MultiModelPredictor, Prediction
from ensemblescore.models.transfer import source_coefficients
from ensemblescore.store.base import FeedbackRecord, FeedbackStore
from ensemblescore.store.json_store import JsonFeedbackStore
from ensemblescore.store.memory import InMemoryFeedbackStore
from ensemblescore.utils.time import utc_now

_logger = get_logger("orchestrator")

T = TypeVar("T")

OPTIMIZATION_RECOMMENDATION = "Performance optimization needed - consider weight adjustment"
MODEL_REPLACED_DURING_UPDATE = "model replaced during update"


def validate_feedback(
    category: Category | str,
    suggestion_text: str,
    context: Mapping[str, Any] | None,
    actual_score: float,
    predicted_score: float,
    validator_scores: Mapping[str, float],
) -> tuple[Category, dict[str, Any], dict[str, float]]:
    """Check feedback input and return normalized copies.

    Returns:
        (category, context, validator_scores)

    Raises:
        FeedbackValidationError: On any malformed input.
    """
    parsed = Category.parse(category)
    if not isinstance(suggestion_text, str):
        raise FeedbackValidationError("suggestion_text must be a string")
    if context is not None and not isinstance(context, Mapping):
        raise FeedbackValidationError("context must be a mapping")
    for label, value in (("actual_score", actual_score), ("predicted_score", predicted_score)):
        if not is_unit_interval(value):
            raise FeedbackValidationError(f"{label} must be a finite number in [0, 1], got {value!r}")
    if not isinstance(validator_scores, Mapping) or not validator_scores:
        raise FeedbackValidationError("validator_scores must be a non-empty mapping")
    scores: dict[str, float] = {}
    for name, score in validator_scores.items():
        if not isinstance(name, str) or not name.strip():
            raise FeedbackValidationError(f"Validator name must be a non-empty string, got {name!r}")
        if not is_unit_interval(score):
            raise FeedbackValidationError(
                f"Score of validator {name!r} must be a finite number in [0, 1], got {score!r}"
            )
        scores[name] = float(score)
    return parsed, dict(context or {}), scores


class EnsembleOrchestrator:
    """Coordinates weights, trends, retraining, and prediction per category.

    Args:
        config: Learning configuration. Defaults to LearningConfig().
        configurations: Ensemble configuration overrides per category.
        states: Pre-built state store; built from ``config`` when omitted.
        extractor: Feature extractor used for training and prediction.
        feedback_store: Where processed feedback is recorded. None disables
            recording.
        online_learning: Strategy for continuous learning updates.
        feature_importance: Strategy attaching importance to predictions.
        fitter: Replaces bundle fitting (mainly for tests).
    """

    def __init__(
        self,
        config: LearningConfig | None = None,
        *,
        configurations: Mapping[Category, EnsembleConfiguration] | None = None,
        states: CategoryStateStore | None = None,
        extractor: FeatureExtractor | None = None,
        feedback_store: FeedbackStore | None = None,
        online_learning: OnlineLearningStrategy | None = None,
        feature_importance: FeatureImportanceStrategy | None = None,
        fitter: BundleFitter | None = None,
    ) -> None:
        self._config = config or LearningConfig()
        self._states = states or CategoryStateStore(self._config, configurations)
        self._extractor = extractor or TextFeatureExtractor()
        self._feedback_store = feedback_store
        self._online: OnlineLearningStrategy = online_learning or IdentityOnlineLearning()
        self._controller = AdaptiveWeightController(self._config)
        self._analyzer = TrendAnalyzer(self._config)
        self._scheduler = RetrainingScheduler(self._config, self._extractor, fitter)
        self._predictor = MultiModelPredictor(feature_importance)

    @classmethod
    def from_config(cls, engine_config: EngineConfig, **kwargs: Any) -> EnsembleOrchestrator:
        """Build an orchestrator with the feedback store the config names."""
        store: FeedbackStore
        if engine_config.feedback_store_path is not None:
            store = JsonFeedbackStore(engine_config.feedback_store_path)
        else:
            # room for a full history in every category
            store = InMemoryFeedbackStore(
                max_records=engine_config.learning.max_history_size * len(Category)
            )
        kwargs.setdefault("feedback_store", store)
        return cls(engine_config.learning, **kwargs)

    @property
    def config(self) -> LearningConfig:
        return self._config

    @property
    def states(self) -> CategoryStateStore:
        return self._states

    @property
    def feedback_store(self) -> FeedbackStore | None:
        return self._feedback_store

    def state(self, category: Category | str) -> CategoryState:
        return self._states.get(Category.parse(category))

    # =========================================================================
    # Feedback
    # =========================================================================

    async def process_feedback(
        self,
        category: Category | str,
        suggestion_text: str,
        context: Mapping[str, Any] | None,
        actual_score: float,
        predicted_score: float,
        validator_scores: Mapping[str, float],
    ) -> FeedbackResult:
        """Learn from one observed score.

        Raises:
            FeedbackValidationError: If any input is malformed. Nothing is
                mutated in that case.
        """
        parsed, ctx, scores = validate_feedback(
            category, suggestion_text, context, actual_score, predicted_score, validator_scores
        )
        started = time.monotonic()
        result = FeedbackResult(
            category=parsed,
            suggestion_text=suggestion_text,
            actual_score=actual_score,
            predicted_score=predicted_score,
        )
        with with_context(LearningContext(category=parsed.value, component="orchestrator")):
            try:
                await self._run_feedback_cycle(
                    self._states.get(parsed), result, ctx, scores
                )
            except Exception as exc:
                _logger.exception("orchestrator.feedback_failed", error=str(exc))
                result = FeedbackResult(
                    category=parsed,
                    suggestion_text=suggestion_text,
                    started_at=result.started_at,
                    error_message=f"{type(exc).__name__}: {exc}",
                )
            result.finished_at = utc_now()
            result.duration_seconds = time.monotonic() - started
            _logger.info(
                "orchestrator.feedback_processed",
                prediction_error=round(result.prediction_error, 4),
                adjusted=bool(result.weight_adjustments),
                retrained=bool(result.retraining and result.retraining.success),
                duration_seconds=round(result.duration_seconds, 4),
                error=result.error_message,
            )
        return result

    async def _run_feedback_cycle(
        self,
        state: CategoryState,
        result: FeedbackResult,
        context: dict[str, Any],
        scores: dict[str, float],
    ) -> None:
        actual = result.actual_score
        error = abs(actual - result.predicted_score)
        result.prediction_error = error

        async with state.lock:
            self._isolated(
                "record_cycle",
                lambda: state.history.append(
                    LearningCycle(
                        suggestion_text=result.suggestion_text,
                        actual_score=actual,
                        predicted_score=result.predicted_score,
                        prediction_error=error,
                        validator_scores=dict(scores),
                    )
                ),
                None,
            )
            if error > self._config.error_threshold_for_adaptation:
                result.weight_adjustments = self._isolated(
                    "adjust_weights",
                    lambda: self._controller.adjust_weights(state.weights, error, scores, actual),
                    {},
                )
            self._isolated(
                "update_accuracy",
                lambda: self._record_training_point(state, result, context, scores),
                None,
            )
            triggers: list[RetrainTrigger] = self._isolated(
                "evaluate_retraining", lambda: self._scheduler.evaluate(state), []
            )
            result.current_accuracy = state.model_state.current_accuracy

        if triggers:
            result.retraining = await self._isolated_async(
                "retrain", lambda: self._start_retraining(state, triggers), None
            )
            result.current_accuracy = state.model_state.current_accuracy

        result.insights = self._isolated(
            "insights", lambda: self._analyzer.insights(state.history, error), []
        )
        if self._feedback_store is not None:
            await self._isolated_async(
                "record_feedback", lambda: self._record_feedback(result, context, scores), None
            )

    def _record_training_point(
        self,
        state: CategoryState,
        result: FeedbackResult,
        context: dict[str, Any],
        scores: dict[str, float],
    ) -> None:
        state.buffer.append(
            TrainingPoint(
                suggestion_text=result.suggestion_text,
                context=context,
                actual_score=result.actual_score,
                validator_scores=dict(scores),
            )
        )
        current = state.model_state
        accuracy = (
            ACCURACY_EMA_DECAY * current.current_accuracy
            + (1.0 - ACCURACY_EMA_DECAY) * (1.0 - result.prediction_error)
        )
        state.model_state = dataclasses.replace(
            current,
            current_accuracy=accuracy,
            sample_count=current.sample_count + 1,
            last_update=utc_now(),
        )

    async def _record_feedback(
        self, result: FeedbackResult, context: dict[str, Any], scores: dict[str, float]
    ) -> None:
        assert self._feedback_store is not None
        await self._feedback_store.record(
            FeedbackRecord(
                category=result.category,
                suggestion_text=result.suggestion_text,
                context=context,
                actual_score=result.actual_score,
                predicted_score=result.predicted_score,
                prediction_error=result.prediction_error,
                validator_scores=scores,
                weight_adjustments=dict(result.weight_adjustments),
                retrained=bool(result.retraining and result.retraining.success),
                insights=list(result.insights),
            )
        )

    # =========================================================================
    # Retraining
    # =========================================================================

    async def _start_retraining(
        self, state: CategoryState, triggers: list[RetrainTrigger]
    ) -> RetrainingResult:
        if not self._config.retrain_in_background:
            return await self._scheduler.retrain(state, triggers)

        task = asyncio.create_task(
            self._scheduler.retrain(state, triggers),
            name=f"retrain-{state.category.value}",
        )
        state.retraining_task = task
        task.add_done_callback(self._on_retraining_done)
        _logger.debug(
            "orchestrator.retraining_scheduled",
            triggers=[t.value for t in triggers],
        )
        return RetrainingResult(
            scheduled=True,
            triggers=list(triggers),
            previous_accuracy=state.model_state.current_accuracy,
        )

    @staticmethod
    def _on_retraining_done(task: asyncio.Task[RetrainingResult]) -> None:
        if task.cancelled():
            _logger.warning("orchestrator.retraining_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            _logger.error(
                "orchestrator.retraining_crashed",
                task=task.get_name(),
                error=f"{type(exc).__name__}: {exc}",
            )

    async def wait_for_retraining(self, category: Category | str) -> RetrainingResult | None:
        """Wait for a background retrain of ``category``, if one was scheduled.

        Returns:
            The retraining result, or None when no background retrain exists.
        """
        state = self.state(category)
        task = state.retraining_task
        if task is None:
            return None
        try:
            return await task
        except asyncio.CancelledError:
            return None
        except Exception as exc:
            return RetrainingResult(reason=f"{type(exc).__name__}: {exc}")
        finally:
            if state.retraining_task is task:
                state.retraining_task = None

    async def aclose(self) -> None:
        """Wait for every background retrain to finish."""
        for state in self._states:
            if state.retraining_task is not None:
                await self.wait_for_retraining(state.category)
        _logger.debug("orchestrator.closed")

    def register_transfer_source(self, category: Category | str, estimator: Any) -> None:
        """Use a fitted linear estimator as the transfer model's starting point.

        Takes effect at the category's next retraining.

        Raises:
            ConfigurationError: If the estimator exposes no linear coefficients.
        """
        state = self.state(category)
        coef, _ = source_coefficients(estimator)
        state.transfer_source = estimator
        _logger.info(
            "orchestrator.transfer_source_registered",
            category=state.category.value,
            estimator=type(estimator).__name__,
            coefficients=int(coef.shape[0]),
        )

    # =========================================================================
    # Scoring and prediction
    # =========================================================================

    async def score(
        self,
        category: Category | str,
        signals: Iterable[ValidatorSignal],
        context: Mapping[str, Any] | None = None,
    ) -> EnsembleScore:
        """Combine validator signals with the category's adaptive weights.

        Pending weight adjustments are applied (and clamped) first. The
        result is recorded in the category's validator performance, which
        shapes the weights of later calls.
        """
        state = self.state(category)
        signal_list = list(signals)
        async with state.lock:
            weights = self._controller.apply_pending(state.weights, state.configuration)
            ensemble = self._controller.combine(
                state.configuration,
                weights,
                signal_list,
                context=context,
                performance=state.performance,
            )
            state.performance.record(ensemble, signal_list)
        return ensemble

    async def predict(
        self,
        category: Category | str,
        suggestion_text: str,
        context: Mapping[str, Any] | None = None,
    ) -> Prediction:
        """Predict a suggestion's quality from the category's current model.

        Falls back to a neutral prediction before the first retraining.
        """
        state = self.state(category)
        model_state = state.model_state
        features = self._extractor.extract_features(suggestion_text, context or {})
        return self._predictor.predict(model_state.trained_model, features)

    # =========================================================================
    # Continuous learning and reporting
    # =========================================================================

    async def run_continuous_learning(self, category: Category | str) -> ContinuousLearningResult:
        """Analyze trends and drift; run an online update when either warrants it."""
        parsed = Category.parse(category)
        state = self._states.get(parsed)
        started = time.monotonic()
        result = ContinuousLearningResult(category=parsed)
        with with_context(LearningContext(category=parsed.value, component="orchestrator")):
            try:
                result.trends = self._isolated(
                    "analyze_trends",
                    lambda: self._analyzer.analyze_trends(state.history),
                    PerformanceTrends(),
                )
                result.drift = self._isolated(
                    "detect_drift",
                    lambda: self._analyzer.detect_drift(state.history),
                    DriftDetection(),
                )
                if result.trends.requires_optimization or result.drift.drift_detected:
                    result.online_learning = await self._isolated_async(
                        "online_learning", lambda: self._run_online_learning(state), None
                    )
                if result.trends.requires_optimization:
                    result.recommendations.append(OPTIMIZATION_RECOMMENDATION)
                if result.drift.drift_detected:
                    result.recommendations.append(
                        f"Concept drift detected (severity: {result.drift.severity:.2f}) "
                        "- model retraining recommended"
                    )
            except Exception as exc:
                _logger.exception("orchestrator.continuous_learning_failed", error=str(exc))
                result = ContinuousLearningResult(
                    category=parsed,
                    started_at=result.started_at,
                    error_message=f"{type(exc).__name__}: {exc}",
                )
            result.finished_at = utc_now()
            result.duration_seconds = time.monotonic() - started
            _logger.info(
                "orchestrator.continuous_learning_completed",
                requires_optimization=result.trends.requires_optimization,
                drift_detected=result.drift.drift_detected,
                online_update=bool(result.online_learning and result.online_learning.success),
            )
        return result

    async def _run_online_learning(self, state: CategoryState) -> OnlineLearningResult:
        strategy_name = getattr(self._online, "name", type(self._online).__name__)
        available = len(state.buffer)
        if available < self._config.min_samples_for_online_learning:
            return OnlineLearningResult(
                success=False,
                reason=INSUFFICIENT_DATA,
                strategy=strategy_name,
                batch_size=available,
                previous_accuracy=state.model_state.current_accuracy,
                new_accuracy=state.model_state.current_accuracy,
            )

        batch = state.buffer.tail(self._config.online_learning_batch_size)
        previous = state.model_state
        updated = await asyncio.to_thread(self._online.update, previous, batch, self._extractor)

        async with state.lock:
            current = state.model_state
            if current.trained_model is not previous.trained_model:
                return OnlineLearningResult(
                    success=False,
                    reason=MODEL_REPLACED_DURING_UPDATE,
                    strategy=strategy_name,
                    batch_size=len(batch),
                    previous_accuracy=previous.current_accuracy,
                    new_accuracy=current.current_accuracy,
                )
            if updated is not previous:
                # Feedback that arrived during the update still counts
                state.model_state = dataclasses.replace(updated, sample_count=current.sample_count)

        result = OnlineLearningResult(
            success=True,
            strategy=strategy_name,
            batch_size=len(batch),
            previous_accuracy=previous.current_accuracy,
            new_accuracy=updated.current_accuracy,
            improvement=updated.current_accuracy - previous.current_accuracy,
        )
        _logger.info(
            "orchestrator.online_learning_applied",
            strategy=strategy_name,
            batch_size=len(batch),
            improvement=round(result.improvement, 4),
        )
        return result

    def generate_report(self) -> LearningReport:
        """Summarize learning progress across every category. Read-only."""
        try:
            report = build_report(self._states, self._analyzer)
        except Exception as exc:
            _logger.exception("orchestrator.report_failed", error=str(exc))
            return LearningReport(error_message=f"{type(exc).__name__}: {exc}")
        _logger.info(
            "orchestrator.report_generated",
            average_accuracy=round(report.overall.average_accuracy, 4),
            total_adaptations=report.overall.total_adaptations,
        )
        return report

    # =========================================================================
    # Step isolation
    # =========================================================================

    @staticmethod
    def _isolated(step: str, action: Callable[[], T], default: T) -> T:
        try:
            return action()
        except Exception as exc:
            _logger.exception("orchestrator.step_failed", step=step, error=str(exc))
            return default

    @staticmethod
    async def _isolated_async(
        step: str, action: Callable[[], Awaitable[T]], default: T
    ) -> T:
        try:
            return await action()
        except Exception as exc:
            _logger.exception("orchestrator.step_failed", step=step, error=str(exc))
            return default
