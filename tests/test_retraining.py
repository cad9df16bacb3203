"""Tests for ensemblescore.learning.retraining module."""

import asyncio
import dataclasses
from datetime import timedelta

import pytest

from ensemblescore.core.config import LearningConfig
from ensemblescore.core.errors import InsufficientDataError
from ensemblescore.features import TextFeatureExtractor
from ensemblescore.learning.retraining import (
    INSUFFICIENT_DATA,
    NOT_BETTER,
    ReplacementPolicy,
    RetrainingResult,
    RetrainingScheduler,
    RetrainTrigger,
    SchedulerState,
)
from ensemblescore.learning.weights import AdaptiveWeightController
from tests.helpers import FakeFitter, make_bundle, sample_points


def _healthy(state):
    """Put the category in a state where no trigger holds."""
    state.model_state = dataclasses.replace(state.model_state, current_accuracy=0.9)
    return state


def _fill_buffer(state, count):
    for point in sample_points(count):
        state.buffer.append(point)


class TestShouldRetrain:
    """Tests for trigger evaluation."""

    def test_no_trigger(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor())
        state = _healthy(category_state)
        assert scheduler.should_retrain(state.model_state, state.weights) == []

    def test_low_accuracy(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor())
        triggers = scheduler.should_retrain(category_state.model_state, category_state.weights)
        assert triggers == [RetrainTrigger.LOW_ACCURACY]

    def test_adaptation_limit(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor())
        state = _healthy(category_state)
        state.weights.adaptation_count = small_config.adaptation_count_for_retraining
        assert scheduler.should_retrain(state.model_state, state.weights) == [
            RetrainTrigger.ADAPTATION_LIMIT
        ]

    def test_interval_elapsed(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor())
        state = _healthy(category_state)
        later = state.weights.last_retraining + timedelta(hours=25)
        assert scheduler.should_retrain(state.model_state, state.weights, now=later) == [
            RetrainTrigger.INTERVAL_ELAPSED
        ]

    def test_all_triggers(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor())
        category_state.weights.adaptation_count = 999
        later = category_state.weights.last_retraining + timedelta(days=2)
        triggers = scheduler.should_retrain(
            category_state.model_state, category_state.weights, now=later
        )
        assert set(triggers) == set(RetrainTrigger)


class TestEvaluate:
    """Tests for the scheduler state machine."""

    def test_no_trigger_returns_to_idle(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor())
        state = _healthy(category_state)
        assert scheduler.evaluate(state) == []
        assert state.scheduler_state is SchedulerState.IDLE

    def test_trigger_moves_to_retraining(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor())
        assert scheduler.evaluate(category_state) == [RetrainTrigger.LOW_ACCURACY]
        assert category_state.scheduler_state is SchedulerState.RETRAINING

    def test_retraining_blocks_further_triggers(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor())
        category_state.scheduler_state = SchedulerState.RETRAINING
        assert scheduler.evaluate(category_state) == []
        assert category_state.scheduler_state is SchedulerState.RETRAINING


class TestRetrain:
    """Tests for fitting and swapping in a new model."""

    @pytest.mark.asyncio
    async def test_insufficient_data(self, small_config, category_state):
        fitter = FakeFitter()
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor(), fitter)
        _fill_buffer(category_state, 4)
        before = category_state.model_state

        result = await scheduler.retrain(category_state, [RetrainTrigger.LOW_ACCURACY])

        assert result.success is False
        assert result.reason == INSUFFICIENT_DATA
        assert fitter.calls == []
        assert category_state.model_state is before
        assert category_state.scheduler_state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_minimum_below_fit_requirement(self, category_state):
        config = LearningConfig(min_samples_for_retraining=1)
        fitter = FakeFitter()
        scheduler = RetrainingScheduler(config, TextFeatureExtractor(), fitter)
        _fill_buffer(category_state, 1)

        result = await scheduler.retrain(category_state, [RetrainTrigger.LOW_ACCURACY])

        assert result.success is False
        assert result.reason == INSUFFICIENT_DATA
        assert fitter.calls == []
        assert category_state.scheduler_state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_fitter_insufficient_data_is_not_a_failure(self, small_config, category_state):
        fitter = FakeFitter(error=InsufficientDataError(6, 10))
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor(), fitter)
        _fill_buffer(category_state, 6)

        result = await scheduler.retrain(category_state, [RetrainTrigger.LOW_ACCURACY])

        assert result.success is False
        assert result.reason == INSUFFICIENT_DATA
        assert fitter.calls == [6]

    @pytest.mark.asyncio
    async def test_adaptations_during_fit_survive_swap(self, small_config, category_state):
        controller = AdaptiveWeightController(small_config)

        class AdaptingFitter(FakeFitter):
            """Records two adaptations on the event loop while fitting."""

            def __init__(self, loop):
                super().__init__(accuracy=0.9)
                self.loop = loop

            def __call__(self, points, extractor, random_state, transfer_source):
                for _ in range(2):
                    asyncio.run_coroutine_threadsafe(self._adapt(), self.loop).result()
                return super().__call__(points, extractor, random_state, transfer_source)

            async def _adapt(self):
                async with category_state.lock:
                    controller.adjust_weights(
                        category_state.weights, 0.3, {"causal_validator": 0.6}, 0.9
                    )

        fitter = AdaptingFitter(asyncio.get_running_loop())
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor(), fitter)
        _fill_buffer(category_state, 6)
        category_state.weights.adaptation_count = 12

        result = await scheduler.retrain(category_state, [RetrainTrigger.ADAPTATION_LIMIT])

        assert result.success is True
        assert category_state.weights.adaptation_count == 2

    @pytest.mark.asyncio
    async def test_successful_retrain(self, small_config, category_state):
        fitter = FakeFitter(accuracy=0.9)
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor(), fitter)
        _fill_buffer(category_state, 6)
        category_state.weights.adaptation_count = 12

        result = await scheduler.retrain(category_state, [RetrainTrigger.LOW_ACCURACY])

        assert result.success is True
        assert result.replaced is True
        assert result.new_accuracy == pytest.approx(0.9)
        assert result.training_samples == 6
        assert fitter.calls == [6]
        assert category_state.model_state.trained_model is not None
        assert category_state.model_state.current_accuracy == pytest.approx(0.9)
        assert category_state.weights.adaptation_count == 0
        assert category_state.scheduler_state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_buffer_not_drained(self, small_config, category_state):
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor(), FakeFitter())
        _fill_buffer(category_state, 6)
        await scheduler.retrain(category_state)
        assert len(category_state.buffer) == 6

    @pytest.mark.asyncio
    async def test_if_better_keeps_current_model(self, category_state):
        config = LearningConfig(
            min_samples_for_retraining=5,
            max_training_buffer_size=50,
            replacement_policy="if_better",
        )
        scheduler = RetrainingScheduler(config, TextFeatureExtractor(), FakeFitter(accuracy=0.7))
        assert scheduler.policy is ReplacementPolicy.IF_BETTER
        current = make_bundle(accuracy=0.9)
        category_state.model_state = dataclasses.replace(
            category_state.model_state, trained_model=current, current_accuracy=0.9
        )
        category_state.weights.adaptation_count = 60
        _fill_buffer(category_state, 6)

        result = await scheduler.retrain(category_state, [RetrainTrigger.ADAPTATION_LIMIT])

        assert result.success is False
        assert result.reason == NOT_BETTER
        assert result.replaced is False
        assert category_state.model_state.trained_model is current
        assert category_state.weights.adaptation_count == 0

    @pytest.mark.asyncio
    async def test_if_better_replaces_missing_model(self, category_state):
        config = LearningConfig(
            min_samples_for_retraining=5,
            max_training_buffer_size=50,
            replacement_policy="if_better",
        )
        scheduler = RetrainingScheduler(config, TextFeatureExtractor(), FakeFitter(accuracy=0.3))
        _fill_buffer(category_state, 6)

        result = await scheduler.retrain(category_state)

        assert result.success is True
        assert category_state.model_state.current_accuracy == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_fit_failure_reported(self, small_config, category_state):
        fitter = FakeFitter(error=ValueError("singular matrix"))
        scheduler = RetrainingScheduler(small_config, TextFeatureExtractor(), fitter)
        _fill_buffer(category_state, 6)
        before = category_state.model_state

        result = await scheduler.retrain(category_state, [RetrainTrigger.LOW_ACCURACY])

        assert result.success is False
        assert result.reason == "ValueError: singular matrix"
        assert category_state.model_state is before
        assert category_state.scheduler_state is SchedulerState.IDLE


class TestRetrainingResult:
    """Tests for RetrainingResult serialization."""

    def test_to_dict(self):
        result = RetrainingResult(
            success=True, triggers=[RetrainTrigger.INTERVAL_ELAPSED], new_accuracy=0.8
        )
        data = result.to_dict()
        assert data["triggers"] == ["interval_elapsed"]
        assert data["new_accuracy"] == 0.8
