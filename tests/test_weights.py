"""Tests for ensemblescore.learning.weights module."""

import pytest

from ensemblescore.core.categories import (
    Category,
    EnsembleConfiguration,
    ValidatorSignal,
    default_configuration,
)
from ensemblescore.core.config import LearningConfig
from ensemblescore.core.errors import FeedbackValidationError
from ensemblescore.learning.weights import (
    AdaptiveWeightController,
    EnsembleScore,
    ValidatorPerformance,
    WeightState,
)


@pytest.fixture
def controller() -> AdaptiveWeightController:
    return AdaptiveWeightController(LearningConfig())


@pytest.fixture
def two_validator_configuration() -> EnsembleConfiguration:
    return EnsembleConfiguration(
        category=Category.COMPREHENSIVE,
        base_weights={"a": 0.5, "b": 0.5},
        weight_bounds={"a": (0.2, 0.8), "b": (0.2, 0.8)},
        dynamic_weighting_enabled=False,
    )


class TestAdjustWeights:
    """Tests for computing weight deltas."""

    def test_worked_example(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        deltas = controller.adjust_weights(state, 0.2, {"a": 0.8, "b": 0.6}, 0.9)

        assert deltas["a"] == pytest.approx(0.005)
        assert deltas["b"] == pytest.approx(-0.005)
        assert state.adaptation_count == 1
        assert state.last_adaptation is not None

    def test_current_weights_untouched_until_applied(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        controller.adjust_weights(state, 0.2, {"a": 0.8, "b": 0.6}, 0.9)
        assert state.current_weights == {"a": 0.5, "b": 0.5}
        assert state.pending_adjustments["a"] == pytest.approx(0.005)

    def test_pending_adjustments_accumulate(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        controller.adjust_weights(state, 0.2, {"a": 0.8, "b": 0.6}, 0.9)
        controller.adjust_weights(state, 0.2, {"a": 0.8, "b": 0.6}, 0.9)
        assert state.pending_adjustments["a"] == pytest.approx(0.01)
        assert state.pending_adjustments["b"] == pytest.approx(-0.01)
        assert state.adaptation_count == 2

    def test_exact_validator_gets_no_delta(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        deltas = controller.adjust_weights(state, 0.2, {"a": 0.9}, 0.9)
        assert deltas["a"] == 0.0

    def test_zero_prediction_error_uses_epsilon(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        deltas = controller.adjust_weights(state, 0.0, {"a": 0.9005}, 0.9)
        # error 0.0005 / epsilon 0.001 -> relative performance 0.5, sign negative
        assert deltas["a"] == pytest.approx(-0.005)

    def test_empty_scores_raise(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        with pytest.raises(FeedbackValidationError):
            controller.adjust_weights(state, 0.2, {}, 0.9)
        assert state.adaptation_count == 0


class TestApplyPending:
    """Tests for folding pending deltas into current weights."""

    def test_applies_and_clears(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        controller.adjust_weights(state, 0.2, {"a": 0.8, "b": 0.6}, 0.9)
        weights = controller.apply_pending(state, two_validator_configuration)

        assert weights["a"] == pytest.approx(0.505)
        assert weights["b"] == pytest.approx(0.495)
        assert state.pending_adjustments == {}

    def test_clamps_to_bounds(self, controller):
        configuration = default_configuration(Category.PATTERN_DETECTION)
        state = WeightState.from_configuration(configuration)
        state.pending_adjustments = {"pattern_validator": 5.0, "domain_validator": -5.0}
        weights = controller.apply_pending(state, configuration)

        assert weights["pattern_validator"] == 0.50
        assert weights["domain_validator"] == 0.05

    def test_unknown_validator_discarded(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        controller.adjust_weights(state, 0.2, {"ghost": 0.8}, 0.9)
        weights = controller.apply_pending(state, two_validator_configuration)

        assert "ghost" not in weights
        assert state.pending_adjustments == {}

    def test_nothing_pending(self, controller, two_validator_configuration):
        state = WeightState.from_configuration(two_validator_configuration)
        assert controller.apply_pending(state, two_validator_configuration) == {"a": 0.5, "b": 0.5}


class TestCombine:
    """Tests for combining validator signals into one ensemble score."""

    def test_weighted_average(self, controller, two_validator_configuration):
        score = controller.combine(
            two_validator_configuration,
            {"a": 0.75, "b": 0.25},
            [ValidatorSignal("a", 0.8), ValidatorSignal("b", 0.4)],
        )
        assert score.score == pytest.approx(0.7)
        assert score.weights == pytest.approx({"a": 0.75, "b": 0.25})
        assert score.contributions["a"] == pytest.approx(0.6)

    def test_agreement_and_uncertainty(self, controller, two_validator_configuration):
        score = controller.combine(
            two_validator_configuration,
            {"a": 0.5, "b": 0.5},
            [ValidatorSignal("a", 0.8), ValidatorSignal("b", 0.4)],
        )
        assert score.uncertainty == pytest.approx(0.2)
        assert score.agreement == pytest.approx(0.6)
        # confidence = 1.0 * (0.7 + 0.3 * 0.6)
        assert score.confidence == pytest.approx(0.88)
        assert score.interval_low == pytest.approx(0.6 - 1.96 * 0.2)
        assert score.interval_high == pytest.approx(0.6 + 1.96 * 0.2)

    def test_identical_scores_full_agreement(self, controller, two_validator_configuration):
        score = controller.combine(
            two_validator_configuration,
            {"a": 0.5, "b": 0.5},
            [ValidatorSignal("a", 0.6), ValidatorSignal("b", 0.6)],
        )
        assert score.agreement == 1.0
        assert score.interval_low == pytest.approx(0.6)
        assert score.interval_high == pytest.approx(0.6)

    def test_dynamic_weighting_uses_confidence(self, controller):
        configuration = EnsembleConfiguration(
            category=Category.COMPREHENSIVE,
            base_weights={"a": 0.5, "b": 0.5},
            weight_bounds={"a": (0.2, 0.8), "b": (0.2, 0.8)},
            dynamic_weighting_enabled=True,
        )
        score = controller.combine(
            configuration,
            {"a": 0.5, "b": 0.5},
            [ValidatorSignal("a", 1.0, confidence=1.0), ValidatorSignal("b", 0.0, confidence=0.0)],
        )
        # multipliers clamp to 1.2 and 0.5
        assert score.weights["a"] == pytest.approx(1.2 / 1.7)
        assert score.score == pytest.approx(1.2 / 1.7)

    def test_unknown_signals_ignored(self, controller, two_validator_configuration):
        score = controller.combine(
            two_validator_configuration,
            {"a": 0.5, "b": 0.5},
            [ValidatorSignal("a", 0.9), ValidatorSignal("other", 0.1)],
        )
        assert score.score == pytest.approx(0.9)
        assert set(score.weights) == {"a"}

    def test_no_known_signals_is_neutral(self, controller, two_validator_configuration):
        score = controller.combine(
            two_validator_configuration, {"a": 0.5}, [ValidatorSignal("other", 0.9)]
        )
        assert score == EnsembleScore.neutral()
        assert score.score == 0.5
        assert score.confidence == 0.1

    def test_duplicate_signal_raises(self, controller, two_validator_configuration):
        with pytest.raises(FeedbackValidationError, match="Duplicate"):
            controller.combine(
                two_validator_configuration,
                {"a": 0.5, "b": 0.5},
                [ValidatorSignal("a", 0.9), ValidatorSignal("a", 0.1)],
            )

    def test_to_dict(self, controller, two_validator_configuration):
        score = controller.combine(
            two_validator_configuration, {"a": 1.0}, [ValidatorSignal("a", 0.9)]
        )
        data = score.to_dict()
        assert data["score"] == pytest.approx(0.9)
        assert len(data["interval"]) == 2


@pytest.fixture
def dynamic_configuration() -> EnsembleConfiguration:
    return EnsembleConfiguration(
        category=Category.COMPREHENSIVE,
        base_weights={"pattern_validator": 0.5, "ml_model": 0.5},
        weight_bounds={"pattern_validator": (0.2, 0.8), "ml_model": (0.2, 0.8)},
        dynamic_weighting_enabled=True,
    )


def _pattern_and_ml() -> list[ValidatorSignal]:
    return [ValidatorSignal("pattern_validator", 1.0), ValidatorSignal("ml_model", 0.0)]


class TestComplexityAdjustment:
    """Tests for the context complexity multipliers."""

    def test_high_complexity_favors_pattern(self, controller, dynamic_configuration):
        score = controller.combine(
            dynamic_configuration,
            dynamic_configuration.base_weights,
            _pattern_and_ml(),
            context={"complexity_score": 0.9},
        )
        assert score.weights["pattern_validator"] == pytest.approx(1.1 / 2.0)
        assert score.score == pytest.approx(0.55)

    def test_low_complexity_favors_ml(self, controller, dynamic_configuration):
        score = controller.combine(
            dynamic_configuration,
            dynamic_configuration.base_weights,
            _pattern_and_ml(),
            context={"complexity_score": 0.1},
        )
        assert score.weights["ml_model"] == pytest.approx(1.2 / 2.1)

    def test_medium_complexity_unchanged(self, controller, dynamic_configuration):
        score = controller.combine(
            dynamic_configuration,
            dynamic_configuration.base_weights,
            _pattern_and_ml(),
            context={"complexity_score": 0.5},
        )
        assert score.weights["pattern_validator"] == pytest.approx(0.5)

    def test_non_numeric_complexity_ignored(self, controller, dynamic_configuration):
        score = controller.combine(
            dynamic_configuration,
            dynamic_configuration.base_weights,
            _pattern_and_ml(),
            context={"complexity_score": "high"},
        )
        assert score.weights["pattern_validator"] == pytest.approx(0.5)

    def test_static_weighting_ignores_complexity(self, controller):
        configuration = EnsembleConfiguration(
            category=Category.COMPREHENSIVE,
            base_weights={"pattern_validator": 0.5, "ml_model": 0.5},
            weight_bounds={"pattern_validator": (0.2, 0.8), "ml_model": (0.2, 0.8)},
            dynamic_weighting_enabled=False,
        )
        score = controller.combine(
            configuration,
            configuration.base_weights,
            _pattern_and_ml(),
            context={"complexity_score": 0.9},
        )
        assert score.weights["pattern_validator"] == pytest.approx(0.5)


class TestValidatorPerformance:
    """Tests for historical validator performance tracking."""

    def test_first_score_seeds_then_ema(self):
        performance = ValidatorPerformance()
        performance.record(EnsembleScore(score=0.8, confidence=0.6), [ValidatorSignal("a", 0.9)])
        assert performance.validator_scores["a"] == pytest.approx(0.9)

        performance.record(EnsembleScore(score=0.4, confidence=0.2), [ValidatorSignal("a", 0.5)])
        assert performance.validator_scores["a"] == pytest.approx(0.86)
        assert performance.total_predictions == 2
        assert performance.average_score == pytest.approx(0.6)
        assert performance.average_confidence == pytest.approx(0.4)
        assert performance.last_update is not None

    def test_strong_and_weak_validators_rescaled(self, controller, dynamic_configuration):
        performance = ValidatorPerformance(
            validator_scores={"pattern_validator": 0.9, "ml_model": 0.5}
        )
        score = controller.combine(
            dynamic_configuration,
            dynamic_configuration.base_weights,
            _pattern_and_ml(),
            performance=performance,
        )
        assert score.weights["pattern_validator"] == pytest.approx(1.1 / 2.0)
        assert score.weights["ml_model"] == pytest.approx(0.9 / 2.0)

    def test_middling_validators_unchanged(self, controller, dynamic_configuration):
        performance = ValidatorPerformance(
            validator_scores={"pattern_validator": 0.7, "ml_model": 0.7}
        )
        score = controller.combine(
            dynamic_configuration,
            dynamic_configuration.base_weights,
            _pattern_and_ml(),
            performance=performance,
        )
        assert score.weights["pattern_validator"] == pytest.approx(0.5)

    def test_to_dict(self):
        performance = ValidatorPerformance()
        performance.record(EnsembleScore(score=0.8, confidence=0.6), [ValidatorSignal("a", 0.9)])
        data = performance.to_dict()
        assert data["total_predictions"] == 1
        assert data["validator_scores"] == {"a": 0.9}
