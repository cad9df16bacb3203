"""Tests for ensemblescore.core.categories module."""

import math

import pytest

from ensemblescore.core.categories import (
    Category,
    EnsembleConfiguration,
    OptimizationStrategy,
    ValidatorSignal,
    default_configuration,
    default_configurations,
    is_unit_interval,
)
from ensemblescore.core.errors import ConfigurationError, FeedbackValidationError


class TestCategory:
    """Tests for the Category enum."""

    def test_six_categories(self):
        assert len(Category) == 6
        assert Category.CAUSAL_ANALYSIS == "causal_analysis"

    def test_parse_string(self):
        assert Category.parse("security_analysis") is Category.SECURITY_ANALYSIS

    def test_parse_passes_enum_through(self):
        assert Category.parse(Category.COMPREHENSIVE) is Category.COMPREHENSIVE

    def test_parse_unknown_raises(self):
        with pytest.raises(FeedbackValidationError, match="Unknown category"):
            Category.parse("astrology")


class TestDefaultConfigurations:
    """Tests for the built-in per-category configurations."""

    def test_every_category_configured(self):
        configurations = default_configurations()
        assert set(configurations) == set(Category)

    @pytest.mark.parametrize("category", list(Category))
    def test_base_weights_sum_to_one(self, category):
        configuration = default_configuration(category)
        assert sum(configuration.base_weights.values()) == pytest.approx(1.0)

    @pytest.mark.parametrize("category", list(Category))
    def test_base_weights_within_bounds(self, category):
        configuration = default_configuration(category)
        for name, weight in configuration.base_weights.items():
            low, high = configuration.weight_bounds[name]
            assert low <= weight <= high

    def test_pattern_detection_defaults(self):
        configuration = default_configuration(Category.PATTERN_DETECTION)
        assert configuration.base_weights["pattern_validator"] == 0.35
        assert configuration.weight_bounds["pattern_validator"] == (0.20, 0.50)
        assert configuration.optimization_strategy is OptimizationStrategy.GRADIENT_BASED
        assert configuration.dynamic_weighting_enabled is True

    def test_strategies(self):
        assert (
            default_configuration(Category.CAUSAL_ANALYSIS).optimization_strategy
            is OptimizationStrategy.BAYESIAN_OPTIMIZATION
        )
        assert (
            default_configuration(Category.PERFORMANCE_OPTIMIZATION).optimization_strategy
            is OptimizationStrategy.GRID_SEARCH
        )


class TestEnsembleConfiguration:
    """Tests for EnsembleConfiguration validation."""

    def test_weights_not_summing_to_one(self):
        with pytest.raises(ConfigurationError, match="sum to"):
            EnsembleConfiguration(
                category=Category.COMPREHENSIVE,
                base_weights={"a": 0.5, "b": 0.4},
                weight_bounds={"a": (0.0, 1.0), "b": (0.0, 1.0)},
            )

    def test_missing_bound(self):
        with pytest.raises(ConfigurationError, match="no weight bound"):
            EnsembleConfiguration(
                category=Category.COMPREHENSIVE,
                base_weights={"a": 0.5, "b": 0.5},
                weight_bounds={"a": (0.0, 1.0)},
            )

    def test_inverted_bound(self):
        with pytest.raises(ConfigurationError, match="inverted"):
            EnsembleConfiguration(
                category=Category.COMPREHENSIVE,
                base_weights={"a": 1.0},
                weight_bounds={"a": (0.9, 0.1)},
            )

    def test_base_weight_outside_bound(self):
        with pytest.raises(ConfigurationError, match="outside bound"):
            EnsembleConfiguration(
                category=Category.COMPREHENSIVE,
                base_weights={"a": 0.7, "b": 0.3},
                weight_bounds={"a": (0.1, 0.5), "b": (0.1, 0.5)},
            )

    def test_empty_weights(self):
        with pytest.raises(ConfigurationError, match="empty"):
            EnsembleConfiguration(
                category=Category.COMPREHENSIVE, base_weights={}, weight_bounds={}
            )

    def test_clamp(self):
        configuration = default_configuration(Category.PATTERN_DETECTION)
        assert configuration.clamp("pattern_validator", 0.9) == 0.50
        assert configuration.clamp("pattern_validator", 0.0) == 0.20
        assert configuration.clamp("pattern_validator", 0.3) == 0.3

    def test_weights_and_bounds_read_only(self):
        configuration = default_configuration(Category.PATTERN_DETECTION)
        with pytest.raises(TypeError):
            configuration.base_weights["pattern_validator"] = 0.9  # type: ignore[index]
        with pytest.raises(TypeError):
            configuration.weight_bounds["pattern_validator"] = (0.0, 1.0)  # type: ignore[index]

    def test_caller_dict_changes_do_not_leak(self):
        weights = {"a": 0.5, "b": 0.5}
        configuration = EnsembleConfiguration(
            category=Category.COMPREHENSIVE,
            base_weights=weights,
            weight_bounds={"a": (0.0, 1.0), "b": (0.0, 1.0)},
        )
        weights["a"] = 0.9
        assert configuration.base_weights["a"] == 0.5


class TestValidatorSignal:
    """Tests for ValidatorSignal validation."""

    def test_default_confidence(self):
        assert ValidatorSignal("ml_model", 0.4).confidence == 1.0

    @pytest.mark.parametrize("score", [-0.1, 1.5, math.nan, math.inf])
    def test_invalid_score(self, score):
        with pytest.raises(FeedbackValidationError):
            ValidatorSignal("ml_model", score)

    def test_blank_name(self):
        with pytest.raises(FeedbackValidationError):
            ValidatorSignal("  ", 0.5)


class TestIsUnitInterval:
    """Tests for is_unit_interval."""

    @pytest.mark.parametrize("value", [0, 0.0, 0.5, 1, 1.0])
    def test_accepts(self, value):
        assert is_unit_interval(value)

    @pytest.mark.parametrize("value", [True, "0.5", None, -0.01, 1.01, math.nan])
    def test_rejects(self, value):
        assert not is_unit_interval(value)
