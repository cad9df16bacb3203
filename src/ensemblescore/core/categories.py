"""Suggestion categories and per-category ensemble configuration.

Every piece of engine state is keyed by a Category. The default
configurations assign each category its own validator base weights and the
bounds those weights may move within as the engine adapts.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from ensemblescore.core.errors import ConfigurationError, FeedbackValidationError

# Tolerance on the base weight total
WEIGHT_SUM_TOLERANCE = 1e-6


class Category(str, Enum):
    """Fixed classification of an improvement suggestion."""

    PATTERN_DETECTION = "pattern_detection"
    """Suggestions derived from recurring code or error patterns."""

    CAUSAL_ANALYSIS = "causal_analysis"
    """Suggestions derived from cause/effect analysis of failures."""

    PERFORMANCE_OPTIMIZATION = "performance_optimization"
    """Suggestions targeting runtime or resource performance."""

    RISK_ASSESSMENT = "risk_assessment"
    """Suggestions weighing change risk and innovation."""

    SECURITY_ANALYSIS = "security_analysis"
    """Suggestions addressing security findings."""

    COMPREHENSIVE = "comprehensive"
    """Suggestions combining several analysis types."""

    @classmethod
    def parse(cls, value: Category | str) -> Category:
        """Coerce a string to a Category, raising FeedbackValidationError if unknown."""
        if isinstance(value, Category):
            return value
        try:
            return cls(value)
        except ValueError:
            known = ", ".join(c.value for c in cls)
            raise FeedbackValidationError(
                f"Unknown category {value!r}; expected one of: {known}"
            ) from None


class OptimizationStrategy(str, Enum):
    """Label for the weight-optimization approach of a category.

    Only surfaced in reports; adaptation itself always uses the
    error-driven weight controller.
    """

    GRID_SEARCH = "grid_search"
    GRADIENT_BASED = "gradient_based"
    BAYESIAN_OPTIMIZATION = "bayesian_optimization"
    GENETIC_ALGORITHM = "genetic_algorithm"
    SIMULATED_ANNEALING = "simulated_annealing"
    PARTICLE_SWARM = "particle_swarm"


@dataclass(frozen=True)
class ValidatorSignal:
    """One validator's opinion of a suggestion.

    Attributes:
        name: Validator key, unique within one scoring call.
        score: Quality score in [0, 1].
        confidence: Validator's confidence in the score, in [0, 1].
    """

    name: str
    score: float
    confidence: float = 1.0

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise FeedbackValidationError("Validator name must be a non-empty string")
        for label, value in (("score", self.score), ("confidence", self.confidence)):
            if not is_unit_interval(value):
                raise FeedbackValidationError(
                    f"Validator {self.name!r} {label} must be in [0, 1], got {value!r}"
                )


@dataclass(frozen=True)
class EnsembleConfiguration:
    """Immutable ensemble setup for one category.

    Adaptation never touches this object; it mutates a WeightState derived
    from ``base_weights`` instead.

    Raises:
        ConfigurationError: If base weights do not sum to 1.0, a weight has no
            bound, a bound is inverted, or a base weight lies outside its bound.
    """

    category: Category
    base_weights: Mapping[str, float]
    weight_bounds: Mapping[str, tuple[float, float]]
    dynamic_weighting_enabled: bool = True
    optimization_strategy: OptimizationStrategy = OptimizationStrategy.GRADIENT_BASED

    def __post_init__(self) -> None:
        if not self.base_weights:
            raise ConfigurationError(f"{self.category.value}: base_weights is empty")
        total = sum(self.base_weights.values())
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(
                f"{self.category.value}: base weights sum to {total:.6f}, expected 1.0"
            )
        for name, weight in self.base_weights.items():
            if name not in self.weight_bounds:
                raise ConfigurationError(
                    f"{self.category.value}: validator {name!r} has no weight bound"
                )
            low, high = self.weight_bounds[name]
            if low > high:
                raise ConfigurationError(
                    f"{self.category.value}: bound for {name!r} is inverted ({low}, {high})"
                )
            if not low <= weight <= high:
                raise ConfigurationError(
                    f"{self.category.value}: base weight {weight} for {name!r} "
                    f"outside bound ({low}, {high})"
                )
        # read-only views over private copies
        object.__setattr__(self, "base_weights", MappingProxyType(dict(self.base_weights)))
        object.__setattr__(
            self,
            "weight_bounds",
            MappingProxyType({name: tuple(bound) for name, bound in self.weight_bounds.items()}),
        )

    @property
    def validator_names(self) -> list[str]:
        return list(self.base_weights)

    def clamp(self, name: str, weight: float) -> float:
        """Clamp a weight into the bound of ``name``."""
        low, high = self.weight_bounds[name]
        return min(max(weight, low), high)


@dataclass(frozen=True)
class _WeightDefault:
    weight: float
    low: float
    high: float


@dataclass(frozen=True)
class _CategoryDefaults:
    strategy: OptimizationStrategy
    weights: dict[str, _WeightDefault] = field(default_factory=dict)


_DEFAULTS: dict[Category, _CategoryDefaults] = {
    Category.PATTERN_DETECTION: _CategoryDefaults(
        OptimizationStrategy.GRADIENT_BASED,
        {
            "pattern_validator": _WeightDefault(0.35, 0.20, 0.50),
            "ml_model": _WeightDefault(0.25, 0.15, 0.40),
            "causal_validator": _WeightDefault(0.15, 0.05, 0.25),
            "performance_validator": _WeightDefault(0.15, 0.05, 0.25),
            "domain_validator": _WeightDefault(0.10, 0.05, 0.20),
        },
    ),
    Category.CAUSAL_ANALYSIS: _CategoryDefaults(
        OptimizationStrategy.BAYESIAN_OPTIMIZATION,
        {
            "causal_validator": _WeightDefault(0.40, 0.25, 0.55),
            "ml_model": _WeightDefault(0.25, 0.15, 0.40),
            "pattern_validator": _WeightDefault(0.15, 0.05, 0.25),
            "performance_validator": _WeightDefault(0.10, 0.05, 0.20),
            "domain_validator": _WeightDefault(0.10, 0.05, 0.20),
        },
    ),
    Category.PERFORMANCE_OPTIMIZATION: _CategoryDefaults(
        OptimizationStrategy.GRID_SEARCH,
        {
            "performance_validator": _WeightDefault(0.40, 0.25, 0.55),
            "ml_model": _WeightDefault(0.25, 0.15, 0.40),
            "domain_validator": _WeightDefault(0.15, 0.05, 0.25),
            "pattern_validator": _WeightDefault(0.10, 0.05, 0.20),
            "causal_validator": _WeightDefault(0.10, 0.05, 0.20),
        },
    ),
    Category.RISK_ASSESSMENT: _CategoryDefaults(
        OptimizationStrategy.BAYESIAN_OPTIMIZATION,
        {
            "domain_validator": _WeightDefault(0.30, 0.15, 0.45),
            "ml_model": _WeightDefault(0.25, 0.15, 0.40),
            "causal_validator": _WeightDefault(0.20, 0.10, 0.30),
            "pattern_validator": _WeightDefault(0.15, 0.05, 0.25),
            "performance_validator": _WeightDefault(0.10, 0.05, 0.20),
        },
    ),
    Category.SECURITY_ANALYSIS: _CategoryDefaults(
        OptimizationStrategy.SIMULATED_ANNEALING,
        {
            "pattern_validator": _WeightDefault(0.30, 0.15, 0.45),
            "domain_validator": _WeightDefault(0.25, 0.10, 0.40),
            "ml_model": _WeightDefault(0.25, 0.15, 0.40),
            "causal_validator": _WeightDefault(0.10, 0.05, 0.20),
            "performance_validator": _WeightDefault(0.10, 0.05, 0.20),
        },
    ),
    Category.COMPREHENSIVE: _CategoryDefaults(
        OptimizationStrategy.PARTICLE_SWARM,
        {
            "pattern_validator": _WeightDefault(0.20, 0.10, 0.35),
            "ml_model": _WeightDefault(0.20, 0.10, 0.35),
            "causal_validator": _WeightDefault(0.20, 0.10, 0.35),
            "performance_validator": _WeightDefault(0.20, 0.10, 0.35),
            "domain_validator": _WeightDefault(0.20, 0.10, 0.35),
        },
    ),
}


def default_configuration(category: Category) -> EnsembleConfiguration:
    """Build the default ensemble configuration of one category."""
    defaults = _DEFAULTS[category]
    return EnsembleConfiguration(
        category=category,
        base_weights={name: entry.weight for name, entry in defaults.weights.items()},
        weight_bounds={
            name: (entry.low, entry.high) for name, entry in defaults.weights.items()
        },
        dynamic_weighting_enabled=True,
        optimization_strategy=defaults.strategy,
    )


def default_configurations() -> dict[Category, EnsembleConfiguration]:
    """Build default ensemble configurations for every category."""
    return {category: default_configuration(category) for category in Category}


def is_unit_interval(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value) and 0.0 <= value <= 1.0
