"""Exception hierarchy for the ensemble engine.

All engine exceptions inherit from EnsembleError, enabling callers to catch
broad (EnsembleError) or narrow (e.g., FeedbackValidationError) failures.
Insufficient-data conditions surface as unsuccessful results on the public
API; InsufficientDataError only travels between internal components.
"""

from __future__ import annotations


class EnsembleError(Exception):
    """Base exception for all ensemble engine errors."""


class FeedbackValidationError(EnsembleError, ValueError):
    """Raised when feedback or scoring input is malformed.

    Examples: unknown category, a score outside [0, 1], an empty validator
    score map. Raised before any per-category state is mutated.
    """


class ConfigurationError(EnsembleError):
    """Raised when an ensemble configuration or engine config is invalid.

    Examples: base weights that do not sum to 1.0, a weight without a bound,
    a base weight outside its own bound.
    """


class InsufficientDataError(EnsembleError):
    """Raised internally when a buffer is too small to fit or update a model.

    Attributes:
        available: Number of samples present.
        required: Number of samples needed.
    """

    def __init__(self, available: int, required: int) -> None:
        self.available = available
        self.required = required
        super().__init__(f"insufficient data: {available} samples, need {required}")
