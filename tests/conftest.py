"""Pytest fixtures for ensemblescore tests."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
import structlog

from ensemblescore.core.categories import Category, default_configuration
from ensemblescore.core.config import LearningConfig
from ensemblescore.engine.state import CategoryState


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    from ensemblescore.cli import helpers

    helpers.reset_logging_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_logging_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def small_config() -> LearningConfig:
    """Learning config with small windows so tests stay short."""
    return LearningConfig(
        min_samples_for_retraining=5,
        max_training_buffer_size=50,
        max_history_size=100,
        min_samples_for_drift_detection=20,
        drift_detection_window=10,
        min_samples_for_online_learning=5,
        online_learning_batch_size=10,
    )


@pytest.fixture
def category_state(small_config: LearningConfig) -> CategoryState:
    """Fresh state of the causal_analysis category."""
    return CategoryState.create(
        default_configuration(Category.CAUSAL_ANALYSIS), small_config
    )
