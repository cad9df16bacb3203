"""Per-category engine state.

Every category owns one CategoryState holding all of its mutable learning
state and the lock that serializes writers. States are created eagerly for
every category when the store is built and live as long as the store.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from ensemblescore.core.categories import Category, EnsembleConfiguration, default_configurations
from ensemblescore.core.config import LearningConfig
from ensemblescore.core.errors import ConfigurationError
from ensemblescore.learning.history import LearningHistory, TrainingBuffer
from ensemblescore.learning.retraining import RetrainingResult, SchedulerState
from ensemblescore.learning.weights import ValidatorPerformance, WeightState
from ensemblescore.models.base import ModelState


@dataclass
class CategoryState:
    """All mutable state of one category.

    ``lock`` must be held while mutating history, buffer, weights,
    performance, or model_state. ``model_state`` is immutable and replaced
    wholesale, so readers may take the attribute without the lock.
    """

    category: Category
    configuration: EnsembleConfiguration
    weights: WeightState
    history: LearningHistory
    buffer: TrainingBuffer
    model_state: ModelState
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    scheduler_state: SchedulerState = SchedulerState.IDLE
    retraining_task: asyncio.Task[RetrainingResult] | None = None
    transfer_source: Any | None = None
    performance: ValidatorPerformance = field(default_factory=ValidatorPerformance)

    @classmethod
    def create(
        cls, configuration: EnsembleConfiguration, config: LearningConfig
    ) -> CategoryState:
        return cls(
            category=configuration.category,
            configuration=configuration,
            weights=WeightState.from_configuration(configuration),
            history=LearningHistory(config.max_history_size),
            buffer=TrainingBuffer(config.max_training_buffer_size),
            model_state=ModelState(
                category=configuration.category,
                current_accuracy=config.initial_accuracy,
            ),
        )

    @property
    def retraining_in_progress(self) -> bool:
        return self.retraining_task is not None and not self.retraining_task.done()


class CategoryStateStore:
    """Holds one CategoryState per category.

    Args:
        config: Learning configuration sizing the buffers.
        configurations: Ensemble configuration per category. Categories not
            given fall back to their defaults.
    """

    def __init__(
        self,
        config: LearningConfig,
        configurations: Mapping[Category, EnsembleConfiguration] | None = None,
    ) -> None:
        resolved = default_configurations()
        for category, configuration in (configurations or {}).items():
            if configuration.category is not category:
                raise ConfigurationError(
                    f"Configuration for {category.value} is labelled "
                    f"{configuration.category.value}"
                )
            resolved[category] = configuration
        self._states: dict[Category, CategoryState] = {
            category: CategoryState.create(resolved[category], config)
            for category in Category
        }

    def get(self, category: Category) -> CategoryState:
        return self._states[category]

    def __getitem__(self, category: Category) -> CategoryState:
        return self._states[category]

    def __iter__(self) -> Iterator[CategoryState]:
        return iter(self._states.values())

    def __len__(self) -> int:
        return len(self._states)
