"""Configuration models for the ensemble engine.

Re-exports every public model so callers can import from
``ensemblescore.core.config`` directly.
"""

# Engine
from ensemblescore.core.config.engine import EngineConfig, LogConfig

# Learning
from ensemblescore.core.config.learning import LearningConfig

__all__ = [
    # Engine
    "EngineConfig",
    "LogConfig",
    # Learning
    "LearningConfig",
]
