"""Top-level engine configuration.

Defines EngineConfig, which bundles learning and logging settings and loads
from YAML.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from ensemblescore.core.config.learning import LearningConfig


class LogConfig(BaseModel):
    """Configuration for structured logging.

    Controls log level, output format, and file rotation settings.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for rotating log file output. Stream output when unset.",
    )
    max_file_size_mb: int = Field(
        default=50,
        gt=0,
        le=1000,
        description="Maximum log file size before rotation (MB)",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of rotated log files to keep",
    )
    include_timestamps: bool = Field(
        default=True,
        description="Include ISO8601 UTC timestamps in log entries",
    )
    include_context: bool = Field(
        default=True,
        description="Include bound context (category, request_id) in log entries",
    )


class EngineConfig(BaseModel):
    """Complete engine configuration.

    Example YAML:

        learning:
          base_learning_rate: 0.02
          retraining_interval: 3600
          replacement_policy: if_better
        logging:
          level: DEBUG
          format: json
        feedback_store_path: ./feedback.json
    """

    learning: LearningConfig = Field(default_factory=LearningConfig)
    logging: LogConfig = Field(default_factory=LogConfig)
    feedback_store_path: Path | None = Field(
        default=None,
        description="JSON feedback store location. In-memory store when unset.",
    )

    @model_validator(mode="after")
    def _check_store_path(self) -> EngineConfig:
        if self.feedback_store_path is not None and self.feedback_store_path.is_dir():
            raise ValueError(
                f"feedback_store_path must be a file, got directory "
                f"{self.feedback_store_path}"
            )
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> EngineConfig:
        """Load engine configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> EngineConfig:
        """Load engine configuration from a YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})
