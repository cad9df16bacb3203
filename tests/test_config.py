"""Tests for ensemblescore.core.config module."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from ensemblescore.core.config import EngineConfig, LearningConfig, LogConfig


class TestLearningConfig:
    """Tests for LearningConfig defaults and validation."""

    def test_defaults(self):
        config = LearningConfig()
        assert config.base_learning_rate == 0.01
        assert config.error_threshold_for_adaptation == 0.1
        assert config.accuracy_threshold_for_retraining == 0.75
        assert config.adaptation_count_for_retraining == 50
        assert config.retraining_interval == timedelta(hours=24)
        assert config.max_history_size == 1000
        assert config.max_training_buffer_size == 500
        assert config.min_samples_for_retraining == 50
        assert config.trend_analysis_window == 20
        assert config.error_threshold_for_optimization == 0.15
        assert config.trend_threshold_for_optimization == 0.05
        assert config.min_samples_for_drift_detection == 100
        assert config.drift_detection_window == 50
        assert config.drift_threshold == 0.1
        assert config.min_samples_for_online_learning == 10
        assert config.online_learning_batch_size == 25
        assert config.replacement_policy == "always"
        assert config.retrain_in_background is False

    def test_learning_rate_must_be_positive(self):
        with pytest.raises(ValidationError):
            LearningConfig(base_learning_rate=0.0)

    def test_drift_window_must_be_smaller_than_minimum(self):
        with pytest.raises(ValidationError, match="drift_detection_window"):
            LearningConfig(drift_detection_window=100, min_samples_for_drift_detection=100)

    def test_retraining_minimum_must_fit_buffer(self):
        with pytest.raises(ValidationError, match="max_training_buffer_size"):
            LearningConfig(min_samples_for_retraining=600)

    def test_drift_minimum_must_fit_history(self):
        with pytest.raises(ValidationError, match="max_history_size"):
            LearningConfig(max_history_size=80)

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError, match="retraining_interval"):
            LearningConfig(retraining_interval=timedelta(0))

    def test_unknown_replacement_policy(self):
        with pytest.raises(ValidationError):
            LearningConfig(replacement_policy="sometimes")


class TestEngineConfig:
    """Tests for EngineConfig loading."""

    def test_defaults(self):
        config = EngineConfig()
        assert isinstance(config.learning, LearningConfig)
        assert isinstance(config.logging, LogConfig)
        assert config.logging.level == "INFO"
        assert config.feedback_store_path is None

    def test_from_yaml_string(self):
        config = EngineConfig.from_yaml_string(
            """
learning:
  base_learning_rate: 0.02
  retraining_interval: 3600
  replacement_policy: if_better
logging:
  level: DEBUG
  format: json
"""
        )
        assert config.learning.base_learning_rate == 0.02
        assert config.learning.retraining_interval == timedelta(hours=1)
        assert config.learning.replacement_policy == "if_better"
        assert config.logging.format == "json"

    def test_iso_duration(self):
        config = EngineConfig.from_yaml_string("learning:\n  retraining_interval: PT30M\n")
        assert config.learning.retraining_interval == timedelta(minutes=30)

    def test_empty_yaml_gives_defaults(self):
        config = EngineConfig.from_yaml_string("")
        assert config.learning.base_learning_rate == 0.01

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("feedback_store_path: feedback.json\n")
        config = EngineConfig.from_yaml(path)
        assert config.feedback_store_path is not None
        assert config.feedback_store_path.name == "feedback.json"

    def test_store_path_cannot_be_directory(self, tmp_path):
        with pytest.raises(ValidationError, match="must be a file"):
            EngineConfig(feedback_store_path=tmp_path)

    def test_invalid_nested_value(self):
        with pytest.raises(ValidationError):
            EngineConfig.from_yaml_string("learning:\n  drift_threshold: 2.0\n")
