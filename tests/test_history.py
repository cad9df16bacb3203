"""Tests for ensemblescore.learning.history module."""

import pytest

from ensemblescore.learning.history import BoundedBuffer, LearningCycle, LearningHistory


def _cycle(error: float) -> LearningCycle:
    return LearningCycle(
        suggestion_text="Cache the lookup",
        actual_score=0.5,
        predicted_score=0.5 + error,
        prediction_error=error,
        validator_scores={"ml_model": 0.5},
    )


class TestBoundedBuffer:
    """Tests for FIFO eviction."""

    def test_evicts_oldest(self):
        buffer: BoundedBuffer[int] = BoundedBuffer(3)
        for i in range(5):
            buffer.append(i)
        assert len(buffer) == 3
        assert buffer.snapshot() == [2, 3, 4]

    def test_max_size(self):
        assert BoundedBuffer(7).max_size == 7

    def test_tail_and_head(self):
        buffer: BoundedBuffer[int] = BoundedBuffer(10)
        for i in range(6):
            buffer.append(i)
        assert buffer.tail(2) == [4, 5]
        assert buffer.head(2) == [0, 1]
        assert buffer.tail(100) == [0, 1, 2, 3, 4, 5]
        assert buffer.tail(0) == []

    def test_snapshot_is_a_copy(self):
        buffer: BoundedBuffer[int] = BoundedBuffer(3)
        buffer.append(1)
        snapshot = buffer.snapshot()
        buffer.append(2)
        assert snapshot == [1]

    def test_empty_is_falsy(self):
        assert not BoundedBuffer(3)

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            BoundedBuffer(0)


class TestLearningHistory:
    """Tests for LearningHistory helpers."""

    def test_errors_and_last_cycle(self):
        history = LearningHistory(10)
        assert history.last_cycle is None
        for error in (0.1, 0.2, 0.3):
            history.append(_cycle(error))
        assert history.errors() == [0.1, 0.2, 0.3]
        assert history.last_cycle is not None
        assert history.last_cycle.prediction_error == 0.3

    def test_capacity_plus_extra(self):
        history = LearningHistory(5)
        for i in range(8):
            history.append(_cycle(i / 10))
        assert len(history) == 5
        assert history.errors()[0] == pytest.approx(0.3)

    def test_cycle_accuracy(self):
        assert _cycle(0.25).accuracy == pytest.approx(0.75)
