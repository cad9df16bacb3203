"""Feedback persistence backends."""

from ensemblescore.store.base import FeedbackRecord, FeedbackStore
from ensemblescore.store.json_store import JsonFeedbackStore
from ensemblescore.store.memory import InMemoryFeedbackStore

__all__ = [
    "FeedbackRecord",
    "FeedbackStore",
    "InMemoryFeedbackStore",
    "JsonFeedbackStore",
]
