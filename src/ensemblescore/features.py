"""Feature extraction for suggestion texts.

The engine treats feature extraction as an opaque collaborator: anything
satisfying ``FeatureExtractor`` can be injected. ``TextFeatureExtractor`` is a
deliberately simple lexical extractor so the engine can fit models end to end
without an NLP stack.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import numpy as np

_WORD_RE = re.compile(r"[A-Za-z][A-Za-z0-9_.\-]*")
_SENTENCE_RE = re.compile(r"[.!?]+(?:\s|$)")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?\s*(?:%|ms|s|mb|gb|x)?", re.IGNORECASE)

ACTION_VERBS = frozenset({
    "add", "implement", "refactor", "replace", "remove", "extract", "cache",
    "optimize", "validate", "migrate", "split", "merge", "introduce", "reduce",
    "improve", "use", "avoid", "move", "rename", "simplify",
})
TECHNICAL_TERMS = frozenset({
    "api", "sql", "json", "xml", "dll", "exe", "config", "database", "query",
    "thread", "async", "lock", "index", "schema", "cache", "interface", "class",
    "method", "function", "module", "exception", "transaction",
})
PERFORMANCE_TERMS = frozenset({
    "performance", "speed", "optimize", "efficient", "fast", "latency",
    "memory", "cpu", "disk", "network", "resource", "throughput",
})
QUALITY_TERMS = frozenset({
    "quality", "accurate", "reliable", "robust", "stable", "standard",
    "practice", "guideline", "pattern", "architecture",
})
TESTING_TERMS = frozenset({"test", "validate", "verify", "check", "ensure"})
RISK_TERMS = frozenset({
    "risk", "security", "vulnerability", "breaking", "legacy", "deprecated",
    "injection", "unsafe", "credential",
})


@dataclass(frozen=True)
class FeatureSet:
    """Fixed-shape numeric features of one suggestion.

    Attributes:
        names: Feature names, in vector order. Identical for every FeatureSet
            produced by the same extractor.
        values: Feature values aligned with ``names``.
    """

    names: tuple[str, ...]
    values: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.names) != len(self.values):
            raise ValueError(
                f"FeatureSet has {len(self.names)} names but {len(self.values)} values"
            )

    def to_vector(self) -> np.ndarray:
        """Return features as a 1-D float64 array."""
        return np.asarray(self.values, dtype=np.float64)

    def as_dict(self) -> dict[str, float]:
        return dict(zip(self.names, self.values, strict=True))


@runtime_checkable
class FeatureExtractor(Protocol):
    """Turns a suggestion text and its context into a FeatureSet."""

    def extract_features(
        self, text: str, context: Mapping[str, Any] | None = None
    ) -> FeatureSet:
        ...


class TextFeatureExtractor:
    """Lexical feature extractor based on word and term counts.

    Counts are normalized by word count where a ratio is more meaningful
    than a raw count, so long and short suggestions stay comparable.
    """

    FEATURE_NAMES: tuple[str, ...] = (
        "word_count",
        "character_count",
        "sentence_count",
        "action_verb_ratio",
        "technical_term_ratio",
        "quantifiable_count",
        "performance_term_ratio",
        "quality_term_ratio",
        "testing_term_ratio",
        "risk_term_ratio",
        "specificity",
        "context_size",
    )

    def extract_features(
        self, text: str, context: Mapping[str, Any] | None = None
    ) -> FeatureSet:
        words = [w.lower().strip(".-") for w in _WORD_RE.findall(text or "")]
        word_count = len(words)
        denominator = max(word_count, 1)

        def ratio(terms: frozenset[str]) -> float:
            return sum(1 for w in words if w in terms) / denominator

        sentences = len(_SENTENCE_RE.findall(text or ""))
        if text and text.strip() and sentences == 0:
            sentences = 1
        quantifiable = len(_NUMBER_RE.findall(text or ""))
        technical = ratio(TECHNICAL_TERMS)
        # Concrete numbers and technical terms both make a suggestion specific
        specificity = min(1.0, technical + quantifiable / denominator)

        values = (
            float(word_count),
            float(len(text or "")),
            float(sentences),
            ratio(ACTION_VERBS),
            technical,
            float(quantifiable),
            ratio(PERFORMANCE_TERMS),
            ratio(QUALITY_TERMS),
            ratio(TESTING_TERMS),
            ratio(RISK_TERMS),
            specificity,
            float(len(context or {})),
        )
        return FeatureSet(names=self.FEATURE_NAMES, values=values)
