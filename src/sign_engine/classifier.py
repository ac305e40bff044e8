"""Gesture classification from blob features using the rule table."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sign_engine.features import FeatureSet
from sign_engine.gestures import UNKNOWN_LABEL, GestureRegistry


@dataclass(frozen=True)
class Gesture:
    """A per-frame classification: label plus the rule's fixed confidence."""
    label: str
    confidence: float


class GestureClassifier:
    """Classifies a FeatureSet with a fixed decision table.

    Rules whose fixed confidence falls below `min_confidence` report the
    unclassified label "?" instead of their own label. Degenerate features
    (zero-height box) produce no gesture.
    """

    def __init__(
        self,
        registry: Optional[GestureRegistry] = None,
        min_confidence: float = 0.5,
        rules_path: Optional[str | Path] = None,
    ):
        if rules_path:
            registry = GestureRegistry()
            registry.load_from_file(rules_path)
        self._registry = registry or GestureRegistry.with_defaults()
        self.min_confidence = min_confidence

    @property
    def registry(self) -> GestureRegistry:
        return self._registry

    def classify(self, features: Optional[FeatureSet]) -> Optional[Gesture]:
        """Map features to a gesture.

        Returns:
            Gesture, or None when there are no features, the aspect ratio is
            undefined, or no rule matches.
        """
        if features is None or features.aspect_ratio is None:
            return None

        rule = self._registry.match(features)
        if rule is None:
            return None

        if rule.confidence < self.min_confidence:
            return Gesture(label=UNKNOWN_LABEL, confidence=rule.confidence)
        return Gesture(label=rule.label, confidence=rule.confidence)
