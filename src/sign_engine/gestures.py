"""Gesture rule table: map blob geometry to sign labels.

Rules are keyed on the estimated finger count and refined by aspect ratio.
Each rule carries a fixed confidence weight; it is not a measured
probability. The thresholds are tuned heuristics, kept as-is.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sign_engine.features import FeatureSet

UNKNOWN_LABEL = "?"
I_LOVE_YOU = "I LOVE YOU"

# Display-only labels; never appended to the letter sequence.
DISPLAY_ONLY_LABELS = frozenset({UNKNOWN_LABEL, I_LOVE_YOU})


@dataclass(frozen=True)
class GestureRule:
    """One row of the decision table.

    A rule matches when the finger count is equal and the aspect ratio lies
    strictly inside the optional (aspect_above, aspect_below) bounds.
    """

    label: str
    finger_count: int
    confidence: float
    aspect_above: Optional[float] = None
    aspect_below: Optional[float] = None
    description: str = ""

    def matches(self, features: FeatureSet) -> bool:
        if features.finger_count != self.finger_count:
            return False

        aspect = features.aspect_ratio
        if aspect is None:
            return False
        if self.aspect_above is not None and not aspect > self.aspect_above:
            return False
        if self.aspect_below is not None and not aspect < self.aspect_below:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "finger_count": self.finger_count,
            "confidence": self.confidence,
            "aspect_above": self.aspect_above,
            "aspect_below": self.aspect_below,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> GestureRule:
        confidence = float(data["confidence"])
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Rule {data['label']!r}: confidence must be in [0, 1]")
        return cls(
            label=data["label"],
            finger_count=int(data["finger_count"]),
            confidence=confidence,
            aspect_above=data.get("aspect_above"),
            aspect_below=data.get("aspect_below"),
            description=data.get("description", ""),
        )


class GestureRegistry:
    """Ordered rule table; the first matching rule wins."""

    def __init__(self):
        self._rules: list[GestureRule] = []

    def register(self, rule: GestureRule):
        """Append a rule. Order matters: earlier rules shadow later ones."""
        self._rules.append(rule)

    def match(self, features: FeatureSet) -> Optional[GestureRule]:
        for rule in self._rules:
            if rule.matches(features):
                return rule
        return None

    def load_from_file(self, path: str | Path):
        """Load rules from a JSON file."""
        with open(path) as f:
            data = json.load(f)

        for entry in data.get("rules", []):
            self.register(GestureRule.from_dict(entry))

    def save_to_file(self, path: str | Path):
        """Save all rules to a JSON file."""
        data = {"rules": [r.to_dict() for r in self._rules]}
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    @property
    def labels(self) -> list[str]:
        return [r.label for r in self._rules]

    @classmethod
    def with_defaults(cls) -> GestureRegistry:
        """Create a registry with the built-in finger/aspect table."""
        registry = cls()

        # One finger
        registry.register(GestureRule(
            label="A", finger_count=1, confidence=0.7, aspect_below=0.8,
            description="Fist with thumb pointing up",
        ))
        registry.register(GestureRule(
            label="D", finger_count=1, confidence=0.6,
            description="Index finger up, thumb touches middle finger",
        ))

        # Two fingers
        registry.register(GestureRule(
            label="L", finger_count=2, confidence=0.8, aspect_above=1.2,
            description="L-shape with thumb and index finger",
        ))
        registry.register(GestureRule(
            label="K", finger_count=2, confidence=0.6, aspect_below=0.9,
            description="Index and middle fingers up, thumb between them",
        ))
        registry.register(GestureRule(
            label="V", finger_count=2, confidence=0.7,
            description="Index and middle fingers in V shape",
        ))

        registry.register(GestureRule(
            label="W", finger_count=3, confidence=0.75,
            description="Three fingers extended",
        ))
        registry.register(GestureRule(
            label="B", finger_count=4, confidence=0.85,
            description="Flat hand with fingers together",
        ))

        # Five fingers: wide spread reads as Y, otherwise the ILY hand shape
        registry.register(GestureRule(
            label="Y", finger_count=5, confidence=0.8, aspect_above=1.2,
            description="Thumb and pinky extended",
        ))
        registry.register(GestureRule(
            label=I_LOVE_YOU, finger_count=5, confidence=0.9,
            description="Thumb, index, and pinky extended",
        ))

        return registry

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)
