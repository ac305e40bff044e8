"""Temporal stabilization of per-frame gesture labels.

A label is emitted only once it dominates a window of recent frames. This
suppresses flicker between adjacent frames, at the cost of roughly half a
window of latency before a newly held sign is recognized.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from typing import Optional

from sign_engine.gestures import DISPLAY_ONLY_LABELS

logger = logging.getLogger("sign_engine.stabilizer")

# Pushed for frames where a hand was seen but no rule matched.
NO_MATCH = ""


class TemporalStabilizer:
    """Majority vote over a bounded history of recent labels."""

    def __init__(
        self,
        history_size: int = 10,
        min_history: int = 5,
        stability_cutoff: float = 0.6,
    ):
        if history_size < 1:
            raise ValueError("history_size must be >= 1")
        if not 1 <= min_history <= history_size:
            raise ValueError("min_history must be between 1 and history_size")
        if not 0.0 < stability_cutoff <= 1.0:
            raise ValueError("stability_cutoff must be in (0, 1]")
        self.history_size = history_size
        self.min_history = min_history
        self.stability_cutoff = stability_cutoff
        self._history: deque[str] = deque(maxlen=history_size)

    def update(self, label: Optional[str]) -> Optional[str]:
        """Record one frame's label (None for "no match") and decide.

        Returns:
            The stable label, or None if nothing dominates yet.
        """
        self._history.append(label if label is not None else NO_MATCH)
        return self.decide()

    def decide(self) -> Optional[str]:
        if len(self._history) < self.min_history:
            return None

        # Counter keeps insertion order, so ties go to the earliest label.
        label, count = Counter(self._history).most_common(1)[0]
        if label == NO_MATCH:
            return None
        if count / len(self._history) >= self.stability_cutoff:
            return label
        return None

    def hand_lost(self):
        """Drop the running streak when no hand is in frame."""
        if self._history:
            logger.debug("Hand lost, clearing %d history entries", len(self._history))
        self._history.clear()

    @staticmethod
    def is_forwardable(label: Optional[str]) -> bool:
        """Whether a stable label may be appended to the letter sequence."""
        return bool(label) and label not in DISPLAY_ONLY_LABELS

    @property
    def history(self) -> list[str]:
        return list(self._history)

    def reset(self):
        self._history.clear()
