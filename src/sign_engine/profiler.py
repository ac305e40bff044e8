"""Stage and frame timing against the per-frame budget.

A frame has to be fully processed before the driver's next tick, so the
profiler keeps rolling timings for each stage in execution order and counts
the frames that overran the budget (100 ms at the default 10 fps).
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

# Execution order of one frame through SignPipeline.
FRAME_STAGES = (
    "segmentation",
    "denoise",
    "blob_extraction",
    "feature_extraction",
    "classification",
    "stabilization",
    "sequence_matching",
)


@dataclass
class StageStats:
    name: str
    avg_ms: float
    p95_ms: float
    calls: int


def _stats(name: str, timings: Iterable[float], calls: int) -> Optional[StageStats]:
    ordered = sorted(timings)
    if not ordered:
        return None
    n = len(ordered)
    return StageStats(
        name=name,
        avg_ms=sum(ordered) / n,
        p95_ms=ordered[min(n - 1, int(n * 0.95))],
        calls=calls,
    )


class PipelineProfiler:
    """Rolling per-stage and per-frame timings.

    Usage:
        profiler = PipelineProfiler(frame_budget_ms=100.0)

        with profiler.frame():
            with profiler.stage("segmentation"):
                mask = pixel_classifier.classify(frame)
            ...

        profiler.summary()
    """

    def __init__(
        self,
        frame_budget_ms: float = 100.0,
        window_size: int = 120,
        enabled: bool = True,
    ):
        if frame_budget_ms <= 0:
            raise ValueError("frame_budget_ms must be positive")
        self.frame_budget_ms = frame_budget_ms
        self.enabled = enabled
        self._stages: dict[str, deque[float]] = {
            s: deque(maxlen=window_size) for s in FRAME_STAGES
        }
        self._calls = dict.fromkeys(FRAME_STAGES, 0)
        self._frames: deque[float] = deque(maxlen=window_size)
        self._frame_count = 0
        self._over_budget = 0

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time one pipeline stage. Unknown stage names are rejected."""
        if name not in self._stages:
            raise ValueError(f"Unknown pipeline stage '{name}'")
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._stages[name].append((time.perf_counter() - t0) * 1000.0)
            self._calls[name] += 1

    @contextmanager
    def frame(self) -> Iterator[None]:
        """Time a whole frame and check it against the budget."""
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - t0) * 1000.0
            self._frames.append(elapsed_ms)
            self._frame_count += 1
            if elapsed_ms > self.frame_budget_ms:
                self._over_budget += 1

    def get_stage_stats(self, name: str) -> Optional[StageStats]:
        return _stats(name, self._stages.get(name, ()), self._calls.get(name, 0))

    def frame_stats(self) -> Optional[StageStats]:
        return _stats("frame", self._frames, self._frame_count)

    @property
    def over_budget(self) -> int:
        """Frames that took longer than `frame_budget_ms`."""
        return self._over_budget

    def summary(self) -> dict[str, dict]:
        """Stages that have run, in pipeline order, followed by the frame total."""
        result = {}
        for name in FRAME_STAGES:
            stats = self.get_stage_stats(name)
            if stats:
                result[name] = {
                    "avg_ms": round(stats.avg_ms, 3),
                    "p95_ms": round(stats.p95_ms, 3),
                    "calls": stats.calls,
                }

        frame = self.frame_stats()
        if frame:
            result["frame"] = {
                "avg_ms": round(frame.avg_ms, 3),
                "p95_ms": round(frame.p95_ms, 3),
                "calls": frame.calls,
                "over_budget": self._over_budget,
            }
        return result

    def reset(self):
        for timings in self._stages.values():
            timings.clear()
        self._calls = dict.fromkeys(FRAME_STAGES, 0)
        self._frames.clear()
        self._frame_count = 0
        self._over_budget = 0
