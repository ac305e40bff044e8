"""Prometheus-compatible metrics for SignEngine.

Renders the Prometheus text exposition format directly; the host
application decides whether and where to serve it.

Tracked metrics:
- sign_engine_frames_total (counter)
- sign_engine_frames_skipped_total (counter, frames dropped while busy)
- sign_engine_gestures_total (counter, by label)
- sign_engine_symbols_accepted_total (counter, by label)
- sign_engine_matches_total (counter, by kind)
- sign_engine_frame_latency_seconds (histogram)
- sign_engine_hand_detection_rate (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Collects pipeline counters and renders them for Prometheus."""

    def __init__(self):
        self._gesture_counts: Counter = Counter()
        self._symbol_counts: Counter = Counter()
        self._match_counts: Counter = Counter()
        self._frames_total = 0
        self._frames_skipped = 0
        self._hand_detection_rate = 0.0
        self._lock = threading.Lock()

        # Frame budget at 10-20 fps is 50-100 ms
        self._latency = _Histogram(
            [0.005, 0.010, 0.020, 0.050, 0.100, 0.200, 0.500]
        )

        self._start_time = time.time()

    def record_frame(self, latency_seconds: float, hand_detected: bool):
        with self._lock:
            self._frames_total += 1
            rate = 1.0 if hand_detected else 0.0
            self._hand_detection_rate = 0.95 * self._hand_detection_rate + 0.05 * rate
        self._latency.observe(latency_seconds)

    def record_skipped(self):
        with self._lock:
            self._frames_skipped += 1

    def record_gesture(self, label: str):
        with self._lock:
            self._gesture_counts[label] += 1

    def record_symbol(self, label: str):
        with self._lock:
            self._symbol_counts[label] += 1

    def record_match(self, kind: str):
        with self._lock:
            self._match_counts[kind] += 1

    def _render_counter(self, lines: list[str], name: str, help_text: str, label: str, counts: Counter):
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} counter")
        with self._lock:
            for key, count in sorted(counts.items()):
                lines.append(f'{name}{{{label}="{key}"}} {count}')
        lines.append("")

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP sign_engine_uptime_seconds Time since collector creation")
        lines.append("# TYPE sign_engine_uptime_seconds gauge")
        lines.append(f"sign_engine_uptime_seconds {uptime:.1f}")
        lines.append("")

        lines.append("# HELP sign_engine_frames_total Total frames processed")
        lines.append("# TYPE sign_engine_frames_total counter")
        lines.append(f"sign_engine_frames_total {self._frames_total}")
        lines.append("")

        lines.append("# HELP sign_engine_frames_skipped_total Frames dropped because the pipeline was busy")
        lines.append("# TYPE sign_engine_frames_skipped_total counter")
        lines.append(f"sign_engine_frames_skipped_total {self._frames_skipped}")
        lines.append("")

        self._render_counter(
            lines, "sign_engine_gestures_total",
            "Per-frame gesture classifications by label", "label", self._gesture_counts,
        )
        self._render_counter(
            lines, "sign_engine_symbols_accepted_total",
            "Symbols accepted into the sequence by label", "label", self._symbol_counts,
        )
        self._render_counter(
            lines, "sign_engine_matches_total",
            "Vocabulary matches by kind", "kind", self._match_counts,
        )

        lines.append(self._latency.render(
            "sign_engine_frame_latency_seconds",
            "Frame processing latency in seconds",
        ))
        lines.append("")

        lines.append("# HELP sign_engine_hand_detection_rate Exponential moving average of hand detection")
        lines.append("# TYPE sign_engine_hand_detection_rate gauge")
        lines.append(f"sign_engine_hand_detection_rate {self._hand_detection_rate:.4f}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def gesture_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._gesture_counts)

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def frames_skipped(self) -> int:
        return self._frames_skipped
