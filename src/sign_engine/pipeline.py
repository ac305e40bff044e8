"""Frame-to-symbol pipeline with explicit per-session state.

One call to `SignPipeline.process_frame` runs every stage for one frame:
segmentation → denoise → blob → features → classification → stabilization →
sequence accumulation → vocabulary matching. Frame-scoped data never outlives
the call; cross-frame state lives only in a `DetectionSession`.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

import numpy as np

from sign_engine.blobs import BlobExtractor
from sign_engine.classifier import Gesture, GestureClassifier
from sign_engine.config import DEFAULT_PRESET, EngineConfig, Thresholds, get_preset
from sign_engine.features import FeatureExtractor, FeatureSet
from sign_engine.gestures import GestureRegistry
from sign_engine.metrics import MetricsCollector
from sign_engine.profiler import PipelineProfiler
from sign_engine.segmentation import NoiseFilter, PixelClassifier
from sign_engine.sequences import SequenceAccumulator, SymbolAccepted
from sign_engine.stabilizer import TemporalStabilizer
from sign_engine.vocabulary import DisplayState, MatchFound, Vocabulary, VocabularyMatcher

logger = logging.getLogger("sign_engine.pipeline")


@dataclass(frozen=True)
class GestureUpdate:
    """Per-frame classification. `label` is None when no gesture was found."""
    label: Optional[str]
    confidence: float = 0.0

    @classmethod
    def from_gesture(cls, gesture: Optional[Gesture]) -> GestureUpdate:
        if gesture is None:
            return cls(label=None, confidence=0.0)
        return cls(label=gesture.label, confidence=gesture.confidence)


PipelineEvent = Union[GestureUpdate, SymbolAccepted, MatchFound]


@dataclass
class PipelineResult:
    """Everything one frame produced."""
    gesture: GestureUpdate
    blob_size: int
    features: Optional[FeatureSet] = None
    stable_label: Optional[str] = None
    accepted: Optional[SymbolAccepted] = None
    match: Optional[MatchFound] = None

    @property
    def hand_detected(self) -> bool:
        return self.features is not None

    @property
    def events(self) -> list[PipelineEvent]:
        events: list[PipelineEvent] = [self.gesture]
        if self.accepted is not None:
            events.append(self.accepted)
        if self.match is not None:
            events.append(self.match)
        return events


@dataclass
class PipelineStats:
    """Runtime performance statistics."""
    fps: float
    avg_latency_ms: float
    total_frames: int
    skipped_frames: int
    total_symbols: int
    total_matches: int
    profiler_summary: dict = field(default_factory=dict)


class DetectionSession:
    """Session-scoped state: stabilizer history, symbol buffer, display.

    A session starts when detection is enabled and ends when it is stopped
    or cleared. Nothing here is shared between sessions.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        config = config or EngineConfig()
        self.stabilizer = TemporalStabilizer(
            history_size=config.history_size,
            min_history=config.min_history,
            stability_cutoff=config.stability_cutoff,
        )
        self.accumulator = SequenceAccumulator(
            cooldown_ms=config.cooldown_ms,
            max_symbols=config.max_symbols,
            suppress_repeats=config.suppress_repeats,
        )
        self.display = DisplayState()

    @property
    def sequence(self) -> str:
        return self.accumulator.text

    def clear(self):
        """The user-facing "clear" action."""
        self.stabilizer.reset()
        self.accumulator.clear()
        self.display.clear()


class SignPipeline:
    """End-to-end pipeline: frame → gesture → stable symbol → vocabulary match.

    Features:
    - Runtime-switchable lighting presets
    - At-most-one frame in flight; overlapping calls are dropped, not queued
    - Per-stage profiling and optional Prometheus-style metrics
    - Callback system for pipeline events
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        vocabulary: Optional[Vocabulary] = None,
        registry: Optional[GestureRegistry] = None,
        metrics: Optional[MetricsCollector] = None,
        enable_profiling: bool = True,
        frame_budget_ms: float = 100.0,
    ):
        self.config = config or EngineConfig()
        self.thresholds: Thresholds = self.config.thresholds
        self.preset: str = self.config.preset

        self.pixel_classifier = PixelClassifier(self.thresholds)
        self.noise_filter = NoiseFilter()
        self.blob_extractor = BlobExtractor()
        self.feature_extractor = FeatureExtractor()
        self.classifier = GestureClassifier(
            registry=registry, min_confidence=self.config.min_confidence,
        )
        self.matcher = VocabularyMatcher(vocabulary)
        self.metrics = metrics

        self.session = self.new_session()

        self._callbacks: list[Callable[[PipelineEvent], None]] = []
        self._busy = threading.Lock()
        # Guards _skipped_frames, which changes without holding _busy.
        self._skip_lock = threading.Lock()
        self._frame_times: deque = deque(maxlen=60)
        self._total_frames = 0
        self._skipped_frames = 0
        self._total_symbols = 0
        self._total_matches = 0

        self.profiler = PipelineProfiler(frame_budget_ms=frame_budget_ms, enabled=enable_profiling)

    def new_session(self) -> DetectionSession:
        return DetectionSession(self.config)

    def on_event(self, callback: Callable[[PipelineEvent], None]):
        """Register a callback for every event a frame produces."""
        self._callbacks.append(callback)

    def set_preset(self, name: str):
        """Switch lighting preset; takes effect on the next frame."""
        self.thresholds = get_preset(name)
        self.preset = name.lower()
        self.pixel_classifier.thresholds = self.thresholds
        logger.info("Switched to '%s' preset", self.preset)

    def detect(
        self, frame: np.ndarray, thresholds: Optional[Thresholds] = None
    ) -> tuple[int, Optional[FeatureSet], Optional[Gesture]]:
        """Run the frame-scoped stages only (no session state touched).

        Returns:
            (blob_size, features, gesture). Features and gesture are None when
            the largest blob does not exceed the minimum hand size.
        """
        frame = _validate_frame(frame)
        t = thresholds or self.thresholds
        height, width = frame.shape[:2]

        with self.profiler.stage("segmentation"):
            mask = self.pixel_classifier.classify(frame, t)

        with self.profiler.stage("denoise"):
            mask = self.noise_filter.apply(mask)

        with self.profiler.stage("blob_extraction"):
            blob = self.blob_extractor.extract(mask)

        # Hard size gate: small blobs are "no hand", not low-confidence hands.
        if blob.size <= t.blob_min_size:
            return blob.size, None, None

        with self.profiler.stage("feature_extraction"):
            features = self.feature_extractor.extract(blob, width, height)

        with self.profiler.stage("classification"):
            gesture = self.classifier.classify(features)

        return blob.size, features, gesture

    def process_frame(
        self,
        frame: np.ndarray,
        session: Optional[DetectionSession] = None,
        thresholds: Optional[Thresholds] = None,
        timestamp_ms: Optional[float] = None,
    ) -> Optional[PipelineResult]:
        """Process one frame through every stage.

        Args:
            frame: RGB or RGBA image, shape (H, W, 3|4), uint8.
            session: Session state to update; defaults to `self.session`.
            thresholds: Per-call threshold override.
            timestamp_ms: Frame time for the cooldown; defaults to now.

        Returns:
            PipelineResult, or None if another frame is still in flight.
        """
        if not self._busy.acquire(blocking=False):
            with self._skip_lock:
                self._skipped_frames += 1
            if self.metrics:
                self.metrics.record_skipped()
            logger.warning("Pipeline busy, dropping frame")
            return None

        try:
            with self.profiler.frame():
                return self._process(frame, session or self.session, thresholds, timestamp_ms)
        finally:
            self._busy.release()

    def process_buffer(
        self,
        buffer: bytes,
        width: int,
        height: int,
        session: Optional[DetectionSession] = None,
        thresholds: Optional[Thresholds] = None,
        timestamp_ms: Optional[float] = None,
    ) -> Optional[PipelineResult]:
        """Process a raw interleaved RGB or RGBA byte buffer."""
        data = np.frombuffer(buffer, dtype=np.uint8)
        pixels = width * height
        if pixels <= 0 or data.size % pixels != 0 or data.size // pixels not in (3, 4):
            raise ValueError(
                f"Buffer of {data.size} bytes does not match a {width}x{height} RGB/RGBA frame"
            )
        frame = data.reshape(height, width, data.size // pixels)
        return self.process_frame(frame, session, thresholds, timestamp_ms)

    def _process(
        self,
        frame: np.ndarray,
        session: DetectionSession,
        thresholds: Optional[Thresholds],
        timestamp_ms: Optional[float],
    ) -> PipelineResult:
        t_start = time.perf_counter()
        now_ms = timestamp_ms if timestamp_ms is not None else time.monotonic() * 1000.0
        self._total_frames += 1

        blob_size, features, gesture = self.detect(frame, thresholds)
        result = PipelineResult(
            gesture=GestureUpdate.from_gesture(gesture),
            blob_size=blob_size,
            features=features,
        )

        with self.profiler.stage("stabilization"):
            if features is None:
                session.stabilizer.hand_lost()
            else:
                result.stable_label = session.stabilizer.update(
                    gesture.label if gesture else None
                )

        if session.stabilizer.is_forwardable(result.stable_label):
            with self.profiler.stage("sequence_matching"):
                result.accepted = session.accumulator.accept(result.stable_label, now_ms)
                if result.accepted is not None:
                    self._total_symbols += 1
                    logger.info("Symbol accepted: %s (sequence %s)",
                                result.accepted.label, result.accepted.sequence)
                    result.match = self.matcher.match(session.accumulator.symbols)
                    if result.match is not None:
                        self._total_matches += 1
                        session.display.apply(result.match)
                        logger.info("%s match: %s",
                                    result.match.kind.value.capitalize(), result.match.text)

        elapsed = time.perf_counter() - t_start
        self._frame_times.append(elapsed)
        self._record_metrics(result, elapsed)

        for event in result.events:
            self._dispatch(event)

        return result

    def _record_metrics(self, result: PipelineResult, elapsed: float):
        if not self.metrics:
            return
        self.metrics.record_frame(elapsed, result.hand_detected)
        if result.gesture.label is not None:
            self.metrics.record_gesture(result.gesture.label)
        if result.accepted is not None:
            self.metrics.record_symbol(result.accepted.label)
        if result.match is not None:
            self.metrics.record_match(result.match.kind.value)

    def _dispatch(self, event: PipelineEvent):
        for cb in self._callbacks:
            try:
                cb(event)
            except Exception as e:
                logger.error("Event callback %r failed: %s", cb, e)

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    @property
    def stats(self) -> PipelineStats:
        """Get current performance statistics."""
        if self._frame_times:
            avg_latency = sum(self._frame_times) / len(self._frame_times)
            fps = 1.0 / avg_latency if avg_latency > 0 else 0.0
        else:
            avg_latency = 0.0
            fps = 0.0

        return PipelineStats(
            fps=fps,
            avg_latency_ms=avg_latency * 1000,
            total_frames=self._total_frames,
            skipped_frames=self._skipped_frames,
            total_symbols=self._total_symbols,
            total_matches=self._total_matches,
            profiler_summary=self.profiler.summary(),
        )

    def reset(self):
        """Restore the normal preset and clear all session and runtime state."""
        self.set_preset(DEFAULT_PRESET)
        self.session.clear()
        self._frame_times.clear()
        self._total_frames = 0
        self._skipped_frames = 0
        self._total_symbols = 0
        self._total_matches = 0
        self.profiler.reset()


def _validate_frame(frame: np.ndarray) -> np.ndarray:
    frame = np.asarray(frame)
    if frame.ndim != 3 or frame.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (H, W, 3) or (H, W, 4) frame, got shape {frame.shape}")
    if frame.dtype != np.uint8:
        raise ValueError(f"Expected a uint8 frame, got {frame.dtype}")
    return frame
