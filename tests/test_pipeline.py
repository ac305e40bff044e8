"""Tests for the end-to-end frame pipeline and its session state."""

import logging

import numpy as np
import pytest

from sign_engine.config import ConfigError, EngineConfig, Thresholds, get_preset
from sign_engine.gestures import GestureRegistry, GestureRule
from sign_engine.metrics import MetricsCollector
from sign_engine.pipeline import GestureUpdate, SignPipeline
from sign_engine.sequences import SymbolAccepted
from sign_engine.vocabulary import MatchFound, MatchKind, Vocabulary

SKIN = (200, 120, 90)
WIDTH, HEIGHT = 120, 100


def hand_frame(channels=3):
    """Dark frame with a 60x50 skin box; 2996 pixels survive the noise filter."""
    frame = np.full((HEIGHT, WIDTH, channels), 20, dtype=np.uint8)
    frame[25:75, 30:90, :3] = SKIN
    if channels == 4:
        frame[..., 3] = 255
    return frame


def blank_frame():
    return np.full((HEIGHT, WIDTH, 3), 20, dtype=np.uint8)


def h_registry():
    """Every finger count classifies as "H", so the box always yields one label."""
    registry = GestureRegistry()
    for n in range(1, 6):
        registry.register(GestureRule(label="H", finger_count=n, confidence=0.8))
    return registry


def make_pipeline(**kwargs):
    kwargs.setdefault("registry", h_registry())
    kwargs.setdefault("vocabulary", Vocabulary(shortcuts=(("HH", "HI"),)))
    return SignPipeline(**kwargs)


def run(pipeline, frames, start_ms=0.0, step_ms=100.0, session=None):
    return [
        pipeline.process_frame(f, session=session, timestamp_ms=start_ms + i * step_ms)
        for i, f in enumerate(frames)
    ]


class TestDetection:
    def test_hand_detected(self):
        blob_size, features, gesture = make_pipeline().detect(hand_frame())
        assert blob_size == 2996
        assert features.bounding_box.left == 30
        assert features.bounding_box.top == 25
        assert gesture.label == "H"

    def test_size_gate_is_strict(self):
        pipeline = make_pipeline()
        blob_size, features, gesture = pipeline.detect(hand_frame(), Thresholds(blob_min_size=2996))
        assert blob_size == 2996
        assert features is None
        assert gesture is None

    def test_blank_frame(self):
        blob_size, features, gesture = make_pipeline().detect(blank_frame())
        assert blob_size == 0
        assert features is None and gesture is None

    @pytest.mark.parametrize("frame", [
        np.zeros((10, 10), dtype=np.uint8),
        np.zeros((10, 10, 2), dtype=np.uint8),
        np.zeros((10, 10, 3), dtype=np.float32),
    ])
    def test_malformed_frames_rejected(self, frame):
        with pytest.raises(ValueError):
            make_pipeline().process_frame(frame)


class TestProcessFrame:
    def test_symbol_accepted_once_stable(self):
        pipeline = make_pipeline()
        results = run(pipeline, [hand_frame()] * 5)

        assert all(r.gesture == GestureUpdate("H", 0.8) for r in results)
        assert [r.stable_label for r in results] == [None, None, None, None, "H"]
        assert results[4].accepted == SymbolAccepted(label="H", sequence="H", timestamp_ms=400.0)
        assert results[4].match is None
        assert pipeline.session.sequence == "H"

    def test_cooldown_then_shortcut_match(self):
        pipeline = make_pipeline()
        results = run(pipeline, [hand_frame()] * 25)

        accepted = [r.accepted for r in results if r.accepted]
        assert [a.timestamp_ms for a in accepted] == [400.0, 2400.0]

        match = results[24].match
        assert match == MatchFound(kind=MatchKind.WORD, text="HI", meaning="HI", shortcut=True)
        assert pipeline.session.display.current == match

    def test_hand_loss_clears_history(self):
        pipeline = make_pipeline()
        run(pipeline, [hand_frame()] * 3)
        result = pipeline.process_frame(blank_frame(), timestamp_ms=300.0)

        assert result.gesture == GestureUpdate(None)
        assert not result.hand_detected
        assert pipeline.session.stabilizer.history == []

    def test_hand_loss_restarts_streak(self):
        pipeline = make_pipeline()
        frames = [hand_frame()] * 4 + [blank_frame()] + [hand_frame()] * 4
        results = run(pipeline, frames)
        assert all(r.stable_label is None for r in results)

    def test_unclassified_hand_recorded_as_no_match(self):
        registry = GestureRegistry()
        registry.register(GestureRule(label="H", finger_count=5, confidence=0.8, aspect_above=9.0))
        pipeline = make_pipeline(registry=registry)
        results = run(pipeline, [hand_frame()] * 6)

        assert all(r.hand_detected for r in results)
        assert all(r.gesture.label is None for r in results)
        assert all(r.stable_label is None for r in results)
        assert len(pipeline.session.stabilizer.history) == 6

    def test_per_call_thresholds(self):
        pipeline = make_pipeline()
        result = pipeline.process_frame(hand_frame(), thresholds=Thresholds(blob_min_size=5000))
        assert not result.hand_detected
        assert pipeline.thresholds == get_preset("normal")

    def test_sessions_are_independent(self):
        pipeline = make_pipeline()
        other = pipeline.new_session()
        run(pipeline, [hand_frame()] * 5)

        assert pipeline.session.sequence == "H"
        assert other.sequence == ""
        assert other.stabilizer.history == []

    def test_explicit_session(self):
        pipeline = make_pipeline()
        session = pipeline.new_session()
        run(pipeline, [hand_frame()] * 5, session=session)
        assert session.sequence == "H"
        assert pipeline.session.sequence == ""

    def test_session_clear(self):
        pipeline = make_pipeline()
        run(pipeline, [hand_frame()] * 25)
        pipeline.session.clear()

        assert pipeline.session.sequence == ""
        assert pipeline.session.display.current is None
        # Cooldown restarts with the buffer
        results = run(pipeline, [hand_frame()] * 5, start_ms=2500.0)
        assert results[4].accepted is not None


class TestBuffers:
    def test_rgb_buffer(self):
        pipeline = make_pipeline()
        result = pipeline.process_buffer(hand_frame().tobytes(), WIDTH, HEIGHT)
        assert result.blob_size == 2996

    def test_rgba_buffer(self):
        pipeline = make_pipeline()
        result = pipeline.process_buffer(hand_frame(channels=4).tobytes(), WIDTH, HEIGHT)
        assert result.blob_size == 2996
        assert result.gesture.label == "H"

    def test_bad_length(self):
        with pytest.raises(ValueError):
            make_pipeline().process_buffer(b"\x00" * 10, WIDTH, HEIGHT)


class TestEventsAndReentrancy:
    def test_events_dispatched_in_order(self):
        pipeline = make_pipeline()
        events = []
        pipeline.on_event(events.append)
        run(pipeline, [hand_frame()] * 25)

        kinds = [type(e) for e in events]
        assert kinds.count(GestureUpdate) == 25
        assert kinds.count(SymbolAccepted) == 2
        assert kinds.count(MatchFound) == 1
        # Match follows the acceptance that produced it
        assert kinds[-2:] == [SymbolAccepted, MatchFound]

    def test_overlapping_frame_dropped(self):
        pipeline = make_pipeline()
        nested = []

        def reenter(event):
            if isinstance(event, GestureUpdate) and not nested:
                assert pipeline.busy
                nested.append(pipeline.process_frame(hand_frame()))

        pipeline.on_event(reenter)
        result = pipeline.process_frame(hand_frame(), timestamp_ms=0.0)

        assert result is not None
        assert nested == [None]
        assert pipeline.stats.skipped_frames == 1
        assert pipeline.stats.total_frames == 1
        assert not pipeline.busy

    def test_callback_error_logged(self, caplog):
        pipeline = make_pipeline()

        def broken(event):
            raise RuntimeError("boom")

        seen = []
        pipeline.on_event(broken)
        pipeline.on_event(seen.append)

        with caplog.at_level(logging.ERROR, logger="sign_engine.pipeline"):
            result = pipeline.process_frame(hand_frame())

        assert result is not None
        assert len(seen) == 1
        assert "boom" in caplog.text


class TestPresetsAndReset:
    def test_set_preset(self):
        pipeline = make_pipeline()
        pipeline.set_preset("Dim")
        assert pipeline.preset == "dim"
        assert pipeline.thresholds == get_preset("dim")
        assert pipeline.pixel_classifier.thresholds == get_preset("dim")

    def test_unknown_preset(self):
        pipeline = make_pipeline()
        with pytest.raises(ConfigError):
            pipeline.set_preset("neon")
        assert pipeline.preset == "normal"

    def test_config_preset(self):
        pipeline = make_pipeline(config=EngineConfig.from_dict({"preset": "bright"}))
        assert pipeline.thresholds == get_preset("bright")

    def test_config_preset_without_dict(self):
        pipeline = make_pipeline(config=EngineConfig(preset="dim"))
        assert pipeline.preset == "dim"
        assert pipeline.thresholds.blob_min_size == 1200
        assert pipeline.pixel_classifier.thresholds == get_preset("dim")

    def test_reset_restores_normal(self):
        pipeline = make_pipeline()
        pipeline.set_preset("bright")
        run(pipeline, [hand_frame()] * 5)
        pipeline.reset()

        assert pipeline.preset == "normal"
        assert pipeline.session.sequence == ""
        assert pipeline.stats.total_frames == 0
        assert pipeline.stats.total_symbols == 0

    def test_replay_after_reset_is_identical(self):
        pipeline = make_pipeline()
        frames = [hand_frame()] * 12 + [blank_frame()] * 2 + [hand_frame()] * 14

        def summarize(results):
            return [(r.gesture, r.blob_size, r.stable_label, r.accepted, r.match) for r in results]

        first = summarize(run(pipeline, frames))
        pipeline.reset()
        second = summarize(run(pipeline, frames))
        assert first == second


class TestStats:
    def test_counters(self):
        pipeline = make_pipeline()
        run(pipeline, [hand_frame()] * 25)
        stats = pipeline.stats

        assert stats.total_frames == 25
        assert stats.total_symbols == 2
        assert stats.total_matches == 1
        assert stats.avg_latency_ms > 0
        assert "segmentation" in stats.profiler_summary
        assert stats.profiler_summary["frame"]["calls"] == 25

    def test_profiling_disabled(self):
        pipeline = make_pipeline(enable_profiling=False)
        run(pipeline, [hand_frame()] * 2)
        assert pipeline.stats.profiler_summary == {}

    def test_metrics_collected(self):
        metrics = MetricsCollector()
        pipeline = make_pipeline(metrics=metrics)
        run(pipeline, [hand_frame()] * 5 + [blank_frame()])

        assert metrics.frames_total == 6
        assert metrics.gesture_counts == {"H": 5}
        output = metrics.render()
        assert 'sign_engine_symbols_accepted_total{label="H"} 1' in output

    def test_frame_budget_passed_to_profiler(self):
        pipeline = make_pipeline(frame_budget_ms=1e-6)
        run(pipeline, [hand_frame()] * 3)
        assert pipeline.profiler.over_budget == 3
