"""Tests for Prometheus metrics."""

from sign_engine.metrics import MetricsCollector


class TestMetricsCollector:
    def test_record_gesture(self):
        m = MetricsCollector()
        m.record_gesture("A")
        m.record_gesture("A")
        m.record_gesture("V")
        assert m.gesture_counts == {"A": 2, "V": 1}

    def test_record_frame(self):
        m = MetricsCollector()
        m.record_frame(0.005, True)
        m.record_frame(0.010, False)
        m.record_skipped()
        assert m.frames_total == 2
        assert m.frames_skipped == 1

    def test_render_prometheus_format(self):
        m = MetricsCollector()
        m.record_gesture("W")
        m.record_symbol("W")
        m.record_match("word")
        m.record_frame(0.005, True)

        output = m.render()
        assert 'sign_engine_gestures_total{label="W"} 1' in output
        assert 'sign_engine_symbols_accepted_total{label="W"} 1' in output
        assert 'sign_engine_matches_total{kind="word"} 1' in output
        assert "sign_engine_frames_total 1" in output
        assert "sign_engine_frames_skipped_total 0" in output
        assert "# HELP" in output
        assert "# TYPE" in output

    def test_histogram_buckets_are_cumulative(self):
        m = MetricsCollector()
        for _ in range(10):
            m.record_frame(0.003, True)
        m.record_frame(0.3, True)

        output = m.render()
        assert 'sign_engine_frame_latency_seconds_bucket{le="0.005"} 10' in output
        assert 'sign_engine_frame_latency_seconds_bucket{le="0.5"} 11' in output
        assert 'sign_engine_frame_latency_seconds_bucket{le="+Inf"} 11' in output
        assert "sign_engine_frame_latency_seconds_count 11" in output

    def test_detection_rate_moves_toward_hits(self):
        m = MetricsCollector()
        m.record_frame(0.001, True)
        assert "sign_engine_hand_detection_rate 0.0500" in m.render()
