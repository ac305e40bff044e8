"""Tests for the command-line interface."""

import cv2
import numpy as np
import yaml
from typer.testing import CliRunner

from sign_engine.cli import app

runner = CliRunner()


def write_hand_image(path):
    frame = np.full((100, 120, 3), 20, dtype=np.uint8)
    frame[25:75, 30:90] = (200, 120, 90)
    cv2.imwrite(str(path), cv2.cvtColor(frame, cv2.COLOR_RGB2BGR))
    return path


class TestCLI:
    def test_presets(self):
        result = runner.invoke(app, ["presets"])
        assert result.exit_code == 0
        for name in ("bright", "normal", "dim"):
            assert name in result.output

    def test_benchmark(self):
        result = runner.invoke(app, [
            "benchmark", "--iterations", "5", "--width", "160", "--height", "120", "--metrics",
        ])
        assert result.exit_code == 0
        assert "Average latency" in result.output
        assert "sign_engine_frames_total 5" in result.output

    def test_process_image(self, tmp_path):
        path = write_hand_image(tmp_path / "hand.png")
        result = runner.invoke(app, ["process", str(path), "--repeat", "6"])
        assert result.exit_code == 0
        assert "blob=2996" in result.output
        assert "Sequence:" in result.output

    def test_process_missing_image(self, tmp_path):
        result = runner.invoke(app, ["process", str(tmp_path / "missing.png")])
        assert result.exit_code == 1

    def test_unknown_preset(self, tmp_path):
        path = write_hand_image(tmp_path / "hand.png")
        result = runner.invoke(app, ["process", str(path), "--preset", "neon"])
        assert result.exit_code == 1

    def test_config_file(self, tmp_path):
        config = tmp_path / "engine.yml"
        config.write_text(yaml.dump({"thresholds": {"blob_min_size": 5000}}))
        path = write_hand_image(tmp_path / "hand.png")

        result = runner.invoke(app, ["process", str(path), "--config", str(config)])
        assert result.exit_code == 0
        assert "gesture=none" in result.output

    def test_invalid_config_file(self, tmp_path):
        config = tmp_path / "engine.yml"
        config.write_text(yaml.dump({"history_size": 0}))
        path = write_hand_image(tmp_path / "hand.png")

        result = runner.invoke(app, ["process", str(path), "--config", str(config)])
        assert result.exit_code == 1

    def test_unquoted_vocabulary_file(self, tmp_path):
        vocab = tmp_path / "vocab.yml"
        vocab.write_text("words: [HELLO, YES, NO]\n")
        path = write_hand_image(tmp_path / "hand.png")

        result = runner.invoke(app, ["process", str(path), "--vocabulary", str(vocab)])
        assert result.exit_code == 1
