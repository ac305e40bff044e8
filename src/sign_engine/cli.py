"""SignEngine CLI.

Usage:
    sign-engine process    — Run image files through one detection session
    sign-engine watch      — Live detection from a camera
    sign-engine benchmark  — Time the pipeline on synthetic frames
    sign-engine presets    — List lighting presets
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import numpy as np
import typer

from sign_engine.config import PRESETS, ConfigError, EngineConfig

app = typer.Typer(
    name="sign-engine",
    help="Classical hand sign recognition for resource-constrained hardware.",
    add_completion=False,
)

# Skin tone that sits inside every built-in preset.
_SKIN_RGB = (200, 120, 90)


@app.callback()
def main_options(
    log_level: str = typer.Option("warning", help="Log level"),
):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config: Optional[str], preset: Optional[str]) -> EngineConfig:
    try:
        cfg = EngineConfig.from_yaml(config) if config else EngineConfig()
        if preset:
            cfg = EngineConfig.from_dict({**cfg.to_dict(), "preset": preset, "thresholds": None})
    except (ConfigError, OSError) as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(1)
    return cfg


def _build_pipeline(cfg: EngineConfig, vocabulary: Optional[str], metrics=None):
    from sign_engine.pipeline import SignPipeline
    from sign_engine.vocabulary import Vocabulary

    try:
        vocab = Vocabulary.from_yaml(vocabulary) if vocabulary else None
    except (ConfigError, OSError) as e:
        typer.echo(f"❌ Invalid vocabulary: {e}", err=True)
        raise typer.Exit(1)
    return SignPipeline(config=cfg, vocabulary=vocab, metrics=metrics)


def _describe(result) -> str:
    g = result.gesture
    parts = [f"blob={result.blob_size}"]
    if g.label is None:
        parts.append("gesture=none")
    else:
        parts.append(f"gesture={g.label} ({g.confidence:.2f})")
    if result.stable_label:
        parts.append(f"stable={result.stable_label}")
    return "  ".join(parts)


def _echo_events(result):
    if result.accepted:
        typer.echo(f"   ✅ accepted {result.accepted.label} → {result.accepted.sequence}")
    if result.match:
        typer.echo(f"   💬 {result.match.kind.value}: {result.match.meaning or result.match.text}")


@app.command()
def process(
    images: list[str] = typer.Argument(..., help="Image files, processed in order"),
    preset: Optional[str] = typer.Option(None, help="Lighting preset: bright, normal, dim"),
    config: Optional[str] = typer.Option(None, help="Path to engine config YAML"),
    vocabulary: Optional[str] = typer.Option(None, help="Path to vocabulary YAML"),
    repeat: int = typer.Option(1, help="Feed each image this many times (simulates holding a sign)"),
    interval_ms: float = typer.Option(100.0, help="Simulated time between frames"),
):
    """Run image files through the pipeline as one detection session."""
    import cv2

    cfg = _load_config(config, preset)
    pipeline = _build_pipeline(cfg, vocabulary)

    t_ms = 0.0
    for name in images:
        bgr = cv2.imread(name)
        if bgr is None:
            typer.echo(f"❌ Could not read image: {name}", err=True)
            raise typer.Exit(1)
        frame = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

        for _ in range(repeat):
            result = pipeline.process_frame(frame, timestamp_ms=t_ms)
            t_ms += interval_ms
            typer.echo(f"{Path(name).name}: {_describe(result)}")
            _echo_events(result)

    typer.echo(f"\n🔤 Sequence: {pipeline.session.sequence or '(empty)'}")
    current = pipeline.session.display.current
    if current:
        typer.echo(f"💬 Showing: {current.meaning or current.text}")


@app.command()
def watch(
    camera: int = typer.Option(0, help="Camera device index"),
    fps: float = typer.Option(10.0, min=0.1, help="Pipeline ticks per second"),
    preset: Optional[str] = typer.Option(None, help="Lighting preset: bright, normal, dim"),
    config: Optional[str] = typer.Option(None, help="Path to engine config YAML"),
    vocabulary: Optional[str] = typer.Option(None, help="Path to vocabulary YAML"),
):
    """Run live detection from a camera until Ctrl+C."""
    import cv2
    from sign_engine.driver import FrameDriver

    cfg = _load_config(config, preset)
    pipeline = _build_pipeline(cfg, vocabulary)
    pipeline.profiler.frame_budget_ms = 1000.0 / fps

    cap = cv2.VideoCapture(camera)
    if not cap.isOpened():
        typer.echo(f"❌ Could not open camera {camera}", err=True)
        raise typer.Exit(1)

    def frames():
        while True:
            ret, bgr = cap.read()
            if not ret:
                continue
            yield cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    driver = FrameDriver(pipeline, fps=fps)
    typer.echo(f"🎥 Watching camera {camera} at {fps:.0f} fps ({pipeline.preset} preset)")
    typer.echo("   Press Ctrl+C to stop")

    try:
        for result in driver.run(frames()):
            if result.stable_label:
                typer.echo(f"\r   {_describe(result)}   ", nl=False)
            if result.accepted or result.match:
                typer.echo("")
                _echo_events(result)
    except KeyboardInterrupt:
        pass
    finally:
        cap.release()

    stats = pipeline.stats
    typer.echo(f"\n\n📊 {stats.total_frames} frames, {driver.dropped} dropped, "
               f"avg {stats.avg_latency_ms:.1f} ms/frame, {pipeline.profiler.over_budget} over budget")
    typer.echo(f"🔤 Sequence: {pipeline.session.sequence or '(empty)'}")


def _synthetic_hand(width: int, height: int, fingers: int, rng: np.random.Generator) -> np.ndarray:
    """Dark frame with a skin-colored palm and `fingers` stripes above it."""
    frame = rng.integers(0, 40, size=(height, width, 3), dtype=np.uint8)
    cx, cy = width // 2, height // 2 + height // 8
    palm = min(width, height) // 5
    frame[cy - palm:cy + palm, cx - palm:cx + palm] = _SKIN_RGB

    finger_w = max(2, palm // 4)
    span = 2 * palm
    for i in range(fingers):
        x = cx - palm + (i * span) // max(1, fingers) + finger_w // 2
        frame[max(0, cy - palm - palm):cy - palm, x:x + finger_w] = _SKIN_RGB
    return frame


@app.command()
def benchmark(
    iterations: int = typer.Option(100, help="Number of frames"),
    width: int = typer.Option(320, help="Frame width"),
    height: int = typer.Option(240, help="Frame height"),
    show_metrics: bool = typer.Option(False, "--metrics", help="Print Prometheus metrics afterwards"),
):
    """Run performance benchmarks on synthetic frames."""
    from sign_engine.metrics import MetricsCollector

    cfg = EngineConfig.from_dict({"thresholds": {"blob_min_size": (width * height) // 100}})
    metrics = MetricsCollector()
    pipeline = _build_pipeline(cfg, None, metrics=metrics)

    rng = np.random.default_rng(42)
    frames = [_synthetic_hand(width, height, n, rng) for n in range(1, 6)]

    typer.echo(f"⚡ Running benchmark: {iterations} frames at {width}x{height}")

    times = []
    for i in range(iterations):
        t0 = time.perf_counter()
        pipeline.process_frame(frames[i % len(frames)], timestamp_ms=i * 100.0)
        times.append(time.perf_counter() - t0)

    avg_ms = sum(times) / len(times) * 1000
    p95_ms = sorted(times)[int(len(times) * 0.95)] * 1000
    fps = 1000 / avg_ms if avg_ms > 0 else 0

    typer.echo("\n📊 Results:")
    typer.echo(f"   Average latency: {avg_ms:.2f} ms")
    typer.echo(f"   P95 latency:     {p95_ms:.2f} ms")
    typer.echo(f"   Throughput:      {fps:.0f} FPS")

    typer.echo("\n📈 Stage breakdown:")
    for name, stats in pipeline.profiler.summary().items():
        typer.echo(f"   {name:20s} avg={stats['avg_ms']:.3f}ms  p95={stats['p95_ms']:.3f}ms")

    if show_metrics:
        typer.echo("")
        typer.echo(metrics.render())


@app.command()
def presets():
    """List the built-in lighting presets."""
    for name, t in PRESETS.items():
        lo = ", ".join(f"{c:.2f}" for c in t.skin_lower_hsv)
        hi = ", ".join(f"{c:.2f}" for c in t.skin_upper_hsv)
        typer.echo(f"{name:8s} hsv=[{lo}]..[{hi}]  blob_min_size={t.blob_min_size}")


def main():
    app()


if __name__ == "__main__":
    main()
