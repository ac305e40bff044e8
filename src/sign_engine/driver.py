"""Fixed-rate frame driver.

Pulls frames from any iterable source (a camera generator, a list of images)
and feeds the pipeline at most once per tick. Frames that arrive before the
next tick are dropped; a slow frame never builds a backlog, the driver just
resumes with the next fresh frame.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Iterator, Optional

import numpy as np

from sign_engine.pipeline import DetectionSession, PipelineResult, SignPipeline

logger = logging.getLogger("sign_engine.driver")


class FrameDriver:
    def __init__(
        self,
        pipeline: SignPipeline,
        fps: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.pipeline = pipeline
        self.interval = 1.0 / fps
        self._clock = clock
        self.dropped = 0
        self.processed = 0

    def run(
        self,
        frames: Iterable[np.ndarray],
        session: Optional[DetectionSession] = None,
        max_frames: Optional[int] = None,
    ) -> Iterator[PipelineResult]:
        """Yield one result per processed frame."""
        next_tick = self._clock()

        for frame in frames:
            now = self._clock()
            if now < next_tick:
                self.dropped += 1
                continue

            result = self.pipeline.process_frame(frame, session=session, timestamp_ms=now * 1000.0)
            next_tick += self.interval
            after = self._clock()
            if next_tick <= after:
                # Missed ticks are skipped, not replayed.
                missed = int((after - next_tick) // self.interval) + 1
                next_tick += missed * self.interval

            if result is None:
                self.dropped += 1
                continue

            self.processed += 1
            yield result

            if max_frames is not None and self.processed >= max_frames:
                break

        logger.debug("Driver stopped: %d processed, %d dropped", self.processed, self.dropped)
