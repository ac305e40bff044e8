"""Geometric hand features computed from the blob."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from sign_engine.blobs import Blob

MIN_FINGERS = 1
MAX_FINGERS = 5


@dataclass(frozen=True)
class BoundingBox:
    left: int
    right: int
    top: int
    bottom: int


@dataclass(frozen=True)
class FeatureSet:
    """Shape summary of one hand blob.

    `aspect_ratio` is None when the bounding box has zero height; callers
    must treat that as "no gesture" rather than divide.
    """
    centroid: tuple[float, float]
    width: int
    height: int
    aspect_ratio: Optional[float]
    bounding_box: BoundingBox
    finger_count: int

    def to_dict(self) -> dict:
        return {
            "centroid": list(self.centroid),
            "width": self.width,
            "height": self.height,
            "aspect_ratio": self.aspect_ratio,
            "bounding_box": {
                "left": self.bounding_box.left,
                "right": self.bounding_box.right,
                "top": self.bounding_box.top,
                "bottom": self.bounding_box.bottom,
            },
            "finger_count": self.finger_count,
        }


class FeatureExtractor:
    """Computes bounding box, aspect ratio and an estimated finger count.

    The finger estimate avoids a convex hull: it samples the blob, keeps the
    points farthest from the centroid, and counts how many angular sectors
    they fall into. Each sector with more than one far point counts as one
    extended finger.
    """

    def __init__(
        self,
        sample_stride: int = 10,
        top_fraction: float = 0.3,
        bin_degrees: float = 30.0,
    ):
        if sample_stride < 1:
            raise ValueError("sample_stride must be >= 1")
        if not 0.0 < top_fraction <= 1.0:
            raise ValueError("top_fraction must be in (0, 1]")
        if not 0.0 < bin_degrees <= 360.0:
            raise ValueError("bin_degrees must be in (0, 360]")
        self.sample_stride = sample_stride
        self.top_fraction = top_fraction
        self.bin_degrees = bin_degrees

    def extract(self, blob: Blob, width: int, height: int) -> Optional[FeatureSet]:
        """Compute features for a blob found in a (height x width) mask.

        Returns:
            FeatureSet, or None for an empty blob.
        """
        if blob.empty:
            return None

        xs, ys = blob.coordinates(width)
        left, right = int(xs.min()), int(xs.max())
        top, bottom = int(ys.min()), int(ys.max())

        box_w = right - left
        box_h = bottom - top
        aspect = box_w / box_h if box_h != 0 else None

        return FeatureSet(
            centroid=blob.centroid,
            width=box_w,
            height=box_h,
            aspect_ratio=aspect,
            bounding_box=BoundingBox(left=left, right=right, top=top, bottom=bottom),
            finger_count=self.estimate_fingers(blob, width),
        )

    def estimate_fingers(self, blob: Blob, width: int) -> int:
        """Estimate extended fingers, clamped to [1, 5]."""
        samples = blob.pixels[::self.sample_stride]
        if samples.size == 0:
            return MIN_FINGERS

        cx, cy = blob.centroid
        dx = (samples % width) - cx
        dy = (samples // width) - cy
        dist = np.hypot(dx, dy)

        keep = max(1, int(len(samples) * self.top_fraction))
        # Stable sort keeps sampling order among equal distances.
        far = np.argsort(-dist, kind="stable")[:keep]

        angles = np.degrees(np.arctan2(dy[far], dx[far])) % 360.0
        n_bins = int(np.ceil(360.0 / self.bin_degrees))
        bins = np.minimum((angles // self.bin_degrees).astype(np.int64), n_bins - 1)
        counts = np.bincount(bins, minlength=n_bins)

        fingers = int(np.count_nonzero(counts > 1))
        return max(MIN_FINGERS, min(MAX_FINGERS, fingers))
