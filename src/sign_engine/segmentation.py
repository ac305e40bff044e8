"""Skin segmentation: per-pixel HSV range test and 3x3 majority denoising.

Both stages are stencil-local (no pixel depends on another pixel's output),
so they map onto a single streaming pass in fixed hardware. Here they are
vectorized with numpy.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from sign_engine.config import Thresholds

# Fixed filter constants: 3x3 window, strict majority of its 9 cells.
WINDOW = 3
MAJORITY = 5


def rgb_to_hsv(r: int, g: int, b: int) -> tuple[float, float, float]:
    """Convert one 8-bit RGB pixel to (h, s, v), each in [0, 1]."""
    r, g, b = r / 255.0, g / 255.0, b / 255.0
    mx = max(r, g, b)
    mn = min(r, g, b)
    d = mx - mn

    v = mx
    s = d / mx if mx > 0 else 0.0

    if d == 0:
        h = 0.0
    elif mx == r:
        h = (g - b) / d + (6.0 if g < b else 0.0)
    elif mx == g:
        h = (b - r) / d + 2.0
    else:
        h = (r - g) / d + 4.0

    return h / 6.0, s, v


def frame_to_hsv(frame: np.ndarray) -> np.ndarray:
    """Vectorized `rgb_to_hsv` over an (H, W, 3) uint8 frame.

    Returns:
        float64 array of shape (H, W, 3) holding h, s, v in [0, 1].
    """
    rgb = frame[..., :3].astype(np.float64) / 255.0
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]

    mx = rgb.max(axis=-1)
    mn = rgb.min(axis=-1)
    d = mx - mn

    s = np.divide(d, mx, out=np.zeros_like(mx), where=mx > 0)

    safe_d = np.where(d > 0, d, 1.0)
    h_red = (g - b) / safe_d + np.where(g < b, 6.0, 0.0)
    h_green = (b - r) / safe_d + 2.0
    h_blue = (r - g) / safe_d + 4.0

    # Same precedence as the scalar version: red wins ties, then green.
    h = np.select([mx == r, mx == g], [h_red, h_green], default=h_blue)
    h = np.where(d > 0, h / 6.0, 0.0)

    return np.stack([h, s, mx], axis=-1)


class PixelClassifier:
    """Labels each pixel as skin (1) or background (0).

    A pixel is skin when its hue, saturation and value each fall inside the
    inclusive [lower, upper] range of the configured thresholds.
    """

    def __init__(self, thresholds: Optional[Thresholds] = None):
        self.thresholds = thresholds or Thresholds()

    def classify_pixel(self, r: int, g: int, b: int) -> int:
        h, s, v = rgb_to_hsv(r, g, b)
        lo, hi = self.thresholds.skin_lower_hsv, self.thresholds.skin_upper_hsv
        inside = (
            lo[0] <= h <= hi[0]
            and lo[1] <= s <= hi[1]
            and lo[2] <= v <= hi[2]
        )
        return 1 if inside else 0

    def classify(self, frame: np.ndarray, thresholds: Optional[Thresholds] = None) -> np.ndarray:
        """Classify a whole frame.

        Args:
            frame: RGB (or RGBA) image, shape (H, W, 3|4), uint8.
            thresholds: Per-call override of the instance thresholds.

        Returns:
            uint8 mask of shape (H, W) with values 0/1.
        """
        t = thresholds or self.thresholds
        hsv = frame_to_hsv(frame)
        lower = np.asarray(t.skin_lower_hsv)
        upper = np.asarray(t.skin_upper_hsv)
        inside = np.all((hsv >= lower) & (hsv <= upper), axis=-1)
        return inside.astype(np.uint8)


class NoiseFilter:
    """3x3 majority vote that removes speckle from a binary mask.

    Interior pixels become 1 iff at least 5 of the 9 cells in their window
    are 1. The 1-pixel border is always background.
    """

    def apply(self, mask: np.ndarray) -> np.ndarray:
        mask = np.asarray(mask, dtype=np.uint8)
        h, w = mask.shape
        out = np.zeros((h, w), dtype=np.uint8)
        if h < WINDOW or w < WINDOW:
            return out

        # Sum the nine shifted views of the mask over the interior region.
        total = np.zeros((h - 2, w - 2), dtype=np.uint16)
        for dy in range(WINDOW):
            for dx in range(WINDOW):
                total += mask[dy:h - 2 + dy, dx:w - 2 + dx]

        out[1:-1, 1:-1] = (total >= MAJORITY).astype(np.uint8)
        return out
