"""Connected-component extraction: find the hand as the largest blob.

Flood fill runs on an explicit FIFO over flat array indices with a visited
bitmap the size of the frame, so memory is bounded by the mask area and there
is no recursion.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np


@dataclass
class Blob:
    """A 4-connected foreground region."""
    pixels: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))  # flat indices
    size: int = 0
    centroid: tuple[float, float] = (0.0, 0.0)  # (x, y)

    @property
    def empty(self) -> bool:
        return self.size == 0

    def coordinates(self, width: int) -> tuple[np.ndarray, np.ndarray]:
        """Return member (xs, ys) for a mask of the given width."""
        return self.pixels % width, self.pixels // width


class BlobExtractor:
    """Labels 4-connected components and keeps the largest.

    Seeds are visited in raster order (row-major), so results are
    deterministic: on a size tie the first-discovered component wins.
    """

    def components(self, mask: np.ndarray) -> Iterator[Blob]:
        """Yield every foreground component in discovery order."""
        mask = np.asarray(mask)
        height, width = mask.shape
        flat = mask.reshape(-1) != 0
        visited = np.zeros(flat.shape[0], dtype=bool)

        for seed in np.flatnonzero(flat):
            if visited[seed]:
                continue

            members: list[int] = []
            sum_x = 0
            sum_y = 0
            queue = deque([int(seed)])
            visited[seed] = True

            while queue:
                idx = queue.popleft()
                y, x = divmod(idx, width)
                members.append(idx)
                sum_x += x
                sum_y += y

                if x + 1 < width:
                    n = idx + 1
                    if flat[n] and not visited[n]:
                        visited[n] = True
                        queue.append(n)
                if x > 0:
                    n = idx - 1
                    if flat[n] and not visited[n]:
                        visited[n] = True
                        queue.append(n)
                if y + 1 < height:
                    n = idx + width
                    if flat[n] and not visited[n]:
                        visited[n] = True
                        queue.append(n)
                if y > 0:
                    n = idx - width
                    if flat[n] and not visited[n]:
                        visited[n] = True
                        queue.append(n)

            size = len(members)
            yield Blob(
                pixels=np.asarray(members, dtype=np.int64),
                size=size,
                centroid=(sum_x / size, sum_y / size),
            )

    def extract(self, mask: np.ndarray) -> Blob:
        """Return the largest component, or an empty blob for a blank mask."""
        largest = Blob()
        for blob in self.components(mask):
            if blob.size > largest.size:
                largest = blob
        return largest
