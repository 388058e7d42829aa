"""Density accumulator -- per-pixel hit counts for plotted points.

Plotting a batch:
    1. optionally expand every point into its 2N symmetry orbit
    2. round to the nearest pixel (numpy rint, half-to-even)
    3. discard anything outside [0, canvas_size) on either axis
    4. add the hits per cell, counting cells that were zero before the batch
    5. raise the running maximum

Bounds policy is *discard*: out-of-canvas points never write and are only
counted in ``discarded``. Only written points count as plotted, so the
stability cadence advances by what actually reached the grid.

Batching the adds is equivalent to adding point by point: counts only grow,
and a cell hit several times in one batch starting from zero is one new
pixel either way.
"""

from __future__ import annotations

import numpy as np

from chaos_game.simulator.layout import Geometry
from chaos_game.utils import geometry as geo


class DensityAccumulator:
    """Row-major hit-count grid for a square canvas.

    Attributes
    ----------
    canvas_size : int
        Side length in pixels.
    max_value : int
        Running maximum over the grid; starts at 1.
    new_pixels : int
        Cells that went from zero to non-zero since the last take_new_pixels().
    plotted : int
        Points written to the grid since the last clear(), symmetry copies included.
    discarded : int
        Offered points that fell outside the canvas.
    """

    def __init__(self, canvas_size: int) -> None:
        if canvas_size < 1:
            raise ValueError(f"canvas_size must be positive, got {canvas_size}")
        self.canvas_size = canvas_size
        self._counts = np.zeros(canvas_size * canvas_size, dtype=np.uint32)
        self.max_value = 1
        self.new_pixels = 0
        self.plotted = 0
        self.discarded = 0

    @property
    def counts(self) -> np.ndarray:
        """Read-only flat view of the grid."""
        view = self._counts.view()
        view.flags.writeable = False
        return view

    @property
    def grid(self) -> np.ndarray:
        """Read-only (size, size) view, indexed [y, x]."""
        return self.counts.reshape(self.canvas_size, self.canvas_size)

    def clear(self) -> None:
        self._counts.fill(0)
        self.max_value = 1
        self.new_pixels = 0
        self.plotted = 0
        self.discarded = 0

    def take_new_pixels(self) -> int:
        """Return the new-pixel count for the interval and restart it."""
        count = self.new_pixels
        self.new_pixels = 0
        return count

    def filled_pixels(self) -> int:
        return int(np.count_nonzero(self._counts))

    def accumulate(self, xs: np.ndarray, ys: np.ndarray) -> int:
        """Add one hit per in-canvas point; returns the number of points written."""
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        offered = len(xs)
        if offered == 0:
            return 0

        size = self.canvas_size
        px = np.rint(xs)
        py = np.rint(ys)
        # NaN compares False, so it is discarded with the rest
        inside = (px >= 0) & (px < size) & (py >= 0) & (py < size)
        kept = int(np.count_nonzero(inside))
        self.discarded += offered - kept
        self.plotted += kept
        if kept == 0:
            return 0

        flat = py[inside].astype(np.int64) * size + px[inside].astype(np.int64)
        cells, hits = np.unique(flat, return_counts=True)

        before = self._counts[cells]
        self.new_pixels += int(np.count_nonzero(before == 0))
        after = before + hits.astype(np.uint32)
        self._counts[cells] = after

        peak = int(after.max())
        if peak > self.max_value:
            self.max_value = peak
        return kept

    def plot(
        self,
        xs: np.ndarray,
        ys: np.ndarray,
        geometry: Geometry,
        symmetrical: bool = False,
    ) -> int:
        """Accumulate walk output, expanding each point into its orbit if symmetrical."""
        if symmetrical:
            xs, ys = geo.symmetry_orbit(xs, ys, geometry.center, geometry.cos_table, geometry.sin_table)
        return self.accumulate(xs, ys)
