"""Geometry builder -- vertex set and symmetry tables for one settings state.

The vertex set is ordered, and that order is the identity every other
component uses:

    main ring     v0 .. v(N-1), first vertex straight up, clockwise
    + midpoints   v0, m01, v1, m12, ... (ring doubles to 2N)
    + center      appended last, outside the ring

Only ring members have neighbors. The center vertex, when present, sits at
index ``ring_size`` and is exempt from neighbor rules.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from chaos_game.utils import geometry as geo
from chaos_game.utils.validators import ConfigurationError, Settings


@dataclass(frozen=True, eq=False)
class Geometry:
    """Immutable polygon layout for one canvas.

    Attributes
    ----------
    center : tuple[float, float]
        Canvas center in pixels.
    radius : float
        Circumradius of the main polygon in pixels.
    main_vertices : np.ndarray
        (N, 2) main polygon, also the outline a host may stroke.
    vertices : np.ndarray
        (V, 2) full ordered vertex set the walk chooses from.
    ring_size : int
        Vertices taking part in neighbor adjacency (N, or 2N with midpoints).
    cos_table, sin_table : np.ndarray
        (N,) rotation tables for the symmetry orbit.
    """

    center: tuple[float, float]
    radius: float
    main_vertices: np.ndarray
    vertices: np.ndarray
    ring_size: int
    cos_table: np.ndarray
    sin_table: np.ndarray

    @property
    def sides(self) -> int:
        return len(self.main_vertices)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def has_center_vertex(self) -> bool:
        return self.vertex_count > self.ring_size

    @property
    def orbit_size(self) -> int:
        """Points plotted per walk step when symmetry expansion is on."""
        return 2 * self.sides


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.ascontiguousarray(arr, dtype=np.float64)
    arr.flags.writeable = False
    return arr


def build_geometry(
    sides: int,
    canvas_size: int,
    padding: float,
    midpoint_vertex: bool = False,
    center_vertex: bool = False,
) -> Geometry:
    """Compute the vertex set for a regular polygon centered on the canvas.

    Raises
    ------
    ConfigurationError
        If sides < 3 or the padding leaves a non-positive radius.
    """
    if sides < 3:
        raise ConfigurationError(f"Polygon needs at least 3 sides, got {sides}", fields=("sides",))
    radius = canvas_size / 2 - padding
    if radius <= 0:
        raise ConfigurationError(
            f"Non-positive radius {radius} (canvas_size={canvas_size}, padding={padding})",
            fields=("padding",),
        )

    center = (canvas_size / 2, canvas_size / 2)
    main = geo.regular_polygon(sides, center, radius)
    ring = geo.interleave_midpoints(main) if midpoint_vertex else main
    vertices = np.vstack([ring, [center]]) if center_vertex else ring
    cos_table, sin_table = geo.rotation_table(sides)

    return Geometry(
        center=center,
        radius=radius,
        main_vertices=_frozen(main),
        vertices=_frozen(vertices),
        ring_size=len(ring),
        cos_table=_frozen(cos_table),
        sin_table=_frozen(sin_table),
    )


def geometry_for(settings: Settings) -> Geometry:
    """Build the geometry described by validated settings."""
    return build_geometry(
        settings.sides,
        settings.canvas_size,
        settings.padding,
        settings.midpoint_vertex,
        settings.center_vertex,
    )
