"""Polygon and symmetry math for the chaos-game canvas.

Provides:
    - regular_polygon(): N vertices on a circle, starting straight up, clockwise
    - interleave_midpoints(): insert edge midpoints after each main vertex
    - rotation_table(): cos/sin of 2π·i/N for the symmetry orbit
    - sample_in_triangle(): uniform barycentric sample (sqrt area weighting)
    - sample_in_polygon(): uniform sample over a center-anchored fan
    - symmetry_orbit(): 2·N rotated/reflected copies of point arrays

Used by:
    - simulator.layout: vertex set and rotation tables
    - simulator.walk: initial point before burn-in
    - simulator.density: symmetric expansion of each batch

Coordinate frame:
    Canvas pixels, origin top-left, +x right, +y down. An angle of -π/2 is
    therefore "up", and increasing angles run clockwise on screen.

All functions are pure and operate on float64 numpy arrays of shape (..., 2)
or on separate x / y arrays where noted.
"""

import math
from typing import Tuple

import numpy as np


def regular_polygon(
    sides: int,
    center: Tuple[float, float],
    radius: float,
    start_angle: float = -math.pi / 2
) -> np.ndarray:
    """Vertices of a regular polygon inscribed in a circle.

    Parameters
    ----------
    sides : int
        Number of vertices (>= 3)
    center : Tuple[float, float]
        Circle center (x, y) in pixels
    radius : float
        Circumradius in pixels (> 0)
    start_angle : float
        Angle of the first vertex in radians, default -π/2 (pointing up)

    Returns
    -------
    np.ndarray
        (sides, 2) float64 vertices, clockwise on screen

    Raises
    ------
    ValueError
        If sides < 3 or radius <= 0
    """
    if sides < 3:
        raise ValueError(f"Polygon needs at least 3 sides, got {sides}")
    if radius <= 0:
        raise ValueError(f"Polygon radius must be positive, got {radius}")

    angles = start_angle + (2.0 * math.pi / sides) * np.arange(sides)
    cx, cy = center
    return np.stack([np.cos(angles) * radius + cx, np.sin(angles) * radius + cy], axis=1)


def interleave_midpoints(vertices: np.ndarray) -> np.ndarray:
    """Insert the midpoint of every edge right after the edge's first vertex.

    Parameters
    ----------
    vertices : np.ndarray
        (N, 2) closed polygon, edge i runs from vertex i to vertex (i+1) % N

    Returns
    -------
    np.ndarray
        (2N, 2) array: v0, m01, v1, m12, ..., v(N-1), m(N-1)0
    """
    midpoints = 0.5 * (vertices + np.roll(vertices, -1, axis=0))
    out = np.empty((2 * len(vertices), 2), dtype=np.float64)
    out[0::2] = vertices
    out[1::2] = midpoints
    return out


def rotation_table(sides: int) -> Tuple[np.ndarray, np.ndarray]:
    """Cosines and sines of 2π·i/N for i in [0, N)."""
    angles = (2.0 * math.pi / sides) * np.arange(sides)
    return np.cos(angles), np.sin(angles)


def sample_in_triangle(
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    r1: float,
    r2: float
) -> np.ndarray:
    """Map two uniform [0, 1) draws to a uniform point inside triangle abc.

    Notes
    -----
    p = (1 - √r1)·a + √r1·(1 - r2)·b + √r1·r2·c

    The square root on r1 compensates for the area growing linearly with
    the distance from a, which keeps the density uniform.
    """
    s = math.sqrt(r1)
    return (1.0 - s) * np.asarray(a) + s * (1.0 - r2) * np.asarray(b) + s * r2 * np.asarray(c)


def sample_in_polygon(
    vertices: np.ndarray,
    center: Tuple[float, float],
    rng: np.random.Generator
) -> np.ndarray:
    """Sample a point inside a regular polygon through its center fan.

    Parameters
    ----------
    vertices : np.ndarray
        (N, 2) main polygon vertices in ring order
    center : Tuple[float, float]
        Polygon center; every fan triangle is (center, v[i], v[i+1])
    rng : np.random.Generator
        Random source

    Returns
    -------
    np.ndarray
        (2,) float64 point

    Notes
    -----
    For a regular polygon all fan triangles have equal area, so picking the
    triangle uniformly keeps the overall sample uniform.
    """
    n = len(vertices)
    i = int(rng.integers(n))
    r1, r2 = rng.random(2)
    return sample_in_triangle(
        np.asarray(center, dtype=np.float64),
        vertices[i],
        vertices[(i + 1) % n],
        float(r1),
        float(r2)
    )


def symmetry_orbit(
    xs: np.ndarray,
    ys: np.ndarray,
    center: Tuple[float, float],
    cos_table: np.ndarray,
    sin_table: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Expand points into their rotation/reflection orbit about center.

    Parameters
    ----------
    xs, ys : np.ndarray
        (M,) point coordinates
    center : Tuple[float, float]
        Rotation center
    cos_table, sin_table : np.ndarray
        (N,) rotation tables from rotation_table()

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        (M·2N,) x and y arrays. For each input point, in order: for each
        rotation j, the rotated point then the rotated mirror image (the point
        reflected across the vertical axis through center).
    """
    cx, cy = center
    rel_x = np.asarray(xs, dtype=np.float64)[:, None] - cx
    rel_y = np.asarray(ys, dtype=np.float64)[:, None] - cy
    cos = cos_table[None, :]
    sin = sin_table[None, :]

    x1 = rel_x * cos - rel_y * sin + cx
    y1 = rel_x * sin + rel_y * cos + cy
    x2 = -rel_x * cos - rel_y * sin + cx
    y2 = -rel_x * sin + rel_y * cos + cy

    out_x = np.stack([x1, x2], axis=2).reshape(-1)
    out_y = np.stack([y1, y2], axis=2).reshape(-1)
    return out_x, out_y
