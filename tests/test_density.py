"""Test density accumulation and color normalization.

Tests for chaos_game.simulator.density and chaos_game.simulator.normalizer:
    - Rounding, bounds discard and new-pixel counting
    - Monotonic counts and running maximum
    - Symmetry expansion invariance of the grid
    - Normalizer idempotence, untouched zero cells, both compositing modes
"""

import numpy as np
import pytest

from chaos_game.simulator.density import DensityAccumulator
from chaos_game.simulator.layout import build_geometry
from chaos_game.simulator.normalizer import ColorNormalizer, PixelBuffer
from chaos_game.utils import color


# ============================================================================
# ACCUMULATION
# ============================================================================

def test_new_accumulator_is_empty():
    acc = DensityAccumulator(8)
    assert acc.grid.shape == (8, 8)
    assert acc.filled_pixels() == 0
    assert acc.max_value == 1


def test_accumulate_rounds_to_nearest_pixel():
    acc = DensityAccumulator(8)
    acc.accumulate(np.array([2.4, 2.6]), np.array([3.4, 3.4]))

    assert acc.grid[3, 2] == 1
    assert acc.grid[3, 3] == 1
    assert acc.new_pixels == 2


def test_repeated_hits_count_once_as_new():
    acc = DensityAccumulator(8)
    acc.accumulate(np.full(5, 4.0), np.full(5, 4.0))

    assert acc.grid[4, 4] == 5
    assert acc.new_pixels == 1
    assert acc.max_value == 5


def test_out_of_bounds_points_discarded():
    acc = DensityAccumulator(8)
    xs = np.array([-1.0, 8.0, 3.0, 7.4, -0.4, np.nan])
    ys = np.array([3.0, 3.0, 9.0, 7.4, 0.0, 1.0])

    written = acc.accumulate(xs, ys)

    assert written == 2
    assert acc.plotted == 2
    assert acc.discarded == 3 + 1
    assert acc.grid[7, 7] == 1
    assert acc.grid[0, 0] == 1
    assert int(acc.grid.sum()) == 2


def test_take_new_pixels_resets_interval():
    acc = DensityAccumulator(8)
    acc.accumulate(np.array([1.0, 2.0]), np.array([1.0, 1.0]))
    assert acc.take_new_pixels() == 2
    acc.accumulate(np.array([1.0, 3.0]), np.array([1.0, 1.0]))
    assert acc.take_new_pixels() == 1
    assert acc.take_new_pixels() == 0


def test_counts_monotonic_and_max_is_true_max():
    rng = np.random.default_rng(3)
    acc = DensityAccumulator(16)
    previous = acc.grid.copy()
    for _ in range(10):
        acc.accumulate(rng.uniform(0, 16, 300), rng.uniform(0, 16, 300))
        current = acc.grid.copy()
        assert np.all(current >= previous)
        assert acc.max_value == max(1, int(current.max()))
        previous = current


def test_grid_view_read_only():
    acc = DensityAccumulator(4)
    with pytest.raises(ValueError):
        acc.grid[0, 0] = 5


def test_clear_resets_everything():
    acc = DensityAccumulator(4)
    acc.accumulate(np.array([1.0, 1.0, 9.0]), np.array([1.0, 1.0, 1.0]))
    acc.clear()

    assert acc.filled_pixels() == 0
    assert acc.max_value == 1
    assert acc.new_pixels == acc.plotted == acc.discarded == 0


def test_symmetrical_plot_is_invariant_under_group():
    """Mirror and quarter-turn images of the grid match up to rounding ties."""
    size = 100
    geometry = build_geometry(4, size, 10)
    rng = np.random.default_rng(11)
    acc = DensityAccumulator(size)

    xs = rng.uniform(15, 85, 4000)
    ys = rng.uniform(15, 85, 4000)
    plotted = acc.plot(xs, ys, geometry, symmetrical=True)

    assert plotted == 4000 * geometry.orbit_size
    assert acc.discarded == 0

    # Center is (50, 50): column x mirrors to 100 - x, so drop row / column 0
    inner = acc.grid[1:, 1:].astype(np.int64)
    total = inner.sum()
    mirrored = inner[:, ::-1]
    rotated = np.rot90(inner, -1)
    assert np.abs(inner - mirrored).sum() <= 1e-3 * total
    assert np.abs(inner - rotated).sum() <= 1e-3 * total


# ============================================================================
# NORMALIZATION
# ============================================================================

@pytest.fixture
def counts():
    grid = np.zeros(16, dtype=np.uint32)
    grid[[1, 5, 10]] = [1, 4, 9]
    return grid


def test_normalizer_leaves_zero_cells_untouched(counts):
    norm = ColorNormalizer((255, 0, 0), (0, 0, 255), solid_bg=True, gamma_exponent=1.0)
    pixels = np.zeros(16, dtype=np.uint32)
    norm.fill_background(pixels)

    norm.apply(counts, 9, pixels)

    untouched = counts == 0
    assert np.all(pixels[untouched] == color.pack_rgba(0, 0, 255, 255))


def test_normalizer_idempotent(counts):
    norm = ColorNormalizer((200, 100, 50), (0, 0, 0), solid_bg=False, gamma_exponent=2.2)
    pixels = np.zeros(16, dtype=np.uint32)
    first = norm.apply(counts, 9, pixels).copy()
    second = norm.apply(counts, 9, pixels)
    np.testing.assert_array_equal(first, second)


def test_solid_mode_peak_is_foreground(counts):
    norm = ColorNormalizer((255, 128, 0), (0, 0, 0), solid_bg=True, gamma_exponent=1.0)
    pixels = np.zeros(16, dtype=np.uint32)
    norm.apply(counts, 9, pixels)

    rgba = color.unpack_rgba(pixels, 4).reshape(16, 4)
    assert rgba[10].tolist() == [255, 128, 0, 255]
    # Lower counts blend toward the background, alpha stays opaque
    assert 0 < rgba[1, 0] < 255
    assert rgba[1, 3] == 255


def test_transparent_mode_carries_intensity_in_alpha(counts):
    norm = ColorNormalizer((10, 20, 30), (255, 255, 255), solid_bg=False, gamma_exponent=1.0)
    pixels = np.zeros(16, dtype=np.uint32)
    norm.apply(counts, 9, pixels)

    rgba = color.unpack_rgba(pixels, 4).reshape(16, 4)
    assert rgba[10].tolist() == [10, 20, 30, 255]
    expected_alpha = int(np.floor(255 * np.log(2) / np.log(10) + 0.5))
    assert rgba[1].tolist() == [10, 20, 30, expected_alpha]
    assert rgba[0].tolist() == [0, 0, 0, 0]


def test_single_hit_cells_at_floor_max_are_opaque():
    norm = ColorNormalizer((255, 255, 255), (0, 0, 0), solid_bg=False, gamma_exponent=1.0)
    counts = np.array([1, 0, 1, 1], dtype=np.uint32)
    pixels = np.zeros(4, dtype=np.uint32)
    norm.apply(counts, 1, pixels)

    rgba = color.unpack_rgba(pixels, 2).reshape(4, 4)
    assert rgba[:, 3].tolist() == [255, 0, 255, 255]


def test_background_word():
    assert ColorNormalizer((1, 1, 1), (9, 8, 7), False, 1.0).background_word == 0
    solid = ColorNormalizer((1, 1, 1), (9, 8, 7), True, 1.0)
    assert solid.background_word == color.pack_rgba(9, 8, 7, 255)


def test_normalizer_rejects_bad_gamma():
    with pytest.raises(ValueError):
        ColorNormalizer((1, 1, 1), (0, 0, 0), False, 0.0)


def test_pixel_buffer_equality_and_views():
    data = np.arange(4, dtype=np.uint32)
    a = PixelBuffer(2, data.copy())
    b = PixelBuffer(2, data.copy())

    assert a == b
    assert hash(a) == hash(b)
    assert a.pixel(1, 1) == 3
    assert a.as_rgba().shape == (2, 2, 4)
    assert a != PixelBuffer(2, data[::-1].copy())
