"""Color normalizer -- hit counts to packed display pixels.

Two stages per touched cell (count v >= 1):

    log_norm = ln(1 + v) / ln(1 + max_value)
    display  = log_norm ** gamma_exponent

then one of two compositing modes:

    transparent (solid_bg False)  RGB = foreground, A = round(255 * display)
    solid       (solid_bg True)   RGB = lerp(background, foreground, display), A = 255

Cells with zero hits are never written; they keep the background fill
(opaque background color, or fully transparent zero).
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from chaos_game.utils import color as color_utils
from chaos_game.utils.validators import Settings


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Snapshot of display pixels for a square canvas.

    Attributes
    ----------
    size : int
        Canvas side length.
    data : np.ndarray
        Flat uint32 AABBGGRR words, row-major, length size². Owned by the
        snapshot; the engine never writes to it after handing it out.
    """

    size: int
    data: np.ndarray

    def as_rgba(self) -> np.ndarray:
        """(size, size, 4) uint8 RGBA view of the words."""
        return color_utils.unpack_rgba(self.data, self.size)

    def pixel(self, x: int, y: int) -> int:
        return int(self.data[y * self.size + x])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.size == other.size and np.array_equal(self.data, other.data)

    def __hash__(self) -> int:
        return hash((self.size, self.data.tobytes()))


class ColorNormalizer:
    """Maps a density grid onto a packed pixel buffer.

    Parameters
    ----------
    fg_rgb, bg_rgb : tuple[int, int, int]
        Foreground and background channels.
    solid_bg : bool
        Opaque background blending instead of alpha-only foreground.
    gamma_exponent : float
        Exponent (> 0) applied after log scaling.
    """

    def __init__(
        self,
        fg_rgb: color_utils.RGB,
        bg_rgb: color_utils.RGB,
        solid_bg: bool,
        gamma_exponent: float,
    ) -> None:
        if gamma_exponent <= 0:
            raise ValueError(f"gamma_exponent must be positive, got {gamma_exponent}")
        self.fg_rgb = tuple(fg_rgb)
        self.bg_rgb = tuple(bg_rgb)
        self.solid_bg = bool(solid_bg)
        self.gamma_exponent = float(gamma_exponent)

    @classmethod
    def from_settings(cls, settings: Settings) -> ColorNormalizer:
        return cls(settings.fg_rgb, settings.bg_rgb, settings.solid_bg, settings.gamma_exponent)

    @property
    def background_word(self) -> int:
        """Packed value of an untouched cell."""
        if self.solid_bg:
            return color_utils.pack_rgba(*self.bg_rgb, 255)
        return 0

    def fill_background(self, pixels: np.ndarray) -> None:
        pixels.fill(self.background_word)

    def colorize(self, display: np.ndarray) -> np.ndarray:
        """Packed words for display intensities in [0, 1]."""
        display = np.asarray(display, dtype=np.float64)
        if self.solid_bg:
            channels = [
                color_utils.lerp_channel(bg, fg, display)
                for bg, fg in zip(self.bg_rgb, self.fg_rgb)
            ]
            return color_utils.pack_rgba_array(*channels, 255)
        alpha = color_utils.lerp_channel(0, 255, display)
        r, g, b = self.fg_rgb
        return color_utils.pack_rgba_array(r, g, b, alpha)

    def apply(self, counts: np.ndarray, max_value: float, pixels: np.ndarray) -> np.ndarray:
        """Write colors for every touched cell of ``counts`` into ``pixels``.

        Untouched cells are left as they are, so applying twice to the same
        counts yields the same buffer.
        """
        touched = np.flatnonzero(counts)
        if touched.size:
            display = color_utils.log_gamma_normalize(counts[touched], max_value, self.gamma_exponent)
            pixels[touched] = self.colorize(display)
        return pixels
