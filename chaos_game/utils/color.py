"""Color parsing, packing and density normalization curves.

Provides:
    - parse_color(): CSS hex / rgb() strings → (r, g, b) bytes
    - pack_rgba() / pack_rgba_array(): RGBA bytes → 32-bit AABBGGRR words
    - unpack_rgba(): packed words → (H, W, 4) uint8 RGBA view
    - lerp_channel(): round-half-up linear interpolation on 0-255 channels
    - log_gamma_normalize(): hit counts → display intensity in [0, 1]

Used by:
    - validators: color field validation on Settings
    - simulator.normalizer: density → pixel buffer
    - simulator.engine: background fill on erase

Packed pixel layout:
    A 32-bit word per pixel laid out as (a << 24) | (b << 16) | (g << 8) | r.
    Stored little-endian this is the byte sequence R, G, B, A, which is what
    RGBA display surfaces consume directly.

Invariants:
    - Channels are integers in [0, 255]
    - Normalized intensities are in [0, 1]; zero-count cells never reach the
      log curve (ln(1 + 0) would map them to 0 anyway, but they must keep
      their background value untouched)
"""

import re
from typing import Tuple

import numpy as np

RGB = Tuple[int, int, int]

_HEX_RE = re.compile(r'^#([0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$')
_FUNC_RE = re.compile(
    r'^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9.]+)\s*)?\)$'
)


def parse_color(color: str) -> RGB:
    """Parse a CSS color string into an (r, g, b) tuple.

    Parameters
    ----------
    color : str
        '#RGB', '#RGBA', '#RRGGBB', '#RRGGBBAA', 'rgb(r, g, b)' or
        'rgba(r, g, b, a)'. Alpha components are accepted and ignored.

    Returns
    -------
    Tuple[int, int, int]
        Channels in [0, 255]

    Raises
    ------
    ValueError
        If the string matches none of the supported forms or a channel
        exceeds 255

    Examples
    --------
    >>> parse_color('#fff')
    (255, 255, 255)
    >>> parse_color('rgb(0, 50, 100)')
    (0, 50, 100)
    """
    if not isinstance(color, str):
        raise ValueError(f"Color must be a string, got {type(color).__name__}")
    text = color.strip()

    match = _HEX_RE.match(text)
    if match:
        digits = match.group(1)
        if len(digits) in (3, 4):
            digits = ''.join(ch * 2 for ch in digits)
        num = int(digits[:6], 16)
        return (num >> 16) & 0xFF, (num >> 8) & 0xFF, num & 0xFF

    match = _FUNC_RE.match(text.lower())
    if match:
        channels = tuple(int(match.group(i)) for i in (1, 2, 3))
        if any(c > 255 for c in channels):
            raise ValueError(f"Color channel out of range [0, 255] in {color!r}")
        return channels

    raise ValueError(f"Malformed color string: {color!r}")


def format_hex(rgb: RGB) -> str:
    """Format an (r, g, b) tuple as '#rrggbb'."""
    return '#{:02x}{:02x}{:02x}'.format(*rgb)


def pack_rgba(r: int, g: int, b: int, a: int = 255) -> int:
    """Pack RGBA channels into one AABBGGRR word."""
    return ((a & 0xFF) << 24) | ((b & 0xFF) << 16) | ((g & 0xFF) << 8) | (r & 0xFF)


def pack_rgba_array(
    r: np.ndarray,
    g: np.ndarray,
    b: np.ndarray,
    a: np.ndarray
) -> np.ndarray:
    """Vectorized pack_rgba over broadcastable uint8-range arrays → uint32."""
    r = np.asarray(r, dtype=np.uint32)
    g = np.asarray(g, dtype=np.uint32)
    b = np.asarray(b, dtype=np.uint32)
    a = np.asarray(a, dtype=np.uint32)
    return (a << 24) | (b << 16) | (g << 8) | r


def unpack_rgba(packed: np.ndarray, size: int) -> np.ndarray:
    """View packed AABBGGRR words as an (size, size, 4) RGBA uint8 array.

    Parameters
    ----------
    packed : np.ndarray
        Flat uint32 array of length size²
    size : int
        Canvas side length in pixels

    Returns
    -------
    np.ndarray
        (size, size, 4) uint8, channel order R, G, B, A
    """
    words = np.ascontiguousarray(packed, dtype='<u4')
    return words.view(np.uint8).reshape(size, size, 4)


def lerp_channel(a, b, t):
    """Interpolate a → b by t and round half up, as display channels expect.

    Works on scalars and numpy arrays alike.
    """
    return np.floor(a + t * (np.asarray(b, dtype=np.float64) - a) + 0.5).astype(np.int64)


def log_gamma_normalize(
    values: np.ndarray,
    max_value: float,
    gamma_exponent: float
) -> np.ndarray:
    """Map raw hit counts to display intensity with a log-then-gamma curve.

    Parameters
    ----------
    values : np.ndarray
        Hit counts (>= 1 for cells that should be colored)
    max_value : float
        Running maximum hit count over the whole grid
    gamma_exponent : float
        Exponent > 0 applied after log scaling; larger values darken midtones

    Returns
    -------
    np.ndarray
        float64 intensities in [0, 1], same shape as values

    Notes
    -----
    display = (ln(1 + v) / ln(1 + max_value)) ** gamma_exponent

    Degenerate normalization (max_value <= 0, so ln(1 + max_value) is not positive)
    returns zeros instead of dividing. With the grid's floor of 1, a cell hit
    once while nothing has been hit twice maps to full intensity.
    """
    values = np.asarray(values, dtype=np.float64)
    if max_value <= 0:
        return np.zeros_like(values)
    log_max = np.log1p(max_value)
    log_norm = np.clip(np.log1p(values) / log_max, 0.0, 1.0)
    return log_norm ** gamma_exponent
