"""Test color parsing, packing and the density normalization curve.

Tests for chaos_game.utils.color:
    - CSS hex / rgb() parsing and rejection of malformed strings
    - AABBGGRR packing and the little-endian RGBA byte view
    - Round-half-up channel interpolation
    - log → gamma normalization, including the degenerate max_value case

Run:
    pytest tests/test_color.py -v
"""

import numpy as np
import pytest

from chaos_game.utils import color


# ============================================================================
# PARSING
# ============================================================================

@pytest.mark.parametrize("text,expected", [
    ("#ffffff", (255, 255, 255)),
    ("#000000", (0, 0, 0)),
    ("#fff", (255, 255, 255)),
    ("#1a2b3c", (0x1a, 0x2b, 0x3c)),
    ("#1A2B3C", (0x1a, 0x2b, 0x3c)),
    ("#1a2b3c80", (0x1a, 0x2b, 0x3c)),
    ("#abcd", (0xaa, 0xbb, 0xcc)),
    ("rgb(0, 50, 100)", (0, 50, 100)),
    ("rgba(10,20,30,0.5)", (10, 20, 30)),
    ("  #123456  ", (0x12, 0x34, 0x56)),
])
def test_parse_color_valid(text, expected):
    assert color.parse_color(text) == expected


@pytest.mark.parametrize("text", [
    "", "fff", "#ff", "#fffff", "#gggggg", "rgb(1, 2)", "rgb(256, 0, 0)", "red",
])
def test_parse_color_rejects_malformed(text):
    with pytest.raises(ValueError):
        color.parse_color(text)


def test_parse_color_rejects_non_string():
    with pytest.raises(ValueError, match="must be a string"):
        color.parse_color(0xffffff)


def test_format_hex_roundtrip():
    assert color.format_hex((255, 0, 16)) == "#ff0010"
    assert color.parse_color(color.format_hex((1, 2, 3))) == (1, 2, 3)


# ============================================================================
# PACKING
# ============================================================================

def test_pack_rgba_layout():
    """Red sits in the low byte, alpha in the high byte."""
    assert color.pack_rgba(0x11, 0x22, 0x33, 0x44) == 0x44332211
    assert color.pack_rgba(255, 0, 0) == 0xFF0000FF


def test_pack_rgba_array_matches_scalar():
    r = np.array([0, 10, 255])
    g = np.array([1, 20, 128])
    b = np.array([2, 30, 0])
    packed = color.pack_rgba_array(r, g, b, 255)

    assert packed.dtype == np.uint32
    expected = [color.pack_rgba(int(r[i]), int(g[i]), int(b[i]), 255) for i in range(3)]
    assert packed.tolist() == expected


def test_unpack_rgba_byte_order():
    """Packed words read back as R, G, B, A bytes."""
    words = np.full(4, color.pack_rgba(1, 2, 3, 4), dtype=np.uint32)
    rgba = color.unpack_rgba(words, 2)

    assert rgba.shape == (2, 2, 4)
    assert rgba.dtype == np.uint8
    assert rgba[1, 1].tolist() == [1, 2, 3, 4]


# ============================================================================
# INTERPOLATION & NORMALIZATION
# ============================================================================

def test_lerp_channel_endpoints_and_rounding():
    assert int(color.lerp_channel(0, 255, 0.0)) == 0
    assert int(color.lerp_channel(0, 255, 1.0)) == 255
    # 127.5 rounds up
    assert int(color.lerp_channel(0, 255, 0.5)) == 128
    # Interpolation works downward too
    assert int(color.lerp_channel(200, 100, 0.5)) == 150


def test_lerp_channel_vectorized():
    t = np.array([0.0, 0.25, 1.0])
    out = color.lerp_channel(0, 100, t)
    assert out.tolist() == [0, 25, 100]


def test_log_gamma_normalize_max_maps_to_one():
    values = np.array([1, 10, 100])
    out = color.log_gamma_normalize(values, 100, 1.0)

    assert out[-1] == pytest.approx(1.0)
    assert np.all(np.diff(out) > 0)
    assert out[0] == pytest.approx(np.log(2) / np.log(101))


def test_log_gamma_normalize_gamma_darkens_midtones():
    values = np.array([5])
    linear = color.log_gamma_normalize(values, 50, 1.0)[0]
    darker = color.log_gamma_normalize(values, 50, 2.0)[0]

    assert darker == pytest.approx(linear ** 2)
    assert darker < linear


@pytest.mark.parametrize("max_value", [0, -1, -5])
def test_log_gamma_normalize_degenerate_max_returns_zeros(max_value):
    out = color.log_gamma_normalize(np.array([1, 1]), max_value, 1.0)
    assert out.tolist() == [0.0, 0.0]


def test_log_gamma_normalize_single_hits_at_floor_are_full_intensity():
    out = color.log_gamma_normalize(np.array([1, 1]), 1, 2.5)
    assert out.tolist() == [1.0, 1.0]


def test_log_gamma_normalize_clamps_above_max():
    out = color.log_gamma_normalize(np.array([1000]), 10, 1.0)
    assert out[0] == 1.0
