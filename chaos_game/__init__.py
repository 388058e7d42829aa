"""Chaos Game: restricted chaos-game fractal simulation engine.

This package contains the simulation core that generates iterated-function-system
fractals by repeatedly moving a point toward rule-selected polygon vertices and
accumulating a per-pixel hit density.

Architecture layers (strict one-way dependency):
    chaos_game/cli.py → chaos_game/simulator/ → chaos_game/utils/

Key invariants:
    - One engine instance owns its density matrix, pixel buffer and stability state
    - Canvas is square; pixel grids are row-major, size = canvas_size²
    - Packed pixels are 32-bit AABBGGRR (little-endian RGBA bytes)
    - YAML-only configs, validated with pydantic at load time
    - All randomness flows through an injected numpy Generator
"""

__version__ = "1.4.0"
