"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Settings and engine config validation (validators)
    - Color parsing, packing and normalization curves (color)
    - Polygon and symmetry math (geometry)
    - YAML loading (fs)
    - Wall-clock timing (profiler)
    - Unified logging (logging_config)

No module in utils/ may import from chaos_game.simulator.

Convenience imports:
    from chaos_game.utils import color, geometry, validators
    from chaos_game.utils.logging_config import setup_logging, push_context
"""

from . import color
from . import fs
from . import geometry
from . import logging_config
from . import profiler
from . import validators

from .logging_config import push_context, setup_logging

__all__ = [
    # Modules
    'color',
    'fs',
    'geometry',
    'logging_config',
    'profiler',
    'validators',
    # Direct exports
    'setup_logging',
    'push_context',
]
