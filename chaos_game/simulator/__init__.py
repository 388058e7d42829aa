"""Chaos-game simulation engine.

Components (leaves first):
    - layout: Geometry builder (vertex set, ring size, rotation tables)
    - restrictions: Per-vertex legal successor tables
    - walk: Restricted random walk with bounded move history
    - density: Hit-count grid with symmetry expansion and discard bounds policy
    - normalizer: Log/gamma color mapping into packed RGBA pixels
    - stability: EMA new-pixel convergence heuristic
    - scheduler: Time-budgeted cooperative batch loop
    - engine: Host-facing facade (ChaosGameEngine)

Invariants:
    - Steps are strictly sequential; density only grows until erase()
    - A geometry rebuild, burn-in included, completes before the next step
    - Snapshots handed to hosts are copies; no shared mutable arrays

Used by:
    - Hosts (UI, headless drivers) through ChaosGameEngine and its events
"""

from .engine import ChaosGameEngine, ChangeKind, EngineStateError, EngineStats, FinishedEvent
from .normalizer import PixelBuffer
from .scheduler import QuantumResult, SchedulerState
from .stability import StabilityEvent

__all__ = [
    'ChaosGameEngine',
    'ChangeKind',
    'EngineStateError',
    'EngineStats',
    'FinishedEvent',
    'PixelBuffer',
    'QuantumResult',
    'SchedulerState',
    'StabilityEvent',
]
