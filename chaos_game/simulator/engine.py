"""Chaos-game engine -- the boundary a host talks to.

One ``ChaosGameEngine`` owns everything mutable about a simulation: the
density grid, the pixel buffer, the stability state and the scheduler. Hosts
interact only through calls and events, never through shared arrays:
snapshots handed out are copies, and grid views are read-only.

Host operations:

    initialize(settings)        allocate, build geometry, burn in, clear
    reconfigure(settings/...)   apply changes; returns a ChangeKind
    update_setting(key, value)  single-key reconfigure
    reset(settings)             stop + initialize + render
    play() / stop()             start / halt the scheduler
    run_quantum(budget_ms)      one cooperative time slice
    render_snapshot()           current display pixels (PixelBuffer)
    erase()                     clear data, keep geometry

Events (``on(name, callback)``):

    "render"          PixelBuffer     live snapshots and final frames
    "stabilityCheck"  StabilityEvent  once per stability check
    "finish"          FinishedEvent   once, when auto-stop converges

Change classification, strongest first:

    GEOMETRY_REBUILT  canvas_size, sides, padding, midpoint/center vertex,
                      restriction -- stop, rebuild, burn in, clear, render
    COLOR_ONLY        fg/bg color, solid_bg, gamma -- refill and re-normalize
    LIVE              jump_distance, symmetrical, auto_stop, live_rendering,
                      stability threshold -- applied to the next batch
    COSMETIC_ONLY     outline flags -- re-render only
    UNCHANGED         nothing differs
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

import numpy as np

from chaos_game.simulator.density import DensityAccumulator
from chaos_game.simulator.layout import Geometry, geometry_for
from chaos_game.simulator.normalizer import ColorNormalizer, PixelBuffer
from chaos_game.simulator.restrictions import RestrictionTable, table_for
from chaos_game.simulator.scheduler import (
    BatchScheduler,
    QuantumResult,
    SchedulerState,
    run_until_idle,
)
from chaos_game.simulator.stability import StabilityDetector, StabilityEvent
from chaos_game.simulator.walk import WalkEngine
from chaos_game.utils import validators
from chaos_game.utils.profiler import Clock, timer
from chaos_game.utils.validators import (
    COLOR_KEYS,
    COSMETIC_KEYS,
    GEOMETRY_KEYS,
    LIVE_KEYS,
    RESIZE_KEYS,
    ConfigurationError,
    EngineConfig,
    Settings,
)

logger = logging.getLogger(__name__)

EVENTS = ("render", "stabilityCheck", "finish")


class EngineStateError(RuntimeError):
    """Raised when an operation needs an initialized engine."""

    pass


class ChangeKind(Enum):
    """How much recomputation a settings change caused."""

    GEOMETRY_REBUILT = "geometryRebuilt"
    COLOR_ONLY = "colorOnly"
    LIVE = "live"
    COSMETIC_ONLY = "cosmeticOnly"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class FinishedEvent:
    """Emitted once when auto-stop converges."""

    elapsed_time: float  # seconds of wall-clock time since play()
    plotted_points: int


@dataclass(frozen=True)
class EngineStats:
    """Telemetry snapshot."""

    state: SchedulerState
    steps: int
    plotted_points: int
    discarded_points: int
    max_value: int
    filled_pixels: int
    stability_checks: int
    new_pixels_ema: float


class ChaosGameEngine:
    """Single-owner chaos-game simulation.

    Parameters
    ----------
    engine_config : EngineConfig or mapping, optional
        Scheduling constants; defaults to the reference values.
    rng : np.random.Generator, optional
        Random source. Takes precedence over ``seed``.
    seed : int, optional
        Seed for a fresh ``np.random.default_rng`` when no rng is given.
    clock : Callable[[], float]
        Monotonic seconds, used for time budgets, render pacing and elapsed
        time.
    """

    def __init__(
        self,
        engine_config: EngineConfig | Mapping[str, Any] | None = None,
        *,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        if isinstance(engine_config, EngineConfig):
            self.config = engine_config
        else:
            self.config = validators.validate_engine_config(engine_config)
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self._clock = clock

        self._settings: Settings | None = None
        self._geometry: Geometry | None = None
        self._table: RestrictionTable | None = None
        self._walk: WalkEngine | None = None
        self._density: DensityAccumulator | None = None
        self._pixels: np.ndarray | None = None
        self._normalizer: ColorNormalizer | None = None
        self._detector = StabilityDetector(self.config.ema_alpha, self.config.stability_window)
        self._scheduler = BatchScheduler(self, self.config, clock=clock)
        self._listeners: dict[str, list[Callable[[Any], None]]] = {name: [] for name in EVENTS}
        self.steps = 0

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        """Register ``callback`` for ``event``."""
        if event not in self._listeners:
            raise ValueError(f"Unknown event {event!r}; expected one of {EVENTS}")
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Callable[[Any], None]) -> None:
        """Remove a previously registered callback (no-op if absent)."""
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def _emit(self, event: str, payload: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception as exc:  # noqa: BLE001
                logger.error("%s listener error: %s", event, exc)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    def _require(self) -> None:
        if self._settings is None:
            raise EngineStateError("Engine not initialized; call initialize(settings) first")

    @property
    def initialized(self) -> bool:
        return self._settings is not None

    @property
    def settings(self) -> Settings:
        self._require()
        return self._settings

    @property
    def geometry(self) -> Geometry:
        self._require()
        return self._geometry

    @property
    def walk(self) -> WalkEngine:
        self._require()
        return self._walk

    @property
    def state(self) -> SchedulerState:
        return self._scheduler.state

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    @property
    def scheduler(self) -> BatchScheduler:
        return self._scheduler

    @property
    def detector(self) -> StabilityDetector:
        return self._detector

    @property
    def density(self) -> np.ndarray:
        """Read-only (size, size) hit counts, indexed [y, x]."""
        self._require()
        return self._density.grid

    @property
    def max_value(self) -> int:
        self._require()
        return self._density.max_value

    @property
    def auto_stop(self) -> bool:
        return self._settings is not None and self._settings.auto_stop

    @property
    def live_rendering(self) -> bool:
        return self._settings is not None and self._settings.live_rendering

    def stats(self) -> EngineStats:
        self._require()
        return EngineStats(
            state=self.state,
            steps=self.steps,
            plotted_points=self._density.plotted,
            discarded_points=self._density.discarded,
            max_value=self._density.max_value,
            filled_pixels=self._density.filled_pixels(),
            stability_checks=self._detector.checks,
            new_pixels_ema=self._detector.ema,
        )

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self, settings: Settings | Mapping[str, Any] | None = None, **overrides: Any) -> Settings:
        """Allocate buffers, build geometry and clear all run state.

        Stops a running simulation first. On a ConfigurationError nothing
        changes.

        Returns
        -------
        Settings
            The validated settings now in force.
        """
        new = validators.validate_settings(settings, **overrides)
        parts = self._build_geometry(new)

        self.stop()
        self._settings = new
        self._density = DensityAccumulator(new.canvas_size)
        self._pixels = np.zeros(new.canvas_size * new.canvas_size, dtype=np.uint32)
        self._normalizer = ColorNormalizer.from_settings(new)
        self._install_geometry(*parts)
        self.erase()
        logger.info(
            "Engine initialized: canvas=%dpx sides=%d vertices=%d restriction=%s",
            new.canvas_size, new.sides, self._geometry.vertex_count, new.restriction.value,
        )
        return new

    def reset(self, settings: Settings | Mapping[str, Any] | None = None, **overrides: Any) -> Settings:
        """Stop, re-initialize (with the current settings by default) and render."""
        base = settings if settings is not None else self._settings
        new = self.initialize(base, **overrides)
        self.render()
        return new

    def _build_geometry(self, settings: Settings) -> tuple[Geometry, RestrictionTable, WalkEngine]:
        with timer("geometry", sink=lambda name, s: logger.debug("%s rebuilt in %.2f ms", name, s * 1000),
                   clock=self._clock):
            geometry = geometry_for(settings)
            table = table_for(geometry, settings.restriction)
            walk = WalkEngine(
                geometry, table, settings.jump_distance, self.rng,
                history_capacity=self.config.history_capacity,
            )
            walk.burn_in(self.config.burn_in_steps)
        return geometry, table, walk

    def _install_geometry(self, geometry: Geometry, table: RestrictionTable, walk: WalkEngine) -> None:
        self._geometry = geometry
        self._table = table
        self._walk = walk

    def erase(self) -> None:
        """Clear density, pixels, history and stability state; keep geometry."""
        self._require()
        self._density.clear()
        self._walk.history.clear()
        self._detector.reset()
        self._scheduler.reset_counters()
        self._normalizer.fill_background(self._pixels)
        self.steps = 0

    # ------------------------------------------------------------------
    # Settings changes
    # ------------------------------------------------------------------

    def reconfigure(self, settings: Settings | Mapping[str, Any] | None = None, **changes: Any) -> ChangeKind:
        """Apply new settings, doing only the recomputation the change needs.

        Parameters
        ----------
        settings : Settings or mapping, optional
            Replacement values; keys not given keep their current value.
        **changes
            Individual overrides (snake_case or camelCase).

        Raises
        ------
        ConfigurationError
            If the result is invalid; the previous settings stay in force.
        """
        self._require()
        old = self._settings
        base = old.model_dump()
        if isinstance(settings, Settings):
            base = settings.model_dump()
        elif settings is not None:
            base.update({validators.resolve_key(k): v for k, v in settings.items()})
        try:
            new = validators.validate_settings(base, **changes)
        except ConfigurationError as e:
            logger.warning("Rejected settings change: %s", e)
            raise

        changed = {name for name in Settings.model_fields if getattr(old, name) != getattr(new, name)}
        if not changed:
            return ChangeKind.UNCHANGED

        if changed & RESIZE_KEYS:
            self.reset(new)
            return ChangeKind.GEOMETRY_REBUILT

        if changed & GEOMETRY_KEYS:
            parts = self._build_geometry(new)
            self.stop()
            self._settings = new
            self._normalizer = ColorNormalizer.from_settings(new)
            self._install_geometry(*parts)
            self.erase()
            logger.info("Geometry rebuilt (%s)", ", ".join(sorted(changed & GEOMETRY_KEYS)))
            self.render()
            return ChangeKind.GEOMETRY_REBUILT

        self._settings = new
        self._walk.jump_distance = new.jump_distance

        if changed & COLOR_KEYS:
            self._normalizer = ColorNormalizer.from_settings(new)
            self._normalizer.fill_background(self._pixels)
            kind = ChangeKind.COLOR_ONLY
        elif changed & LIVE_KEYS:
            kind = ChangeKind.LIVE
        else:
            kind = ChangeKind.COSMETIC_ONLY

        needs_render = bool(changed & (COLOR_KEYS | COSMETIC_KEYS))
        if 'live_rendering' in changed and new.live_rendering:
            needs_render = True
        if needs_render and (not self.is_running or new.live_rendering):
            self.render()

        logger.debug("Settings updated (%s): %s", kind.value, ", ".join(sorted(changed)))
        return kind

    def update_setting(self, key: str, value: Any) -> ChangeKind:
        """Change one setting by name (snake_case or camelCase)."""
        return self.reconfigure(**{validators.resolve_key(key): value})

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    def play(self) -> bool:
        """Start the scheduler. Returns False if already running."""
        self._require()
        return self._scheduler.play()

    def stop(self) -> bool:
        """Halt the scheduler with a final render. Returns False if idle."""
        return self._scheduler.stop()

    def run_quantum(self, budget_ms: float | None = None) -> QuantumResult:
        """Run one time-budgeted slice of work (no-op when idle)."""
        self._require()
        return self._scheduler.run_quantum(budget_ms)

    def run_until_idle(
        self,
        *,
        max_quanta: int | None = None,
        budget_ms: float | None = None,
        between: Callable[[], None] | None = None,
    ) -> int:
        """Drive quanta until the run stops; returns quanta executed."""
        self._require()
        return run_until_idle(self._scheduler, max_quanta=max_quanta, budget_ms=budget_ms, between=between)

    def advance(self, steps: int) -> int:
        """Synchronously run ``steps`` walk steps with accumulation.

        Bypasses the scheduler (no checks, no renders). Returns points plotted.
        """
        self._require()
        plotted = 0
        remaining = steps
        while remaining > 0:
            chunk = min(remaining, self.config.batch_size)
            plotted += self.run_batch(chunk)
            remaining -= chunk
        return plotted

    # ------------------------------------------------------------------
    # Scheduler host callbacks
    # ------------------------------------------------------------------

    def run_batch(self, steps: int) -> int:
        batch = self._walk.walk(steps)
        self.steps += len(batch)
        return self._density.plot(batch.xs, batch.ys, self._geometry, self._settings.symmetrical)

    def check_stability(self) -> bool:
        new_pixels = self._density.take_new_pixels()
        event: StabilityEvent = self._detector.check(new_pixels, self._settings.stability_new_pixels_threshold)
        self._emit("stabilityCheck", event)
        return event.converged

    def render(self) -> None:
        """Materialize the pixel buffer and emit it as a "render" event."""
        self._emit("render", self.render_snapshot())

    def finish(self, elapsed_time: float) -> None:
        self._emit("finish", FinishedEvent(elapsed_time=elapsed_time, plotted_points=self._density.plotted))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def render_snapshot(self) -> PixelBuffer:
        """Normalize current density into the pixel buffer and return a copy."""
        self._require()
        self._normalizer.apply(self._density.counts, self._density.max_value, self._pixels)
        return PixelBuffer(size=self._settings.canvas_size, data=self._pixels.copy())
