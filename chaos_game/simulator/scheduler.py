"""Batch scheduler -- time-budgeted cooperative execution of the walk.

The scheduler never owns a thread or a timer. A host calls
``run_quantum()`` from whatever it uses to schedule work (an event loop
callback, an animation frame, a plain ``while`` loop) and gets back whether
another quantum is wanted:

    IDLE --play()--> RUNNING --stop() / convergence--> IDLE

Within one quantum:
    - batches of ``batch_size`` steps run back to back until the time budget
      is spent (at least one batch always runs)
    - with auto-stop on, every ``stability_interval`` plotted points trigger a
      stability check; convergence finishes the run inside the quantum
    - at the quantum boundary a live render is requested if the render
      interval has elapsed

Cancellation is cooperative: ``stop()`` between quanta takes effect before
the next batch, and a host callback that stops the run mid-quantum is
observed before the following batch.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Protocol

from chaos_game.utils.profiler import Clock, TimerAccumulator
from chaos_game.utils.validators import EngineConfig

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Run state of the scheduler."""

    IDLE = "idle"
    RUNNING = "running"


class QuantumResult(Enum):
    """Outcome of one quantum: schedule another, or the run is over."""

    CONTINUE = "continue"
    DONE = "done"


class BatchHost(Protocol):
    """What the scheduler drives; implemented by the engine."""

    @property
    def auto_stop(self) -> bool: ...

    @property
    def live_rendering(self) -> bool: ...

    def run_batch(self, steps: int) -> int:
        """Run ``steps`` walk steps with accumulation; return points plotted."""
        ...

    def check_stability(self) -> bool:
        """Run one stability check; return True on convergence."""
        ...

    def render(self) -> None: ...

    def finish(self, elapsed_time: float) -> None: ...


class BatchScheduler:
    """Idle/Running state machine around fixed-size batches.

    Parameters
    ----------
    host : BatchHost
        Receiver of batch, check, render and finish calls.
    config : EngineConfig
        Batch size, time budget, render interval and check interval.
    clock : Callable[[], float]
        Monotonic time source in seconds.
    """

    def __init__(
        self,
        host: BatchHost,
        config: EngineConfig,
        clock: Clock = time.perf_counter,
    ) -> None:
        self._host = host
        self.config = config
        self._clock = clock
        self.state = SchedulerState.IDLE
        self.iterations = 0
        self.quanta = 0
        self.started_at: float | None = None
        self.last_render_at = 0.0
        self.batch_timer = TimerAccumulator("batch", clock=clock)

    @property
    def is_running(self) -> bool:
        return self.state is SchedulerState.RUNNING

    def reset_counters(self) -> None:
        """Restart the stability cadence (called on erase)."""
        self.iterations = 0

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def play(self) -> bool:
        """Enter RUNNING. Returns False if already running."""
        if self.is_running:
            return False
        self.state = SchedulerState.RUNNING
        now = self._clock()
        self.started_at = now
        self.last_render_at = now
        self.quanta = 0
        self.batch_timer.reset()
        logger.info("Run started")
        return True

    def stop(self) -> bool:
        """Return to IDLE with a final render. Returns False if already idle."""
        if not self.is_running:
            return False
        elapsed = self._elapsed()
        self.state = SchedulerState.IDLE
        self.started_at = None
        logger.info(
            "Run stopped after %.3f s (%d quanta, mean batch %.2f ms)",
            elapsed, self.quanta, self.batch_timer.mean() * 1000,
        )
        self._host.render()
        return True

    def _finish(self) -> None:
        elapsed = self._elapsed()
        self.state = SchedulerState.IDLE
        self.started_at = None
        logger.info("Converged after %.3f s (%d quanta)", elapsed, self.quanta)
        self._host.finish(elapsed)
        self._host.render()

    def _elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self._clock() - self.started_at

    # ------------------------------------------------------------------
    # Work
    # ------------------------------------------------------------------

    def run_quantum(self, budget_ms: float | None = None) -> QuantumResult:
        """Run batches until the time budget is spent, then yield.

        Parameters
        ----------
        budget_ms : float, optional
            Override of ``config.time_budget_ms`` for this quantum.

        Returns
        -------
        QuantumResult
            CONTINUE while the run goes on; DONE once idle (stopped,
            converged, or never started).
        """
        if not self.is_running:
            return QuantumResult.DONE

        budget = (budget_ms if budget_ms is not None else self.config.time_budget_ms) / 1000.0
        start = self._clock()
        self.quanta += 1
        batches = 0

        while self.is_running:
            with self.batch_timer.measure():
                plotted = self._host.run_batch(self.config.batch_size)
            batches += 1

            if self._host.auto_stop:
                self.iterations += plotted
                if self.iterations >= self.config.stability_interval:
                    self.iterations = 0
                    if self._host.check_stability():
                        self._finish()
                        return QuantumResult.DONE

            if self._clock() - start >= budget:
                break

        if not self.is_running:
            return QuantumResult.DONE

        now = self._clock()
        if now - self.last_render_at >= self.config.render_interval_ms / 1000.0:
            if self._host.live_rendering:
                self._host.render()
            self.last_render_at = now

        logger.debug("Quantum %d: %d batches in %.2f ms", self.quanta, batches, (now - start) * 1000)
        return QuantumResult.CONTINUE


def run_until_idle(
    scheduler: BatchScheduler,
    *,
    max_quanta: int | None = None,
    budget_ms: float | None = None,
    between: Callable[[], None] | None = None,
) -> int:
    """Reference driver: call run_quantum() until the run ends.

    Parameters
    ----------
    scheduler : BatchScheduler
        Scheduler to drive; must already be playing to do any work.
    max_quanta : int, optional
        Stop driving (without stopping the run) after this many quanta.
    budget_ms : float, optional
        Per-quantum budget override.
    between : Callable[[], None], optional
        Called after every quantum that wants continuation; the place where
        a host would process its pending messages (stop, reconfigure, ...).

    Returns
    -------
    int
        Quanta executed.
    """
    executed = 0
    while max_quanta is None or executed < max_quanta:
        if not scheduler.is_running:
            break
        result = scheduler.run_quantum(budget_ms)
        executed += 1
        if result is QuantumResult.DONE:
            break
        if between is not None:
            between()
    return executed
