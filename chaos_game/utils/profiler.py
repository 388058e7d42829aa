"""Lightweight profiling: wall-clock timers.

Provides:
    - timer(): Context manager for wall-clock timing, reported to a sink or the log
    - TimerAccumulator: Running mean of repeated measurements

Used to measure:
    - Geometry rebuild + burn-in
    - Batch execution inside a scheduling quantum

Both accept an injectable clock (seconds, monotonic) so tests can drive time
deterministically. No heavy dependencies.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional

Clock = Callable[[], float]

logger = logging.getLogger(__name__)


@contextmanager
def timer(
    name: str,
    sink: Optional[Callable[[str, float], None]] = None,
    clock: Clock = time.perf_counter
):
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Timer name (for logging/display)
    sink : Optional[Callable[[str, float], None]]
        Optional callback(name, elapsed_seconds)
        If None, the time is logged at DEBUG level
    clock : Callable[[], float]
        Time source in seconds, default time.perf_counter

    Examples
    --------
    >>> with timer("rebuild", sink=lambda n, s: logger.debug("%s: %.3f s", n, s)):
    ...     engine.rebuild_geometry()
    """
    start = clock()
    try:
        yield
    finally:
        elapsed = clock() - start
        if sink is not None:
            sink(name, elapsed)
        else:
            logger.debug("%s: %.3f s", name, elapsed)


class TimerAccumulator:
    """Accumulate multiple timing measurements for averaging.

    Attributes
    ----------
    name : str
        Timer name
    total_time : float
        Accumulated time in seconds
    count : int
        Number of measurements

    Examples
    --------
    >>> batch_timer = TimerAccumulator("batch")
    >>> for _ in range(100):
    ...     with batch_timer.measure():
    ...         run_batch()
    >>> print(f"Mean: {batch_timer.mean():.4f} s")
    """

    def __init__(self, name: str, clock: Clock = time.perf_counter):
        self.name = name
        self.clock = clock
        self.total_time = 0.0
        self.last = 0.0
        self.count = 0

    @contextmanager
    def measure(self):
        """Context manager to measure and accumulate time."""
        start = self.clock()
        try:
            yield
        finally:
            self.last = self.clock() - start
            self.total_time += self.last
            self.count += 1

    def mean(self) -> float:
        """Mean time per measurement in seconds, or 0.0 if none recorded."""
        return self.total_time / self.count if self.count > 0 else 0.0

    def reset(self) -> None:
        """Reset accumulated data."""
        self.total_time = 0.0
        self.last = 0.0
        self.count = 0

    def __repr__(self) -> str:
        return f"TimerAccumulator({self.name}, mean={self.mean():.4f}s, count={self.count})"
