"""Stability detector -- heuristic convergence from the new-pixel rate.

At every check the number of cells touched for the first time during the
interval is folded into an exponential moving average:

    ema = alpha * new_pixels + (1 - alpha) * ema

A check whose EMA is below the threshold is "quiet"; ``window`` quiet checks
in a row signal convergence, and any loud check restarts the count. This can
stop too early or too late on unusual attractors, and that is accepted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StabilityEvent:
    """Telemetry emitted once per check.

    ``fill_ratio`` is diagnostic only: the percentage of filled pixels that
    were already filled before this interval.
    """

    ema: float
    fill_ratio: float
    new_pixels: int
    filled_pixels: int
    quiet_checks: int
    converged: bool


class StabilityDetector:
    """EMA-based quiet-period detector.

    Parameters
    ----------
    alpha : float
        EMA smoothing factor in (0, 1].
    window : int
        Consecutive quiet checks required for convergence.
    """

    def __init__(self, alpha: float = 0.2, window: int = 10) -> None:
        if not 0 < alpha <= 1:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.alpha = alpha
        self.window = window
        self.reset()

    def reset(self) -> None:
        self.ema = 0.0
        self.quiet_checks = 0
        self.filled_pixels = 0
        self.checks = 0

    @property
    def converged(self) -> bool:
        return self.quiet_checks >= self.window

    def check(self, new_pixels: int, threshold: float) -> StabilityEvent:
        """Fold one interval's new-pixel count in and test for convergence."""
        self.checks += 1
        self.ema = self.alpha * new_pixels + (1 - self.alpha) * self.ema
        self.filled_pixels += new_pixels

        fill_ratio = 0.0
        if self.filled_pixels > 0:
            fill_ratio = max(0.0, 1 - new_pixels / self.filled_pixels) * 100

        if self.ema < threshold:
            self.quiet_checks += 1
        else:
            self.quiet_checks = 0

        event = StabilityEvent(
            ema=self.ema,
            fill_ratio=fill_ratio,
            new_pixels=new_pixels,
            filled_pixels=self.filled_pixels,
            quiet_checks=self.quiet_checks,
            converged=self.converged,
        )
        logger.debug(
            "Stability check %d: new=%d ema=%.3f fill=%.2f%% quiet=%d/%d",
            self.checks, new_pixels, self.ema, fill_ratio, self.quiet_checks, self.window,
        )
        return event
