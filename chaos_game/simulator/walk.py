"""Walk engine -- restricted random vertex selection and point movement.

Each step:
    1. choose a vertex index (uniform, or uniform over a legal set)
    2. append it to the bounded move history
    3. move the current point that fraction of the way toward the vertex:
       ``p += (v - p) * jump_distance``

When a rule applies:

    =========================  ==========================  ================
    rule                       applies when                lookback entry
    =========================  ==========================  ================
    none                       never (table is all)        --
    no-repeat, no-neighbor     history non-empty           last choice
    no-return                  history has >= 2 entries    second-to-last
    no-double-repeat,          last two choices are equal  last choice
    no-neighbor-after-repeat
    =========================  ==========================  ================

Randomness comes from the injected numpy Generator only; a batch draws all
of its uniforms up front so a seeded run replays exactly.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

import numpy as np

from chaos_game.simulator.layout import Geometry
from chaos_game.simulator.restrictions import RestrictionTable
from chaos_game.utils import geometry as geo
from chaos_game.utils.validators import Restriction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalkBatch:
    """Points produced by consecutive steps, and the vertex chosen for each."""

    xs: np.ndarray
    ys: np.ndarray
    indices: np.ndarray

    def __len__(self) -> int:
        return len(self.xs)


class WalkEngine:
    """Current point plus move history for one geometry.

    Parameters
    ----------
    geometry : Geometry
        Vertex set to walk on.
    table : RestrictionTable
        Legal successor sets, built for ``geometry`` and ``table.rule``.
    jump_distance : float
        Fraction of the distance moved toward the chosen vertex. May be
        changed between steps.
    rng : np.random.Generator
        Random source.
    history_capacity : int
        Chosen indices kept; the oldest is evicted first.
    """

    def __init__(
        self,
        geometry: Geometry,
        table: RestrictionTable,
        jump_distance: float,
        rng: np.random.Generator,
        history_capacity: int = 10,
    ) -> None:
        if len(table) != geometry.vertex_count:
            raise ValueError(
                f"Restriction table covers {len(table)} vertices, geometry has {geometry.vertex_count}"
            )
        self.geometry = geometry
        self.table = table
        self.rule: Restriction = table.rule
        self.jump_distance = float(jump_distance)
        self.rng = rng
        self.history: deque[int] = deque(maxlen=history_capacity)

        self._all = tuple(range(geometry.vertex_count))
        # Plain float lists index faster than numpy in the per-step loop
        self._vx = geometry.vertices[:, 0].tolist()
        self._vy = geometry.vertices[:, 1].tolist()

        start = geo.sample_in_polygon(geometry.main_vertices, geometry.center, rng)
        self.x, self.y = float(start[0]), float(start[1])

    @property
    def point(self) -> tuple[float, float]:
        return self.x, self.y

    def legal_choices(self) -> tuple[int, ...]:
        """Indices the next step may choose, given the current history."""
        history = self.history
        rule = self.rule
        if (
            not history
            or (rule is Restriction.NO_RETURN and len(history) < 2)
            or (rule.needs_repeat and (len(history) < 2 or history[-1] != history[-2]))
        ):
            return self._all
        lookback = history[-2] if rule is Restriction.NO_RETURN else history[-1]
        return self.table.allowed(lookback)

    def choose(self, u: float) -> int:
        """Map a uniform draw in [0, 1) to a legal vertex index."""
        pool = self.legal_choices()
        return pool[int(u * len(pool))]

    def walk(self, count: int) -> WalkBatch:
        """Run ``count`` steps and return every resulting point."""
        draws = self.rng.random(count).tolist()
        xs = np.empty(count, dtype=np.float64)
        ys = np.empty(count, dtype=np.float64)
        indices = np.empty(count, dtype=np.int64)

        x, y = self.x, self.y
        jump = self.jump_distance
        vx, vy = self._vx, self._vy
        history = self.history
        choose = self.choose

        for k, u in enumerate(draws):
            idx = choose(u)
            history.append(idx)
            x += (vx[idx] - x) * jump
            y += (vy[idx] - y) * jump
            xs[k] = x
            ys[k] = y
            indices[k] = idx

        self.x, self.y = x, y
        return WalkBatch(xs, ys, indices)

    def step(self) -> tuple[float, float]:
        """Single step; returns the new point."""
        batch = self.walk(1)
        return float(batch.xs[0]), float(batch.ys[0])

    def burn_in(self, steps: int) -> None:
        """Advance without recording so the point settles onto the attractor."""
        if steps > 0:
            self.walk(steps)
            logger.debug("Burn-in: %d steps, point=(%.2f, %.2f)", steps, self.x, self.y)
