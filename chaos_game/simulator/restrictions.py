"""Restriction table -- legal next vertices per lookback vertex.

Precomputing the legal set for every vertex turns rule enforcement into a
single uniform pick from a list, with no select-and-retry loop.

The table only encodes *which* vertices a lookback vertex forbids. *Which*
history entry is the lookback, and whether a rule applies at all on a given
step, is decided by the walk (see ``walk.WalkEngine.choose``).
"""

from __future__ import annotations

from chaos_game.simulator.layout import Geometry
from chaos_game.utils.validators import Restriction


class RestrictionTable:
    """Per-vertex tuples of legal next-vertex indices.

    Invariant: every tuple is non-empty.

    Parameters
    ----------
    allowed : list[tuple[int, ...]]
        Entry ``i`` lists the legal choices when vertex ``i`` is the lookback.
    rule : Restriction
        Rule the table was built for.
    """

    def __init__(self, allowed: list[tuple[int, ...]], rule: Restriction) -> None:
        for i, legal in enumerate(allowed):
            if not legal:
                raise ValueError(f"Vertex {i} has no legal successor under {rule.value}")
        self._allowed = allowed
        self.rule = rule

    def allowed(self, index: int) -> tuple[int, ...]:
        """Legal next indices when ``index`` is the lookback vertex."""
        return self._allowed[index]

    def __len__(self) -> int:
        return len(self._allowed)

    def __repr__(self) -> str:
        return f"RestrictionTable(rule={self.rule.value}, vertices={len(self)})"


def build_restriction_table(
    vertex_count: int,
    ring_size: int,
    rule: Restriction,
) -> RestrictionTable:
    """Compute legal successor sets for every vertex.

    Parameters
    ----------
    vertex_count : int
        Total vertices (ring plus optional center).
    ring_size : int
        Vertices with ring adjacency; indices >= ring_size have no neighbors.
    rule : Restriction
        Active selection rule.
    """
    every = tuple(range(vertex_count))
    allowed: list[tuple[int, ...]] = []

    for i in range(vertex_count):
        if rule.excludes_self:
            legal = tuple(j for j in every if j != i)
        elif rule.excludes_neighbors and i < ring_size:
            left = (i - 1 + ring_size) % ring_size
            right = (i + 1) % ring_size
            legal = tuple(j for j in every if j != left and j != right)
        else:
            legal = every
        allowed.append(legal or every)

    return RestrictionTable(allowed, rule)


def table_for(geometry: Geometry, rule: Restriction) -> RestrictionTable:
    """Build the table for a geometry under ``rule``."""
    return build_restriction_table(geometry.vertex_count, geometry.ring_size, rule)
