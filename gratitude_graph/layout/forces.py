"""
gratitude_graph/layout/forces.py — Force terms for the layout simulation.

Each force reads the PositionTable and adds to velocities (or, for the
centering force, shifts positions directly). The engine applies them in
registration order once per tick, then integrates velocities.

Force semantics (matching the browser d3-force model the graph was designed with):
    link       — spring toward link_distance, split between endpoints by degree bias.
    many-body  — pairwise inverse-distance repulsion, cut off at distance_max.
    center     — translate the whole layout so its mean sits on the viewport centre.
    collide    — push apart nodes whose predicted discs (radius + margin) overlap.
    x / y      — weak per-axis pull toward the viewport centre.

All forces are vectorized with numpy. Many-body and collide are exact O(n²)
pairwise passes, which is comfortable for the few hundred nodes the graph
shows; they do not use a Barnes-Hut approximation.
"""

from typing import Callable

import numpy as np

from gratitude_graph.layout.positions import PositionTable


def _jiggle_zeros(values: np.ndarray, jiggle: Callable[[int], np.ndarray]) -> np.ndarray:
    """Replace exact zeros with tiny random offsets so coincident nodes can separate."""
    zero = values == 0
    if zero.any():
        values = values.copy()
        values[zero] = jiggle(int(zero.sum()))
    return values


class Force:
    """Base class: initialize once per data set, apply once per tick."""

    def initialize(self, table: PositionTable, jiggle: Callable[[int], np.ndarray]) -> None:
        self.table = table
        self.jiggle = jiggle

    def apply(self, alpha: float) -> None:
        raise NotImplementedError


class LinkForce(Force):
    """
    Spring force along links.

    For each link, the distance error between the endpoints' predicted
    positions (x + vx) is corrected by `strength * alpha`. The correction is
    split by bias = deg(source) / (deg(source) + deg(target)), so weakly
    connected nodes move more than hubs.
    """

    def __init__(self, source_rows, target_rows, distance: float, strength: float, iterations: int = 1):
        self.source_rows = np.asarray(source_rows, dtype=int)
        self.target_rows = np.asarray(target_rows, dtype=int)
        self.distance = distance
        self.strength = strength
        self.iterations = iterations

    def initialize(self, table: PositionTable, jiggle) -> None:
        super().initialize(table, jiggle)
        # Self-loops exert no net force; leave them out of the spring pass.
        keep = self.source_rows != self.target_rows
        self.source_rows = self.source_rows[keep]
        self.target_rows = self.target_rows[keep]
        count = np.zeros(len(table))
        np.add.at(count, self.source_rows, 1)
        np.add.at(count, self.target_rows, 1)
        if len(self.source_rows):
            s_count = count[self.source_rows]
            self.bias = s_count / (s_count + count[self.target_rows])
        else:
            self.bias = np.zeros(0)

    def apply(self, alpha: float) -> None:
        if not len(self.source_rows):
            return
        t = self.table
        s, d = self.source_rows, self.target_rows
        for _ in range(self.iterations):
            dx = _jiggle_zeros(t.x[d] + t.vx[d] - t.x[s] - t.vx[s], self.jiggle)
            dy = _jiggle_zeros(t.y[d] + t.vy[d] - t.y[s] - t.vy[s], self.jiggle)
            length = np.sqrt(dx * dx + dy * dy)
            k = (length - self.distance) / length * alpha * self.strength
            dx = dx * k
            dy = dy * k
            np.subtract.at(t.vx, d, dx * self.bias)
            np.subtract.at(t.vy, d, dy * self.bias)
            np.add.at(t.vx, s, dx * (1 - self.bias))
            np.add.at(t.vy, s, dy * (1 - self.bias))


class ManyBodyForce(Force):
    """Pairwise repulsion (strength < 0) with magnitude |strength| * alpha / distance."""

    def __init__(self, strength: float, distance_min: float, distance_max: float):
        self.strength = strength
        self.distance_min2 = distance_min * distance_min
        self.distance_max2 = distance_max * distance_max

    def apply(self, alpha: float) -> None:
        t = self.table
        n = len(t)
        if n < 2:
            return
        dx = t.x[None, :] - t.x[:, None]
        dy = t.y[None, :] - t.y[:, None]
        off_diag = ~np.eye(n, dtype=bool)
        for delta in (dx, dy):
            coincident = np.triu(off_diag & (delta == 0))
            if coincident.any():
                delta[coincident] = self.jiggle(int(coincident.sum()))
                delta.T[coincident] = -delta[coincident]

        l2 = dx * dx + dy * dy
        in_range = off_diag & (l2 < self.distance_max2)
        l2 = np.where(l2 < self.distance_min2, np.sqrt(self.distance_min2 * l2), l2)
        with np.errstate(divide="ignore", invalid="ignore"):
            w = np.where(in_range, self.strength * alpha / l2, 0.0)
        t.vx += (dx * w).sum(axis=1)
        t.vy += (dy * w).sum(axis=1)


class CenterForce(Force):
    """Translate all nodes so their mean position coincides with (x, y)."""

    def __init__(self, x: float, y: float, strength: float = 1.0):
        self.x = x
        self.y = y
        self.strength = strength

    def apply(self, alpha: float) -> None:
        t = self.table
        if not len(t):
            return
        sx = (t.x.mean() - self.x) * self.strength
        sy = (t.y.mean() - self.y) * self.strength
        t.x -= sx
        t.y -= sy


class CollideForce(Force):
    """
    Resolve overlaps between discs of radius `radii + margin`.

    Works on predicted positions (x + vx). Each overlapping pair is pushed
    apart along the line between centres by the overlap depth * strength,
    shared so the smaller node moves more (weight rj² / (ri² + rj²)).
    """

    def __init__(self, margin: float, strength: float = 1.0, iterations: int = 1):
        self.margin = margin
        self.strength = strength
        self.iterations = iterations

    def initialize(self, table: PositionTable, jiggle) -> None:
        super().initialize(table, jiggle)
        self.r = table.radii + self.margin
        r2 = self.r * self.r
        with np.errstate(divide="ignore", invalid="ignore"):
            self.share = np.where(
                (r2[:, None] + r2[None, :]) > 0,
                r2[None, :] / (r2[:, None] + r2[None, :]),
                0.5,
            )

    def apply(self, alpha: float) -> None:
        t = self.table
        n = len(t)
        if n < 2:
            return
        off_diag = ~np.eye(n, dtype=bool)
        reach = self.r[:, None] + self.r[None, :]
        for _ in range(self.iterations):
            px = t.x + t.vx
            py = t.y + t.vy
            dx = px[:, None] - px[None, :]
            dy = py[:, None] - py[None, :]
            l2 = dx * dx + dy * dy
            overlap = off_diag & (l2 < reach * reach)
            if not overlap.any():
                continue
            # Antisymmetric jiggle so a coincident pair is pushed in opposite directions.
            for delta in (dx, dy):
                stuck = overlap & (delta == 0)
                if stuck.any():
                    upper = np.triu(stuck)
                    delta[upper] = self.jiggle(int(upper.sum()))
                    delta.T[upper] = -delta[upper]
            l2 = dx * dx + dy * dy
            dist = np.sqrt(l2)
            with np.errstate(divide="ignore", invalid="ignore"):
                k = np.where(overlap, (reach - dist) / dist * self.strength * self.share, 0.0)
            t.vx += (dx * k).sum(axis=1)
            t.vy += (dy * k).sum(axis=1)


class PositionForce(Force):
    """Pull each node toward `target` along one axis ('x' or 'y')."""

    def __init__(self, axis: str, target: float, strength: float):
        if axis not in ("x", "y"):
            raise ValueError(f"axis must be 'x' or 'y', got {axis!r}")
        self.axis = axis
        self.target = target
        self.strength = strength

    def apply(self, alpha: float) -> None:
        t = self.table
        if self.axis == "x":
            t.vx += (self.target - t.x) * self.strength * alpha
        else:
            t.vy += (self.target - t.y) * self.strength * alpha
