"""
gratitude_graph/layout/positions.py — Engine-owned positional overlay.

Node records are immutable and caller-visible; the mutable simulation state
(x, y, vx, vy and the drag pins fx, fy) lives here, in numpy arrays indexed by
row and keyed by node id.

Each data set installed into the engine gets a brand-new table with a higher
generation number. A row index obtained from one generation is meaningless in
another; callers outside the engine only ever see copies (NodePosition).
"""

from typing import NamedTuple, Optional

import numpy as np


class NodePosition(NamedTuple):
    """Read-only snapshot of one node's position."""

    x: float
    y: float
    fixed: bool


class PositionTable:
    """
    Struct-of-arrays position store for one data set.

    Attributes:
        generation: Monotonic id of the data set this table belongs to.
        ids:        Node ids in row order.
        x, y:       Current positions.
        vx, vy:     Current velocities.
        fx, fy:     Drag pins; NaN means the node is free.
        radii:      Collision/render radius per row (constant per data set).
    """

    def __init__(self, ids: list[str], radii: np.ndarray, generation: int):
        self.generation = generation
        self.ids = list(ids)
        self.index = {node_id: i for i, node_id in enumerate(self.ids)}
        n = len(self.ids)
        self.x = np.zeros(n)
        self.y = np.zeros(n)
        self.vx = np.zeros(n)
        self.vy = np.zeros(n)
        self.fx = np.full(n, np.nan)
        self.fy = np.full(n, np.nan)
        self.radii = np.asarray(radii, dtype=float)

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.index

    def row(self, node_id: str) -> int:
        return self.index[node_id]

    def place_phyllotaxis(self, initial_radius: float, initial_angle: float) -> None:
        """Spiral placement around the origin, the same seeding d3-force uses."""
        i = np.arange(len(self), dtype=float)
        radius = initial_radius * np.sqrt(0.5 + i)
        angle = i * initial_angle
        self.x = radius * np.cos(angle)
        self.y = radius * np.sin(angle)

    def seed(self, positions: dict) -> None:
        """Override initial positions for the ids present in `positions`."""
        for node_id, (px, py) in positions.items():
            i = self.index.get(node_id)
            if i is None:
                continue
            self.x[i] = float(px)
            self.y[i] = float(py)

    def pin(self, row: int, x: float, y: float) -> None:
        self.fx[row] = x
        self.fy[row] = y

    def unpin(self, row: int) -> None:
        self.fx[row] = np.nan
        self.fy[row] = np.nan

    def pinned_mask(self) -> np.ndarray:
        return ~np.isnan(self.fx)

    def snapshot(self, node_id: str) -> Optional[NodePosition]:
        i = self.index.get(node_id)
        if i is None:
            return None
        return NodePosition(float(self.x[i]), float(self.y[i]), not np.isnan(self.fx[i]))

    def as_dict(self) -> dict[str, tuple[float, float]]:
        """Node id → (x, y), copied out of the arrays."""
        return {node_id: (float(self.x[i]), float(self.y[i])) for i, node_id in enumerate(self.ids)}
