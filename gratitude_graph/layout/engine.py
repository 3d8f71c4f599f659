"""
gratitude_graph/layout/engine.py — Iterative force-directed layout.

The engine owns a private copy of the current data set and a PositionTable
with the mutable simulation state. Nothing outside this module writes to the
table; the render surface reads snapshots and moves nodes only through the
drag protocol (drag_start / drag_move / drag_end).

Cooling model:
    alpha       — current energy. Forces are scaled by it.
    alpha_target — energy the simulation relaxes toward (0 at rest, raised
                   while a drag is active).
    Each tick: alpha += (alpha_target - alpha) * alpha_decay.
    A host loop calls advance() once per animation frame; once alpha drops
    below alpha_min the engine stops self-ticking until something reheats it
    (drag, resize, new data).

Usage:
    engine = ForceLayoutEngine(width=1280, height=720)
    engine.set_data(data)
    while engine.advance():
        draw(engine.positions())
"""

import copy
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from gratitude_graph.config import DEFAULT_CONFIG, GraphConfig
from gratitude_graph.graph.model import GraphData, GraphNode, node_radius, resolve_links
from gratitude_graph.layout.forces import (
    CenterForce,
    CollideForce,
    Force,
    LinkForce,
    ManyBodyForce,
    PositionForce,
)
from gratitude_graph.layout.positions import NodePosition, PositionTable

logger = logging.getLogger(__name__)


class UnknownNodeError(KeyError):
    """The drag protocol was called with an id outside the current data set."""


@dataclass(frozen=True)
class ResolvedLink:
    """A link whose endpoints have been resolved to the engine's node copies."""

    source: GraphNode
    target: GraphNode
    kind: str
    source_row: int
    target_row: int


TickListener = Callable[["ForceLayoutEngine"], None]


def _unsubscriber(listeners: list, listener: TickListener) -> Callable[[], None]:
    """Unsubscribe function that is safe to call more than once."""

    def unsubscribe() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return unsubscribe


class ForceLayoutEngine:
    """
    Force simulation over one data set at a time.

    Args:
        width, height: Viewport size; the centering forces target its middle.
        config:        GraphConfig with force constants.
        seed:          Seed for the jitter RNG that separates coincident nodes.
    """

    def __init__(
        self,
        width: float,
        height: float,
        config: GraphConfig = DEFAULT_CONFIG,
        seed: Optional[int] = None,
    ):
        self.config = config
        self.width = float(width)
        self.height = float(height)
        self._rng = np.random.default_rng(seed)
        self._generation = 0
        self._nodes: tuple[GraphNode, ...] = ()
        self._links: tuple[ResolvedLink, ...] = ()
        self._table = PositionTable([], np.zeros(0), generation=0)
        self._forces: dict[str, Force] = {}
        self._incident: dict[str, frozenset[int]] = {}
        self._dragging: set[str] = set()
        self._tick_listeners: list[TickListener] = []
        self._end_listeners: list[TickListener] = []
        self._in_tick = False
        self.alpha = 0.0
        self.alpha_target = 0.0
        self._running = False

    # ── Read-only views ───────────────────────────────────────────────────────

    @property
    def nodes(self) -> tuple[GraphNode, ...]:
        return self._nodes

    @property
    def links(self) -> tuple[ResolvedLink, ...]:
        return self._links

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_empty(self) -> bool:
        return not self._nodes

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_cooled(self) -> bool:
        return self.alpha < self.config.alpha_min

    def position(self, node_id: str) -> Optional[NodePosition]:
        return self._table.snapshot(node_id)

    def positions(self) -> dict[str, tuple[float, float]]:
        return self._table.as_dict()

    def radius(self, node_id: str) -> float:
        return float(self._table.radii[self._row(node_id)])

    def incident_links(self, node_id: str) -> frozenset[int]:
        """Indices into `links` of every link touching node_id."""
        return self._incident.get(node_id, frozenset())

    def is_dragging(self, node_id: str) -> bool:
        return node_id in self._dragging

    # ── Listeners ─────────────────────────────────────────────────────────────

    def on_tick(self, listener: TickListener) -> Callable[[], None]:
        """Call `listener(engine)` after every self-driven tick. Returns an unsubscribe function."""
        self._tick_listeners.append(listener)
        return _unsubscriber(self._tick_listeners, listener)

    def on_end(self, listener: TickListener) -> Callable[[], None]:
        """Call `listener(engine)` when the simulation cools and stops."""
        self._end_listeners.append(listener)
        return _unsubscriber(self._end_listeners, listener)

    # ── Data set lifecycle ────────────────────────────────────────────────────

    def set_data(self, data: GraphData, initial_positions: Optional[dict] = None) -> None:
        """
        Replace the whole data set and restart the simulation from scratch.

        Nodes are shallow-copied so that callers re-supplying the same
        GraphData never alias engine state. Links with endpoints outside the
        node set are dropped (one warning). Every piece of state is built
        first and swapped in at the end, so a data set is never partially
        installed.

        Args:
            data:              New data set.
            initial_positions: Optional node id → (x, y) seeds; other nodes get
                               the default spiral placement around the origin.
        """
        nodes = tuple(copy.copy(n) for n in data.nodes)
        by_id = {n.id: n for n in nodes}
        resolved, _ = resolve_links(nodes, data.links)

        generation = self._generation + 1
        radii = np.array([node_radius(n, self.config) for n in nodes], dtype=float)
        table = PositionTable([n.id for n in nodes], radii, generation=generation)
        table.place_phyllotaxis(self.config.initial_radius, self.config.initial_angle)
        if initial_positions:
            table.seed(initial_positions)

        links = tuple(
            ResolvedLink(
                source=by_id[link.source],
                target=by_id[link.target],
                kind=link.kind,
                source_row=table.row(link.source),
                target_row=table.row(link.target),
            )
            for link in resolved
        )
        incident: dict[str, set[int]] = {}
        for i, link in enumerate(links):
            incident.setdefault(link.source.id, set()).add(i)
            incident.setdefault(link.target.id, set()).add(i)

        forces = self._build_forces(links)
        for force in forces.values():
            force.initialize(table, self._jiggle)

        # ── Swap ──────────────────────────────────────────────────────────────
        self._generation = generation
        self._nodes = nodes
        self._links = links
        self._table = table
        self._forces = forces
        self._incident = {k: frozenset(v) for k, v in incident.items()}
        self._dragging = set()
        self.alpha_target = 0.0
        self.alpha = self.config.alpha_start if nodes else 0.0
        self._running = bool(nodes)

        logger.info(
            "Layout data set %d installed: %d nodes, %d links.",
            generation,
            len(nodes),
            len(links),
        )

    def clear(self) -> None:
        """Discard the current data set (host unmount)."""
        self.set_data(GraphData())

    def _build_forces(self, links: tuple[ResolvedLink, ...]) -> dict[str, Force]:
        cfg = self.config
        cx, cy = self.width / 2, self.height / 2
        return {
            "link": LinkForce(
                [link.source_row for link in links],
                [link.target_row for link in links],
                distance=cfg.link_distance,
                strength=cfg.link_strength,
            ),
            "charge": ManyBodyForce(
                cfg.charge_strength,
                distance_min=cfg.charge_distance_min,
                distance_max=cfg.charge_distance_max,
            ),
            "center": CenterForce(cx, cy),
            "collision": CollideForce(
                cfg.collision_margin,
                strength=cfg.collision_strength,
                iterations=cfg.collision_iterations,
            ),
            "x": PositionForce("x", cx, cfg.center_strength),
            "y": PositionForce("y", cy, cfg.center_strength),
        }

    def _jiggle(self, n: int) -> np.ndarray:
        return (self._rng.random(n) - 0.5) * 1e-6

    # ── Simulation ────────────────────────────────────────────────────────────

    def tick(self, iterations: int = 1) -> None:
        """
        Run `iterations` simulation steps unconditionally (no listeners fired).

        An empty data set does no work. Ticks never overlap: a listener that
        calls tick() from inside a tick gets a RuntimeError.
        """
        if self.is_empty:
            return
        if self._in_tick:
            raise RuntimeError("tick() re-entered while a tick is being applied")
        self._in_tick = True
        try:
            cfg = self.config
            t = self._table
            keep = 1.0 - cfg.velocity_decay
            for _ in range(iterations):
                self.alpha += (self.alpha_target - self.alpha) * cfg.alpha_decay
                for force in self._forces.values():
                    force.apply(self.alpha)

                pinned = t.pinned_mask()
                free = ~pinned
                t.vx[free] *= keep
                t.vy[free] *= keep
                t.x[free] += t.vx[free]
                t.y[free] += t.vy[free]
                t.x[pinned] = t.fx[pinned]
                t.y[pinned] = t.fy[pinned]
                t.vx[pinned] = 0.0
                t.vy[pinned] = 0.0
        finally:
            self._in_tick = False

    def advance(self) -> bool:
        """
        Animation-frame step: tick once if running, notify listeners, stop when cooled.

        Returns:
            True if the simulation is still running after this frame.
        """
        if not self._running:
            return False
        self.tick()
        for listener in list(self._tick_listeners):
            listener(self)
        if self.alpha < self.config.alpha_min:
            self._running = False
            logger.debug("Layout cooled (generation %d).", self._generation)
            for listener in list(self._end_listeners):
                listener(self)
        return self._running

    def run_until_cooled(self, max_ticks: int = 1000) -> int:
        """Drive advance() until the simulation stops. Returns ticks executed."""
        ticks = 0
        while ticks < max_ticks and self.advance():
            ticks += 1
        return ticks

    def restart(self) -> None:
        if not self.is_empty:
            self._running = True

    def stop(self) -> None:
        self._running = False

    def reheat(self, alpha: float) -> None:
        """Raise the energy to `alpha` and resume self-ticking."""
        self.alpha = alpha
        self.restart()

    # ── Drag protocol ─────────────────────────────────────────────────────────

    def _row(self, node_id: str) -> int:
        try:
            return self._table.row(node_id)
        except KeyError:
            raise UnknownNodeError(node_id) from None

    def drag_start(self, node_id: str) -> None:
        """Pin the node where it is and heat the simulation so neighbours react."""
        row = self._row(node_id)
        if not self._dragging:
            self.alpha_target = self.config.drag_alpha_target
            self.restart()
        self._dragging.add(node_id)
        t = self._table
        t.pin(row, float(t.x[row]), float(t.y[row]))

    def drag_move(self, node_id: str, x: float, y: float) -> None:
        """Move the pin; the node lands exactly on (x, y) at the next tick."""
        row = self._row(node_id)
        self._table.pin(row, float(x), float(y))

    def drag_end(self, node_id: str) -> None:
        """Release the pin and let the heat target fall back to rest."""
        row = self._row(node_id)
        self._dragging.discard(node_id)
        if not self._dragging:
            self.alpha_target = 0.0
        self._table.unpin(row)

    # ── Viewport ──────────────────────────────────────────────────────────────

    def resize(self, width: float, height: float) -> None:
        """Retarget the centering forces and mildly reheat so the layout glides over."""
        self.width = float(width)
        self.height = float(height)
        cx, cy = self.width / 2, self.height / 2
        if "center" in self._forces:
            center = self._forces["center"]
            center.x, center.y = cx, cy
            self._forces["x"].target = cx
            self._forces["y"].target = cy
        if not self.is_empty:
            self.reheat(self.config.resize_alpha)
