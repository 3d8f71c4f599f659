"""
gratitude_graph/render/surface.py — Render and interaction surface for the force graph.

The surface turns engine state into a Frame (a flat, backend-neutral list of
glyphs) on every simulation tick, and translates pointer input into the
engine's drag protocol, viewport changes, hover highlighting and click
dispatch.

Visual encoding:
    - Links:  straight lines, opacity 0.4; on hover 0.8 for links touching the
              hovered node and 0.15 for all others.
    - Nodes:  circles, radius per node_radius(), fill per node_color(), a faint
              white stroke when the node has a wiki page; hovered node grows
              ×1.3 over 150 ms.
    - Labels: node name below the circle; 13px/700 for projects, 11px/500 for packages.
    - Entrance: nodes fade in over 800 ms, staggered 30 ms by index; labels
              follow 400 ms later. Purely cosmetic: hit-testing ignores opacity.

Click dispatch:
    on_node_click registered  → on_node_click(node)
    otherwise, node.has_wiki  → navigate('/wiki/<slug>')
    otherwise                 → nothing

Backends (Plotly, matplotlib) draw Frames; they never touch the engine.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from gratitude_graph.config import DEFAULT_CONFIG, GraphConfig
from gratitude_graph.graph.model import GraphData, GraphNode, node_color, node_radius
from gratitude_graph.layout.engine import ForceLayoutEngine
from gratitude_graph.render.viewport import Viewport, ZoomTransform

logger = logging.getLogger(__name__)

NodeClickHandler = Callable[[GraphNode], None]
Navigator = Callable[[str], None]

_UNSET = object()


# ── Frame glyphs ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LinkGlyph:
    source_id: str
    target_id: str
    kind: str
    x1: float
    y1: float
    x2: float
    y2: float
    opacity: float
    highlighted: bool = False


@dataclass(frozen=True)
class NodeGlyph:
    id: str
    name: str
    kind: str
    cx: float
    cy: float
    r: float
    fill: str
    stroke: Optional[str]
    stroke_width: float
    opacity: float
    hovered: bool = False


@dataclass(frozen=True)
class LabelGlyph:
    id: str
    text: str
    x: float
    y: float
    dy: float
    font_size: int
    font_weight: int
    opacity: float


@dataclass(frozen=True)
class Tooltip:
    """Hover card. `left`/`top` are screen coordinates relative to the canvas."""

    title: str
    lines: tuple
    left: float
    top: float


@dataclass(frozen=True)
class Frame:
    """
    Everything needed to draw one tick.

    Glyph coordinates are world coordinates; `transform` maps them to the
    screen (the same split an SVG <g transform> gives).
    """

    width: float
    height: float
    transform: ZoomTransform
    generation: int
    links: tuple = field(default_factory=tuple)
    nodes: tuple = field(default_factory=tuple)
    labels: tuple = field(default_factory=tuple)
    tooltip: Optional[Tooltip] = None

    @property
    def is_empty(self) -> bool:
        return not self.nodes


def tooltip_lines(node: GraphNode) -> tuple:
    """Tooltip body: creator, primary stat, thank-yous (if any), wiki flag."""
    lines = []
    if node.creator_name:
        lines.append(f"by {node.creator_name}")
    if node.kind == "package":
        lines.append(f"{node.user_count} developers")
    else:
        lines.append(node.tag or "project")
    if node.thank_you_count > 0:
        lines.append(f"{node.thank_you_count} thank-yous")
    if node.has_wiki:
        lines.append("Has wiki page")
    return tuple(lines)


@dataclass
class _Gesture:
    kind: str  # 'drag' | 'pan'
    last: tuple
    node: Optional[GraphNode] = None
    moved: bool = False


class RenderSurface:
    """
    Interactive drawing surface bound to one ForceLayoutEngine.

    Args:
        engine:        Layout engine (the surface subscribes to its ticks).
        navigate:      Called with a path when the surface itself navigates.
        on_node_click: Optional click delegate (dive mode selection).
        interactive:   False = decorative backdrop (wheel zoom suppressed).
        on_frame:      Optional draw callback invoked with a Frame every tick.
        clock:         Monotonic seconds; injectable for animation timing.
        config:        GraphConfig.
    """

    def __init__(
        self,
        engine: ForceLayoutEngine,
        navigate: Navigator,
        on_node_click: Optional[NodeClickHandler] = None,
        interactive: bool = False,
        on_frame: Optional[Callable[[Frame], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        config: GraphConfig = DEFAULT_CONFIG,
    ):
        self.engine = engine
        self.config = config
        self.viewport = Viewport(engine.width, engine.height, config)
        self._navigate = navigate
        self._on_node_click = on_node_click
        self._interactive = interactive
        self._on_frame = on_frame
        self._clock = clock
        self._mounted_at = clock()
        self._hovered: Optional[GraphNode] = None
        self._pointer: tuple = (0.0, 0.0)
        self._scale_anims: dict[str, tuple[float, float, float]] = {}
        self._gesture: Optional[_Gesture] = None
        self._unsubscribe = engine.on_tick(self._handle_tick)

    # ── Configuration ─────────────────────────────────────────────────────────

    @property
    def interactive(self) -> bool:
        return self._interactive

    @property
    def hovered(self) -> Optional[GraphNode]:
        return self._hovered

    def reconfigure(self, *, interactive=_UNSET, on_node_click=_UNSET) -> None:
        """
        Single entry point for changing the interaction mode or click delegate.

        Pass on_node_click=None to fall back to wiki navigation.
        """
        if interactive is not _UNSET:
            self._interactive = bool(interactive)
        if on_node_click is not _UNSET:
            self._on_node_click = on_node_click

    def set_data(self, data: GraphData) -> None:
        """Install a new data set: restarts the layout and the entrance animation."""
        if self._gesture is not None and self._gesture.kind == "drag":
            logger.debug("Data swap during drag; drag abandoned.")
        self._gesture = None
        self._hovered = None
        self._scale_anims.clear()
        self.engine.set_data(data)
        self._mounted_at = self._clock()

    def resize(self, width: float, height: float) -> None:
        self.viewport.resize(width, height)
        self.engine.resize(width, height)

    def advance(self) -> bool:
        """Host animation-frame hook. Returns True while the layout is still moving."""
        return self.engine.advance()

    def unmount(self) -> None:
        """Detach from the engine and discard its data set."""
        self._unsubscribe()
        self._gesture = None
        self._hovered = None
        self.engine.stop()
        self.engine.clear()

    def _handle_tick(self, engine: ForceLayoutEngine) -> None:
        if self._on_frame is not None:
            self._on_frame(self.render())

    # ── Geometry helpers ──────────────────────────────────────────────────────

    def _hover_scale(self, node_id: str, now: float) -> float:
        anim = self._scale_anims.get(node_id)
        if anim is None:
            return 1.0
        start, end, t0 = anim
        duration = self.config.hover_transition_s
        progress = 1.0 if duration <= 0 else min(1.0, max(0.0, (now - t0) / duration))
        if progress >= 1.0 and end == 1.0:
            del self._scale_anims[node_id]
        return start + (end - start) * progress

    def display_radius(self, node: GraphNode, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        return node_radius(node, self.config) * self._hover_scale(node.id, now)

    def _fade(self, index: int, now: float, extra_delay: float = 0.0) -> float:
        cfg = self.config
        elapsed = now - self._mounted_at - index * cfg.fade_stagger_s - extra_delay
        if cfg.fade_duration_s <= 0:
            return 1.0 if elapsed >= 0 else 0.0
        return min(1.0, max(0.0, elapsed / cfg.fade_duration_s))

    def hit_test(self, sx: float, sy: float) -> Optional[GraphNode]:
        """Topmost node under the screen point (later nodes draw on top)."""
        wx, wy = self.viewport.to_world(sx, sy)
        now = self._clock()
        for node in reversed(self.engine.nodes):
            pos = self.engine.position(node.id)
            if pos is None:
                continue
            if math.hypot(wx - pos.x, wy - pos.y) <= self.display_radius(node, now):
                return node
        return None

    # ── Drawing ───────────────────────────────────────────────────────────────

    def render(self) -> Frame:
        """Build the Frame for the current engine state. Empty data → empty frame."""
        cfg = self.config
        now = self._clock()
        engine = self.engine
        frame_args = dict(
            width=self.viewport.width,
            height=self.viewport.height,
            transform=self.viewport.transform,
            generation=engine.generation,
        )
        if engine.is_empty:
            return Frame(**frame_args)

        positions = engine.positions()
        hovered_id = self._hovered.id if self._hovered is not None else None
        highlighted = engine.incident_links(hovered_id) if hovered_id else frozenset()

        links = []
        for i, link in enumerate(engine.links):
            x1, y1 = positions[link.source.id]
            x2, y2 = positions[link.target.id]
            if hovered_id is None:
                opacity = cfg.link_opacity
            elif i in highlighted:
                opacity = cfg.link_opacity_highlight
            else:
                opacity = cfg.link_opacity_dimmed
            links.append(
                LinkGlyph(
                    source_id=link.source.id,
                    target_id=link.target.id,
                    kind=link.kind,
                    x1=x1, y1=y1, x2=x2, y2=y2,
                    opacity=opacity,
                    highlighted=i in highlighted,
                )
            )

        nodes = []
        labels = []
        for i, node in enumerate(engine.nodes):
            x, y = positions[node.id]
            base_r = node_radius(node, cfg)
            nodes.append(
                NodeGlyph(
                    id=node.id,
                    name=node.name,
                    kind=node.kind,
                    cx=x,
                    cy=y,
                    r=base_r * self._hover_scale(node.id, now),
                    fill=node_color(node, cfg),
                    stroke="rgba(255,255,255,0.3)" if node.has_wiki else None,
                    stroke_width=1.5,
                    opacity=self._fade(i, now),
                    hovered=node.id == hovered_id,
                )
            )
            is_project = node.kind == "project"
            labels.append(
                LabelGlyph(
                    id=node.id,
                    text=node.name,
                    x=x,
                    y=y,
                    dy=base_r + cfg.label_offset,
                    font_size=13 if is_project else 11,
                    font_weight=700 if is_project else 500,
                    opacity=self._fade(i, now, cfg.label_delay_s),
                )
            )

        return Frame(
            links=tuple(links),
            nodes=tuple(nodes),
            labels=tuple(labels),
            tooltip=self._tooltip(),
            **frame_args,
        )

    def _tooltip(self) -> Optional[Tooltip]:
        if self._hovered is None:
            return None
        dx, dy = self.config.tooltip_offset
        return Tooltip(
            title=self._hovered.name,
            lines=tooltip_lines(self._hovered),
            left=self._pointer[0] + dx,
            top=self._pointer[1] + dy,
        )

    # ── Hover ─────────────────────────────────────────────────────────────────

    def _set_hover(self, node: Optional[GraphNode]) -> None:
        previous = self._hovered
        if (previous is None and node is None) or (
            previous is not None and node is not None and previous.id == node.id
        ):
            return
        now = self._clock()
        if previous is not None:
            self._scale_anims[previous.id] = (self._hover_scale(previous.id, now), 1.0, now)
        if node is not None:
            self._scale_anims[node.id] = (self._hover_scale(node.id, now), self.config.hover_scale, now)
        self._hovered = node

    def pointer_leave(self) -> None:
        """Pointer left the canvas: reverse any hover state."""
        self._set_hover(None)

    # ── Pointer input ─────────────────────────────────────────────────────────

    def pointer_down(self, sx: float, sy: float) -> Optional[GraphNode]:
        """Start a node drag (node under pointer) or a canvas pan (empty area)."""
        self._pointer = (sx, sy)
        node = self.hit_test(sx, sy)
        if node is not None:
            self.engine.drag_start(node.id)
            self._gesture = _Gesture(kind="drag", last=(sx, sy), node=node)
        else:
            self._gesture = _Gesture(kind="pan", last=(sx, sy))
        return node

    def pointer_move(self, sx: float, sy: float) -> None:
        self._pointer = (sx, sy)
        gesture = self._gesture
        if gesture is None:
            self._set_hover(self.hit_test(sx, sy))
            return
        if (sx, sy) != gesture.last:
            gesture.moved = True
        if gesture.kind == "drag":
            wx, wy = self.viewport.to_world(sx, sy)
            self.engine.drag_move(gesture.node.id, wx, wy)
        else:
            self.viewport.pan(sx - gesture.last[0], sy - gesture.last[1])
        gesture.last = (sx, sy)

    def pointer_up(self, sx: float, sy: float) -> None:
        """Finish the gesture. A node press without movement is a click."""
        self._pointer = (sx, sy)
        gesture, self._gesture = self._gesture, None
        if gesture is None:
            return
        if gesture.kind == "drag":
            if self.engine.position(gesture.node.id) is not None:
                self.engine.drag_end(gesture.node.id)
            if not gesture.moved:
                self.click(gesture.node)

    def wheel(self, sx: float, sy: float, delta_y: float) -> bool:
        """Wheel zoom. Returns False (event not consumed) in backdrop mode."""
        return self.viewport.wheel(sx, sy, delta_y, self._interactive)

    def double_click(self, sx: float, sy: float, zoom_out: bool = False) -> None:
        self.viewport.double_click(sx, sy, zoom_out=zoom_out)

    def click(self, node: GraphNode) -> None:
        """Delegate to the registered handler, else navigate to the node's wiki page."""
        if self._on_node_click is not None:
            self._on_node_click(node)
        elif node.has_wiki:
            self._navigate(self.config.wiki_path(node.slug))
