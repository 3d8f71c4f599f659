"""
gratitude_graph/render/viewport.py — Zoom/pan transform for the graph canvas.

A ZoomTransform maps world (simulation) coordinates to screen coordinates:
    screen = world * k + (x, y)

The Viewport holds the current transform, clamps the scale to
[config.zoom_min, config.zoom_max] and applies the wheel filter: while the
graph is a decorative backdrop, wheel events are left to the host page so it
can scroll normally. Dragging the empty canvas and double-click zoom stay
available in both modes.
"""

import logging
from dataclasses import dataclass

from gratitude_graph.config import DEFAULT_CONFIG, GraphConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZoomTransform:
    k: float = 1.0
    x: float = 0.0
    y: float = 0.0

    def apply(self, wx: float, wy: float) -> tuple[float, float]:
        return wx * self.k + self.x, wy * self.k + self.y

    def invert(self, sx: float, sy: float) -> tuple[float, float]:
        return (sx - self.x) / self.k, (sy - self.y) / self.k

    def scale_to(self, k: float, anchor: tuple[float, float]) -> "ZoomTransform":
        """Rescale keeping the world point under screen `anchor` fixed."""
        wx, wy = self.invert(*anchor)
        return ZoomTransform(k, anchor[0] - wx * k, anchor[1] - wy * k)

    def translate(self, dx: float, dy: float) -> "ZoomTransform":
        return ZoomTransform(self.k, self.x + dx, self.y + dy)


IDENTITY = ZoomTransform()


class Viewport:
    """Current zoom/pan state plus the gesture rules that change it."""

    def __init__(self, width: float, height: float, config: GraphConfig = DEFAULT_CONFIG):
        self.config = config
        self.width = float(width)
        self.height = float(height)
        self.transform = IDENTITY

    def resize(self, width: float, height: float) -> None:
        self.width = float(width)
        self.height = float(height)

    def clamp_scale(self, k: float) -> float:
        return max(self.config.zoom_min, min(self.config.zoom_max, k))

    def zoom_at(self, factor: float, sx: float, sy: float) -> ZoomTransform:
        k = self.clamp_scale(self.transform.k * factor)
        self.transform = self.transform.scale_to(k, (sx, sy))
        return self.transform

    def wheel(self, sx: float, sy: float, delta_y: float, interactive: bool) -> bool:
        """
        Apply a wheel event.

        Returns:
            True if the viewport consumed the event. In backdrop mode
            (interactive=False) the event is refused so the page can scroll.
        """
        if not interactive:
            logger.debug("Wheel event left to the host page (backdrop mode).")
            return False
        self.zoom_at(2 ** (-delta_y * self.config.wheel_delta_factor), sx, sy)
        return True

    def double_click(self, sx: float, sy: float, zoom_out: bool = False) -> ZoomTransform:
        factor = self.config.double_click_zoom
        return self.zoom_at(1 / factor if zoom_out else factor, sx, sy)

    def pan(self, dx: float, dy: float) -> ZoomTransform:
        self.transform = self.transform.translate(dx, dy)
        return self.transform

    def reset(self) -> None:
        self.transform = IDENTITY

    def to_world(self, sx: float, sy: float) -> tuple[float, float]:
        return self.transform.invert(sx, sy)

    def to_screen(self, wx: float, wy: float) -> tuple[float, float]:
        return self.transform.apply(wx, wy)
