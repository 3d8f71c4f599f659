"""
gratitude_graph/render/figures.py — Static PNG snapshot of a rendered Frame.

Used by the CLI (`layout --png`) to produce a shareable image of a settled
layout, for social cards and README screenshots.
"""

from __future__ import annotations

import logging
import os

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection
from matplotlib.patches import Circle

from gratitude_graph.render.surface import Frame

logger = logging.getLogger(__name__)

C_BG = "#050514"
C_LINK = "#a78bfa"
C_TEXT = "#e2e8f0"


def render_frame_png(frame: Frame, output_path: str, dpi: int = 150) -> str:
    """
    Draw a Frame with matplotlib and save it as a PNG.

    Glyph coordinates are mapped through the frame transform; the y axis is
    inverted to keep screen orientation. Circles are drawn in data units so
    radii match the interactive surface exactly.

    Args:
        frame:       Output of RenderSurface.render().
        output_path: Destination .png path (parent directories are created).
        dpi:         Output resolution.

    Returns:
        Absolute path of the written file.
    """
    width = frame.width or 800
    height = frame.height or 600
    t = frame.transform

    fig, ax = plt.subplots(figsize=(width / 100, height / 100), dpi=dpi)
    fig.patch.set_facecolor(C_BG)
    ax.set_facecolor(C_BG)
    ax.set_xlim(0, width)
    ax.set_ylim(height, 0)
    ax.set_aspect("equal")
    ax.axis("off")

    if frame.links:
        segments = [(t.apply(g.x1, g.y1), t.apply(g.x2, g.y2)) for g in frame.links]
        colors = [(0.655, 0.545, 0.98, g.opacity) for g in frame.links]
        ax.add_collection(LineCollection(segments, colors=colors, linewidths=1.0, zorder=1))

    for g in frame.nodes:
        cx, cy = t.apply(g.cx, g.cy)
        ax.add_patch(
            Circle(
                (cx, cy),
                g.r * t.k,
                facecolor=g.fill,
                edgecolor="white" if g.stroke else "none",
                linewidth=g.stroke_width if g.stroke else 0,
                alpha=max(g.opacity, 0.05),
                zorder=2,
            )
        )

    for label in frame.labels:
        lx, ly = t.apply(label.x, label.y)
        ax.text(
            lx,
            ly + label.dy * t.k,
            label.text,
            color=C_TEXT,
            fontsize=label.font_size * 0.6,
            fontweight="bold" if label.font_weight >= 700 else "normal",
            ha="center",
            va="center",
            alpha=label.opacity,
            zorder=3,
        )

    out_dir = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(out_dir, exist_ok=True)
    fig.savefig(output_path, dpi=dpi, facecolor=C_BG, bbox_inches="tight")
    plt.close(fig)

    logger.info("Graph snapshot saved to: %s", output_path)
    return os.path.abspath(output_path)
