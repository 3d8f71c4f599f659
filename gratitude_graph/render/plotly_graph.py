"""
gratitude_graph/render/plotly_graph.py — Interactive Plotly export of a Frame.

Turns one rendered Frame into a standalone Plotly figure so a settled layout
can be shared as an HTML file (CLI `layout --html`).

Visual encoding (same as the live surface):
    - Edge opacity: per-link glyph opacity (hover highlighting is baked in).
    - Node size:    glyph radius (diameter in px, scaled by the zoom transform).
    - Node color:   tag / package palette from GraphConfig.
    - Node border:  white when the node has a wiki page.
    - Hover:        name and kind.
"""

import logging

import plotly.graph_objects as go

from gratitude_graph.render.surface import Frame

logger = logging.getLogger(__name__)

_EDGE_WIDTHS = {
    "dependency": 1.5,
    "depends_on": 1.5,
    "devDependency": 1,
    "dev": 1,
    "peerDependency": 1,
    "peer": 1,
}


def frame_to_figure(frame: Frame, title: str = "Every npm install is a person") -> go.Figure:
    """
    Build a Plotly figure from a Frame.

    Coordinates are mapped through the frame's zoom transform and the y axis
    is reversed so the figure matches screen orientation.

    Args:
        frame: Output of RenderSurface.render().
        title: Figure title.

    Returns:
        Plotly Figure object (no IO, no files written).
    """
    t = frame.transform

    # ── Edge traces grouped by link kind ──────────────────────────────────────
    edge_groups: dict[str, list] = {}
    for glyph in frame.links:
        edge_groups.setdefault(glyph.kind, []).append(glyph)

    edge_traces = []
    for kind, glyphs in edge_groups.items():
        x_coords: list = []
        y_coords: list = []
        for g in glyphs:
            x0, y0 = t.apply(g.x1, g.y1)
            x1, y1 = t.apply(g.x2, g.y2)
            x_coords += [x0, x1, None]
            y_coords += [y0, y1, None]
        opacity = max(g.opacity for g in glyphs)
        edge_traces.append(
            go.Scatter(
                x=x_coords,
                y=y_coords,
                mode="lines",
                line={"width": _EDGE_WIDTHS.get(kind, 1), "color": f"rgba(167,139,250,{opacity})"},
                name=kind,
                legendgroup=f"edge_{kind}",
                hoverinfo="none",
            )
        )

    # ── Node traces grouped by node kind ──────────────────────────────────────
    label_by_id = {label.id: label for label in frame.labels}
    node_groups: dict[str, list] = {}
    for glyph in frame.nodes:
        node_groups.setdefault(glyph.kind, []).append(glyph)

    node_traces = []
    for kind, glyphs in node_groups.items():
        xs, ys = zip(*(t.apply(g.cx, g.cy) for g in glyphs))
        label_sizes = [label_by_id[g.id].font_size if g.id in label_by_id else 11 for g in glyphs]
        node_traces.append(
            go.Scatter(
                x=list(xs),
                y=list(ys),
                mode="markers+text",
                name=kind,
                text=[g.name for g in glyphs],
                textposition="bottom center",
                textfont={"size": label_sizes, "color": "#e2e8f0"},
                marker={
                    "size": [2 * g.r * t.k for g in glyphs],
                    "color": [g.fill for g in glyphs],
                    "opacity": [g.opacity for g in glyphs],
                    "line": {
                        "color": [g.stroke or "rgba(0,0,0,0)" for g in glyphs],
                        "width": [g.stroke_width if g.stroke else 0 for g in glyphs],
                    },
                },
                hovertext=[f"<b>{g.name}</b><br>Type: {g.kind}" for g in glyphs],
                hovertemplate="%{hovertext}<extra></extra>",
                legendgroup=f"node_{kind}",
            )
        )

    fig = go.Figure(
        data=edge_traces + node_traces,
        layout=go.Layout(
            title=title,
            showlegend=True,
            hovermode="closest",
            width=frame.width or None,
            height=frame.height or None,
            xaxis={"showgrid": False, "zeroline": False, "showticklabels": False, "range": [0, frame.width]},
            yaxis={
                "showgrid": False,
                "zeroline": False,
                "showticklabels": False,
                "range": [frame.height, 0],
            },
            margin={"l": 20, "r": 20, "t": 60, "b": 20},
            paper_bgcolor="#050514",
            plot_bgcolor="#050514",
            font={"color": "#e2e8f0"},
        ),
    )

    logger.info(
        "Plotly figure built: %d nodes, %d links, %d traces.",
        len(frame.nodes),
        len(frame.links),
        len(edge_traces) + len(node_traces),
    )
    return fig


def save_figure_html(fig: go.Figure, output_path: str) -> None:
    """Write a Plotly figure to a self-contained HTML file (plotly.js from CDN)."""
    fig.write_html(output_path, include_plotlyjs="cdn")
    logger.info("Plotly figure saved to: %s", output_path)
