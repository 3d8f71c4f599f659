"""
gratitude_graph.render — Drawing and pointer interaction for the force graph.

Modules:
    viewport      — ZoomTransform and Viewport (zoom extent, wheel filter, pan).
    surface       — RenderSurface: per-tick Frames, hover, tooltip, drag, click dispatch.
    plotly_graph  — Frame → interactive Plotly figure / standalone HTML.
    figures       — Frame → static matplotlib PNG.
"""
