"""
gratitude_graph.layout — Force-directed layout simulation.

Modules:
    positions — PositionTable: numpy side table of x/y/vx/vy/fx/fy keyed by node id.
    forces    — Link, many-body, center, collide and per-axis position forces.
    engine    — ForceLayoutEngine: cooling schedule, ticks, drag protocol, resize.
"""
