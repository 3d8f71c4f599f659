"""
gratitude_graph.graph — Immutable graph records and data-set assembly.

Modules:
    model    — GraphNode / GraphLink / GraphData, parsing, radius and color rules.
    builder  — Build GraphData from application tables; seed graph; stats.
"""
