"""
gratitude_graph — Force-directed dependency graph for the people behind open source.

Renders packages and the projects that use them as an interactive force
layout, lets visitors dive into the graph, and requests AI-written backstories
for package creators that do not have one yet.

Subpackages:
- graph:   Immutable node/link records, parsing, table-backed graph assembly.
- layout:  Iterative force simulation (link, many-body, center, collision).
- render:  Per-tick frames, hover/click/drag/zoom interaction, Plotly and PNG export.
- dive:    Hero → interactive → selected state machine and node action panel.
- api:     HTTP client for graph data and story generation; FastAPI endpoints.
- funding: Append-only community funding ledger.
"""

__version__ = "0.1.0"
