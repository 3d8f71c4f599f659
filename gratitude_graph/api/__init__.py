"""
gratitude_graph.api — HTTP surface of the graph.

Modules:
    client    — urllib client: graph data fetch with seed/cache fallback, story requests.
    endpoints — FastAPI app: graph data, stats, funding pool, story generation.
"""
