"""
gratitude_graph/cli.py — Command-line interface for the graph core.

Usage:
    gratitude-graph layout graph.json --html graph.html --png graph.png
    gratitude-graph layout https://example.org/api/graph
    gratitude-graph stats graph.json
    gratitude-graph serve --tables-dir data/ --port 8000

`layout` settles the force layout headlessly and exports the final frame.
`serve` runs the JSON API over four CSV tables (packages, projects,
project_dependencies, package_connections).
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time

logger = logging.getLogger("gratitude_graph.cli")

TABLE_NAMES = ("packages", "projects", "project_dependencies", "package_connections")

STAT_LABELS = {
    "packages": "Packages",
    "projects": "Projects",
    "stories": "Stories",
    "thankYous": "Thank-yous",
    "links": "Links",
    "components": "Components",
}


# ── Logging setup ─────────────────────────────────────────────────────────────

def _setup_logging(level: str = "INFO") -> None:
    """Configure root logger with timestamps and level names."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s  %(levelname)-8s  %(name)s — %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(level=numeric, format=fmt, datefmt=datefmt, stream=sys.stderr)
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
    logging.getLogger("urllib.request").setLevel(logging.WARNING)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_graph(source: str):
    """Graph data from a URL (GET /api/graph) or a local JSON file."""
    from gratitude_graph.api.client import fetch_graph_data
    from gratitude_graph.graph.model import parse_graph_data

    if source.startswith(("http://", "https://")):
        return fetch_graph_data(source)
    with open(source, encoding="utf-8") as fh:
        return parse_graph_data(json.load(fh))


def _load_tables(tables_dir: str | None):
    """GraphTables from <dir>/<table>.csv; missing files leave that table empty."""
    import pandas as pd

    from gratitude_graph.graph.builder import GraphTables

    frames = {}
    if tables_dir:
        for name in TABLE_NAMES:
            path = os.path.join(tables_dir, f"{name}.csv")
            if os.path.isfile(path):
                frames[name] = pd.read_csv(path)
                logger.info("Loaded %s: %d rows.", path, len(frames[name]))
            else:
                logger.warning("Table file not found, using an empty table: %s", path)
    return GraphTables(**frames)


# ── Subcommand: layout ────────────────────────────────────────────────────────

def cmd_layout(args: argparse.Namespace) -> int:
    """Settle the layout for a data set and export the final frame."""
    _setup_logging(args.log_level)

    from gratitude_graph.api.client import GraphFetchError
    from gratitude_graph.graph.model import GraphDataError
    from gratitude_graph.layout.engine import ForceLayoutEngine
    from gratitude_graph.render.surface import RenderSurface

    try:
        data = _load_graph(args.source)
    except (OSError, ValueError, GraphFetchError, GraphDataError) as exc:
        logger.error("Could not load graph data from %s: %s", args.source, exc)
        return 1

    engine = ForceLayoutEngine(args.width, args.height, seed=args.seed)
    # Headless clock: the export is rendered after the entrance fade has finished.
    clock = {"now": 0.0}
    surface = RenderSurface(engine, navigate=lambda path: None, clock=lambda: clock["now"])
    surface.set_data(data)

    t0 = time.monotonic()
    ticks = engine.run_until_cooled(max_ticks=args.max_ticks)
    elapsed = time.monotonic() - t0
    clock["now"] = 60.0
    frame = surface.render()

    if args.json_out:
        with open(args.json_out, "w", encoding="utf-8") as fh:
            json.dump(
                {node_id: {"x": x, "y": y} for node_id, (x, y) in engine.positions().items()},
                fh,
                indent=2,
            )
    if args.html:
        from gratitude_graph.render.plotly_graph import frame_to_figure, save_figure_html
        save_figure_html(frame_to_figure(frame), args.html)
    if args.png:
        from gratitude_graph.render.figures import render_frame_png
        render_frame_png(frame, args.png)

    print()
    print("=" * 60)
    print("  LAYOUT COMPLETE")
    print("=" * 60)
    print(f"  Nodes        : {len(engine.nodes)}")
    print(f"  Links        : {len(engine.links)} (of {len(data.links)} supplied)")
    print(f"  Ticks        : {ticks}{'' if engine.is_cooled else ' (not cooled)'}")
    print(f"  Final alpha  : {engine.alpha:.5f}")
    print(f"  Elapsed      : {elapsed:.2f}s")
    for label, path in (("Positions", args.json_out), ("HTML", args.html), ("PNG", args.png)):
        if path:
            print(f"  {label:<12} : {path}")
    print("=" * 60)
    return 0


# ── Subcommand: stats ─────────────────────────────────────────────────────────

def cmd_stats(args: argparse.Namespace) -> int:
    """Print summary counts for a data set."""
    _setup_logging(args.log_level)

    from gratitude_graph.api.client import GraphFetchError
    from gratitude_graph.graph.builder import graph_stats
    from gratitude_graph.graph.model import GraphDataError

    try:
        data = _load_graph(args.source)
    except (OSError, ValueError, GraphFetchError, GraphDataError) as exc:
        logger.error("Could not load graph data from %s: %s", args.source, exc)
        return 1

    stats = graph_stats(data)
    print()
    print("Graph statistics")
    print("=" * 40)
    for key, value in stats.items():
        print(f"  {STAT_LABELS.get(key, key):<14}: {value}")
    print()
    return 0


# ── Subcommand: serve ─────────────────────────────────────────────────────────

def cmd_serve(args: argparse.Namespace) -> int:
    """Run the JSON API with uvicorn."""
    _setup_logging(args.log_level)

    import uvicorn

    from gratitude_graph.api.endpoints import create_app
    from gratitude_graph.funding.ledger import FundingLedger

    app = create_app(_load_tables(args.tables_dir), FundingLedger())
    logger.info("Serving on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


# ── Argument parser ───────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gratitude-graph",
        description="Force-directed dependency graph: headless layout, stats and API server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Settle a layout and export it
  gratitude-graph layout graph.json --html graph.html --png graph.png

  # Lay out the live graph
  gratitude-graph layout https://example.org/api/graph --width 1920 --height 1080

  # Counts only
  gratitude-graph stats graph.json

  # API over CSV tables
  gratitude-graph serve --tables-dir data/
        """,
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # layout
    p_layout = subparsers.add_parser("layout", help="Settle the force layout and export the result")
    p_layout.add_argument("source", metavar="SOURCE", help="Graph JSON file or /api/graph URL")
    p_layout.add_argument("--width", type=float, default=1280, help="Viewport width (default: 1280)")
    p_layout.add_argument("--height", type=float, default=720, help="Viewport height (default: 720)")
    p_layout.add_argument(
        "--max-ticks", type=int, default=1000, metavar="N",
        help="Stop after N ticks even if not cooled (default: 1000)",
    )
    p_layout.add_argument("--seed", type=int, default=None, help="Jitter RNG seed")
    p_layout.add_argument("--json-out", default=None, metavar="PATH", help="Write final positions as JSON")
    p_layout.add_argument("--html", default=None, metavar="PATH", help="Write an interactive Plotly HTML file")
    p_layout.add_argument("--png", default=None, metavar="PATH", help="Write a static PNG snapshot")
    p_layout.set_defaults(func=cmd_layout)

    # stats
    p_stats = subparsers.add_parser("stats", help="Print node, link and component counts")
    p_stats.add_argument("source", metavar="SOURCE", help="Graph JSON file or /api/graph URL")
    p_stats.set_defaults(func=cmd_stats)

    # serve
    p_serve = subparsers.add_parser("serve", help="Run the JSON API")
    p_serve.add_argument("--tables-dir", default=None, metavar="PATH", help="Directory of table CSVs")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
