"""
gratitude_graph/graph/builder.py — Assemble GraphData from the application tables.

Packages, projects, project→package dependencies and package↔package
connections arrive as pandas DataFrames (one per table, snake_case columns as
stored). The builder turns them into the immutable wire-shaped GraphData the
layout engine consumes.

Node ids are namespaced so packages and projects never collide:
    package row id=7  → "pkg-7"
    project row id=3  → "proj-3" (slug "project-3")
"""

import logging
from typing import Optional

import networkx as nx
import pandas as pd

from gratitude_graph.graph.model import (
    EMPTY_GRAPH,
    LINK_KINDS,
    GraphData,
    GraphLink,
    GraphNode,
    to_networkx,
)

logger = logging.getLogger(__name__)

# Wiki pages that exist as hand-written static content.
STATIC_WIKI_SLUGS = frozenset({"markdown", "mermaid"})

# Shown before the live graph loads, and whenever the live fetch fails or is empty.
SEED_GRAPH = GraphData(
    nodes=(
        GraphNode(
            id="pkg-markdown",
            name="Markdown",
            slug="markdown",
            kind="package",
            creator_name="John Gruber & Aaron Swartz",
            has_wiki=True,
        ),
        GraphNode(
            id="pkg-mermaid",
            name="Mermaid.js",
            slug="mermaid",
            kind="package",
            creator_name="Knut Sveidqvist",
            has_wiki=True,
        ),
    ),
    # Mermaid renders inside Markdown.
    links=(GraphLink(source="pkg-mermaid", target="pkg-markdown", kind="dependency"),),
)


def _int(value, default: int = 0) -> int:
    if value is None or pd.isna(value):
        return default
    return int(value)


def _text(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _link_kind(value, default: str = "dependency") -> str:
    kind = _text(value) or default
    return kind if kind in LINK_KINDS else default


def build_graph_data(
    packages: pd.DataFrame,
    projects: pd.DataFrame,
    project_dependencies: pd.DataFrame,
    package_connections: pd.DataFrame,
) -> GraphData:
    """
    Build the visualization data set from the four application tables.

    Columns used:
        packages:             id, name, slug, user_count, thank_you_count,
                              creator_name, backstory_md, opted_out
        projects:             id, name, tag
        project_dependencies: project_id, package_id, dep_type
        package_connections:  package_a_id, package_b_id, relationship

    Rules:
        - Opted-out packages are excluded (their edges then dangle and are
          dropped by the layout engine's link policy).
        - has_wiki = backstory present OR slug in STATIC_WIKI_SLUGS.
        - Project nodes never have a wiki; tag defaults to 'other'.

    Returns:
        GraphData. Any error reading the tables yields EMPTY_GRAPH; the graph
        endpoint must never fail because the tables are not populated yet.
    """
    try:
        nodes: list[GraphNode] = []
        links: list[GraphLink] = []

        # ── Package nodes ─────────────────────────────────────────────────────
        if "opted_out" in packages.columns:
            packages = packages[~packages["opted_out"].fillna(False).astype(bool)]

        for _, row in packages.iterrows():
            slug = _text(row.get("slug")) or str(row["id"])
            nodes.append(
                GraphNode(
                    id=f"pkg-{row['id']}",
                    name=_text(row.get("name")) or slug,
                    slug=slug,
                    kind="package",
                    user_count=_int(row.get("user_count")),
                    thank_you_count=_int(row.get("thank_you_count")),
                    creator_name=_text(row.get("creator_name")),
                    has_wiki=bool(_text(row.get("backstory_md"))) or slug in STATIC_WIKI_SLUGS,
                )
            )

        # ── Project nodes ─────────────────────────────────────────────────────
        for _, row in projects.iterrows():
            nodes.append(
                GraphNode(
                    id=f"proj-{row['id']}",
                    name=_text(row.get("name")) or f"project-{row['id']}",
                    slug=f"project-{row['id']}",
                    kind="project",
                    tag=_text(row.get("tag")) or "other",
                    has_wiki=False,
                )
            )

        # ── Project → package edges ───────────────────────────────────────────
        for _, row in project_dependencies.iterrows():
            links.append(
                GraphLink(
                    source=f"proj-{row['project_id']}",
                    target=f"pkg-{row['package_id']}",
                    kind=_link_kind(row.get("dep_type")),
                )
            )

        # ── Package ↔ package edges ───────────────────────────────────────────
        for _, row in package_connections.iterrows():
            links.append(
                GraphLink(
                    source=f"pkg-{row['package_a_id']}",
                    target=f"pkg-{row['package_b_id']}",
                    kind=_link_kind(row.get("relationship"), default="depends_on"),
                )
            )
    except (KeyError, ValueError, TypeError) as exc:
        logger.warning("Graph tables unreadable, serving an empty graph: %s", exc)
        return EMPTY_GRAPH

    logger.info("Graph data built: %d nodes, %d links.", len(nodes), len(links))
    return GraphData(nodes=tuple(nodes), links=tuple(links))


def graph_stats(data: GraphData) -> dict:
    """
    Summary counts for the hero stats bar and GET /api/stats.

    Returns:
        {
            'packages':    number of package nodes,
            'projects':    number of project nodes,
            'stories':     package nodes with a wiki page,
            'thankYous':   total thank-you count across nodes,
            'links':       links whose endpoints both exist,
            'components':  weakly connected components (0 for an empty graph),
        }
    """
    G = to_networkx(data)
    packages = [n for n in data.nodes if n.kind == "package"]
    return {
        "packages": len(packages),
        "projects": len(data.nodes) - len(packages),
        "stories": sum(1 for n in packages if n.has_wiki),
        "thankYous": sum(n.thank_you_count for n in data.nodes),
        "links": G.number_of_edges(),
        "components": nx.number_weakly_connected_components(G) if G.number_of_nodes() else 0,
    }


class GraphTables:
    """
    In-memory copy of the four application tables behind the graph.

    The API layer reads the graph from here and writes generated backstories
    back into the packages table.
    """

    def __init__(
        self,
        packages: Optional[pd.DataFrame] = None,
        projects: Optional[pd.DataFrame] = None,
        project_dependencies: Optional[pd.DataFrame] = None,
        package_connections: Optional[pd.DataFrame] = None,
    ):
        self.packages = packages if packages is not None else pd.DataFrame(
            columns=["id", "name", "slug", "user_count", "thank_you_count", "creator_name",
                     "backstory_md", "backstory_verified", "opted_out"]
        )
        self.projects = projects if projects is not None else pd.DataFrame(columns=["id", "name", "tag"])
        self.project_dependencies = (
            project_dependencies if project_dependencies is not None
            else pd.DataFrame(columns=["project_id", "package_id", "dep_type"])
        )
        self.package_connections = (
            package_connections if package_connections is not None
            else pd.DataFrame(columns=["package_a_id", "package_b_id", "relationship"])
        )

    def graph_data(self) -> GraphData:
        return build_graph_data(
            self.packages, self.projects, self.project_dependencies, self.package_connections
        )

    def find_package(self, slug: str) -> Optional[dict]:
        """Package row for `slug` as a plain dict, or None."""
        if "slug" not in self.packages.columns:
            return None
        match = self.packages[self.packages["slug"] == slug]
        if match.empty:
            return None
        row = match.iloc[0].to_dict()
        return {k: (None if not isinstance(v, (list, dict)) and pd.isna(v) else v) for k, v in row.items()}

    def store_backstory(self, slug: str, backstory_md: str, generated_by: str, creator_name: Optional[str]) -> None:
        """Save an unverified backstory (and a creator name if none was known)."""
        mask = self.packages["slug"] == slug
        for column in ("backstory_md", "backstory_verified", "backstory_generated_by", "creator_name"):
            self._object_column(column)
        self.packages.loc[mask, "backstory_md"] = backstory_md
        self.packages.loc[mask, "backstory_verified"] = False
        self.packages.loc[mask, "backstory_generated_by"] = generated_by
        if creator_name:
            missing = mask & self.packages["creator_name"].isna()
            self.packages.loc[missing, "creator_name"] = creator_name
        logger.info("Stored generated backstory for '%s'.", slug)

    def _object_column(self, column: str) -> None:
        if column not in self.packages.columns:
            self.packages[column] = None
        self.packages[column] = self.packages[column].astype(object)
