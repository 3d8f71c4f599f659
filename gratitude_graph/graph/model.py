"""
gratitude_graph/graph/model.py — Typed node/link records for the graph core.

The records here are the caller-facing half of the graph: immutable, safe to
share between re-renders, and free of any position state. Positions live in
the layout engine's own side table (gratitude_graph.layout.positions).

Wire shape (GET /api/graph):
    {
        "nodes": [{"id", "name", "slug", "type", "userCount", "thankYouCount",
                   "creatorName"?, "tag"?, "hasWiki"}],
        "links": [{"source", "target", "type"}]
    }
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import networkx as nx

from gratitude_graph.config import DEFAULT_CONFIG, GraphConfig

logger = logging.getLogger(__name__)

NODE_KINDS = ("package", "project")
LINK_KINDS = ("dependency", "devDependency", "peerDependency", "depends_on", "peer", "dev")


class GraphDataError(ValueError):
    """Raised when a graph payload is structurally invalid."""


@dataclass(frozen=True)
class GraphNode:
    """
    A package or a connected project.

    Fields:
        id:              Unique key within one data set.
        name:            Display label.
        slug:            Detail page identifier.
        kind:            'package' | 'project'.
        user_count:      Number of projects using the package (drives radius).
        thank_you_count: Display only.
        creator_name:    Optional creator credit.
        tag:             Project category (selects a color for project nodes).
        has_wiki:        True if a backstory page exists.
    """

    id: str
    name: str
    slug: str
    kind: str = "package"
    user_count: int = 0
    thank_you_count: int = 0
    creator_name: Optional[str] = None
    tag: Optional[str] = None
    has_wiki: bool = False

    @property
    def is_project(self) -> bool:
        return self.kind == "project"


@dataclass(frozen=True)
class GraphLink:
    """A dependency or ownership edge. Endpoints are node ids."""

    source: str
    target: str
    kind: str = "dependency"


@dataclass(frozen=True)
class GraphData:
    """One complete data set: the unit of replacement for the layout engine."""

    nodes: tuple = field(default_factory=tuple)
    links: tuple = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}


EMPTY_GRAPH = GraphData()


# ── Rendering rules shared by layout (collision) and surface (drawing) ───────

def node_radius(node: GraphNode, config: GraphConfig = DEFAULT_CONFIG) -> float:
    """
    Rendered radius for a node.

    Projects have a fixed radius. Packages grow with user count, capped so
    that very popular packages do not dominate the canvas:
        base + min(userCount * per_user, cap)   → [6, 20] with defaults.
    """
    if node.is_project:
        return config.project_radius
    scale = min(max(node.user_count, 0) * config.package_radius_per_user, config.package_radius_cap)
    return config.package_base_radius + scale


def node_color(node: GraphNode, config: GraphConfig = DEFAULT_CONFIG) -> str:
    """Fill color: project nodes by tag (fallback 'other'), packages share one color."""
    colors = config.tag_colors
    if node.is_project:
        return colors.get(node.tag or "other", colors["other"])
    return colors["package"]


# ── Parsing ──────────────────────────────────────────────────────────────────

def _as_count(value: Any) -> int:
    if value is None:
        return 0
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def node_from_dict(raw: dict) -> GraphNode:
    """Parse one node from its wire (camelCase) representation."""
    node_id = raw.get("id")
    if node_id is None or str(node_id) == "":
        raise GraphDataError(f"Node without id: {raw!r}")
    kind = raw.get("type", raw.get("kind", "package"))
    if kind not in NODE_KINDS:
        raise GraphDataError(f"Node '{node_id}' has unknown type '{kind}'")
    name = raw.get("name") or str(node_id)
    return GraphNode(
        id=str(node_id),
        name=str(name),
        slug=str(raw.get("slug") or node_id),
        kind=kind,
        user_count=_as_count(raw.get("userCount")),
        thank_you_count=_as_count(raw.get("thankYouCount")),
        creator_name=raw.get("creatorName") or None,
        tag=raw.get("tag") or None,
        has_wiki=bool(raw.get("hasWiki", False)),
    )


def link_from_dict(raw: dict) -> GraphLink:
    """Parse one link. Endpoints may be ids or embedded node dicts."""
    source = raw.get("source")
    target = raw.get("target")
    if isinstance(source, dict):
        source = source.get("id")
    if isinstance(target, dict):
        target = target.get("id")
    if source is None or target is None:
        raise GraphDataError(f"Link without source/target: {raw!r}")
    kind = raw.get("type", raw.get("kind", "dependency"))
    if kind not in LINK_KINDS:
        # Kind is rendering-only; keep the edge, normalise the label.
        logger.debug("Unknown link type '%s' on %s→%s; using 'dependency'.", kind, source, target)
        kind = "dependency"
    return GraphLink(source=str(source), target=str(target), kind=kind)


def parse_graph_data(payload: Any) -> GraphData:
    """
    Build a GraphData from a decoded JSON payload.

    Raises:
        GraphDataError: payload is not a mapping with 'nodes' and 'links'
                        lists, a node is invalid, or node ids repeat.

    Links with dangling endpoints are NOT rejected here; the layout engine
    drops them when the data set is installed (see resolve_links).
    """
    if not isinstance(payload, dict):
        raise GraphDataError(f"Graph payload must be an object, got {type(payload).__name__}")
    raw_nodes = payload.get("nodes")
    raw_links = payload.get("links")
    if not isinstance(raw_nodes, list) or not isinstance(raw_links, list):
        raise GraphDataError("Graph payload must contain 'nodes' and 'links' lists")

    nodes = tuple(node_from_dict(n) for n in raw_nodes)
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise GraphDataError(f"Duplicate node id '{node.id}'")
        seen.add(node.id)

    links = tuple(link_from_dict(link) for link in raw_links)
    return GraphData(nodes=nodes, links=links)


def node_to_dict(node: GraphNode) -> dict:
    out = {
        "id": node.id,
        "name": node.name,
        "slug": node.slug,
        "type": node.kind,
        "userCount": node.user_count,
        "thankYouCount": node.thank_you_count,
        "hasWiki": node.has_wiki,
    }
    if node.creator_name:
        out["creatorName"] = node.creator_name
    if node.tag:
        out["tag"] = node.tag
    return out


def graph_data_to_dict(data: GraphData) -> dict:
    """Serialize back to the wire shape accepted by parse_graph_data."""
    return {
        "nodes": [node_to_dict(n) for n in data.nodes],
        "links": [{"source": lk.source, "target": lk.target, "type": lk.kind} for lk in data.links],
    }


# ── Link resolution ──────────────────────────────────────────────────────────

def resolve_links(
    nodes: Iterable[GraphNode],
    links: Iterable[GraphLink],
) -> tuple[list[GraphLink], list[GraphLink]]:
    """
    Split links into (resolved, dropped) against a node set.

    Policy: a link whose source or target is not in the node set is dropped
    and reported with a single warning per call. The whole data set is never
    rejected for a dangling link.
    """
    ids = {n.id for n in nodes}
    resolved: list[GraphLink] = []
    dropped: list[GraphLink] = []
    for link in links:
        if link.source in ids and link.target in ids:
            resolved.append(link)
        else:
            dropped.append(link)

    if dropped:
        sample = ", ".join(f"{lk.source}→{lk.target}" for lk in dropped[:5])
        logger.warning(
            "Dropped %d link(s) with endpoints outside the node set: %s%s",
            len(dropped),
            sample,
            " …" if len(dropped) > 5 else "",
        )
    return resolved, dropped


def to_networkx(data: GraphData) -> nx.MultiDiGraph:
    """
    Convert a data set to a NetworkX MultiDiGraph.

    Node attributes mirror GraphNode fields (node_type = kind). Dangling links
    are dropped under the same policy as the layout engine.
    """
    G = nx.MultiDiGraph()
    for node in data.nodes:
        G.add_node(
            node.id,
            node_type=node.kind,
            name=node.name,
            slug=node.slug,
            user_count=node.user_count,
            thank_you_count=node.thank_you_count,
            tag=node.tag,
            has_wiki=node.has_wiki,
        )
    resolved, _ = resolve_links(data.nodes, data.links)
    for link in resolved:
        G.add_edge(link.source, link.target, edge_type=link.kind)
    return G
