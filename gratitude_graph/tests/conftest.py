"""
gratitude_graph/tests/conftest.py — Shared pytest fixtures for the graph core test suite.

Fixtures:
    two_node_data   — The two-package example (radii 6 and 11, one link).
    random_data     — Deterministic mixed package/project graph (SEED=41).
    engine          — ForceLayoutEngine (1000×800, seeded).
    fake_clock      — Manually advanced monotonic clock.
    navigator       — Records every navigated path.
    surface         — RenderSurface on `engine` driven by `fake_clock`.
    sample_tables   — GraphTables with a handful of packages and projects.
"""

import random

import pandas as pd
import pytest

from gratitude_graph.graph.builder import GraphTables
from gratitude_graph.graph.model import GraphData, GraphLink, GraphNode
from gratitude_graph.layout.engine import ForceLayoutEngine
from gratitude_graph.render.surface import RenderSurface


# ── Pytest configuration hooks ────────────────────────────────────────────────

def pytest_configure(config):
    """Register custom markers and add --run-integration CLI option support."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that call a live graph API (deselected by default, "
        "pass --run-integration or -m integration to enable)",
    )


def pytest_addoption(parser):
    """Add --run-integration CLI flag to enable integration tests."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that call a live graph API.",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is passed or -m integration is used."""
    markexpr = config.getoption("-m", default="")
    if "integration" in markexpr:
        return

    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="Integration test -- pass --run-integration or -m integration to run"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


SEED = 41


# ── Builders ──────────────────────────────────────────────────────────────────

def make_package(node_id: str, user_count: int = 0, has_wiki: bool = False, **kwargs) -> GraphNode:
    return GraphNode(
        id=node_id,
        name=kwargs.pop("name", node_id.title()),
        slug=kwargs.pop("slug", node_id),
        kind="package",
        user_count=user_count,
        has_wiki=has_wiki,
        **kwargs,
    )


def make_project(node_id: str, tag: str = "tool", **kwargs) -> GraphNode:
    return GraphNode(
        id=node_id,
        name=kwargs.pop("name", node_id.title()),
        slug=kwargs.pop("slug", node_id),
        kind="project",
        tag=tag,
        **kwargs,
    )


def make_random_data(n_packages: int = 24, n_projects: int = 8, n_links: int = 40, seed: int = SEED) -> GraphData:
    """Mixed graph with power-law-ish user counts; every link is valid."""
    rng = random.Random(seed)
    packages = [
        make_package(f"pkg-{i}", user_count=int(rng.paretovariate(1.5)) - 1, has_wiki=rng.random() < 0.3)
        for i in range(n_packages)
    ]
    projects = [make_project(f"proj-{i}", tag=rng.choice(["saas", "game", "tool", None])) for i in range(n_projects)]
    nodes = packages + projects
    links = []
    for _ in range(n_links):
        source = rng.choice(nodes)
        target = rng.choice(packages)
        if source.id != target.id:
            links.append(GraphLink(source=source.id, target=target.id))
    return GraphData(nodes=tuple(nodes), links=tuple(links))


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def two_node_data() -> GraphData:
    return GraphData(
        nodes=(make_package("a", user_count=0), make_package("b", user_count=10, has_wiki=True)),
        links=(GraphLink(source="a", target="b"),),
    )


@pytest.fixture
def random_data() -> GraphData:
    return make_random_data()


@pytest.fixture
def engine() -> ForceLayoutEngine:
    return ForceLayoutEngine(1000, 800, seed=SEED)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock(start=100.0)


@pytest.fixture
def navigator() -> list:
    """A list that doubles as the navigate callback via its append method."""
    return []


@pytest.fixture
def surface(engine, fake_clock, navigator) -> RenderSurface:
    return RenderSurface(engine, navigate=navigator.append, clock=fake_clock)


@pytest.fixture
def sample_tables() -> GraphTables:
    packages = pd.DataFrame(
        [
            {"id": 1, "name": "React", "slug": "react", "user_count": 12, "thank_you_count": 4,
             "creator_name": "Jordan Walke", "backstory_md": None, "backstory_verified": False, "opted_out": False},
            {"id": 2, "name": "Markdown", "slug": "markdown", "user_count": 3, "thank_you_count": 0,
             "creator_name": None, "backstory_md": None, "backstory_verified": False, "opted_out": False},
            {"id": 3, "name": "left-pad", "slug": "left-pad", "user_count": 1, "thank_you_count": 0,
             "creator_name": None, "backstory_md": None, "backstory_verified": False, "opted_out": True},
            {"id": 4, "name": "Zod", "slug": "zod", "user_count": 5, "thank_you_count": 2,
             "creator_name": None, "backstory_md": '{"title": "Colin"}', "backstory_verified": True,
             "opted_out": False},
        ]
    )
    projects = pd.DataFrame(
        [
            {"id": 1, "name": "Shop", "tag": "saas"},
            {"id": 2, "name": "Blog", "tag": None},
        ]
    )
    project_dependencies = pd.DataFrame(
        [
            {"project_id": 1, "package_id": 1, "dep_type": "dependency"},
            {"project_id": 1, "package_id": 4, "dep_type": "devDependency"},
            {"project_id": 2, "package_id": 2, "dep_type": "dependency"},
            {"project_id": 2, "package_id": 3, "dep_type": "dependency"},
        ]
    )
    package_connections = pd.DataFrame(
        [{"package_a_id": 4, "package_b_id": 1, "relationship": "peer"}]
    )
    return GraphTables(packages, projects, project_dependencies, package_connections)
