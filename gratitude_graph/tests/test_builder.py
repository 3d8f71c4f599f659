"""
gratitude_graph/tests/test_builder.py — Tests for gratitude_graph.graph.builder.

Tests verify:
- Node ids are namespaced (pkg-/proj-) and opted-out packages are excluded.
- has_wiki comes from a stored backstory or the static wiki slugs.
- Unreadable tables yield the empty graph instead of raising.
- graph_stats counts, and backstory storage on GraphTables.
"""

import json

import pandas as pd

from gratitude_graph.graph.builder import SEED_GRAPH, GraphTables, build_graph_data, graph_stats
from gratitude_graph.graph.model import EMPTY_GRAPH


class TestBuildGraphData:

    def test_node_ids_namespaced(self, sample_tables):
        data = sample_tables.graph_data()
        ids = data.node_ids()
        assert {"pkg-1", "pkg-2", "pkg-4", "proj-1", "proj-2"} == ids

    def test_opted_out_excluded(self, sample_tables):
        data = sample_tables.graph_data()
        assert "pkg-3" not in data.node_ids()
        # Its edge is still emitted; the layout engine drops it.
        assert any(link.target == "pkg-3" for link in data.links)

    def test_has_wiki_rules(self, sample_tables):
        nodes = {n.id: n for n in sample_tables.graph_data().nodes}
        assert nodes["pkg-1"].has_wiki is False
        assert nodes["pkg-2"].has_wiki is True  # static page
        assert nodes["pkg-4"].has_wiki is True  # stored backstory
        assert nodes["proj-1"].has_wiki is False

    def test_project_fields(self, sample_tables):
        nodes = {n.id: n for n in sample_tables.graph_data().nodes}
        assert nodes["proj-1"].kind == "project"
        assert nodes["proj-1"].slug == "project-1"
        assert nodes["proj-1"].tag == "saas"
        assert nodes["proj-2"].tag == "other"

    def test_link_kinds(self, sample_tables):
        kinds = {(lk.source, lk.target): lk.kind for lk in sample_tables.graph_data().links}
        assert kinds[("proj-1", "pkg-4")] == "devDependency"
        assert kinds[("pkg-4", "pkg-1")] == "peer"

    def test_missing_columns_yield_empty_graph(self):
        broken = pd.DataFrame([{"name": "no id column"}])
        empty = pd.DataFrame()
        assert build_graph_data(broken, empty, empty, empty) is EMPTY_GRAPH

    def test_empty_tables(self):
        assert GraphTables().graph_data().is_empty


class TestGraphStats:

    def test_counts(self, sample_tables):
        stats = graph_stats(sample_tables.graph_data())
        assert stats == {
            "packages": 3,
            "projects": 2,
            "stories": 2,
            "thankYous": 6,
            "links": 4,
            "components": 2,
        }

    def test_empty(self):
        assert graph_stats(EMPTY_GRAPH)["components"] == 0

    def test_seed_graph(self):
        stats = graph_stats(SEED_GRAPH)
        assert stats["packages"] == 2
        assert stats["stories"] == 2
        assert stats["links"] == 1


class TestGraphTables:

    def test_find_package(self, sample_tables):
        row = sample_tables.find_package("react")
        assert row["name"] == "React"
        assert row["backstory_md"] is None
        assert sample_tables.find_package("nope") is None

    def test_store_backstory_marks_unverified(self, sample_tables):
        sample_tables.store_backstory("react", json.dumps({"title": "x"}), "model-a", "Someone Else")
        row = sample_tables.find_package("react")
        assert json.loads(row["backstory_md"]) == {"title": "x"}
        assert not row["backstory_verified"]
        assert row["backstory_generated_by"] == "model-a"
        # Known creator is kept.
        assert row["creator_name"] == "Jordan Walke"

    def test_store_backstory_fills_missing_creator(self, sample_tables):
        sample_tables.store_backstory("markdown", "{}", "model-a", "John Gruber")
        assert sample_tables.find_package("markdown")["creator_name"] == "John Gruber"

    def test_stored_backstory_shows_up_in_graph(self, sample_tables):
        sample_tables.store_backstory("react", "{}", "model-a", None)
        nodes = {n.id: n for n in sample_tables.graph_data().nodes}
        # "{}" is non-empty text, so the page exists.
        assert nodes["pkg-1"].has_wiki is True
