"""
Tests for the dimension vocabulary: listing, rename and delete cascades, priority.
"""

import pytest

from nodegraph.db import Store
from nodegraph.errors import DuplicateName, NotFound, ValidationError
from nodegraph.nodes import NodeFilters


class TestList:
    def test_priority_first_then_alphabetical(self, graph):
        graph.dimensions.create("zeta")
        graph.dimensions.create("Alpha")
        graph.dimensions.create("beta")
        graph.dimensions.create("omega", is_priority=True)
        assert [d.name for d in graph.dimensions.list()] == ["omega", "Alpha", "beta", "zeta"]

    def test_live_counts(self, graph, make_node):
        make_node("a", dimensions=["x", "y"])
        make_node("b", dimensions=["x"])
        counts = {d.name: d.count for d in graph.dimensions.list()}
        assert counts == {"x": 2, "y": 1}

    def test_default_seeds(self, seeded_graph):
        dims = seeded_graph.dimensions.list()
        assert [d.name for d in dims] == ["ideas", "memory", "preferences", "projects", "research"]
        assert all(d.is_priority for d in dims)

    def test_search(self, graph, make_node):
        make_node("a", dimensions=["machine-learning"])
        make_node("b", dimensions=["machine-learning", "learning-notes"])
        graph.dimensions.create("cooking")
        assert [d.name for d in graph.dimensions.search("learn")] == ["machine-learning", "learning-notes"]
        assert graph.dimensions.search("100%") == []


class TestCreate:
    def test_verbatim_name(self, graph):
        dim = graph.dimensions.create("  Deep Work ", "focus blocks")
        assert dim.name == "Deep Work"
        assert dim.description == "focus blocks"

    def test_duplicate(self, graph):
        graph.dimensions.create("ideas")
        with pytest.raises(DuplicateName):
            graph.dimensions.create("ideas")

    def test_blank_name(self, graph):
        with pytest.raises(ValidationError):
            graph.dimensions.create("  ")


class TestRename:
    def test_rename_moves_every_association(self, graph, make_node):
        tagged = [make_node(f"n{i}", dimensions=["ai", "other"]) for i in range(3)]
        untouched = make_node("plain", dimensions=["other"])

        dim = graph.dimensions.update("ai", new_name="artificial-intelligence")

        assert dim.name == "artificial-intelligence"
        assert dim.count == 3
        assert graph.dimensions.get("ai") is None
        assert graph.nodes.count(NodeFilters(dimensions=["ai"])) == 0
        for node in tagged:
            assert graph.nodes.get_by_id(node.id).dimensions == ["artificial-intelligence", "other"]
        assert graph.nodes.get_by_id(untouched.id).dimensions == ["other"]

    def test_rename_is_atomic_for_other_connections(self, graph, make_node, tmp_path):
        make_node("n", dimensions=["ai"])
        reader = Store.open(tmp_path / "graph.db")
        try:
            graph.dimensions.update("ai", new_name="ml")
            rows = reader.query("SELECT dimension FROM node_dimensions")
            assert [r["dimension"] for r in rows] == ["ml"]
        finally:
            reader.close()

    def test_rename_onto_existing(self, graph, make_node):
        make_node("n", dimensions=["ai"])
        graph.dimensions.create("ml")
        with pytest.raises(DuplicateName):
            graph.dimensions.update("ai", new_name="ml")
        assert graph.dimensions.get("ai").count == 1

    def test_rename_missing(self, graph):
        with pytest.raises(NotFound):
            graph.dimensions.update("nope", new_name="still-nope")

    def test_field_update(self, graph):
        graph.dimensions.create("ideas")
        dim = graph.dimensions.update("ideas", description="loose thoughts", is_priority=True)
        assert dim.description == "loose thoughts"
        assert dim.is_priority is True

    def test_nothing_to_update(self, graph):
        graph.dimensions.create("ideas")
        with pytest.raises(ValidationError):
            graph.dimensions.update("ideas")
        with pytest.raises(ValidationError):
            graph.dimensions.update("ideas", new_name="ideas")


class TestDelete:
    def test_delete_untags_nodes_only(self, graph, make_node):
        node = make_node("n", content="body", dimensions=["gone", "kept"])
        detached = graph.dimensions.delete("gone")
        assert detached == 1
        after = graph.nodes.get_by_id(node.id)
        assert after.dimensions == ["kept"]
        assert after.content == "body"
        assert after.title == "n"
        assert graph.dimensions.get("gone") is None

    def test_delete_unused(self, graph):
        graph.dimensions.create("empty")
        assert graph.dimensions.delete("empty") == 0

    def test_delete_missing(self, graph):
        with pytest.raises(NotFound):
            graph.dimensions.delete("never-was")


class TestPriority:
    def test_toggle_flips(self, graph):
        graph.dimensions.create("ideas")
        assert graph.dimensions.toggle_priority("ideas").is_priority is True
        assert graph.dimensions.toggle_priority("ideas").is_priority is False

    def test_toggle_unseen_creates_priority(self, graph):
        dim = graph.dimensions.toggle_priority("fresh")
        assert dim.is_priority is True
        assert dim.count == 0

    def test_set_priority(self, graph):
        graph.dimensions.create("ideas", is_priority=True)
        assert graph.dimensions.set_priority("ideas", False).is_priority is False
