"""
Tests for the edge store: the two creation paths, updates, listings.
"""

import pytest

from nodegraph.errors import NotFound, ValidationError
from nodegraph.models import EdgeContext


@pytest.fixture
def pair(make_node):
    return make_node("From"), make_node("To")


class TestCreate:
    def test_create(self, graph, pair):
        a, b = pair
        edge = graph.edges.create(a.id, b.id, "because", edge_type="supports")
        assert edge.from_node_id == a.id
        assert edge.to_node_id == b.id
        assert edge.explanation == "because"
        assert edge.context.type == "supports"
        assert edge.source == "user"

    def test_create_does_not_dedup(self, graph, pair):
        a, b = pair
        first = graph.edges.create(a.id, b.id, "one")
        second = graph.edges.create(a.id, b.id, "two")
        assert first.id != second.id
        assert graph.edges.count() == 2

    def test_missing_endpoint(self, graph, pair):
        a, _ = pair
        with pytest.raises(NotFound, match="node 999"):
            graph.edges.create(a.id, 999, "dangling")
        assert graph.edges.count() == 0

    def test_self_loop_rejected(self, graph, pair):
        a, _ = pair
        with pytest.raises(ValidationError):
            graph.edges.create(a.id, a.id, "me")


class TestEnsureExists:
    def test_idempotent(self, graph, pair):
        a, b = pair
        edge1, created1 = graph.edges.ensure_exists(a.id, b.id, "mention")
        edge2, created2 = graph.edges.ensure_exists(a.id, b.id, "mention")
        assert created1 is True
        assert created2 is False
        assert edge1.id == edge2.id
        assert graph.edges.count() == 1

    def test_reuses_directly_created_edge(self, graph, pair):
        a, b = pair
        direct = graph.edges.create(a.id, b.id, "by hand")
        edge, created = graph.edges.ensure_exists(a.id, b.id, "mention")
        assert created is False
        assert edge.id == direct.id
        assert edge.explanation == "by hand"

    def test_direction_matters(self, graph, pair):
        a, b = pair
        graph.edges.ensure_exists(a.id, b.id, "forward")
        _, created = graph.edges.ensure_exists(b.id, a.id, "backward")
        assert created is True
        assert graph.edges.exists(b.id, a.id)

    def test_missing_target(self, graph, pair):
        a, _ = pair
        with pytest.raises(NotFound):
            graph.edges.ensure_exists(a.id, 404, "x")


class TestUpdateDelete:
    def test_update_preserves_other_context_keys(self, graph, pair):
        a, b = pair
        edge = graph.edges.create(a.id, b.id, "old", edge_type="cites")
        graph.store.execute(
            "UPDATE edges SET context = ? WHERE id = ?",
            ('{"explanation": "old", "type": "cites", "confidence": 0.9}', edge.id),
        )
        updated = graph.edges.update(edge.id, "new")
        assert updated.explanation == "new"
        assert updated.context.type == "cites"
        assert updated.context.extra == {"confidence": 0.9}

    def test_update_missing(self, graph):
        with pytest.raises(NotFound):
            graph.edges.update(1, "x")

    def test_delete(self, graph, pair):
        a, b = pair
        edge = graph.edges.create(a.id, b.id, "x")
        graph.edges.delete(edge.id)
        assert graph.edges.get(edge.id) is None
        with pytest.raises(NotFound):
            graph.edges.delete(edge.id)


class TestListing:
    def test_list_for_node_annotates_peer(self, graph, make_node):
        center = make_node("Center")
        out_peer = make_node("Out")
        in_peer = make_node("In")
        graph.edges.create(center.id, out_peer.id, "outgoing")
        graph.edges.create(in_peer.id, center.id, "incoming")

        conns = graph.edges.list_for_node(center.id)
        assert [(c.peer_title, c.direction) for c in conns] == [("In", "incoming"), ("Out", "outgoing")]
        assert conns[0].to_dict()["peer"] == {"id": in_peer.id, "title": "In"}

    def test_list_for_node_limit(self, graph, make_node):
        center = make_node("Center")
        for i in range(4):
            graph.edges.create(center.id, make_node(f"p{i}").id, str(i))
        assert len(graph.edges.list_for_node(center.id, limit=3)) == 3

    def test_list_all_and_most_connected(self, graph, make_node):
        hub = make_node("hub")
        a = make_node("a")
        b = make_node("b")
        graph.edges.create(a.id, hub.id, "1")
        graph.edges.create(hub.id, b.id, "2")
        assert [e.explanation for e in graph.edges.list_all()] == ["2", "1"]
        assert graph.edges.most_connected(1) == [(hub.id, 2)]


class TestEdgeContext:
    def test_malformed_json_keeps_raw_text(self):
        ctx = EdgeContext.from_json("not json at all")
        assert ctx.explanation == "not json at all"
        assert ctx.type is None

    def test_round_trip_keeps_extra_keys(self):
        ctx = EdgeContext.from_json('{"explanation": "e", "weight": 3}')
        assert EdgeContext.from_json(ctx.to_json()) == ctx
