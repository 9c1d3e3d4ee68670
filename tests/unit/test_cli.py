"""
Tests for the ng command line, run in a temporary project directory.
"""

import re

import pytest
from click.testing import CliRunner

from nodegraph.cli import cli


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.delenv("NODEGRAPH_DB", raising=False)
    monkeypatch.chdir(tmp_path)
    r = CliRunner()
    result = r.invoke(cli, ["init", "demo"])
    assert result.exit_code == 0, result.output
    return r


def _node_id(output):
    match = re.search(r"#(\d+)", output)
    assert match, output
    return int(match.group(1))


class TestInit:
    def test_init_creates_config_and_seeds(self, runner, tmp_path):
        assert (tmp_path / "nodegraph.toml").exists()
        assert (tmp_path / ".nodegraph" / "graph.db").exists()
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert "research" in result.output

    def test_status(self, runner):
        runner.invoke(cli, ["add", "Apple", "-d", "fruit"])
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0, result.output
        assert "Nodes" in result.output
        assert "Edges" in result.output


class TestNodeCommands:
    def test_add_show_search(self, runner):
        result = runner.invoke(cli, ["add", "Apple", "-d", "fruit", "--description", "red", "-c", "crisp"])
        assert result.exit_code == 0, result.output
        node_id = _node_id(result.output)
        assert "Apple [fruit]" in result.output

        shown = runner.invoke(cli, ["show", str(node_id)])
        assert shown.exit_code == 0
        assert "description: red" in shown.output
        assert "crisp" in shown.output

        found = runner.invoke(cli, ["search", "appl"])
        assert f"#{node_id} Apple" in found.output

        assert "(no nodes)" in runner.invoke(cli, ["search", "zzz"]).output

    def test_add_requires_dimension(self, runner):
        result = runner.invoke(cli, ["add", "Apple"])
        assert result.exit_code != 0

    def test_add_validation_error_is_rendered(self, runner):
        result = runner.invoke(cli, ["add", "x" * 161, "-d", "d"])
        assert result.exit_code == 1
        assert "validation_error: title must be 160 characters or less" in result.output

    def test_bad_metadata(self, runner):
        result = runner.invoke(cli, ["add", "x", "-d", "d", "--metadata", "[1]"])
        assert result.exit_code == 2
        assert "JSON object" in result.output

    def test_update_appends_then_replaces(self, runner):
        node_id = _node_id(runner.invoke(cli, ["add", "Note", "-d", "d", "-c", "A"]).output)
        runner.invoke(cli, ["update", str(node_id), "-c", "B"])
        assert "A\n\nB" in runner.invoke(cli, ["show", str(node_id)]).output
        runner.invoke(cli, ["update", str(node_id), "-c", "C", "--replace"])
        shown = runner.invoke(cli, ["show", str(node_id)]).output
        assert "C" in shown
        assert "A\n\nB" not in shown

    def test_update_requires_field(self, runner):
        node_id = _node_id(runner.invoke(cli, ["add", "Note", "-d", "d"]).output)
        result = runner.invoke(cli, ["update", str(node_id)])
        assert result.exit_code == 1
        assert "at least one field" in result.output

    def test_delete_and_missing(self, runner):
        node_id = _node_id(runner.invoke(cli, ["add", "Gone", "-d", "d"]).output)
        assert runner.invoke(cli, ["delete", str(node_id)]).exit_code == 0
        result = runner.invoke(cli, ["delete", str(node_id)])
        assert result.exit_code == 1
        assert "not_found" in result.output
        assert "not_found" in runner.invoke(cli, ["show", str(node_id)]).output

    def test_nodes_listing(self, runner):
        runner.invoke(cli, ["add", "One", "-d", "x"])
        runner.invoke(cli, ["add", "Two", "-d", "y"])
        out = runner.invoke(cli, ["nodes", "-d", "x"]).output
        assert "One" in out
        assert "Two" not in out
        assert "(no nodes)" in runner.invoke(cli, ["nodes", "-d", "x", "-d", "y", "--all-dims"]).output


class TestEdgeCommands:
    def test_link_relink_unlink(self, runner):
        a = _node_id(runner.invoke(cli, ["add", "A", "-d", "d"]).output)
        b = _node_id(runner.invoke(cli, ["add", "B", "-d", "d"]).output)

        linked = runner.invoke(cli, ["link", str(a), str(b), "A needs B"])
        assert linked.exit_code == 0, linked.output
        edge_id = int(re.search(r"edge #(\d+)", linked.output).group(1))

        listed = runner.invoke(cli, ["edges", str(a)]).output
        assert "-> #" in listed
        assert "A needs B" in listed

        runner.invoke(cli, ["relink", str(edge_id), "A uses B"])
        assert "A uses B" in runner.invoke(cli, ["edges"]).output

        assert runner.invoke(cli, ["unlink", str(edge_id)]).exit_code == 0
        assert "(no edges)" in runner.invoke(cli, ["edges"]).output

    def test_self_link_rejected(self, runner):
        a = _node_id(runner.invoke(cli, ["add", "A", "-d", "d"]).output)
        result = runner.invoke(cli, ["link", str(a), str(a), "loop"])
        assert result.exit_code == 1
        assert "validation_error" in result.output

    def test_mention_links_nodes(self, runner):
        a = _node_id(runner.invoke(cli, ["add", "A", "-d", "d", "-c", "notes"]).output)
        b = _node_id(runner.invoke(cli, ["add", "B", "-d", "d"]).output)
        result = runner.invoke(cli, ["mention", str(a), str(b)])
        assert result.exit_code == 0, result.output
        shown = runner.invoke(cli, ["show", str(a)]).output
        assert f'notes [NODE:{b}:"B"]' in shown
        assert "Referenced via @ mention" in shown


class TestDimsCommands:
    def test_lifecycle(self, runner):
        runner.invoke(cli, ["add", "Paper", "-d", "ai"])

        created = runner.invoke(cli, ["dims", "create", "reading", "--description", "to read"])
        assert created.exit_code == 0
        assert "Created reading" in created.output

        dup = runner.invoke(cli, ["dims", "create", "reading"])
        assert dup.exit_code == 1
        assert "duplicate_name" in dup.output

        renamed = runner.invoke(cli, ["dims", "update", "ai", "--rename", "ml"])
        assert "Updated ml (1 node)" in renamed.output

        toggled = runner.invoke(cli, ["dims", "toggle", "ml"])
        assert "ml: priority" in toggled.output

        listed = runner.invoke(cli, ["dims", "list"])
        assert listed.exit_code == 0
        assert "ml" in listed.output
        assert "reading" in listed.output

        deleted = runner.invoke(cli, ["dims", "delete", "ml"])
        assert "removed from 1 node" in deleted.output
        assert "not_found" in runner.invoke(cli, ["dims", "delete", "ml"]).output


def test_context(runner):
    assert "Graph: 0 nodes" in runner.invoke(cli, ["context"]).output
    runner.invoke(cli, ["add", "Hub", "-d", "d"])
    out = runner.invoke(cli, ["context"]).output
    assert "Graph: 1 nodes, 0 edges" in out
    assert "Recent" in out
    assert "Hub" in out
