"""ng CLI: personal knowledge graph in a single SQLite file.

Commands:
    ng init [NAME]                 create nodegraph.toml + database
    ng status                      database path and table counts
    ng add TITLE -d DIM ...        create a node
    ng show ID                     a node with its edges
    ng search QUERY                ranked text search
    ng nodes                       filtered/sorted listing
    ng update ID ...               partial update (content is appended)
    ng delete ID                   delete a node with its edges
    ng link FROM TO EXPLANATION    create an edge
    ng relink EDGE EXPLANATION     change an edge explanation
    ng unlink EDGE                 delete an edge
    ng edges [ID]                  edges of a node, or the newest edges
    ng mention ID TARGET           append a [NODE:..] token and link it
    ng dims list|create|update|delete|toggle
    ng context                     overview: counts, recent and hub nodes
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click

from nodegraph.api import (
    GraphAPI,
    describe_connection,
    describe_dimension,
    describe_edge,
    describe_node,
)
from nodegraph.config import NGConfig, init_config, load_config
from nodegraph.errors import GraphError
from nodegraph.graph import Graph
from nodegraph.nodes import NodeFilters

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> NGConfig:
    try:
        return load_config()
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


def _configure_logging(cfg: NGConfig, verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.getLevelName(cfg.logging.level)
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(message)s")
    logging.getLogger("nodegraph").setLevel(level)


def _open_graph(ctx: click.Context, cfg: NGConfig | None = None) -> Graph:
    cfg = cfg or _load_cfg()
    _configure_logging(cfg, ctx.find_root().params.get("verbose", 0))
    graph = Graph.from_config(cfg)
    ctx.call_on_close(graph.close)
    return graph


def _api(ctx: click.Context) -> GraphAPI:
    return GraphAPI(_open_graph(ctx))


def _parse_metadata(raw: str | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"--metadata is not valid JSON: {exc}"
        raise click.BadParameter(msg) from exc
    if not isinstance(value, dict):
        msg = "--metadata must be a JSON object"
        raise click.BadParameter(msg)
    return value


class _GraphGroup(click.Group):
    """Renders GraphError as `<code>: <message>` instead of a traceback."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except GraphError as exc:
            raise click.ClickException(f"{exc.code}: {exc.message}") from exc


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(cls=_GraphGroup)
@click.version_option(package_name="nodegraph")
@click.option("-v", "--verbose", count=True, help="-v for INFO logs, -vv for DEBUG")
def cli(verbose: int) -> None:
    """ng: personal knowledge graph."""


# ---------------------------------------------------------------------------
# ng init / ng status
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
@click.pass_context
def init(ctx: click.Context, name: str | None, root: str) -> None:
    """Create nodegraph.toml and the database in the current project."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("nodegraph.toml already exists, skipping")

    cfg = load_config(root_path)
    graph = _open_graph(ctx, cfg)
    click.echo(f"Database  : {cfg.db_path}")
    click.echo(f"Dimensions: {', '.join(d.name for d in graph.dimensions.list()) or '(none)'}")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show project config, database location and table counts."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as _pkg_version

    from rich.console import Console
    from rich.table import Table

    cfg = _load_cfg()
    console = Console()

    table = Table(title=f"ng: {cfg.name}", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    try:
        _ver = _pkg_version("nodegraph")
    except PackageNotFoundError:
        _ver = "unknown"
    table.add_row("Version", _ver)
    table.add_row("Config", str(cfg.config_path) if cfg.config_path.exists() else "[yellow]defaults[/yellow]")

    if not cfg.db_path.exists():
        table.add_row("Database", "[red]missing, run `ng init`[/red]")
        console.print(table)
        return

    size_mb = cfg.db_path.stat().st_size / 1_000_000
    table.add_row("Database", f"{cfg.db_path}  [{size_mb:.1f} MB]")
    table.add_row("", "")

    counts = _open_graph(ctx, cfg).store.table_counts()
    table.add_row("Nodes", str(counts["nodes"]))
    table.add_row("Edges", str(counts["edges"]))
    table.add_row("Dimensions", str(counts["dimensions"]))
    table.add_row("  Tag links", str(counts["node_dimensions"]))
    console.print(table)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("title")
@click.option("--dim", "-d", "dims", multiple=True, required=True, help="Dimension (repeatable, max 5)")
@click.option("--content", "-c", default=None, help="Notes; may contain [NODE:id:\"title\"] tokens")
@click.option("--description", default=None)
@click.option("--link", default=None, help="Source URL")
@click.option("--type", "node_type", default=None)
@click.option("--metadata", default=None, help="JSON object")
@click.pass_context
def add(
    ctx: click.Context,
    title: str,
    dims: tuple[str, ...],
    content: str | None,
    description: str | None,
    link: str | None,
    node_type: str | None,
    metadata: str | None,
) -> None:
    """Create a node."""
    node = _api(ctx).add_node(
        title,
        list(dims),
        content=content,
        description=description,
        link=link,
        type=node_type,
        metadata=_parse_metadata(metadata),
    )
    click.echo(describe_node(node))


@cli.command()
@click.argument("node_id", type=int)
@click.option("--limit", "-l", default=25, show_default=True, help="Max edges to show")
@click.pass_context
def show(ctx: click.Context, node_id: int, limit: int) -> None:
    """Print a node and its edges."""
    api = _api(ctx)
    nodes = api.get_nodes([node_id])
    if not nodes:
        raise click.ClickException(f"not_found: node {node_id} not found")
    node = nodes[0]
    click.echo(describe_node(node))
    for label, value in (
        ("description", node.description),
        ("link", node.link),
        ("type", node.type),
        ("updated", node.updated_at),
    ):
        if value:
            click.echo(f"  {label}: {value}")
    if node.metadata:
        click.echo(f"  metadata: {json.dumps(node.metadata, sort_keys=True)}")
    if node.content:
        click.echo("")
        click.echo(node.content)
    connections = api.query_edges(node_id, limit)
    if connections:
        click.echo("")
        click.echo(f"Edges ({len(connections)}):")
        for conn in connections:
            click.echo(f"  {describe_connection(conn)}")


@cli.command()
@click.argument("query")
@click.option("--limit", "-l", default=10, show_default=True)
@click.option("--dim", "-d", "dims", multiple=True, help="Only nodes tagged with any of these")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int, dims: tuple[str, ...]) -> None:
    """Search titles, descriptions and notes; best title matches first."""
    nodes = _api(ctx).search_nodes(query, limit, list(dims))
    if not nodes:
        click.echo("(no nodes)")
        return
    for node in nodes:
        click.echo(describe_node(node))


@cli.command("nodes")
@click.option("--dim", "-d", "dims", multiple=True, help="Dimension filter (repeatable)")
@click.option("--all-dims", is_flag=True, help="Require every --dim instead of any")
@click.option("--after", default=None, help="Created at or after (ISO date)")
@click.option("--before", default=None, help="Created at or before (ISO date)")
@click.option(
    "--sort", "sort_by", default="updated", show_default=True,
    type=click.Choice(["updated", "created", "edges"]),
)
@click.option("--limit", "-l", default=20, show_default=True)
@click.option("--offset", "-o", default=0, show_default=True)
@click.pass_context
def list_nodes(
    ctx: click.Context,
    dims: tuple[str, ...],
    all_dims: bool,
    after: str | None,
    before: str | None,
    sort_by: str,
    limit: int,
    offset: int,
) -> None:
    """List nodes.

    \b
    ng nodes                      # most recently updated first
    ng nodes -d ideas -d research # tagged with either
    ng nodes --sort edges -l 5    # best connected
    """
    filters = NodeFilters(
        dimensions=list(dims),
        dimensions_match="all" if all_dims else "any",
        created_after=after,
        created_before=before,
        sort_by=sort_by,
        limit=limit,
        offset=offset,
    )
    nodes = _api(ctx).list_nodes(filters)
    if not nodes:
        click.echo("(no nodes)")
        return
    for node in nodes:
        click.echo(f"{describe_node(node)}  {node.updated_at[:10]}")


@cli.command()
@click.argument("node_id", type=int)
@click.option("--title", default=None)
@click.option("--content", "-c", default=None, help="Appended to existing notes")
@click.option("--replace", is_flag=True, help="Replace notes instead of appending")
@click.option("--description", default=None)
@click.option("--link", default=None)
@click.option("--type", "node_type", default=None)
@click.option("--metadata", default=None, help="JSON object (replaces existing)")
@click.option("--dim", "-d", "dims", multiple=True, help="Replace all dimensions")
@click.pass_context
def update(
    ctx: click.Context,
    node_id: int,
    title: str | None,
    content: str | None,
    replace: bool,
    description: str | None,
    link: str | None,
    node_type: str | None,
    metadata: str | None,
    dims: tuple[str, ...],
) -> None:
    """Update fields of a node."""
    node = _api(ctx).update_node(
        node_id,
        title=title,
        content=content,
        description=description,
        link=link,
        type=node_type,
        metadata=_parse_metadata(metadata),
        dimensions=list(dims) if dims else None,
        append_content=not replace,
    )
    click.echo(f"Updated {describe_node(node)}")


@cli.command()
@click.argument("node_id", type=int)
@click.pass_context
def delete(ctx: click.Context, node_id: int) -> None:
    """Delete a node together with its edges and tags."""
    _api(ctx).delete_node(node_id)
    click.echo(f"Deleted node #{node_id}")


@cli.command()
@click.argument("node_id", type=int)
@click.argument("target_id", type=int)
@click.pass_context
def mention(ctx: click.Context, node_id: int, target_id: int) -> None:
    """Append a reference to TARGET_ID in the notes of NODE_ID."""
    graph = _open_graph(ctx)
    node = graph.nodes.get_by_id(node_id)
    if node is None:
        raise click.ClickException(f"not_found: node {node_id} not found")
    draft = node.content or ""
    if draft and not draft[-1].isspace():
        draft += " "
    node, _ = graph.insert_mention(node_id, draft, len(draft), target_id)
    click.echo(f"Updated {describe_node(node)}")


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("from_id", type=int)
@click.argument("to_id", type=int)
@click.argument("explanation")
@click.option("--type", "edge_type", default=None, help="Relationship label")
@click.pass_context
def link(ctx: click.Context, from_id: int, to_id: int, explanation: str, edge_type: str | None) -> None:
    """Create an edge FROM_ID -> TO_ID."""
    edge = _api(ctx).create_edge(from_id, to_id, explanation, edge_type)
    click.echo(describe_edge(edge))


@cli.command()
@click.argument("edge_id", type=int)
@click.argument("explanation")
@click.option("--type", "edge_type", default=None)
@click.pass_context
def relink(ctx: click.Context, edge_id: int, explanation: str, edge_type: str | None) -> None:
    """Change the explanation of an edge."""
    edge = _api(ctx).update_edge(edge_id, explanation, edge_type)
    click.echo(describe_edge(edge))


@cli.command()
@click.argument("edge_id", type=int)
@click.pass_context
def unlink(ctx: click.Context, edge_id: int) -> None:
    """Delete an edge."""
    _api(ctx).delete_edge(edge_id)
    click.echo(f"Deleted edge #{edge_id}")


@cli.command()
@click.argument("node_id", type=int, required=False)
@click.option("--limit", "-l", default=25, show_default=True)
@click.pass_context
def edges(ctx: click.Context, node_id: int | None, limit: int) -> None:
    """List edges of NODE_ID (or the newest edges overall)."""
    api = _api(ctx)
    if node_id is None:
        lines = [describe_edge(e) for e in api.recent_edges(limit)]
    else:
        lines = [describe_connection(c) for c in api.query_edges(node_id, limit)]
    if not lines:
        click.echo("(no edges)")
        return
    for line in lines:
        click.echo(line)


# ---------------------------------------------------------------------------
# ng dims
# ---------------------------------------------------------------------------


@cli.group()
def dims() -> None:
    """Manage the dimension vocabulary."""


@dims.command("list")
@click.pass_context
def dims_list(ctx: click.Context) -> None:
    """List dimensions, priority first."""
    from rich.console import Console
    from rich.table import Table

    dimensions = _api(ctx).list_dimensions()
    if not dimensions:
        click.echo("(no dimensions)")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", no_wrap=True)
    table.add_column("Nodes", justify="right")
    table.add_column("Priority", justify="center")
    table.add_column("Description")
    for dim in dimensions:
        table.add_row(dim.name, str(dim.count), "★" if dim.is_priority else "", dim.description or "")
    Console().print(table)


@dims.command("create")
@click.argument("name")
@click.option("--description", default=None)
@click.option("--priority", is_flag=True, help="Mark as a priority dimension")
@click.pass_context
def dims_create(ctx: click.Context, name: str, description: str | None, priority: bool) -> None:
    """Add a dimension to the vocabulary."""
    dim = _api(ctx).create_dimension(name, description, is_priority=priority)
    click.echo(f"Created {describe_dimension(dim)}")


@dims.command("update")
@click.argument("name")
@click.option("--rename", "new_name", default=None, help="New name; every tagged node follows")
@click.option("--description", default=None)
@click.option("--priority/--no-priority", default=None)
@click.pass_context
def dims_update(
    ctx: click.Context,
    name: str,
    new_name: str | None,
    description: str | None,
    priority: bool | None,
) -> None:
    """Rename a dimension or change its description/priority."""
    dim = _api(ctx).update_dimension(name, new_name=new_name, description=description, is_priority=priority)
    click.echo(f"Updated {describe_dimension(dim)}")


@dims.command("delete")
@click.argument("name")
@click.pass_context
def dims_delete(ctx: click.Context, name: str) -> None:
    """Delete a dimension and remove it from every node."""
    detached = _api(ctx).delete_dimension(name)
    click.echo(f"Deleted {name} (removed from {detached} node{'s' if detached != 1 else ''})")


@dims.command("toggle")
@click.argument("name")
@click.pass_context
def dims_toggle(ctx: click.Context, name: str) -> None:
    """Flip the priority flag of a dimension."""
    dim = _api(ctx).toggle_dimension(name)
    click.echo(f"{dim.name}: {'priority' if dim.is_priority else 'normal'}")


# ---------------------------------------------------------------------------
# ng context
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def context(ctx: click.Context) -> None:
    """Overview of the graph: counts, newest nodes, hubs, dimensions."""
    from rich.console import Console

    overview = _api(ctx).get_context()
    console = Console()
    console.print(overview.summary(), markup=False)
    if overview.is_empty:
        return
    console.print("\n[bold]Recent[/bold]")
    for s in overview.recent_nodes:
        console.print(f"  #{s.id} {s.title}", markup=False)
    console.print("\n[bold]Hubs[/bold]")
    for s in overview.hub_nodes:
        console.print(f"  #{s.id} {s.title}  ({s.edge_count} edges)", markup=False)
    console.print("\n[bold]Dimensions[/bold]")
    for dim in overview.dimensions:
        console.print(f"  {describe_dimension(dim)}", markup=False)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
