"""Validated operations for outer surfaces (CLI, tool transports).

Every limit is checked here, before any store call, so a rejected request
never writes anything. The stores below trust their inputs more.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from nodegraph.errors import ValidationError
from nodegraph.nodes import NodeFilters
from nodegraph.validation import (
    CHUNK_MAX,
    CONTENT_MAX,
    DESCRIPTION_MAX,
    DIMENSION_DESCRIPTION_MAX,
    EDGE_LIMIT_DEFAULT,
    EDGE_LIMIT_MAX,
    GET_NODES_MAX,
    SEARCH_LIMIT_DEFAULT,
    SEARCH_LIMIT_MAX,
    SEARCH_QUERY_MAX,
    TITLE_MAX,
    clamp,
    optional_text,
    require_text,
    sanitize_dimensions,
    unique_positive_ids,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from nodegraph.graph import Graph
    from nodegraph.models import Dimension, Edge, EdgeConnection, GraphContext, Node


class GraphAPI:
    def __init__(self, graph: Graph, edge_source: str = "user") -> None:
        self.graph = graph
        self.edge_source = edge_source

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(
        self,
        title: Any,
        dimensions: Iterable[Any] | None,
        *,
        content: Any = None,
        description: Any = None,
        link: Any = None,
        type: Any = None,  # noqa: A002
        metadata: Mapping[str, Any] | None = None,
        chunk: Any = None,
    ) -> Node:
        title = require_text(title, "title", TITLE_MAX)
        description = optional_text(description, "description", DESCRIPTION_MAX)
        content = optional_text(content, "content", CONTENT_MAX, strip=False)
        chunk = optional_text(chunk, "chunk", CHUNK_MAX, strip=False)
        dims = sanitize_dimensions(dimensions)
        if not dims:
            msg = "at least one dimension is required"
            raise ValidationError(msg)
        return self.graph.nodes.create(
            title,
            content=content,
            description=description,
            link=link,
            type=type,
            metadata=metadata,
            chunk=chunk,
            dimensions=dims,
        )

    def search_nodes(
        self,
        query: Any,
        limit: int | None = None,
        dimensions: Iterable[Any] | None = None,
    ) -> list[Node]:
        query = require_text(query, "query", SEARCH_QUERY_MAX)
        filters = NodeFilters(
            search=query,
            dimensions=sanitize_dimensions(dimensions),
            limit=clamp(limit, 1, SEARCH_LIMIT_MAX, SEARCH_LIMIT_DEFAULT),
        )
        return self.graph.nodes.get_nodes(filters)

    def list_nodes(self, filters: NodeFilters) -> list[Node]:
        return self.graph.nodes.get_nodes(filters)

    def get_nodes(self, ids: Iterable[Any]) -> list[Node]:
        wanted = unique_positive_ids(ids)
        if not wanted:
            msg = "at least one positive node id is required"
            raise ValidationError(msg)
        if len(wanted) > GET_NODES_MAX:
            msg = f"at most {GET_NODES_MAX} node ids per request"
            raise ValidationError(msg)
        return self.graph.nodes.get_many(wanted)

    def update_node(
        self,
        node_id: int,
        *,
        title: Any = None,
        content: Any = None,
        description: Any = None,
        link: Any = None,
        type: Any = None,  # noqa: A002
        metadata: Mapping[str, Any] | None = None,
        chunk: Any = None,
        dimensions: Iterable[Any] | None = None,
        append_content: bool = True,
    ) -> Node:
        fields: dict[str, Any] = {}
        if title is not None:
            fields["title"] = require_text(title, "title", TITLE_MAX)
        if content is not None:
            fields["content"] = optional_text(content, "content", CONTENT_MAX, strip=False)
        if description is not None:
            fields["description"] = optional_text(description, "description", DESCRIPTION_MAX)
        if chunk is not None:
            fields["chunk"] = optional_text(chunk, "chunk", CHUNK_MAX, strip=False)
        if link is not None:
            fields["link"] = link
        if type is not None:
            fields["type"] = type
        if metadata is not None:
            fields["metadata"] = metadata
        if dimensions is not None:
            dims = sanitize_dimensions(dimensions)
            if not dims:
                msg = "dimensions must contain at least one non-empty name"
                raise ValidationError(msg)
            fields["dimensions"] = dims
        if not fields:
            msg = "at least one field is required"
            raise ValidationError(msg)
        return self.graph.nodes.update(node_id, fields, append_content=append_content)

    def delete_node(self, node_id: int) -> None:
        self.graph.nodes.delete(node_id)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def create_edge(self, from_id: int, to_id: int, explanation: Any, edge_type: str | None = None) -> Edge:
        explanation = require_text(explanation, "explanation")
        return self.graph.edges.create(from_id, to_id, explanation, self.edge_source, edge_type)

    def update_edge(self, edge_id: int, explanation: Any, edge_type: str | None = None) -> Edge:
        explanation = require_text(explanation, "explanation")
        return self.graph.edges.update(edge_id, explanation, edge_type)

    def delete_edge(self, edge_id: int) -> None:
        self.graph.edges.delete(edge_id)

    def query_edges(self, node_id: int, limit: int | None = None) -> list[EdgeConnection]:
        return self.graph.edges.list_for_node(node_id, clamp(limit, 1, EDGE_LIMIT_MAX, EDGE_LIMIT_DEFAULT))

    def recent_edges(self, limit: int | None = None) -> list[Edge]:
        return self.graph.edges.list_all(clamp(limit, 1, EDGE_LIMIT_MAX, EDGE_LIMIT_DEFAULT))

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------

    def list_dimensions(self) -> list[Dimension]:
        return self.graph.dimensions.list()

    def create_dimension(self, name: Any, description: Any = None, *, is_priority: bool = False) -> Dimension:
        name = require_text(name, "name")
        description = optional_text(description, "description", DIMENSION_DESCRIPTION_MAX)
        return self.graph.dimensions.create(name, description, is_priority=is_priority)

    def update_dimension(
        self,
        name: Any,
        *,
        new_name: Any = None,
        description: Any = None,
        is_priority: bool | None = None,
    ) -> Dimension:
        name = require_text(name, "name")
        if new_name is not None:
            new_name = require_text(new_name, "new name")
        description = optional_text(description, "description", DIMENSION_DESCRIPTION_MAX)
        return self.graph.dimensions.update(name, new_name, description, is_priority)

    def delete_dimension(self, name: Any) -> int:
        return self.graph.dimensions.delete(require_text(name, "name"))

    def toggle_dimension(self, name: Any) -> Dimension:
        return self.graph.dimensions.toggle_priority(require_text(name, "name"))

    # ------------------------------------------------------------------
    # Overview
    # ------------------------------------------------------------------

    def get_context(self) -> GraphContext:
        return self.graph.nodes.get_context()


# ---------------------------------------------------------------------------
# One-line summaries
# ---------------------------------------------------------------------------


def describe_node(node: Node) -> str:
    dims = f" [{', '.join(node.dimensions)}]" if node.dimensions else ""
    return f"#{node.id} {node.title}{dims}"


def describe_edge(edge: Edge) -> str:
    return f"edge #{edge.id}: #{edge.from_node_id} -> #{edge.to_node_id} ({edge.explanation})"


def describe_connection(conn: EdgeConnection) -> str:
    arrow = "->" if conn.direction == "outgoing" else "<-"
    return f"edge #{conn.edge.id} {arrow} #{conn.peer_id} {conn.peer_title}: {conn.edge.explanation}"


def describe_dimension(dim: Dimension) -> str:
    star = "*" if dim.is_priority else ""
    return f"{star}{dim.name} ({dim.count} node{'s' if dim.count != 1 else ''})"
