"""Data models for the graph store.

JSON columns (node metadata, edge context) are decoded here and nowhere
else: callers see dicts and EdgeContext objects, never serialized text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import sqlite3


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _load_json_object(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}


@dataclass
class ExecResult:
    """Outcome of a single write statement."""

    changes: int
    inserted_id: int | None = None


@dataclass
class Node:
    """A unit of stored knowledge."""

    id: int
    title: str
    content: str | None = None       # long-form notes; may embed [NODE:id:"title"] tokens
    description: str | None = None
    link: str | None = None
    type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    chunk: str | None = None
    created_at: str = ""
    updated_at: str = ""
    dimensions: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Node:
        keys = row.keys()
        dims_raw = row["dimensions_json"] if "dimensions_json" in keys else None
        return cls(
            id=row["id"],
            title=row["title"] or "",
            content=row["content"],
            description=row["description"],
            link=row["link"],
            type=row["type"],
            metadata=_load_json_object(row["metadata"]),
            chunk=row["chunk"],
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
            dimensions=sorted(json.loads(dims_raw)) if dims_raw else [],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "description": self.description,
            "link": self.link,
            "type": self.type,
            "metadata": dict(self.metadata),
            "chunk": self.chunk,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "dimensions": list(self.dimensions),
        }


@dataclass
class EdgeContext:
    """The explained part of an edge, stored as a JSON object.

    Keys other than explanation/type are kept in `extra` and written back
    unchanged.
    """

    explanation: str
    type: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: str | None) -> EdgeContext:
        if not raw:
            return cls(explanation="")
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError:
            return cls(explanation=raw)
        if not isinstance(obj, dict):
            return cls(explanation=str(obj))
        extra = {k: v for k, v in obj.items() if k not in ("explanation", "type")}
        return cls(
            explanation=str(obj.get("explanation") or ""),
            type=obj.get("type"),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {**self.extra, "explanation": self.explanation}
        if self.type is not None:
            d["type"] = self.type
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def merged(self, **changes: Any) -> EdgeContext:
        """Return a copy with explanation/type replaced, other keys preserved."""
        return EdgeContext(
            explanation=changes.get("explanation", self.explanation),
            type=changes.get("type", self.type),
            extra=dict(self.extra),
        )


@dataclass
class Edge:
    """A directed, explained connection from_node_id -> to_node_id."""

    id: int
    from_node_id: int
    to_node_id: int
    context: EdgeContext
    source: str | None = None
    user_feedback: int | None = None
    created_at: str = ""

    @property
    def explanation(self) -> str:
        return self.context.explanation

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Edge:
        return cls(
            id=row["id"],
            from_node_id=row["from_node_id"],
            to_node_id=row["to_node_id"],
            context=EdgeContext.from_json(row["context"]),
            source=row["source"],
            user_feedback=row["user_feedback"],
            created_at=row["created_at"] or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from_node_id": self.from_node_id,
            "to_node_id": self.to_node_id,
            "source": self.source,
            "context": self.context.to_dict(),
            "user_feedback": self.user_feedback,
            "created_at": self.created_at,
        }


@dataclass
class EdgeConnection:
    """An edge seen from one of its endpoints, with the other endpoint resolved."""

    edge: Edge
    peer_id: int
    peer_title: str
    direction: str                   # outgoing | incoming

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.edge.to_dict(),
            "peer": {"id": self.peer_id, "title": self.peer_title},
            "direction": self.direction,
        }


@dataclass
class Dimension:
    name: str
    description: str | None = None
    is_priority: bool = False
    updated_at: str = ""
    count: int = 0                   # live number of associated nodes

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Dimension:
        keys = row.keys()
        return cls(
            name=row["name"],
            description=row["description"],
            is_priority=bool(row["is_priority"]),
            updated_at=row["updated_at"] or "",
            count=int(row["count"]) if "count" in keys else 0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "is_priority": self.is_priority,
            "updated_at": self.updated_at,
            "count": self.count,
        }


@dataclass
class NodeSummary:
    """Compact node reference used in overviews."""

    id: int
    title: str
    description: str | None = None
    edge_count: int = 0
    dimensions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "edge_count": self.edge_count,
            "dimensions": list(self.dimensions),
        }


@dataclass
class GraphContext:
    """Read-only overview of the whole graph."""

    node_count: int
    edge_count: int
    dimension_count: int
    recent_nodes: list[NodeSummary] = field(default_factory=list)
    hub_nodes: list[NodeSummary] = field(default_factory=list)
    dimensions: list[Dimension] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.node_count == 0

    def summary(self) -> str:
        return (
            f"Graph: {self.node_count} nodes, {self.edge_count} edges, "
            f"{self.dimension_count} dimensions."
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": {
                "node_count": self.node_count,
                "edge_count": self.edge_count,
                "dimension_count": self.dimension_count,
            },
            "recent_nodes": [n.to_dict() for n in self.recent_nodes],
            "hub_nodes": [n.to_dict() for n in self.hub_nodes],
            "dimensions": [d.to_dict() for d in self.dimensions],
        }
