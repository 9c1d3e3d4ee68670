"""Node store: CRUD, filtered/ranked listing, and the graph overview.

Every multi-statement write runs inside one Store.transaction. Mention
resolution runs after the commit, so it always sees the saved content and
its failures never undo the save.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nodegraph.errors import NotFound, ValidationError
from nodegraph.mentions import parse_tokens
from nodegraph.models import GraphContext, Node, NodeSummary, now_iso
from nodegraph.validation import escape_like, require_text, sanitize_dimensions

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from nodegraph.db import Store
    from nodegraph.dimensions import DimensionStore
    from nodegraph.edges import EdgeStore
    from nodegraph.mentions import MentionResolver, SyncReport

logger = logging.getLogger("nodegraph.nodes")

# Overwritten on update; content and dimensions have their own rules.
_PLAIN_FIELDS = ("title", "description", "link", "type", "chunk")
UPDATABLE_FIELDS = frozenset({*_PLAIN_FIELDS, "metadata", "content", "dimensions"})

_DIMS_SQL = (
    "(SELECT json_group_array(nd.dimension) FROM node_dimensions nd WHERE nd.node_id = n.id)"
)
_DEGREE_SQL = "(SELECT COUNT(*) FROM edges e WHERE e.from_node_id = n.id OR e.to_node_id = n.id)"
_SELECT = f"SELECT n.*, {_DIMS_SQL} AS dimensions_json FROM nodes n"  # noqa: S608

_SORTS = {
    "updated": "n.updated_at DESC, n.id DESC",
    "created": "n.created_at DESC, n.id DESC",
    "edges": f"{_DEGREE_SQL} DESC, n.updated_at DESC, n.id DESC",
}

CONTEXT_LIST_SIZE = 5


@dataclass
class NodeFilters:
    """Selection for get_nodes/count.

    dimensions_match: "any" keeps nodes tagged with at least one of the
    dimensions, "all" only nodes tagged with every one of them.
    """

    search: str | None = None
    dimensions: list[str] = field(default_factory=list)
    dimensions_match: str = "any"
    created_after: str | None = None
    created_before: str | None = None
    sort_by: str = "updated"
    limit: int = 50
    offset: int = 0


class NodeStore:
    def __init__(
        self,
        store: Store,
        dimensions: DimensionStore,
        edges: EdgeStore,
        resolver: MentionResolver | None = None,
    ) -> None:
        self.store = store
        self.dimensions = dimensions
        self.edges = edges
        self.resolver = resolver

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        title: str,
        *,
        content: str | None = None,
        description: str | None = None,
        link: str | None = None,
        type: str | None = None,  # noqa: A002
        metadata: Mapping[str, Any] | None = None,
        chunk: str | None = None,
        dimensions: Iterable[str] | None = None,
    ) -> Node:
        title = require_text(title, "title")
        dims = sanitize_dimensions(dimensions)
        meta = _dump_metadata(metadata)

        def _create() -> int:
            now = now_iso()
            node_id = self.store.insert(
                """
                INSERT INTO nodes(title, description, content, link, type, metadata, chunk,
                                  created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (title, description, content, link, type, meta, chunk, now, now),
            )
            self._replace_dimensions(node_id, dims)
            return node_id

        node_id = self.store.transaction(_create)
        logger.info("created node %d %r", node_id, title)
        if parse_tokens(content):
            self._resolve(node_id, content)
        return self._require(node_id)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, node_id: int) -> Node | None:
        rows = self.store.query(f"{_SELECT} WHERE n.id = ?", (node_id,))
        return Node.from_row(rows[0]) if rows else None

    def get_many(self, ids: Iterable[int]) -> list[Node]:
        """Fetch nodes by id in request order; unknown ids are skipped."""
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []
        marks = ",".join("?" * len(wanted))
        rows = self.store.query(f"{_SELECT} WHERE n.id IN ({marks})", wanted)
        by_id = {r["id"]: Node.from_row(r) for r in rows}
        return [by_id[i] for i in wanted if i in by_id]

    def get_nodes(self, filters: NodeFilters | None = None) -> list[Node]:
        """A page of nodes.

        With a search term, results are ordered by match tier:

            1  title equals the term
            2  title starts with it
            3  title contains it
            4  description contains it
            5  content contains it
            6  anything else

        and by updated_at (newest first) within a tier. Without one, by
        filters.sort_by.
        """
        f = filters or NodeFilters()
        where, params = self._where(f)
        order = _SORTS.get(f.sort_by)
        if order is None:
            msg = f"unknown sort {f.sort_by!r}; expected one of {', '.join(_SORTS)}"
            raise ValidationError(msg)

        term = (f.search or "").strip()
        select = _SELECT
        if term:
            esc = escape_like(term)
            select = f"""
                SELECT n.*, {_DIMS_SQL} AS dimensions_json,
                    CASE
                        WHEN LOWER(n.title) = LOWER(?) THEN 1
                        WHEN n.title LIKE ? ESCAPE '\\' THEN 2
                        WHEN n.title LIKE ? ESCAPE '\\' THEN 3
                        WHEN n.description LIKE ? ESCAPE '\\' THEN 4
                        WHEN n.content LIKE ? ESCAPE '\\' THEN 5
                        ELSE 6
                    END AS match_tier
                FROM nodes n
            """  # noqa: S608
            params = [term, f"{esc}%", f"%{esc}%", f"%{esc}%", f"%{esc}%", *params]
            order = "match_tier, n.updated_at DESC, n.id DESC"

        sql = f"{select} {where} ORDER BY {order} LIMIT ? OFFSET ?"
        rows = self.store.query(sql, [*params, max(f.limit, 0), max(f.offset, 0)])
        return [Node.from_row(r) for r in rows]

    def count(self, filters: NodeFilters | None = None) -> int:
        where, params = self._where(filters or NodeFilters())
        return int(self.store.query(f"SELECT COUNT(*) FROM nodes n {where}", params)[0][0])  # noqa: S608

    def _where(self, f: NodeFilters) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        term = (f.search or "").strip()
        if term:
            pattern = f"%{escape_like(term)}%"
            clauses.append(
                "(n.title LIKE ? ESCAPE '\\' OR n.description LIKE ? ESCAPE '\\'"
                " OR n.content LIKE ? ESCAPE '\\')"
            )
            params += [pattern, pattern, pattern]

        dims = [d.lower() for d in sanitize_dimensions(f.dimensions)]
        if dims:
            marks = ",".join("?" * len(dims))
            if f.dimensions_match == "all":
                clauses.append(
                    "(SELECT COUNT(DISTINCT LOWER(nd.dimension)) FROM node_dimensions nd"
                    f" WHERE nd.node_id = n.id AND LOWER(nd.dimension) IN ({marks})) = ?"
                )
                params += [*dims, len(dims)]
            elif f.dimensions_match == "any":
                clauses.append(
                    "EXISTS (SELECT 1 FROM node_dimensions nd"
                    f" WHERE nd.node_id = n.id AND LOWER(nd.dimension) IN ({marks}))"
                )
                params += dims
            else:
                msg = f"dimensions_match must be 'any' or 'all', not {f.dimensions_match!r}"
                raise ValidationError(msg)

        if f.created_after:
            clauses.append("n.created_at >= ?")
            params.append(f.created_after)
        if f.created_before:
            clauses.append("n.created_at <= ?")
            params.append(f.created_before)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    def update(self, node_id: int, fields: Mapping[str, Any], *, append_content: bool = True) -> Node:
        """Apply a partial update in one transaction.

        Plain fields and metadata are overwritten. Content is appended after a
        blank line when append_content is set and the node already has
        content, otherwise replaced. Dimensions replace the whole set.
        updated_at is refreshed even when nothing else changes.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            msg = f"unknown field(s): {', '.join(sorted(unknown))}"
            raise ValidationError(msg)
        if "title" in fields:
            fields = {**fields, "title": require_text(fields["title"], "title")}
        meta = _dump_metadata(fields["metadata"]) if "metadata" in fields else None
        dims = sanitize_dimensions(fields["dimensions"]) if "dimensions" in fields else None

        def _update() -> str | None:
            existing = self.get_by_id(node_id)
            if existing is None:
                msg = f"node {node_id} not found"
                raise NotFound(msg)

            sets = ["updated_at = ?"]
            params: list[Any] = [now_iso()]
            for name in _PLAIN_FIELDS:
                if name in fields:
                    sets.append(f"{name} = ?")
                    params.append(fields[name])
            if "metadata" in fields:
                sets.append("metadata = ?")
                params.append(meta)

            saved = None
            if "content" in fields:
                saved = _merge_content(existing.content, fields["content"], append=append_content)
                if saved != existing.content:
                    sets.append("content = ?")
                    params.append(saved)

            self.store.execute(f"UPDATE nodes SET {', '.join(sets)} WHERE id = ?", [*params, node_id])  # noqa: S608
            if dims is not None:
                self._replace_dimensions(node_id, dims)
            return saved

        saved = self.store.transaction(_update)
        logger.debug("updated node %d (%s)", node_id, ", ".join(sorted(fields)) or "touch")
        if "content" in fields:
            self._resolve(node_id, saved)
        return self._require(node_id)

    def delete(self, node_id: int) -> None:
        """Delete a node; its edges and dimension links go with it."""
        res = self.store.transaction(lambda: self.store.execute("DELETE FROM nodes WHERE id = ?", (node_id,)))
        if res.changes == 0:
            msg = f"node {node_id} not found"
            raise NotFound(msg)
        logger.info("deleted node %d", node_id)

    def _replace_dimensions(self, node_id: int, dims: list[str]) -> None:
        self.store.execute("DELETE FROM node_dimensions WHERE node_id = ?", (node_id,))
        for name in dims:
            self.dimensions.ensure(name)
            self.store.execute(
                "INSERT OR IGNORE INTO node_dimensions(node_id, dimension) VALUES (?, ?)",
                (node_id, name),
            )

    def _resolve(self, node_id: int, content: str | None) -> SyncReport | None:
        if self.resolver is None:
            return None
        return self.resolver.sync(node_id, content)

    def _require(self, node_id: int) -> Node:
        node = self.get_by_id(node_id)
        if node is None:
            msg = f"node {node_id} not found"
            raise NotFound(msg)
        return node

    # ------------------------------------------------------------------
    # Overview
    # ------------------------------------------------------------------

    def get_context(self) -> GraphContext:
        dims = self.dimensions.list()
        return GraphContext(
            node_count=self.count(),
            edge_count=self.edges.count(),
            dimension_count=len(dims),
            recent_nodes=self._summaries("n.created_at DESC, n.id DESC"),
            hub_nodes=self._summaries("edge_count DESC, n.updated_at DESC, n.id DESC"),
            dimensions=dims,
        )

    def _summaries(self, order: str) -> list[NodeSummary]:
        rows = self.store.query(
            f"""
            SELECT n.id, n.title, n.description,
                   {_DEGREE_SQL} AS edge_count,
                   {_DIMS_SQL} AS dimensions_json
            FROM nodes n
            ORDER BY {order}
            LIMIT ?
            """,  # noqa: S608
            (CONTEXT_LIST_SIZE,),
        )
        return [
            NodeSummary(
                id=r["id"],
                title=r["title"] or "",
                description=r["description"],
                edge_count=r["edge_count"],
                dimensions=sorted(json.loads(r["dimensions_json"] or "[]")),
            )
            for r in rows
        ]


def _merge_content(existing: str | None, new: str | None, *, append: bool) -> str | None:
    if not append:
        return new
    if not new:
        return existing
    if existing:
        return f"{existing}\n\n{new}"
    return new


def _dump_metadata(metadata: Mapping[str, Any] | None) -> str | None:
    if metadata is None:
        return None
    if not isinstance(metadata, dict):
        msg = "metadata must be a JSON object"
        raise ValidationError(msg)
    try:
        return json.dumps(metadata)
    except (TypeError, ValueError) as exc:
        msg = f"metadata is not JSON-serializable: {exc}"
        raise ValidationError(msg) from exc
