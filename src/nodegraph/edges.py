"""Directed, explained edges between nodes.

Two creation paths with different guarantees:

    create(...)         inserts unconditionally; the same pair may be linked twice
    ensure_exists(...)  check-then-insert inside one BEGIN IMMEDIATE transaction,
                        so at most one edge per ordered pair comes from this path
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nodegraph.errors import NotFound, ValidationError
from nodegraph.models import Edge, EdgeConnection, EdgeContext, now_iso

if TYPE_CHECKING:
    from nodegraph.db import Store

logger = logging.getLogger("nodegraph.edges")

_COLUMNS = "e.id, e.from_node_id, e.to_node_id, e.source, e.context, e.user_feedback, e.created_at"


class EdgeStore:
    def __init__(self, store: Store) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self,
        from_id: int,
        to_id: int,
        explanation: str,
        source: str = "user",
        edge_type: str | None = None,
    ) -> Edge:
        """Insert a new edge. No dedup: calling twice yields two edges."""
        context = EdgeContext(explanation=explanation, type=edge_type)

        def _create() -> int:
            self._check_endpoints(from_id, to_id)
            return self._insert(from_id, to_id, context, source)

        edge_id = self.store.transaction(_create)
        logger.debug("edge %d: %d -> %d (%s)", edge_id, from_id, to_id, source)
        return self._require(edge_id)

    def ensure_exists(
        self,
        from_id: int,
        to_id: int,
        explanation: str,
        source: str = "user",
    ) -> tuple[Edge, bool]:
        """Create from_id -> to_id unless some edge with that pair exists.

        Returns (edge, created). When an edge already exists the oldest one
        is returned untouched.
        """

        def _ensure() -> tuple[int, bool]:
            rows = self.store.query(
                "SELECT id FROM edges WHERE from_node_id = ? AND to_node_id = ? ORDER BY id LIMIT 1",
                (from_id, to_id),
            )
            if rows:
                return rows[0]["id"], False
            self._check_endpoints(from_id, to_id)
            return self._insert(from_id, to_id, EdgeContext(explanation=explanation), source), True

        edge_id, created = self.store.transaction(_ensure)
        if created:
            logger.debug("ensured edge %d: %d -> %d", edge_id, from_id, to_id)
        return self._require(edge_id), created

    def _check_endpoints(self, from_id: int, to_id: int) -> None:
        if from_id == to_id:
            msg = f"node {from_id} cannot be linked to itself"
            raise ValidationError(msg)
        found = {
            r["id"]
            for r in self.store.query("SELECT id FROM nodes WHERE id IN (?, ?)", (from_id, to_id))
        }
        for node_id in (from_id, to_id):
            if node_id not in found:
                msg = f"node {node_id} not found"
                raise NotFound(msg)

    def _insert(self, from_id: int, to_id: int, context: EdgeContext, source: str | None) -> int:
        return self.store.insert(
            "INSERT INTO edges(from_node_id, to_node_id, source, context, created_at) VALUES (?, ?, ?, ?, ?)",
            (from_id, to_id, source, context.to_json(), now_iso()),
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update(self, edge_id: int, explanation: str, edge_type: str | None = None) -> Edge:
        """Replace the explanation (and optionally type); other context keys are kept."""

        def _update() -> None:
            edge = self.get(edge_id)
            if edge is None:
                msg = f"edge {edge_id} not found"
                raise NotFound(msg)
            changes: dict[str, str] = {"explanation": explanation}
            if edge_type is not None:
                changes["type"] = edge_type
            self.store.execute(
                "UPDATE edges SET context = ? WHERE id = ?",
                (edge.context.merged(**changes).to_json(), edge_id),
            )

        self.store.transaction(_update)
        return self._require(edge_id)

    def delete(self, edge_id: int) -> None:
        res = self.store.transaction(lambda: self.store.execute("DELETE FROM edges WHERE id = ?", (edge_id,)))
        if res.changes == 0:
            msg = f"edge {edge_id} not found"
            raise NotFound(msg)
        logger.debug("deleted edge %d", edge_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, edge_id: int) -> Edge | None:
        rows = self.store.query(f"SELECT {_COLUMNS} FROM edges e WHERE e.id = ?", (edge_id,))  # noqa: S608
        return Edge.from_row(rows[0]) if rows else None

    def exists(self, from_id: int, to_id: int) -> bool:
        rows = self.store.query(
            "SELECT 1 FROM edges WHERE from_node_id = ? AND to_node_id = ? LIMIT 1", (from_id, to_id)
        )
        return bool(rows)

    def count(self) -> int:
        return int(self.store.query("SELECT COUNT(*) FROM edges")[0][0])

    def list_for_node(self, node_id: int, limit: int = 25) -> list[EdgeConnection]:
        """Edges touching node_id in either direction, newest first."""
        rows = self.store.query(
            f"""
            SELECT {_COLUMNS},
                   CASE WHEN e.from_node_id = :node THEN 'outgoing' ELSE 'incoming' END AS direction,
                   n.id AS peer_id, n.title AS peer_title
            FROM edges e
            JOIN nodes n
              ON n.id = CASE WHEN e.from_node_id = :node THEN e.to_node_id ELSE e.from_node_id END
            WHERE e.from_node_id = :node OR e.to_node_id = :node
            ORDER BY e.created_at DESC, e.id DESC
            LIMIT :limit
            """,  # noqa: S608
            {"node": node_id, "limit": limit},
        )
        return [
            EdgeConnection(
                edge=Edge.from_row(r),
                peer_id=r["peer_id"],
                peer_title=r["peer_title"] or "",
                direction=r["direction"],
            )
            for r in rows
        ]

    def list_all(self, limit: int = 25) -> list[Edge]:
        rows = self.store.query(
            f"SELECT {_COLUMNS} FROM edges e ORDER BY e.created_at DESC, e.id DESC LIMIT ?",  # noqa: S608
            (limit,),
        )
        return [Edge.from_row(r) for r in rows]

    def most_connected(self, limit: int = 5) -> list[tuple[int, int]]:
        """(node_id, in+out degree) pairs, highest degree first."""
        rows = self.store.query(
            """
            SELECT node_id, COUNT(*) AS degree FROM (
                SELECT from_node_id AS node_id FROM edges
                UNION ALL
                SELECT to_node_id AS node_id FROM edges
            )
            GROUP BY node_id
            ORDER BY degree DESC, node_id
            LIMIT ?
            """,
            (limit,),
        )
        return [(r["node_id"], r["degree"]) for r in rows]

    def _require(self, edge_id: int) -> Edge:
        edge = self.get(edge_id)
        if edge is None:
            msg = f"edge {edge_id} not found"
            raise NotFound(msg)
        return edge
