"""Dimension vocabulary: shared tags with a priority flag and live node counts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nodegraph.errors import DuplicateName, NotFound, ValidationError
from nodegraph.models import Dimension, now_iso
from nodegraph.validation import escape_like

if TYPE_CHECKING:
    from nodegraph.db import Store

logger = logging.getLogger("nodegraph.dimensions")

_SELECT = """
    SELECT d.name, d.description, d.is_priority, d.updated_at,
           (SELECT COUNT(*) FROM node_dimensions nd WHERE nd.dimension = d.name) AS count
    FROM dimensions d
"""


class DimensionStore:
    def __init__(self, store: Store) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self) -> list[Dimension]:
        """All dimensions, priority first, then case-insensitive by name."""
        rows = self.store.query(_SELECT + " ORDER BY d.is_priority DESC, LOWER(d.name), d.name")
        return [Dimension.from_row(r) for r in rows]

    def get(self, name: str) -> Dimension | None:
        rows = self.store.query(_SELECT + " WHERE d.name = ?", (name,))
        return Dimension.from_row(rows[0]) if rows else None

    def search(self, term: str, limit: int = 20) -> list[Dimension]:
        pattern = f"%{escape_like(term.strip())}%"
        rows = self.store.query(
            _SELECT + " WHERE d.name LIKE ? ESCAPE '\\' ORDER BY count DESC, LOWER(d.name) LIMIT ?",
            (pattern, limit),
        )
        return [Dimension.from_row(r) for r in rows]

    def exists(self, name: str) -> bool:
        return bool(self.store.query("SELECT 1 FROM dimensions WHERE name = ?", (name,)))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, name: str, description: str | None = None, *, is_priority: bool = False) -> Dimension:
        name = _clean_name(name)

        def _create() -> None:
            if self.exists(name):
                msg = f"dimension {name!r} already exists"
                raise DuplicateName(msg)
            self.store.execute(
                "INSERT INTO dimensions(name, description, is_priority, updated_at) VALUES (?, ?, ?, ?)",
                (name, description, 1 if is_priority else 0, now_iso()),
            )

        self.store.transaction(_create)
        logger.info("created dimension %s", name)
        return self._require(name)

    def ensure(self, name: str) -> None:
        """Add name to the vocabulary if unseen. Joins any open transaction."""
        self.store.execute(
            "INSERT OR IGNORE INTO dimensions(name, is_priority, updated_at) VALUES (?, 0, ?)",
            (name, now_iso()),
        )

    def update(
        self,
        current_name: str,
        new_name: str | None = None,
        description: str | None = None,
        is_priority: bool | None = None,
    ) -> Dimension:
        """Rename and/or change description/priority of a dimension.

        A rename rewrites the vocabulary row and every node association in one
        transaction, so no node is left pointing at the old name.
        """
        current_name = _clean_name(current_name)
        target = _clean_name(new_name) if new_name is not None else None
        if target == current_name:
            target = None
        if target is None and description is None and is_priority is None:
            msg = "nothing to update"
            raise ValidationError(msg)

        def _update() -> None:
            if not self.exists(current_name):
                msg = f"dimension {current_name!r} not found"
                raise NotFound(msg)
            now = now_iso()
            if target is not None:
                if self.exists(target):
                    msg = f"dimension {target!r} already exists"
                    raise DuplicateName(msg)
                self.store.execute(
                    "UPDATE dimensions SET name = ?, updated_at = ? WHERE name = ?",
                    (target, now, current_name),
                )
                # A node may already carry the target name; keep one row per pair.
                self.store.execute(
                    "UPDATE OR IGNORE node_dimensions SET dimension = ? WHERE dimension = ?",
                    (target, current_name),
                )
                self.store.execute("DELETE FROM node_dimensions WHERE dimension = ?", (current_name,))
            name = target or current_name
            if description is not None:
                self.store.execute(
                    "UPDATE dimensions SET description = ?, updated_at = ? WHERE name = ?",
                    (description, now, name),
                )
            if is_priority is not None:
                self.store.execute(
                    "UPDATE dimensions SET is_priority = ?, updated_at = ? WHERE name = ?",
                    (1 if is_priority else 0, now, name),
                )

        self.store.transaction(_update)
        if target is not None:
            logger.info("renamed dimension %s -> %s", current_name, target)
        return self._require(target or current_name)

    def delete(self, name: str) -> int:
        """Remove a dimension and all its associations. Returns detached node count."""
        name = _clean_name(name)

        def _delete() -> tuple[int, int]:
            links = self.store.execute("DELETE FROM node_dimensions WHERE dimension = ?", (name,))
            row = self.store.execute("DELETE FROM dimensions WHERE name = ?", (name,))
            return links.changes, row.changes

        links, rows = self.store.transaction(_delete)
        if links == 0 and rows == 0:
            msg = f"dimension {name!r} not found"
            raise NotFound(msg)
        logger.info("deleted dimension %s (%d links)", name, links)
        return links

    def toggle_priority(self, name: str) -> Dimension:
        """Flip the priority flag; an unseen name is created as a priority dimension."""
        name = _clean_name(name)

        def _toggle() -> None:
            if self.exists(name):
                self.store.execute(
                    "UPDATE dimensions SET is_priority = 1 - COALESCE(is_priority, 0), updated_at = ? WHERE name = ?",
                    (now_iso(), name),
                )
            else:
                self.store.execute(
                    "INSERT INTO dimensions(name, is_priority, updated_at) VALUES (?, 1, ?)",
                    (name, now_iso()),
                )

        self.store.transaction(_toggle)
        return self._require(name)

    def set_priority(self, name: str, value: bool) -> Dimension:
        return self.update(name, is_priority=value)

    def _require(self, name: str) -> Dimension:
        dim = self.get(name)
        if dim is None:
            msg = f"dimension {name!r} not found"
            raise NotFound(msg)
        return dim


def _clean_name(name: str | None) -> str:
    if not isinstance(name, str) or not name.strip():
        msg = "dimension name is required"
        raise ValidationError(msg)
    return name.strip()
