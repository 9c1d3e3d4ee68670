"""Graph: opens one Store and wires the stores and the mention resolver onto it.

    with Graph(path) as g:
        a = g.nodes.create("Apple", dimensions=["fruit"])
        b = g.nodes.create("Pie", content=f"made from {format_token(a.id, a.title)}")
        g.edges.list_for_node(b.id)   # -> the mention edge b -> a
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nodegraph.config import DEFAULT_SEED_DIMENSIONS
from nodegraph.db import Store
from nodegraph.dimensions import DimensionStore
from nodegraph.edges import EdgeStore
from nodegraph.errors import NotFound
from nodegraph.mentions import DEFAULT_EXPLANATION, DEFAULT_SOURCE, MentionResolver, insert_token
from nodegraph.nodes import NodeStore

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from nodegraph.config import NGConfig
    from nodegraph.models import Node

logger = logging.getLogger("nodegraph.graph")


class Graph:
    def __init__(
        self,
        db_path: Path | str,
        *,
        seed_dimensions: Iterable[str] = DEFAULT_SEED_DIMENSIONS,
        mention_source: str = DEFAULT_SOURCE,
        mention_explanation: str = DEFAULT_EXPLANATION,
    ) -> None:
        self.store = Store.open(db_path)
        try:
            self.store.ensure_schema(seed_dimensions)
        except BaseException:
            self.store.close()
            raise
        self.dimensions = DimensionStore(self.store)
        self.edges = EdgeStore(self.store)
        self.resolver = MentionResolver(self.edges, mention_source, mention_explanation)
        self.nodes = NodeStore(self.store, self.dimensions, self.edges, self.resolver)

    @classmethod
    def from_config(cls, cfg: NGConfig) -> Graph:
        cfg.ensure_dirs()
        return cls(
            cfg.db_path,
            seed_dimensions=cfg.dimensions.seed,
            mention_source=cfg.mentions.source,
            mention_explanation=cfg.mentions.explanation,
        )

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> Graph:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def insert_mention(self, node_id: int, draft: str, caret: int, target_id: int) -> tuple[Node, int]:
        """Complete the `@query` before caret in draft with a token for target_id.

        The whole draft is saved as the node's content (replace, not append),
        which links node_id -> target_id. Returns (node, new_caret).
        """
        target = self.nodes.get_by_id(target_id)
        if target is None:
            msg = f"node {target_id} not found"
            raise NotFound(msg)
        text, new_caret = insert_token(draft, caret, target.id, target.title)
        node = self.nodes.update(node_id, {"content": text}, append_content=False)
        return node, new_caret
