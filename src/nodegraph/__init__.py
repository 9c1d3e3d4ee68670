"""Personal knowledge graph stored in one SQLite database.

Tables:
    nodes             title, notes (content), description, link, type, metadata JSON, chunk
    edges             from_node_id -> to_node_id with a JSON context {"explanation", "type", ...}
    dimensions        tag vocabulary; priority tags sort first
    node_dimensions   (node_id, dimension) set, at most 5 tags per node

Notes may reference other nodes with [NODE:<id>:"<title>"] tokens; saving
the notes ensures one edge from the node to every referenced node.
"""

from nodegraph.api import GraphAPI
from nodegraph.config import NGConfig, init_config, load_config
from nodegraph.errors import (
    DuplicateName,
    GraphError,
    NotFound,
    StoreFailure,
    SynchronizationFailure,
    ValidationError,
)
from nodegraph.graph import Graph
from nodegraph.models import Dimension, Edge, EdgeContext, Node
from nodegraph.nodes import NodeFilters

__all__ = [
    "Dimension",
    "DuplicateName",
    "Edge",
    "EdgeContext",
    "Graph",
    "GraphAPI",
    "GraphError",
    "NGConfig",
    "Node",
    "NodeFilters",
    "NotFound",
    "StoreFailure",
    "SynchronizationFailure",
    "ValidationError",
    "init_config",
    "load_config",
]
