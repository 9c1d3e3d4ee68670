"""
Pytest configuration and fixtures for nodegraph tests.
"""

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from nodegraph.api import GraphAPI
from nodegraph.graph import Graph

# -----------------------------------------------------------------------------
# Hypothesis Profiles
# -----------------------------------------------------------------------------
# Usage: HYPOTHESIS_PROFILE=fast pytest tests/
#
#   fast   - 10 examples, generate only
#   dev    - 50 examples (default)
#   ci     - 200 examples, all phases
# -----------------------------------------------------------------------------

settings.register_profile(
    "fast",
    max_examples=10,
    phases=[Phase.generate],
    verbosity=Verbosity.quiet,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=50,
    phases=[Phase.generate, Phase.target, Phase.shrink],
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "ci",
    max_examples=200,
    phases=[Phase.generate, Phase.target, Phase.shrink, Phase.explain],
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture
def graph(tmp_path):
    """A fresh graph without seeded dimensions, one database per test."""
    g = Graph(tmp_path / "graph.db", seed_dimensions=())
    yield g
    g.close()


@pytest.fixture
def seeded_graph(tmp_path):
    """A fresh graph with the default priority dimensions."""
    g = Graph(tmp_path / "seeded.db")
    yield g
    g.close()


@pytest.fixture
def api(graph):
    return GraphAPI(graph)


@pytest.fixture
def make_node(graph):
    """Create a node with a default dimension."""

    def _make(title, **kwargs):
        kwargs.setdefault("dimensions", ["misc"])
        return graph.nodes.create(title, **kwargs)

    return _make
