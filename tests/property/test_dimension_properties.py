"""
Property-based tests for dimension sanitization, standalone and through node creation.
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from nodegraph.validation import MAX_DIMENSIONS, sanitize_dimensions

dimension_text = st.text(
    alphabet=st.characters(exclude_categories=("Cs", "Cc")),
    max_size=12,
)
raw_dimensions = st.lists(
    st.one_of(dimension_text, st.sampled_from(["ai", "AI", " ai ", "", "   "]), st.integers(), st.none()),
    max_size=15,
)


def _first_seen(raw, name):
    for value in raw:
        if isinstance(value, str) and value.strip() and value.strip().lower() == name.lower():
            return value.strip()
    return None


@given(raw_dimensions)
def test_sanitized_set_is_capped_trimmed_and_unique(raw):
    result = sanitize_dimensions(raw)

    assert len(result) <= MAX_DIMENSIONS
    assert all(name and name == name.strip() for name in result)
    assert len({name.lower() for name in result}) == len(result)


@given(raw_dimensions)
def test_first_seen_casing_is_kept(raw):
    for name in sanitize_dimensions(raw):
        assert _first_seen(raw, name) == name


@given(raw_dimensions)
def test_keeps_as_many_as_allowed(raw):
    distinct = {v.strip().lower() for v in raw if isinstance(v, str) and v.strip()}
    assert len(sanitize_dimensions(raw)) == min(len(distinct), MAX_DIMENSIONS)


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture], max_examples=25)
@given(raw=st.lists(dimension_text, max_size=10))
def test_stored_node_dimensions_match_sanitized(graph, raw):
    node = graph.nodes.create("property node", dimensions=raw)
    assert node.dimensions == sorted(sanitize_dimensions(raw))
