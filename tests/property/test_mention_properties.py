"""
Property-based tests for mention token formatting and parsing.
"""

from hypothesis import given
from hypothesis import strategies as st

from nodegraph.mentions import find_trigger, format_token, insert_token, parse_tokens, referenced_ids

titles = st.text(
    alphabet=st.sampled_from("abcXYZ019 -_.,:;!?'\"“”’&()\n\r"),
    min_size=1,
    max_size=40,
)
node_ids = st.integers(min_value=1, max_value=10**9)
filler = st.text(alphabet=st.sampled_from("abc xyz,.\n"), max_size=30)


def _displayed(title):
    title = title.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
    return title.replace("'", "’") if '"' in title else title


@given(node_ids, titles)
def test_formatted_token_parses_back(node_id, title):
    tokens = parse_tokens(format_token(node_id, title))
    assert len(tokens) == 1
    assert tokens[0].node_id == node_id
    assert tokens[0].title == _displayed(title)


@given(st.lists(st.tuples(node_ids, titles), max_size=6), filler, filler)
def test_referenced_ids_follow_first_occurrence(refs, before, after):
    text = before + " ".join(format_token(i, t) for i, t in refs) + after
    expected = list(dict.fromkeys(i for i, _ in refs))
    assert referenced_ids(text) == expected


@given(st.lists(node_ids, min_size=1, max_size=5))
def test_self_reference_never_returned(ids):
    text = " ".join(format_token(i, "t") for i in ids)
    assert ids[0] not in referenced_ids(text, exclude=ids[0])


@given(filler, st.text(alphabet=st.sampled_from("abc XYZ_-."), max_size=15), node_ids, titles)
def test_insert_token_replaces_trigger(prefix, query, node_id, title):
    draft = f"{prefix} @{query}"
    caret = len(draft)
    assert find_trigger(draft, caret).query == query

    text, new_caret = insert_token(draft, caret, node_id, title)

    assert text == f"{prefix} {format_token(node_id, title)} "
    assert new_caret == len(text)
    assert [t.node_id for t in parse_tokens(text)] == [node_id]
