"""Inline node references: [NODE:<id>:"<title>"] tokens in node content.

The parsing helpers are pure text functions. MentionResolver is the only
part that touches the database: it turns the ids referenced by a node's
content into outgoing edges through EdgeStore.ensure_exists.

Edges are never removed when a token disappears from the text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nodegraph.errors import GraphError, SynchronizationFailure

if TYPE_CHECKING:
    from nodegraph.edges import EdgeStore

logger = logging.getLogger("nodegraph.mentions")

DEFAULT_SOURCE = "user"
DEFAULT_EXPLANATION = "Referenced via @ mention"

# [NODE:12:"Title"], [NODE: 12 : 'Title'], typographic quotes accepted too
_TOKEN_RE = re.compile(r"""\[NODE:\s*(\d+)\s*:\s*["“”'](.+?)["“”']\s*\]""")
_LINE_BREAK_RE = re.compile(r"\r\n|[\r\n]")
_TRIGGER_QUERY_RE = re.compile(r"[A-Za-z0-9 _\-.]*")


# ---------------------------------------------------------------------------
# Token text
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MentionToken:
    node_id: int
    title: str
    start: int
    end: int


def quote_title(title: str) -> str:
    """Quote a title for a token; titles containing '"' use single quotes.

    Line breaks become spaces so the token stays on one line.
    """
    title = _LINE_BREAK_RE.sub(" ", title)
    if '"' in title:
        return "'" + title.replace("'", "’") + "'"
    return f'"{title}"'


def format_token(node_id: int, title: str) -> str:
    return f"[NODE:{node_id}:{quote_title(title)}]"


def parse_tokens(text: str | None) -> list[MentionToken]:
    if not text:
        return []
    return [
        MentionToken(node_id=int(m.group(1)), title=m.group(2), start=m.start(), end=m.end())
        for m in _TOKEN_RE.finditer(text)
    ]


def referenced_ids(text: str | None, exclude: int | None = None) -> list[int]:
    """Distinct node ids referenced in text, first-seen order, minus `exclude`."""
    ids: list[int] = []
    for token in parse_tokens(text):
        if token.node_id == exclude or token.node_id in ids:
            continue
        ids.append(token.node_id)
    return ids


# ---------------------------------------------------------------------------
# Interactive insertion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Trigger:
    """A partially typed `@query` ending at the caret."""

    start: int          # index of '@'
    end: int            # caret
    query: str


def find_trigger(text: str, caret: int) -> Trigger | None:
    """Find the `@query` being typed immediately before caret, if any.

    The '@' must open the text or follow whitespace; the query may hold
    letters, digits, spaces and `_ - .`, and never spans a newline.
    """
    caret = max(0, min(caret, len(text)))
    i = caret - 1
    while i >= 0:
        ch = text[i]
        if ch == "\n":
            return None
        if ch == "@":
            if i > 0 and not text[i - 1].isspace():
                return None
            query = text[i + 1 : caret]
            if not _TRIGGER_QUERY_RE.fullmatch(query):
                return None
            return Trigger(start=i, end=caret, query=query)
        i -= 1
    return None


def insert_token(text: str, caret: int, node_id: int, title: str) -> tuple[str, int]:
    """Replace the trigger before caret (or insert at caret) with a finished token.

    Returns (new_text, new_caret); the caret lands after the token and a
    trailing space.
    """
    caret = max(0, min(caret, len(text)))
    trigger = find_trigger(text, caret)
    start = trigger.start if trigger else caret
    token = format_token(node_id, title) + " "
    return text[:start] + token + text[caret:], start + len(token)


# ---------------------------------------------------------------------------
# Synchronization
# ---------------------------------------------------------------------------


@dataclass
class SyncReport:
    ensured: list[int] = field(default_factory=list)
    created: list[int] = field(default_factory=list)
    failed: list[SynchronizationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class MentionResolver:
    """Keeps a node's outgoing edges in line with the tokens in its content."""

    def __init__(
        self,
        edges: EdgeStore,
        source: str = DEFAULT_SOURCE,
        explanation: str = DEFAULT_EXPLANATION,
    ) -> None:
        self.edges = edges
        self.source = source
        self.explanation = explanation

    def sync(self, node_id: int, content: str | None) -> SyncReport:
        """Ensure node_id -> ref for every referenced id. Never raises GraphError."""
        report = SyncReport()
        for ref in referenced_ids(content, exclude=node_id):
            try:
                _, created = self.edges.ensure_exists(node_id, ref, self.explanation, self.source)
            except GraphError as exc:
                failure = SynchronizationFailure(node_id, ref, str(exc))
                failure.__cause__ = exc
                logger.warning("%s", failure, exc_info=True)
                report.failed.append(failure)
                continue
            report.ensured.append(ref)
            if created:
                report.created.append(ref)
        if report.created:
            logger.info("node %d: linked %d mention(s)", node_id, len(report.created))
        return report
