"""Input sanitization shared by the stores and the caller-facing API."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from nodegraph.errors import ValidationError

MAX_DIMENSIONS = 5

TITLE_MAX = 160
DESCRIPTION_MAX = 2000
CONTENT_MAX = 20000
CHUNK_MAX = 50000

SEARCH_QUERY_MAX = 400
SEARCH_LIMIT_MAX = 25
SEARCH_LIMIT_DEFAULT = 10

GET_NODES_MAX = 10

EDGE_LIMIT_MAX = 50
EDGE_LIMIT_DEFAULT = 25

DIMENSION_DESCRIPTION_MAX = 500


def sanitize_dimensions(raw: Iterable[Any] | None) -> list[str]:
    """Trim, drop blanks, dedup case-insensitively (first casing wins), cap at 5."""
    if raw is None or isinstance(raw, str):
        return []
    result: list[str] = []
    seen: set[str] = set()
    for value in raw:
        if not isinstance(value, str):
            continue
        trimmed = value.strip()
        if not trimmed:
            continue
        key = trimmed.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(trimmed)
        if len(result) >= MAX_DIMENSIONS:
            break
    return result


def require_text(value: Any, field: str, max_len: int | None = None) -> str:
    """Return value stripped; raise ValidationError if empty or too long."""
    if not isinstance(value, str) or not value.strip():
        msg = f"{field} is required"
        raise ValidationError(msg)
    text = value.strip()
    if max_len is not None and len(text) > max_len:
        msg = f"{field} must be {max_len} characters or less"
        raise ValidationError(msg)
    return text


def optional_text(value: Any, field: str, max_len: int, *, strip: bool = True) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"{field} must be a string"
        raise ValidationError(msg)
    text = value.strip() if strip else value
    if len(text) > max_len:
        msg = f"{field} must be {max_len} characters or less"
        raise ValidationError(msg)
    return text


def clamp(value: int | None, lo: int, hi: int, default: int) -> int:
    if value is None:
        return default
    return min(max(int(value), lo), hi)


def unique_positive_ids(ids: Iterable[Any]) -> list[int]:
    """Distinct positive integer ids, first-seen order. Non-integers are dropped."""
    result: list[int] = []
    for v in ids:
        if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
            continue
        if v not in result:
            result.append(v)
    return result


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally (use with ESCAPE '\\')."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
