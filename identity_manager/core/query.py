"""Filtering and pagination over a named collection.

Both users and roles are queried the same way: a substring filter on the
entity's name, ordering by name, then a ``[start, start + count)`` slice.
"""
from __future__ import annotations
import sys
from typing import Callable, Iterable, Optional, TypeVar

from .results import QueryResult

T = TypeVar("T")

UNBOUNDED = sys.maxsize


def normalize_page(start: int, count: int) -> tuple[int, int]:
    """Clamp a negative start to 0; a negative count means unbounded."""
    if start < 0:
        start = 0
    if count < 0:
        count = UNBOUNDED
    return start, count


def query(
    items: Iterable[T],
    key: Callable[[T], Optional[str]],
    filter: Optional[str] = None,
    start: int = 0,
    count: int = -1,
    case_sensitive: bool = False,
) -> QueryResult[T]:
    """Filter, order and page a collection by name.

    Args:
        items: Entities to query
        key: Returns the name used for filtering and ordering
        filter: Substring to match; None or blank disables filtering
        start: Zero-based offset of the first item
        count: Page size; negative for all remaining items
        case_sensitive: Match the filter exactly instead of case-folded

    Returns:
        QueryResult with the page and the total number of matches
    """
    start, count = normalize_page(start, count)

    def name_of(item: T) -> str:
        return key(item) or ""

    matches = list(items)
    if filter is not None and filter.strip():
        if case_sensitive:
            matches = [item for item in matches if filter in name_of(item)]
        else:
            needle = filter.casefold()
            matches = [item for item in matches if needle in name_of(item).casefold()]

    matches.sort(key=lambda item: (name_of(item).casefold(), name_of(item)))
    total = len(matches)
    page = matches[start:start + count] if count != UNBOUNDED else matches[start:]

    return QueryResult(start=start, count=count, total=total, filter=filter, items=page)
