"""
Derived view computation: filter then stable sort.

Pure functions of (tokens, FilterConfig, SortConfig). The store calls
derive_view() in full on every mutation; nothing here caches.

Sort contract:
- Python's sort is stable, and reverse=True keeps equal elements in input
  order, so "desc" flips the comparison rather than the output. Ties keep
  their pre-sort order under both directions.
- None (unset optional fields) sorts after any value in ascending order.
"""

from __future__ import annotations

from typing import Any, Iterable

from ..types import FilterConfig, SortConfig, Token


def filter_tokens(tokens: Iterable[Token], filter_config: FilterConfig) -> list[Token]:
    """Apply status filter (exact match unless 'all'), then case-insensitive search."""
    result = list(tokens)

    if filter_config.status != "all":
        result = [t for t in result if t.status == filter_config.status]

    if filter_config.search:
        needle = filter_config.search.lower()
        result = [
            t for t in result
            if needle in t.name.lower() or needle in t.symbol.lower()
        ]

    return result


def _sort_key(field: str):
    def key(token: Token) -> tuple[bool, Any]:
        value = getattr(token, field)
        return (value is None, value)
    return key


def sort_tokens(tokens: Iterable[Token], sort_config: SortConfig) -> list[Token]:
    """Stable sort by sort_config.key; ties keep input order for asc and desc."""
    return sorted(
        tokens,
        key=_sort_key(sort_config.key),
        reverse=sort_config.direction == "desc",
    )


def derive_view(
    tokens: Iterable[Token],
    filter_config: FilterConfig,
    sort_config: SortConfig,
) -> tuple[Token, ...]:
    """Full filtered + sorted view."""
    return tuple(sort_tokens(filter_tokens(tokens, filter_config), sort_config))
