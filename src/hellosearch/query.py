"""Builders for query and sort clauses.

The store owns the query grammar; these helpers only assemble the common
shapes so call sites don't hand-write nested dicts.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

SortItem = Union[Tuple[str, bool], Mapping[str, Any], str]


def term_query(field: str, value: Any) -> Dict[str, Any]:
    """Exact match of ``value`` against the indexed terms of ``field``."""
    return {"term": {field: value}}


def match_all_query() -> Dict[str, Any]:
    return {"match_all": {}}


def bool_query(
    *,
    must: Optional[Iterable[Mapping[str, Any]]] = None,
    should: Optional[Iterable[Mapping[str, Any]]] = None,
    must_not: Optional[Iterable[Mapping[str, Any]]] = None,
    filter: Optional[Iterable[Mapping[str, Any]]] = None,
) -> Dict[str, Any]:
    clauses: Dict[str, Any] = {}
    for name, items in (("must", must), ("should", should), ("must_not", must_not), ("filter", filter)):
        if items:
            clauses[name] = [dict(i) for i in items]
    return {"bool": clauses}


def sort_spec(items: Sequence[SortItem]) -> List[Any]:
    """Normalize sort items into store sort clauses.

    ``("user", True)`` becomes ``{"user": {"order": "asc"}}``; mappings and
    plain field names are passed through unchanged.
    """
    out: List[Any] = []
    for item in items:
        if isinstance(item, tuple):
            name, ascending = item
            out.append({name: {"order": "asc" if ascending else "desc"}})
        elif isinstance(item, Mapping):
            out.append(dict(item))
        else:
            out.append(item)
    return out
