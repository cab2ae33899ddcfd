"""
Default response extraction.

Maps the ``data`` object of a GraphQL response onto named result sets:

    {"data": {"orders": [{"id": 1, "customer": {"name": "A"}}]}}
    -> {"orders": [{"__index__": 0, "id": 1, "customer_name": "A"}]}

Connection-style fields (``{"edges": [{"node": {...}}]}``) are unwrapped to
their nodes. Rows carry an ``__index__`` marker that the resolver strips
after the transformer ran.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional, Protocol

import jmespath

from ..core.cleaning import INDEX_KEY

FLATTEN_DELIMITER = "_"
FLATTEN_MAX_DEPTH = 10

_EDGE_NODES = jmespath.compile("edges[].node")


class ResponseExtractor(Protocol):
    """Turns a decoded response into result sets (None when there is no data)."""

    def __call__(self, response: Any, query_text: str) -> Optional[dict[str, list[Any]]]:
        ...


def flatten_row(row: Mapping[str, Any], max_depth: int = FLATTEN_MAX_DEPTH) -> dict[str, Any]:
    """Flatten nested mappings to one level; lists are kept as they are."""
    flat: dict[str, Any] = {}

    def visit(value: Any, prefix: str, depth: int):
        if isinstance(value, Mapping) and value and depth < max_depth:
            for key, child in value.items():
                visit(child, f"{prefix}{FLATTEN_DELIMITER}{key}" if prefix else str(key), depth + 1)
        else:
            flat[prefix] = value

    for key, value in row.items():
        visit(value, str(key), 1)
    return flat


def flatten_rows(nodes: list[Any]) -> list[dict[str, Any]]:
    """Flatten nodes and tag each with its position."""
    rows = []
    for index, node in enumerate(nodes):
        if isinstance(node, Mapping):
            rows.append({INDEX_KEY: index, **flatten_row(node)})
        else:
            rows.append({INDEX_KEY: index, "value": node})
    return rows


def field_nodes(value: Any) -> list[Any]:
    """Rows produced by one top-level response field."""
    if isinstance(value, list):
        return [item for item in value if isinstance(item, Mapping)]
    if isinstance(value, Mapping):
        if "edges" in value:
            nodes = _EDGE_NODES.search(value) or []
            return [node for node in nodes if isinstance(node, Mapping)]
        return [value]
    return []


def extract_result_sets(response: Any, query_text: str) -> Optional[dict[str, list[Any]]]:
    """
    Extract result sets from a decoded response.

    Every top-level field becomes a key; fields without rows map to an
    empty list. Returns None when no field produced any row.

    ``query_text`` is part of the ResponseExtractor signature for extractors
    that shape rows from the query's selection set; the response's own field
    structure is enough here, so it is not read.
    """
    if not isinstance(response, Mapping):
        return None

    data = response.get("data")
    if not isinstance(data, Mapping):
        return None

    result: dict[str, list[Any]] = {}
    has_rows = False
    for field_name, value in data.items():
        nodes = field_nodes(value)
        result[field_name] = flatten_rows(nodes)
        has_rows = has_rows or bool(nodes)

    return result if has_rows else None
