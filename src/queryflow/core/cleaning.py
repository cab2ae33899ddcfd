"""
Result cleaning - removes row bookkeeping added during extraction.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

INDEX_KEY = "__index__"


def _rebuild_mapping(data: Mapping, items) -> Mapping:
    """Build a mapping of the same concrete type as ``data``."""
    if type(data) is dict:
        return dict(items)
    try:
        return type(data)(items)
    except TypeError:
        # Mapping types without a (items) constructor fall back to dict
        return dict(items)


def remove_index_keys(data: Any) -> Any:
    """Recursively drop ``__index__`` keys from rows, keeping container types."""
    if isinstance(data, list):
        return [remove_index_keys(item) for item in data]
    if isinstance(data, tuple):
        return tuple(remove_index_keys(item) for item in data)
    if isinstance(data, Mapping):
        return _rebuild_mapping(
            data,
            [(key, remove_index_keys(value)) for key, value in data.items() if key != INDEX_KEY],
        )
    return data


def clean_result(result: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """
    Clean a result set.

    A dict stays a dict and an OrderedDict stays an OrderedDict; the top
    level keys are the result set names and are never stripped.
    """
    if result is None:
        return None
    return _rebuild_mapping(
        result,
        [(key, remove_index_keys(value)) for key, value in result.items()],
    )
