"""
Stores module - query definition sources.
"""

from __future__ import annotations

from .base import MemoryQueryStore, QueryStore, definition_from_document
from .yaml_store import YamlQueryStore

__all__ = [
    "QueryStore",
    "MemoryQueryStore",
    "YamlQueryStore",
    "definition_from_document",
]
