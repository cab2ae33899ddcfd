"""
Query definition stores.

A store returns a fresh definition on every load; the pipeline never caches
definitions between calls.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from ..core.definitions import QueryDefinition


class QueryStore(Protocol):
    """Document store of query definitions keyed by name."""

    async def load(self, name: str) -> Optional[QueryDefinition]:
        ...


def definition_from_document(name: str, document: Any) -> Optional[QueryDefinition]:
    """Build a definition from a stored document (a mapping or a bare query string)."""
    if document is None:
        return None
    if isinstance(document, QueryDefinition):
        return document if document.name else document.model_copy(update={"name": name})
    if isinstance(document, str):
        return QueryDefinition(name=name, body=document)
    data = dict(document)
    data.setdefault("name", name)
    return QueryDefinition.model_validate(data)


class MemoryQueryStore:
    """
    In-memory store, mainly for embedding and tests.

    Usage:
        store = MemoryQueryStore({
            "Orders": {"body": "{ orders { id total } }"},
            "Report": {"body": "...", "transformerCode": "return data"},
        })
    """

    def __init__(
        self,
        documents: Optional[dict[str, Any]] = None,
        helpers: str = "",
    ):
        self.documents: dict[str, Any] = dict(documents or {})
        self.helpers = helpers
        self.loads: list[str] = []

    def save(self, name: str, document: Any) -> None:
        self.documents[name] = document

    async def load(self, name: str) -> Optional[QueryDefinition]:
        self.loads.append(name)
        return definition_from_document(name, self.documents.get(name))

    async def load_user_library(self) -> str:
        return self.helpers
