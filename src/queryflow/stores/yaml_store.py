"""
YAML-backed query definition store.

Two layouts are supported:

1. A directory with one file per query plus an optional ``helpers.py``:

    queries/
        Orders.yaml
        Report.yaml
        helpers.py

2. A single file with a ``queries`` mapping and an optional ``helpers`` key:

    queries:
      Orders:
        body: "{ orders { id total } }"
      Report:
        body: "{ customers { id } }"
        transformerCode: |
          orders = await query("Orders")
          return {"combined": orders["orders"]}
    helpers: |
      def total(rows):
          return sum(row["total"] for row in rows)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from ..core.definitions import QueryDefinition
from .base import definition_from_document

logger = logging.getLogger(__name__)

HELPERS_FILE = "helpers.py"
YAML_SUFFIXES = (".yaml", ".yml")


class YamlQueryStore:
    """Reads definitions from YAML on every load, so edits apply to the next run."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read_yaml(self, path: Path) -> Any:
        return yaml.safe_load(path.read_text(encoding="utf-8"))

    def _single_file(self) -> dict[str, Any]:
        data = self._read_yaml(self.path) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path}: expected a mapping at top level")
        return data

    def _query_file(self, name: str) -> Optional[Path]:
        for suffix in YAML_SUFFIXES:
            candidate = self.path / f"{name}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    async def load(self, name: str) -> Optional[QueryDefinition]:
        """Load a definition by name; None when it does not exist."""
        if self.path.is_dir():
            query_file = self._query_file(name)
            if query_file is None:
                return None
            return definition_from_document(name, self._read_yaml(query_file))

        if not self.path.exists():
            logger.warning(f"Query store not found: {self.path}")
            return None

        queries = self._single_file().get("queries") or {}
        return definition_from_document(name, queries.get(name))

    async def load_user_library(self) -> str:
        """Source of the user helper library ('' when none is configured)."""
        if self.path.is_dir():
            helpers_file = self.path / HELPERS_FILE
            return helpers_file.read_text(encoding="utf-8") if helpers_file.is_file() else ""

        if not self.path.exists():
            return ""
        return self._single_file().get("helpers") or ""

    def list_queries(self) -> list[str]:
        """Names of all stored queries."""
        if self.path.is_dir():
            return sorted(
                p.stem for p in self.path.iterdir()
                if p.is_file() and p.suffix in YAML_SUFFIXES
            )
        if not self.path.exists():
            return []
        return sorted(self._single_file().get("queries") or {})
