"""
Runtime module - query execution pipeline.
"""

from __future__ import annotations

from .client import GraphQLClient
from .context import ExecutionContext, InFlightEntry, create_execution_context
from .extractor import ResponseExtractor, extract_result_sets
from .resolver import PipelineResolver, resolve_query
from .sandbox import HelperLibraryLoader, TransformerSandbox

__all__ = [
    "ExecutionContext",
    "InFlightEntry",
    "create_execution_context",
    "GraphQLClient",
    "ResponseExtractor",
    "extract_result_sets",
    "HelperLibraryLoader",
    "TransformerSandbox",
    "PipelineResolver",
    "resolve_query",
]
