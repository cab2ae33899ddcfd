"""
Queryflow - resolve named GraphQL queries whose transformers can request other queries.

Pipeline per query:
- guard against cycles, excessive depth and duplicate in-flight queries
- load the definition, resolve its endpoint, merge variables
- execute the request and extract result sets
- run the transformer in a sandbox (it may `await query("Other")`)
- strip row bookkeeping from the result

Usage:
    from queryflow import (
        GraphQLClient, MemoryQueryStore, PipelineResolver, create_execution_context,
    )

    store = MemoryQueryStore({"Orders": {"body": "{ orders { id total } }"}})
    resolver = PipelineResolver(store, GraphQLClient())
    context = create_execution_context(max_depth=10)
    result = await resolver.resolve("Orders", context, default_endpoint="https://...")
"""

from __future__ import annotations

from .api import create_queryflow_app, router
from .core import (
    AlreadyInFlightError,
    clean_result,
    CycleError,
    DecodeError,
    DefinitionError,
    DepthExceededError,
    EmptyBodyError,
    GuardError,
    HttpError,
    InBandError,
    INDEX_KEY,
    merge_variables,
    month_range_variables,
    NetworkError,
    NoEndpointError,
    parse_variables,
    QueryDefinition,
    QueryflowError,
    QueryNotFoundError,
    remove_index_keys,
    ResultSet,
    Row,
    SandboxError,
    TransportError,
)
from .endpoints import EndpointConfig, EndpointRegistry
from .runtime import (
    create_execution_context,
    ExecutionContext,
    extract_result_sets,
    GraphQLClient,
    HelperLibraryLoader,
    InFlightEntry,
    PipelineResolver,
    resolve_query,
    ResponseExtractor,
    TransformerSandbox,
)
from .stores import MemoryQueryStore, QueryStore, YamlQueryStore

__version__ = "0.1.0"

__all__ = [
    # API
    "router",
    "create_queryflow_app",
    # Definitions
    "QueryDefinition",
    "ResultSet",
    "Row",
    # Errors
    "QueryflowError",
    "GuardError",
    "CycleError",
    "DepthExceededError",
    "AlreadyInFlightError",
    "DefinitionError",
    "QueryNotFoundError",
    "EmptyBodyError",
    "NoEndpointError",
    "TransportError",
    "NetworkError",
    "HttpError",
    "DecodeError",
    "InBandError",
    "SandboxError",
    # Variables
    "parse_variables",
    "month_range_variables",
    "merge_variables",
    # Cleaning
    "INDEX_KEY",
    "clean_result",
    "remove_index_keys",
    # Endpoints
    "EndpointConfig",
    "EndpointRegistry",
    # Runtime
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
    # Stores
    "QueryStore",
    "MemoryQueryStore",
    "YamlQueryStore",
]
