"""
Pipeline resolver - resolves a named query into a cleaned result set.

Handles:
- Guarding against cycles, excessive depth and duplicate in-flight queries
- Loading the definition and resolving its endpoint
- Merging variables and executing the request
- Running the transformer, which may resolve further named queries
- Stripping row bookkeeping from the final result
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from ..core.cleaning import clean_result
from ..core.definitions import QueryDefinition, ResultSet
from ..core.errors import (
    EmptyBodyError,
    InBandError,
    NoEndpointError,
    QueryflowError,
    QueryNotFoundError,
    format_chain,
)
from ..core.variables import MonthBoundary, merge_variables, parse_variables
from ..endpoints import EndpointRegistry
from ..stores.base import QueryStore
from .client import GraphQLClient
from .context import DEFAULT_MAX_DEPTH, ExecutionContext, create_execution_context
from .extractor import ResponseExtractor, extract_result_sets
from .sandbox import TransformerSandbox

logger = logging.getLogger(__name__)


def in_band_errors(response: Any) -> list[str]:
    """Messages of a non-empty GraphQL ``errors`` list, if any."""
    if not isinstance(response, dict):
        return []
    errors = response.get("errors")
    if not errors:
        return []
    if not isinstance(errors, list):
        errors = [errors]
    return [
        str(e.get("message")) if isinstance(e, dict) and e.get("message") else str(e)
        for e in errors
    ]


class PipelineResolver:
    """
    Resolves named queries, including queries requested by transformers.

    Usage:
        resolver = PipelineResolver(store, GraphQLClient(), endpoints)
        context = create_execution_context()
        result = await resolver.resolve(
            "Report",
            context,
            default_endpoint="https://erp.example.com/graphql",
            default_credential="Bearer ...",
        )
    """

    def __init__(
        self,
        store: QueryStore,
        client: GraphQLClient,
        endpoints: Optional[EndpointRegistry] = None,
        *,
        sandbox: Optional[TransformerSandbox] = None,
        extractor: ResponseExtractor = extract_result_sets,
    ):
        """
        Initialize resolver.

        Args:
            store: Source of query definitions
            client: HTTP client for query execution
            endpoints: Resolves a definition's endpoint key (optional)
            sandbox: Transformer sandbox (default: one without helper library)
            extractor: Maps decoded responses onto result sets
        """
        self.store = store
        self.client = client
        self.endpoints = endpoints or EndpointRegistry()
        self.sandbox = sandbox or TransformerSandbox()
        self.extractor = extractor

    async def resolve(
        self,
        name: str,
        context: ExecutionContext,
        *,
        default_endpoint: Optional[str] = None,
        default_credential: Optional[str] = None,
        variable_overrides: Optional[dict[str, Any]] = None,
        time_range: Optional[Sequence[MonthBoundary]] = None,
        parent_chain: Optional[Sequence[str]] = None,
    ) -> ResultSet:
        """
        Resolve ``name`` within ``context``.

        Args:
            name: Query name in the definition store
            context: Execution context shared by the whole resolution chain
            default_endpoint: Endpoint used when the definition has no endpoint key
            default_credential: Credential paired with default_endpoint
            variable_overrides: Caller supplied variables
            time_range: Pair of month boundaries producing startDate/endDate
            parent_chain: Names leading to this call when it comes from a transformer.
                Concurrent siblings share the dependency stack, so errors and logs
                use this chain instead.

        Returns:
            Cleaned result set (dict or OrderedDict, as the transformer returned it)
        """
        if parent_chain is None:
            parent_chain = context.dependency_stack
        chain = [*parent_chain, name]
        # Guard failures propagate without touching the context
        context.enter(name)
        try:
            return await self._resolve(
                name,
                context,
                chain,
                default_endpoint=default_endpoint,
                default_credential=default_credential,
                variable_overrides=variable_overrides,
                time_range=time_range,
            )
        except QueryflowError as e:
            if e.chain is None:
                e.chain = chain
            logger.error(f"Pipeline failed: {format_chain(chain)}: {e.message}")
            raise
        finally:
            context.leave(name)

    async def _resolve(
        self,
        name: str,
        context: ExecutionContext,
        chain: list[str],
        *,
        default_endpoint: Optional[str],
        default_credential: Optional[str],
        variable_overrides: Optional[dict[str, Any]],
        time_range: Optional[Sequence[MonthBoundary]],
    ) -> ResultSet:
        indent = "  " * (len(chain) - 1)
        logger.debug(f"{indent}Resolving {format_chain(chain)}")

        definition = await self.load_definition(name)
        endpoint, credential = self.resolve_endpoint(definition, default_endpoint, default_credential)
        context.set_endpoint(name, endpoint)

        variables = merge_variables(
            parse_variables(definition.variables),
            variable_overrides,
            time_range,
        )

        response = await self.client.send(definition.body, variables, endpoint, credential)

        messages = in_band_errors(response)
        if messages:
            raise InBandError(messages)

        raw_data = self.extractor(response, definition.body)
        if not raw_data:
            message = f"No data returned from GraphQL query: {name}"
            logger.warning(message)
            context.warn(message)
            raw_data = {}

        result = raw_data
        if definition.has_transformer:
            async def query(nested_name: str) -> ResultSet:
                if not nested_name or not str(nested_name).strip():
                    raise ValueError("Query name is required")
                # Nested queries inherit the resolved endpoint, not the caller's default
                return await self.resolve(
                    nested_name,
                    context,
                    default_endpoint=endpoint,
                    default_credential=credential,
                    parent_chain=chain,
                )

            result = await self.sandbox.run(
                definition.transformer_code,
                raw_data,
                query,
                context=context,
                query_name=name,
            )

        logger.debug(f"{indent}Resolved {name}")
        return clean_result(result)

    async def load_definition(self, name: str) -> QueryDefinition:
        """Load a definition and check that it has query text."""
        definition = await self.store.load(name)
        if definition is None:
            raise QueryNotFoundError(name)
        if not definition.has_body:
            raise EmptyBodyError(name)
        return definition

    def resolve_endpoint(
        self,
        definition: QueryDefinition,
        default_endpoint: Optional[str],
        default_credential: Optional[str],
    ) -> tuple[str, Optional[str]]:
        """Endpoint and credential for a definition: its own key first, then the defaults."""
        if definition.endpoint_key:
            config = self.endpoints.resolve(definition.endpoint_key)
            if config.url:
                return config.url, config.credential
            logger.warning(
                f"Unknown endpoint key {definition.endpoint_key!r} for {definition.name!r}, "
                f"using default endpoint"
            )

        if default_endpoint:
            return default_endpoint, default_credential

        fallback = self.endpoints.default()
        if fallback.url:
            return fallback.url, fallback.credential

        raise NoEndpointError(definition.name or None)


async def resolve_query(
    name: str,
    resolver: PipelineResolver,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    **options: Any,
) -> ResultSet:
    """Resolve one top-level query with a fresh execution context."""
    context = create_execution_context(max_depth=max_depth)
    return await resolver.resolve(name, context, **options)
