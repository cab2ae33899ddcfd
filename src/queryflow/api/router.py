"""
FastAPI router for queryflow.

Endpoints:
- GET  /queries/{name}         - Returns the stored definition
- POST /queries/{name}/resolve - Resolves a query (and everything its transformer requests)

Request body for resolve:
    {
        "variables": {"limit": 10},
        "time_range": ["2024-01", "2024-03"],
        "endpoint": "https://erp.example.com/graphql",
        "token": "Bearer ...",
        "max_depth": 10
    }
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..core.errors import (
    DefinitionError,
    GuardError,
    QueryflowError,
    QueryNotFoundError,
    SandboxError,
)
from ..runtime.context import DEFAULT_MAX_DEPTH, create_execution_context
from ..runtime.resolver import PipelineResolver


class ResolveRequest(BaseModel):
    """Options for one top-level resolution."""
    variables: dict[str, Any] = Field(default_factory=dict)
    time_range: Optional[list[str]] = None
    endpoint: Optional[str] = None
    token: Optional[str] = None
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)


class ResolveResponse(BaseModel):
    """Cleaned result sets plus diagnostics."""
    data: dict[str, Any]
    shape: Literal["plain", "ordered"] = "plain"
    warnings: list[str] = Field(default_factory=list)


# Create router
router = APIRouter()

# Global instance (set by create_queryflow_app)
_resolver: PipelineResolver | None = None


def set_resolver(resolver: PipelineResolver):
    """Set the resolver used by the API."""
    global _resolver
    _resolver = resolver


def get_resolver() -> PipelineResolver:
    """Get the resolver."""
    if _resolver is None:
        raise RuntimeError("Resolver not initialized. Call set_resolver() first.")
    return _resolver


def error_status(error: QueryflowError) -> int:
    """HTTP status for a pipeline error."""
    if isinstance(error, QueryNotFoundError):
        return 404
    if isinstance(error, (GuardError, DefinitionError, SandboxError)):
        return 422
    # Transport and in-band errors come from the upstream endpoint
    return 502


@router.get("/queries/{name}")
async def get_query(name: str, resolver: PipelineResolver = Depends(get_resolver)) -> dict:
    """Return the stored definition."""
    definition = await resolver.store.load(name)
    if definition is None:
        raise HTTPException(status_code=404, detail=QueryNotFoundError(name).to_dict())
    return definition.model_dump(by_alias=True)


@router.post("/queries/{name}/resolve", response_model=ResolveResponse)
async def resolve_query_endpoint(
    name: str,
    request: ResolveRequest,
    resolver: PipelineResolver = Depends(get_resolver),
) -> ResolveResponse:
    """Resolve a named query with a fresh execution context."""
    context = create_execution_context(max_depth=request.max_depth)

    try:
        result = await resolver.resolve(
            name,
            context,
            default_endpoint=request.endpoint,
            default_credential=request.token,
            variable_overrides=request.variables,
            time_range=request.time_range,
        )
    except QueryflowError as e:
        raise HTTPException(status_code=error_status(e), detail=e.to_dict())

    return ResolveResponse(
        data=dict(result or {}),
        shape="ordered" if isinstance(result, OrderedDict) else "plain",
        warnings=context.warnings,
    )


def create_queryflow_app(resolver: PipelineResolver) -> APIRouter:
    """
    Create a configured queryflow API router.

    Args:
        resolver: Resolver wired to a store, client and endpoints

    Returns:
        Configured FastAPI router
    """
    set_resolver(resolver)
    return router
