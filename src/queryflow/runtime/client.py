"""
HTTP client for GraphQL endpoints.

Sends one POST per query execution and classifies failures into network,
HTTP and decode errors. In-band GraphQL ``errors`` are left to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from ..core.errors import DecodeError, EmptyBodyError, HttpError, NetworkError, NoEndpointError

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


def extract_error_message(text: str) -> Optional[str]:
    """
    Best-effort human readable message from an error response body.

    Tries, in order: GraphQL ``errors`` array, ``message``, ``error``,
    and finally the raw text truncated to 200 characters.
    """
    if not text:
        return None

    try:
        payload = json.loads(text)
    except ValueError:
        return text[:PREVIEW_LENGTH]

    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            return "; ".join(_error_text(e) for e in errors)
        if payload.get("message"):
            return str(payload["message"])
        if payload.get("error"):
            return str(payload["error"])

    return text[:PREVIEW_LENGTH]


def _error_text(error: Any) -> str:
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return json.dumps(error, default=str)


class GraphQLClient:
    """
    HTTP client for GraphQL query execution.

    Usage:
        client = GraphQLClient()
        body = await client.send(
            "{ orders { id total } }",
            {"limit": 10},
            endpoint="https://erp.example.com/graphql",
            credential="Bearer ...",
        )
    """

    def __init__(
        self,
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            timeout: HTTP request timeout in seconds (None disables it)
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        """
        self.timeout = timeout
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GraphQLClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def send(
        self,
        query: str,
        variables: Optional[dict[str, Any]],
        endpoint: Optional[str],
        credential: Optional[str] = None,
    ) -> Any:
        """
        Execute a query and return the decoded JSON body.

        Args:
            query: GraphQL document text
            variables: Variables object
            endpoint: Endpoint URL
            credential: Value for the Authorization header, if any

        Returns:
            Decoded response body (may still contain in-band ``errors``)

        Raises:
            EmptyBodyError: query text is blank
            NoEndpointError: endpoint is not set
            NetworkError: the request could not be completed
            HttpError: non-success status code
            DecodeError: success status but the body is not JSON
        """
        if not endpoint:
            raise NoEndpointError()
        if not query or not query.strip():
            raise EmptyBodyError()

        headers = {"Content-Type": "application/json"}
        if credential:
            headers["Authorization"] = credential

        client = await self._get_client()

        try:
            response = await client.post(
                endpoint,
                json={"query": query, "variables": variables or {}},
                headers=headers,
            )
        except httpx.RequestError as e:
            logger.error(f"Network error during GraphQL request to {endpoint}: {e}")
            raise NetworkError(endpoint, str(e)) from e

        if not response.is_success:
            message = extract_error_message(response.text) or response.reason_phrase
            logger.error(f"GraphQL request failed: {response.status_code} {response.reason_phrase}: {message}")
            raise HttpError(response.status_code, message)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Failed to parse GraphQL response as JSON: {e}")
            raise DecodeError(response.text[:PREVIEW_LENGTH]) from e
