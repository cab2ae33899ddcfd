"""
Shared pytest fixtures for queryflow tests.

GraphQL endpoints are faked with httpx.MockTransport; async code is driven
with asyncio.run inside plain synchronous tests.
"""

import asyncio
import json

import httpx
import pytest

from queryflow.runtime.client import GraphQLClient
from queryflow.runtime.context import create_execution_context
from queryflow.runtime.resolver import PipelineResolver
from queryflow.runtime.sandbox import TransformerSandbox
from queryflow.stores.base import MemoryQueryStore

ENDPOINT = "https://erp.example.com/graphql"
TOKEN = "Bearer test-token"

ORDERS_BODY = "{ orders { id total } }"
ORDERS_RESPONSE = {"data": {"orders": [{"id": 1, "total": 9.5}]}}


class FakeGraphQLEndpoint:
    """
    Answers GraphQL requests by query text and records every request.

    Responses may be a dict (JSON body), an httpx.Response, or an exception
    instance to raise from the transport.
    """

    def __init__(self, responses=None, delay=0.0):
        self.responses = dict(responses or {})
        self.requests = []
        self.delay = delay

    def add(self, query_text, response):
        self.responses[query_text] = response

    def queries(self):
        return [r["query"] for r in self.requests]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append({
            "url": str(request.url),
            "query": payload["query"],
            "variables": payload.get("variables"),
            "authorization": request.headers.get("Authorization"),
        })
        # Suspend so concurrently started queries really overlap
        await asyncio.sleep(self.delay)

        response = self.responses.get(payload["query"], {"data": {}})
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def endpoint():
    return FakeGraphQLEndpoint({ORDERS_BODY: ORDERS_RESPONSE})


@pytest.fixture
def store():
    return MemoryQueryStore({"Orders": {"body": ORDERS_BODY}})


@pytest.fixture
def client(endpoint):
    return GraphQLClient(transport=endpoint.transport())


@pytest.fixture
def resolver(store, client):
    return PipelineResolver(store, client, sandbox=TransformerSandbox(helper_loader=store))


@pytest.fixture
def context():
    return create_execution_context()


def run_resolve(resolver, name, context, **options):
    """Resolve ``name`` and close the resolver's client in the same event loop."""
    options.setdefault("default_endpoint", ENDPOINT)
    options.setdefault("default_credential", TOKEN)

    async def _go():
        try:
            return await resolver.resolve(name, context, **options)
        finally:
            await resolver.client.close()

    return asyncio.run(_go())
