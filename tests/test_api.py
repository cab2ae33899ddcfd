"""Tests for the FastAPI router."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import ENDPOINT
from queryflow.api import create_queryflow_app
from queryflow.runtime.client import GraphQLClient
from queryflow.runtime.resolver import PipelineResolver


@pytest.fixture
def api(store, endpoint):
    store.save("Loop", {"body": "{ loop { id } }", "transformerCode": 'return await query("Loop")'})
    store.save("Ordered", {
        "body": "{ orders { id total } }",
        "transformerCode": 'return OrderedDict([("z", data["orders"]), ("a", [])])',
    })
    resolver = PipelineResolver(store, GraphQLClient(transport=endpoint.transport()))
    app = FastAPI()
    app.include_router(create_queryflow_app(resolver))
    with TestClient(app) as client:
        yield client


def test_resolve(api):
    response = api.post("/queries/Orders/resolve", json={"endpoint": ENDPOINT})
    assert response.status_code == 200
    assert response.json() == {
        "data": {"orders": [{"id": 1, "total": 9.5}]},
        "shape": "plain",
        "warnings": [],
    }


def test_resolve_ordered_shape(api):
    response = api.post("/queries/Ordered/resolve", json={"endpoint": ENDPOINT})
    body = response.json()
    assert body["shape"] == "ordered"
    assert list(body["data"]) == ["z", "a"]


def test_resolve_not_found(api):
    response = api.post("/queries/Missing/resolve", json={"endpoint": ENDPOINT})
    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"


def test_resolve_cycle(api):
    response = api.post("/queries/Loop/resolve", json={"endpoint": ENDPOINT})
    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["kind"] == "cycle"
    assert detail["chain"] == ["Loop", "Loop"]


def test_resolve_without_endpoint(api):
    response = api.post("/queries/Orders/resolve", json={})
    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "no_endpoint"


def test_invalid_max_depth(api):
    response = api.post("/queries/Orders/resolve", json={"endpoint": ENDPOINT, "max_depth": 0})
    assert response.status_code == 422


def test_get_query(api):
    response = api.get("/queries/Orders")
    assert response.status_code == 200
    assert response.json()["body"] == "{ orders { id total } }"

    assert api.get("/queries/Missing").status_code == 404
