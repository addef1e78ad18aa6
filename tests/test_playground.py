"""
Test the playground API without a live endpoint.
"""

from fastapi.testclient import TestClient

from playground import EXAMPLE_PROTO, app

client = TestClient(app)


def test_compile_example():
    res = client.post("/api/compile", json={"document": EXAMPLE_PROTO})
    data = res.json()
    print(f"\n{data.get('query')}")

    assert res.status_code == 200
    assert data["ok"] is True
    assert data["query"].startswith("SELECT DISTINCT ?id")
    assert "LIMIT 10" in data["query"]


def test_compile_error_is_reported():
    res = client.post("/api/compile", json={"document": {"proto": {"id": "?id"}, "$limit": "ten"}})
    data = res.json()

    assert data["ok"] is False
    assert data["error"].startswith("MalformedInputError")


def test_transform_invalid_endpoint():
    res = client.post("/api/transform", json={"document": EXAMPLE_PROTO, "endpoint": "not a url"})
    data = res.json()

    assert data["ok"] is False
    assert "InvalidEndpointError" in data["error"]


def test_index_renders_examples():
    res = client.get("/", params={"endpoint": "https://query.wikidata.org/sparql"})

    assert res.status_code == 200
    assert "https://query.wikidata.org/sparql" in res.text
    assert "dbo:City" in res.text
