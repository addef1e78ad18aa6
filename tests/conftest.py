import json

import pytest


@pytest.fixture
def examples_dir(request):
    return request.config.rootpath / "examples"


@pytest.fixture
def load_example(examples_dir):
    def _load(name):
        return json.loads((examples_dir / name).read_text())
    return _load


@pytest.fixture
def fake_endpoint():
    """Build a query function that records queries and returns a canned response."""

    def _make(response):
        def query_function(query, params=None):
            query_function.queries.append(query)
            query_function.params.append(params)
            return response

        query_function.queries = []
        query_function.params = []
        return query_function

    return _make
