"""System test specific fixtures."""

import pytest


@pytest.fixture(params=["memory", "sql"])
def any_store(request, store, sql_store):
    """Run a test once against each DocumentStore implementation."""
    return store if request.param == "memory" else sql_store
