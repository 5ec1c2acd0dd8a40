import pytest

from merchant_twin.api.app import app
from merchant_twin.insight.pipeline.memory_store import InMemoryEventStore


@pytest.fixture(autouse=True)
def _reset_store():
    app.state.store = InMemoryEventStore()
    yield
