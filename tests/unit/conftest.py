import pytest
from fakes import FakeProvider
from splunk_operator.client.memory import InMemoryObjectStore
from splunk_operator.remote.registry import ProviderRegistry
from splunk_operator.types.settings import Settings


@pytest.fixture
def store():
    """Empty in-memory cluster."""
    return InMemoryObjectStore()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def registry(provider):
    return ProviderRegistry({"fake": provider})


@pytest.fixture
def conf():
    return Settings(remote_listing_timeout_seconds=5.0)
