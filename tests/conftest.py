"""
Test fixtures for catalog tests.

Provides a controllable clock, a recording error reporter, a temporary
SQLite database and a factory for clients backed by httpx.MockTransport.
"""

import httpx
import pytest
import pytest_asyncio

from catalog.datastore.engine import create_session_factory
from catalog.services.client import RemoteDataClient, ServiceConfig
from catalog.services.retry import RetryPolicy
from catalog.services.storage import LocalPersistenceStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingReporter:
    """ErrorReporter double that keeps every report."""

    def __init__(self):
        self.reports = []

    def report(self, error, context, level="medium", **extra):
        self.reports.append(
            {"error": error, "context": context, "level": level, "extra": extra}
        )
        return f"report_{len(self.reports)}"


def make_product(product_id: int = 1, **overrides) -> dict:
    """Raw product record as the API returns it."""
    record = {
        "id": product_id,
        "title": f"Product {product_id}",
        "price": 19.99,
        "description": "A product",
        "category": "electronics",
        "image": f"https://cdn.example.com/{product_id}.jpg",
        "rating": {"rate": 4.2, "count": 120},
    }
    record.update(overrides)
    return record


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def products_payload() -> list[dict]:
    return [make_product(i) for i in range(1, 4)]


@pytest_asyncio.fixture
async def make_client(clock, reporter):
    """Factory for RemoteDataClient instances that talk to a handler function."""
    created: list[httpx.AsyncClient] = []

    def factory(handler, **overrides) -> RemoteDataClient:
        options = {"base_url": "https://api.test", "retry_base_delay": 0.0}
        options.update(overrides)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        created.append(http_client)
        return RemoteDataClient(
            ServiceConfig(**options),
            http_client=http_client,
            reporter=reporter,
            clock=clock,
        )

    yield factory

    for http_client in created:
        await http_client.aclose()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite file."""
    engine, factory = await create_session_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"
    )
    yield factory
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> LocalPersistenceStore:
    return LocalPersistenceStore(
        session_factory, retry=RetryPolicy(max_retries=1, base_delay=0.0)
    )
