"""
Global pytest fixtures for the LinkTrail test suite.

Responsibilities:
    - Provide a fresh FastAPI TestClient via the app factory for integration tests
    - Provide an isolated in-memory store and repository for direct testing
    - Provide a LinkManager wired to the repository with a static geolocator,
      so no test ever reaches the network

Why an app factory?
    Using `create_app()` with an injected store gives every test fresh state,
    eliminating cross-test flakiness.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from main import create_app
from linktrail.analytics.aggregator import AnalyticsAggregator
from linktrail.analytics.click_writer import ClickEventWriter
from linktrail.analytics.geolocation import StaticGeolocator
from linktrail.manager.id_allocator import IDAllocator
from linktrail.manager.link_manager import LinkManager
from linktrail.manager.strategies import Hash32Strategy
from linktrail.storage.memory_store import MemoryKeyValueStore
from linktrail.storage.repository import LinkRecordRepository

CANONICAL_ZONE = "America/Los_Angeles"
TEST_IPS = {"203.0.113.9": "Germany", "198.51.100.7": "United States"}


@pytest.fixture
def store() -> MemoryKeyValueStore:
    """Fresh in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def repository(store: MemoryKeyValueStore) -> LinkRecordRepository:
    return LinkRecordRepository(store)


@pytest.fixture
def geolocator() -> StaticGeolocator:
    return StaticGeolocator(TEST_IPS)


@pytest.fixture
def fixed_clock():
    """Clock pinned to Wednesday 2024-05-01 12:00 in the canonical zone (19:00 UTC)."""
    return lambda: datetime(2024, 5, 1, 19, 0, tzinfo=timezone.utc)


@pytest.fixture
def aggregator(repository: LinkRecordRepository, fixed_clock) -> AnalyticsAggregator:
    return AnalyticsAggregator(repository, zone=CANONICAL_ZONE, clock=fixed_clock)


@pytest.fixture
def manager(repository: LinkRecordRepository, geolocator: StaticGeolocator, aggregator) -> LinkManager:
    """
    LinkManager wired to the repository fixture.

    Uses the hash32 strategy explicitly so tests do not depend on
    LINKTRAIL_CODE_STRATEGY in the environment.
    """
    return LinkManager(
        repository,
        allocator=IDAllocator(repository, strategy=Hash32Strategy(), max_attempts=16),
        click_writer=ClickEventWriter(repository, geolocator),
        aggregator=aggregator,
    )


@pytest.fixture
def client(geolocator: StaticGeolocator) -> TestClient:
    """Fresh TestClient with its own in-memory store."""
    app = create_app(store=MemoryKeyValueStore(), geolocator=geolocator)
    return TestClient(app)
