"""
Integration test configuration and fixtures.

The application is exercised end to end through FastAPI's TestClient,
including its lifespan (store connection and change feed subscription).

By default the in-memory store backs the app. Set TEST_MONGODB_URI to a
replica set (change streams need one) to run the same tests against
MongoDB; each session then uses its own throwaway database.
"""
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from main import create_app
from store.memory_store import MemoryRecordStore
from store.mongo_store import MongoRecordStore
from store.record_store import RecordStore

logger = logging.getLogger(__name__)

PRODUCTION_ORIGIN = "https://fleet.example.com"
INIT_TOKEN = "integration-init-token"


@dataclass
class TestMongoConfig:
    """
    Configuration for an optional MongoDB test instance.

    Environment Variables:
    - TEST_MONGODB_URI: connection string of a test replica set
    """
    uri: Optional[str] = None
    database: str = ""

    @classmethod
    def from_env(cls) -> "TestMongoConfig":
        return cls(
            uri=os.getenv("TEST_MONGODB_URI"),
            database=f"fleet_test_{uuid.uuid4().hex[:8]}",
        )

    @property
    def use_mongodb(self) -> bool:
        return bool(self.uri)


def clear_collection(test_client: TestClient) -> None:
    """Start from an empty collection; a MongoDB test database is shared by the session."""
    test_client.portal.call(test_client.app.state.store.delete_all)


@pytest.fixture(scope="session")
def mongo_config() -> TestMongoConfig:
    config = TestMongoConfig.from_env()
    if config.use_mongodb:
        logger.info(f"Integration tests using MongoDB database {config.database}")
    return config


@pytest.fixture
def make_store(mongo_config):
    """Return a factory building a fresh, unconnected record store."""
    def factory() -> RecordStore:
        if mongo_config.use_mongodb:
            return MongoRecordStore(
                uri=mongo_config.uri,
                database_name=mongo_config.database,
                collection_name="vehicles",
                timeout_ms=5000,
                failure_threshold=5,
                recovery_seconds=5.0,
            )
        return MemoryRecordStore()
    return factory


@pytest.fixture
def client(test_settings, make_store) -> Generator[TestClient, None, None]:
    """TestClient over a running app in the test environment."""
    app = create_app(test_settings, store=make_store())
    with TestClient(app) as test_client:
        clear_collection(test_client)
        yield test_client


@pytest.fixture
def production_settings() -> Settings:
    """Production settings; the store is injected, so the URI is never dialed."""
    return Settings(
        _env_file=None,
        environment="production",
        store_backend="mongodb",
        mongodb_uri="mongodb://localhost:27017",
        cors_origins=[PRODUCTION_ORIGIN],
        init_api_token=INIT_TOKEN,
        rate_limit_requests_per_minute=10000,
        change_feed_initial_delay=0.01,
        change_feed_max_delay=0.05,
        change_feed_start_timeout=1.0,
    )


@pytest.fixture
def production_client(production_settings, make_store) -> Generator[TestClient, None, None]:
    app = create_app(production_settings, store=make_store())
    with TestClient(app) as test_client:
        clear_collection(test_client)
        yield test_client


@pytest.fixture
def seeded_client(client) -> TestClient:
    """Client whose collection holds exactly the sample fleet."""
    response = client.post("/api/init")
    assert response.status_code == 200
    return client
