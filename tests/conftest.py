"""
Shared pytest fixtures and configuration for all tests.
"""
import os
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

from config.settings import Settings
from store.memory_store import MemoryRecordStore

# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for async tests
    print_blob=True,  # Print failing examples for debugging
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,  # Reproducible results in CI
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],  # Skip shrinking for speed
)

# Fast profile: quick smoke tests
settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


@pytest.fixture
def test_settings() -> Settings:
    """Settings for the in-memory store with short change feed delays."""
    return Settings(
        _env_file=None,
        environment="test",
        store_backend="memory",
        rate_limit_requests_per_minute=10000,
        change_feed_initial_delay=0.01,
        change_feed_max_delay=0.05,
        change_feed_start_timeout=1.0,
        log_level="DEBUG",
    )


@pytest.fixture
def memory_store() -> MemoryRecordStore:
    """An in-memory record store that has not been connected yet."""
    return MemoryRecordStore()


@pytest.fixture
def mock_websocket() -> MagicMock:
    """Create a mock WebSocket connection."""
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock()
    websocket.client = MagicMock()
    websocket.client.host = "127.0.0.1"
    return websocket


@pytest.fixture
def vehicle_payload() -> dict[str, Any]:
    """A valid create payload in wire format."""
    return {
        "name": "Bus 101",
        "status": "on-road",
        "km": 125000,
        "oilChangeDue": 130000,
        "safetyDue": "2024-12-31",
        "drivers": ["John Smith"],
        "comment": "",
    }
