"""
Pytest configuration for noverthinker tests.
"""

import os

import pytest

from noverthinker.cache import FastCache, InMemoryBackend

from fakes import InMemoryAnalyticsStore, UnreachableBackend


def pytest_configure(config):
    """Load .env into the environment if variables are not already set."""
    env_file = os.path.join(os.path.dirname(__file__), "..", ".env")
    if os.path.exists(env_file):
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip('"').strip("'")
                    if key not in os.environ:
                        os.environ[key] = value


@pytest.fixture
def store():
    return InMemoryAnalyticsStore()


@pytest.fixture
def memory_cache():
    return FastCache(InMemoryBackend())


@pytest.fixture
def unreachable_cache():
    return FastCache(UnreachableBackend(), max_reconnect_attempts=3, retry_delay=0)
