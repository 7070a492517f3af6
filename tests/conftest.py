"""
Shared fixtures for the cellmap test suite.
"""

import pytest

from cellmap.config import reset_settings
from cellmap.store import InMemoryConnection


@pytest.fixture(autouse=True)
def fresh_settings():
    """Rebuild settings from the environment for every test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def connection():
    """Create a fresh in-memory store connection."""
    return InMemoryConnection()
