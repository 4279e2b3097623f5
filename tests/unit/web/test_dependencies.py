"""Tests for optruth.web.dependencies - Shared dependency providers."""

import pytest

from optruth.db.store import SqlProjectStore
from optruth.sync.facade import ProjectRegistry
from optruth.web.dependencies import get_registry, reset_registry


@pytest.fixture(autouse=True)
def fresh_registry():
    reset_registry()
    yield
    reset_registry()


def test_get_registry_returns_project_registry():
    """Test that get_registry returns a registry backed by the SQL store."""
    registry = get_registry()

    assert isinstance(registry, ProjectRegistry)
    assert isinstance(registry._store, SqlProjectStore)


def test_get_registry_is_singleton():
    """Test that get_registry returns the same instance (singleton pattern)."""
    assert get_registry() is get_registry()


def test_reset_registry_drops_instance():
    first = get_registry()
    reset_registry()

    assert get_registry() is not first
