"""Pytest configuration and fixtures for Operational Truth tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from optruth.catalog.templates import get_catalog
from optruth.citations.registry import CitationRegistry
from optruth.config import AppConfig, reset_config
from optruth.ledger.materials import MaterialLedger
from optruth.models import MaterialLineItem, Source
from optruth.truth.sources import BlueprintAnalysis, PhotoEstimate


@pytest.fixture
def test_project_id() -> str:
    """Test project ID."""
    return "test-project"


@pytest.fixture
def registry() -> CitationRegistry:
    return CitationRegistry()


@pytest.fixture
def ledger(registry: CitationRegistry) -> MaterialLedger:
    return MaterialLedger(registry)


@pytest.fixture
def catalog():
    """The packaged work type catalog."""
    return get_catalog()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig.from_env()


@pytest.fixture
def sample_item() -> MaterialLineItem:
    """A priced template item."""
    return MaterialLineItem(
        id="mat-laminate",
        name="Laminate Flooring",
        quantity=Decimal("550"),
        unit="sq ft",
        unit_price=Decimal("2.85"),
        source=Source.TEMPLATE_PRESET,
        is_essential=True,
        waste_percentage=Decimal("10"),
        original_value=Decimal("500"),
    )


@pytest.fixture
def photo_500() -> PhotoEstimate:
    """Site photo analysis reporting 500 sq ft."""
    return PhotoEstimate.model_validate(
        {
            "area": 500,
            "areaUnit": "sq ft",
            "confidence": "high",
            "materials": [
                {"item": "Laminate Flooring", "quantity": 0, "unit": "sq ft"},
                {"item": "Baseboard Trim", "quantity": 180, "unit": "ft"},
            ],
        }
    )


@pytest.fixture
def blueprint_420() -> BlueprintAnalysis:
    """Blueprint extraction reporting 420 sq ft."""
    return BlueprintAnalysis.model_validate({"detectedArea": 420})


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    # Set DATABASE_URL for config tests
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    reset_config()
    yield
    reset_config()
