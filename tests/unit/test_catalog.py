"""Tests for the work type catalog and template expansion."""

from __future__ import annotations

from decimal import Decimal

import pytest

from optruth.catalog import templates
from optruth.catalog.templates import (
    PricingCatalog,
    calculate_template_estimate,
    detect_work_type,
    map_work_type_to_items,
    template_to_items,
)
from optruth.config import AppConfig
from optruth.errors import ConfigurationError
from optruth.models import Source


class TestCatalogLoading:
    def test_packaged_catalog(self, catalog):
        assert catalog.currency == "CAD"
        assert len(catalog.work_types) == 10
        assert catalog.get_template("Flooring").work_type == "flooring"
        assert catalog.get_work_type("hvac").name == "HVAC"

    def test_get_catalog_reads_configured_path(self, tmp_path, monkeypatch):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "currency: USD\n"
            "templates:\n"
            "  decking:\n"
            "    labor_rate: 50\n"
            "    estimated_hours: 10\n"
        )
        monkeypatch.setattr(AppConfig, "catalog_path", property(lambda self: path))
        monkeypatch.setattr(templates, "_catalog", None)

        catalog = templates.get_catalog()

        assert catalog.currency == "USD"
        assert catalog.get_template("decking").labor_rate == Decimal("50")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            PricingCatalog.from_yaml(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("templates: [unclosed")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            PricingCatalog.from_yaml(path)

    def test_no_templates(self):
        with pytest.raises(ConfigurationError, match="No templates"):
            PricingCatalog.from_dict({"work_types": []})

    def test_invalid_material(self):
        with pytest.raises(ConfigurationError):
            PricingCatalog.from_dict(
                {"templates": {"tile": {"labor_rate": 50, "estimated_hours": 8, "materials": [{"item": "Tile"}]}}}
            )

    def test_fallback_prices(self, catalog):
        assert catalog.fallback_price("sq ft") == Decimal("2.50")
        assert catalog.fallback_price("ft") == Decimal("1.50")
        assert catalog.fallback_price("GAL") == Decimal("45.00")
        assert catalog.fallback_price("pcs") == Decimal("10.00")


class TestTemplateToItems:
    def test_area_scaling_and_waste(self, catalog):
        items = template_to_items(catalog.get_template("flooring"), Decimal("499.2"))

        laminate = items[0]
        assert laminate.name == "Laminate Flooring"
        # ceil(499.2) = 500, then ceil(500 x 1.10)
        assert laminate.original_value == Decimal("500")
        assert laminate.quantity == Decimal("550")
        assert laminate.source == Source.TEMPLATE_PRESET
        assert laminate.waste_percentage == Decimal("10")

    def test_linear_units_are_not_scaled(self, catalog):
        items = template_to_items(catalog.get_template("flooring"), Decimal("100"))

        baseboard = next(i for i in items if i.name == "Baseboard Trim")
        assert baseboard.original_value == Decimal("200")
        assert baseboard.quantity == Decimal("220")

    def test_non_essential_items_skip_waste(self, catalog):
        items = template_to_items(catalog.get_template("flooring"))

        adhesive = next(i for i in items if i.name == "Flooring Adhesive")
        assert adhesive.quantity == Decimal("4")
        assert adhesive.waste_percentage == Decimal("0")

    def test_ids_are_unique(self, catalog):
        items = template_to_items(catalog.get_template("plumbing"))

        assert len({i.id for i in items}) == len(items)
        assert all(i.id.startswith("plumbing-") for i in items)

    def test_other_and_unknown_map_to_nothing(self, catalog):
        assert map_work_type_to_items("other", Decimal("100"), catalog) == []
        assert map_work_type_to_items("landscaping", None, catalog) == []
        assert map_work_type_to_items(None) == []


class TestEstimate:
    def test_demolition_estimate(self, catalog):
        estimate = calculate_template_estimate(catalog.get_template("demolition"))

        # 450 + 55x1.50 + 575x0.12 + 20x2.50 + 4x8 + 6x12
        assert estimate.material_cost == Decimal("755.50")
        assert estimate.labor_cost == Decimal("560")
        assert estimate.total_cost == Decimal("1315.50")


class TestDetectWorkType:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Basement laminate install", "flooring"),
            ("Replace kitchen faucet", "plumbing"),
            ("Gut the bathroom", "demolition"),
            ("Something unusual", None),
        ],
    )
    def test_keywords(self, catalog, text, expected):
        assert detect_work_type(text, catalog) == expected
