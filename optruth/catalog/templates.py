"""YAML-driven work type templates and pricing catalog.

Each work type maps to a template of default materials (quantity, unit,
unit price, waste) plus a labor rate and estimated hours. Templates seed
an empty ledger and back-fill prices for unpriced AI detections.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

import yaml
from pydantic import BaseModel, Field, ValidationError

from optruth.config import get_config
from optruth.errors import ConfigurationError
from optruth.models import MaterialLineItem, Source

AREA_UNITS = frozenset({"sq ft", "sqft", "sf", "sq m", "m2", "m²"})


def is_area_unit(unit: str | None) -> bool:
    return (unit or "").strip().lower() in AREA_UNITS


def ceil_decimal(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_CEILING)


class TemplateMaterial(BaseModel):
    item: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    essential: bool = False
    waste: Decimal = Decimal("0")  # percent


class WorkTypeTemplate(BaseModel):
    work_type: str
    labor_rate: Decimal
    estimated_hours: Decimal
    materials: list[TemplateMaterial] = Field(default_factory=list)


class WorkTypeDefinition(BaseModel):
    id: str
    name: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)


class TemplateEstimate(BaseModel):
    material_cost: Decimal
    labor_cost: Decimal
    total_cost: Decimal


class PricingCatalog:
    """Static per-trade presets and fallback price tables."""

    def __init__(
        self,
        work_types: list[WorkTypeDefinition],
        templates: dict[str, WorkTypeTemplate],
        default_unit_prices: dict[str, Decimal],
        unit_price_heuristics: dict[str, Decimal],
        currency: str = "CAD",
    ):
        self.work_types = work_types
        self.templates = templates
        self.default_unit_prices = default_unit_prices
        self.unit_price_heuristics = unit_price_heuristics
        self.currency = currency

    @classmethod
    def from_yaml(cls, path: Path) -> PricingCatalog:
        """Load catalog from YAML.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        if not path.exists():
            raise ConfigurationError(f"Work type catalog not found: {path}")

        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        return cls.from_dict(data, origin=str(path))

    @classmethod
    def from_dict(cls, data: dict[str, Any], origin: str = "<dict>") -> PricingCatalog:
        raw_templates = data.get("templates") or {}
        if not raw_templates:
            raise ConfigurationError(f"No templates defined in {origin}")

        try:
            work_types = [
                WorkTypeDefinition.model_validate(wt)
                for wt in data.get("work_types") or []
            ]
            templates = {
                key.lower(): WorkTypeTemplate.model_validate(
                    {"work_type": key.lower(), **(body or {})}
                )
                for key, body in raw_templates.items()
            }
            defaults = {
                str(k).lower(): Decimal(str(v))
                for k, v in (data.get("default_unit_prices") or {}).items()
            }
            heuristics = {
                str(k).lower(): Decimal(str(v))
                for k, v in (data.get("unit_price_heuristics") or {}).items()
            }
        except (ValidationError, ArithmeticError, AttributeError, TypeError) as e:
            raise ConfigurationError(f"Invalid catalog in {origin}: {e}") from e

        return cls(
            work_types=work_types,
            templates=templates,
            default_unit_prices=defaults,
            unit_price_heuristics=heuristics,
            currency=data.get("currency", "CAD"),
        )

    def get_template(self, work_type: str | None) -> Optional[WorkTypeTemplate]:
        if not work_type:
            return None
        return self.templates.get(work_type.lower())

    def get_work_type(self, work_type: str) -> Optional[WorkTypeDefinition]:
        for definition in self.work_types:
            if definition.id == work_type.lower():
                return definition
        return None

    def fallback_price(self, unit: str) -> Decimal:
        """Unit-type heuristic used when nothing else matches."""
        key = (unit or "").strip().lower()
        if key in self.unit_price_heuristics:
            return self.unit_price_heuristics[key]
        return self.unit_price_heuristics.get(
            "default", self.default_unit_prices.get("default", Decimal("10.00"))
        )


# Singleton instance (lazy-loaded)
_catalog: PricingCatalog | None = None


def get_catalog() -> PricingCatalog:
    """Get or load the packaged work type catalog."""
    global _catalog
    if _catalog is None:
        _catalog = PricingCatalog.from_yaml(get_config().catalog_path)
    return _catalog


def detect_work_type(text: str, catalog: PricingCatalog | None = None) -> str | None:
    """Guess the work type from a project name or description."""
    catalog = catalog or get_catalog()
    lower = text.lower()
    for definition in catalog.work_types:
        for keyword in definition.keywords:
            if keyword.lower() in lower:
                return definition.id
    return None


def template_to_items(
    template: WorkTypeTemplate, confirmed_area: Decimal | None = None
) -> list[MaterialLineItem]:
    """Expand a template into ledger items.

    Area-unit quantities are replaced by the confirmed area (rounded up).
    Essential items are then inflated by their waste percentage, with the
    pre-waste quantity kept as ``original_value``.
    """
    items: list[MaterialLineItem] = []
    for index, mat in enumerate(template.materials):
        quantity = mat.quantity
        if confirmed_area and is_area_unit(mat.unit):
            quantity = ceil_decimal(Decimal(str(confirmed_area)))

        base_quantity = quantity
        if mat.essential and mat.waste > 0:
            quantity = ceil_decimal(quantity * (1 + mat.waste / 100))

        items.append(
            MaterialLineItem(
                id=f"{template.work_type}-{index}-{uuid4().hex[:8]}",
                name=mat.item,
                quantity=quantity,
                unit=mat.unit,
                unit_price=mat.unit_price,
                source=Source.TEMPLATE_PRESET,
                is_essential=mat.essential,
                waste_percentage=mat.waste if mat.essential else Decimal("0"),
                original_value=base_quantity,
            )
        )
    return items


def calculate_template_estimate(template: WorkTypeTemplate) -> TemplateEstimate:
    material_cost = Decimal("0")
    for mat in template.materials:
        qty = mat.quantity
        if mat.essential:
            qty = ceil_decimal(mat.quantity * (1 + mat.waste / 100))
        material_cost += qty * mat.unit_price

    labor_cost = template.labor_rate * template.estimated_hours
    return TemplateEstimate(
        material_cost=material_cost,
        labor_cost=labor_cost,
        total_cost=material_cost + labor_cost,
    )


def map_work_type_to_items(
    work_type: str | None,
    confirmed_area: Decimal | None = None,
    catalog: PricingCatalog | None = None,
) -> list[MaterialLineItem]:
    """Template items for a work type; ``other`` and unknown types get none."""
    if not work_type:
        return []
    template = (catalog or get_catalog()).get_template(work_type)
    if template is None or not template.materials:
        return []
    return template_to_items(template, confirmed_area)
