"""Price enrichment for unpriced ledger items.

Never overwrites a priced item. Resolution order for the rest:

1. Template entry for the work type (first-word substring match)
2. Common material price table (substring match)
3. Unit-type heuristic
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from optruth.catalog.templates import (
    PricingCatalog,
    WorkTypeTemplate,
    ceil_decimal,
    get_catalog,
    is_area_unit,
)
from optruth.models import MaterialLineItem


def _first_word(text: str) -> str:
    return text.split(" ")[0]


def match_template_price(
    name: str, template: WorkTypeTemplate | None
) -> Decimal | None:
    if template is None:
        return None
    item_lower = name.lower()
    item_word = _first_word(item_lower)
    for mat in template.materials:
        mat_lower = mat.item.lower()
        mat_word = _first_word(mat_lower)
        # Empty first words would match everything
        if (mat_word and mat_word in item_lower) or (item_word and item_word in mat_lower):
            return mat.unit_price
    return None


def match_default_price(name: str, catalog: PricingCatalog) -> Decimal | None:
    item_lower = name.lower()
    for key, price in catalog.default_unit_prices.items():
        if key != "default" and key in item_lower:
            return price
    return None


def enrich_material(
    material: MaterialLineItem,
    template: WorkTypeTemplate | None,
    catalog: PricingCatalog,
    confirmed_area: Decimal | None = None,
) -> MaterialLineItem:
    if material.unit_price > 0 and material.total_price > 0:
        return material

    update: dict[str, Decimal] = {}

    if material.quantity == 0 and confirmed_area and is_area_unit(material.unit):
        update["quantity"] = ceil_decimal(Decimal(str(confirmed_area)))

    # A typed price is kept even when the total is still zero
    if material.unit_price == 0:
        price = (
            match_template_price(material.name, template)
            or match_default_price(material.name, catalog)
            or catalog.fallback_price(material.unit)
        )
        update["unit_price"] = price

    if not update:
        return material
    return material.model_copy(update=update)


def enrich_materials_with_prices(
    materials: Iterable[MaterialLineItem],
    work_type: str | None,
    confirmed_area: Decimal | None = None,
    catalog: PricingCatalog | None = None,
) -> list[MaterialLineItem]:
    """Fill missing prices; pure and idempotent."""
    catalog = catalog or get_catalog()
    template = catalog.get_template(work_type)
    return [enrich_material(m, template, catalog, confirmed_area) for m in materials]
