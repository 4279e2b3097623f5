"""Work type templates, pricing catalog and price enrichment."""

from optruth.catalog.enrichment import enrich_materials_with_prices
from optruth.catalog.templates import (
    PricingCatalog,
    WorkTypeTemplate,
    calculate_template_estimate,
    detect_work_type,
    get_catalog,
    map_work_type_to_items,
    template_to_items,
)

__all__ = [
    "PricingCatalog",
    "WorkTypeTemplate",
    "calculate_template_estimate",
    "detect_work_type",
    "enrich_materials_with_prices",
    "get_catalog",
    "map_work_type_to_items",
    "template_to_items",
]
