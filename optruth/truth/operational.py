"""Eight-pillar operational truth summary."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel

from optruth.catalog.templates import is_area_unit
from optruth.core.numbers import percent
from optruth.models import (
    Fact,
    MaterialLineItem,
    PillarId,
    ProjectMode,
    Source,
    as_number,
)
from optruth.truth.conflicts import DEFAULT_TOLERANCE, has_conflict
from optruth.truth.sources import BlueprintAnalysis, ComplianceResult, PhotoEstimate

TOTAL_PILLARS = 8

LARGE_PROJECT_COST = Decimal("50000")
MEDIUM_PROJECT_COST = Decimal("10000")


class OperationalTruth(BaseModel):
    confirmed_area: Optional[Decimal] = None
    confirmed_area_source: Optional[Source] = None
    area_unit: str = "sq ft"
    materials_count: int = 0
    blueprint_status: Literal["analyzed", "none", "pending"] = "pending"
    obc_status: Literal["clear", "permit_required", "pending"] = "pending"
    conflict_status: Literal["aligned", "conflict_detected", "pending"] = "pending"
    project_mode: ProjectMode = ProjectMode.SOLO
    project_size: Literal["small", "medium", "large"] = "medium"
    confidence_level: Literal["high", "medium", "low"] = "low"
    verified_pillars: int = 3
    total_pillars: int = TOTAL_PILLARS
    verification_rate: int = 38


def latest_manual_fact(facts: Iterable[Fact], pillar_id: PillarId) -> Fact | None:
    latest = None
    for fact in facts:
        if fact.pillar_id == pillar_id and fact.source == Source.MANUAL_OVERRIDE:
            if latest is None or fact.produced_at >= latest.produced_at:
                latest = fact
    return latest


def resolve_confirmed_area(
    photo: PhotoEstimate | None,
    blueprint: BlueprintAnalysis | None,
    materials: Sequence[MaterialLineItem] = (),
    facts: Sequence[Fact] = (),
) -> tuple[Decimal | None, Source | None]:
    """Pick the authoritative area.

    Precedence: manual override > blueprint > photo > first area-unit material.
    """
    manual = latest_manual_fact(facts, PillarId.CONFIRMED_AREA)
    manual_area = as_number(manual.value) if manual else None
    if manual_area is not None and manual_area > 0:
        return manual_area, Source.MANUAL_OVERRIDE

    if blueprint and blueprint.detected_area and blueprint.detected_area > 0:
        return blueprint.detected_area, Source.AI_BLUEPRINT

    if photo and photo.area and photo.area > 0:
        return photo.area, Source.AI_PHOTO

    if photo:
        for detected in photo.materials:
            if is_area_unit(detected.unit) and detected.quantity > 0:
                return detected.quantity, Source.AI_PHOTO

    for item in materials:
        if is_area_unit(item.unit) and item.quantity > 0:
            return item.quantity, item.source

    return None, None


def size_for_cost(total_cost: Decimal | None) -> Literal["small", "medium", "large"]:
    if total_cost is None:
        return "medium"
    if total_cost > LARGE_PROJECT_COST:
        return "large"
    if total_cost > MEDIUM_PROJECT_COST:
        return "medium"
    return "small"


def build_operational_truth(
    photo: PhotoEstimate | None = None,
    blueprint: BlueprintAnalysis | None = None,
    compliance: ComplianceResult | None = None,
    materials: Sequence[MaterialLineItem] = (),
    facts: Sequence[Fact] = (),
    project_mode: ProjectMode = ProjectMode.SOLO,
    total_cost: Decimal | None = None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> OperationalTruth:
    confirmed_area, area_source = resolve_confirmed_area(
        photo, blueprint, materials, facts
    )
    materials_count = len(materials) or (len(photo.materials) if photo else 0)

    if (blueprint and blueprint.analyzed) or (photo and photo.has_blueprint):
        blueprint_status = "analyzed"
    elif photo is not None:
        blueprint_status = "none"
    else:
        blueprint_status = "pending"

    obc_status = compliance.status if compliance is not None else "pending"

    photo_area = photo.area if photo else None
    blueprint_area = blueprint.detected_area if blueprint else None
    if photo_area and blueprint_area and photo_area > 0 and blueprint_area > 0:
        conflict = has_conflict(photo_area, blueprint_area, tolerance)
        conflict_status = "conflict_detected" if conflict else "aligned"
    else:
        conflict_status = "pending"

    confidence = (photo.confidence or "").lower() if photo else ""
    confidence_level = confidence if confidence in ("high", "medium") else "low"

    verified = 3  # mode, size and confidence always carry a value
    verified += confirmed_area is not None
    verified += materials_count > 0
    verified += blueprint_status != "pending"
    verified += obc_status != "pending"
    verified += conflict_status != "pending"

    return OperationalTruth(
        confirmed_area=confirmed_area,
        confirmed_area_source=area_source,
        area_unit=(photo.area_unit if photo else None) or "sq ft",
        materials_count=materials_count,
        blueprint_status=blueprint_status,
        obc_status=obc_status,
        conflict_status=conflict_status,
        project_mode=project_mode,
        project_size=size_for_cost(total_cost),
        confidence_level=confidence_level,
        verified_pillars=verified,
        verification_rate=percent(Decimal(verified), Decimal(TOTAL_PILLARS)),
    )
