"""Per-project reconciliation state and the pure reconcile step.

``ProjectState`` is an explicit handle, one per project; nothing here is
process-global. ``reconcile`` and ``apply_analysis`` never mutate their
input: they work on a copy and return it, so a failure part-way leaves the
caller's state untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from optruth.catalog.enrichment import enrich_materials_with_prices
from optruth.catalog.templates import (
    PricingCatalog,
    calculate_template_estimate,
    get_catalog,
)
from optruth.citations.registry import CitationRegistry
from optruth.ledger.materials import MaterialLedger
from optruth.models import (
    Fact,
    MaterialLineItem,
    PillarId,
    ProjectMode,
    Source,
    TaskRecord,
    to_fact_value,
)
from optruth.truth.operational import resolve_confirmed_area
from optruth.truth.sources import BlueprintAnalysis, ComplianceResult, PhotoEstimate

logger = logging.getLogger(__name__)

# Non-ledger subjects that citations may reference
FINANCIAL_SUBJECTS = frozenset({"labor_cost", "other_cost", "approved_budget"})


@dataclass
class ProjectState:
    project_id: str
    ledger: MaterialLedger
    facts: list[Fact] = field(default_factory=list)
    tasks: list[TaskRecord] = field(default_factory=list)
    team_member_count: int = 0
    document_count: int = 0
    contract_count: int = 0
    labor_cost: Decimal = Decimal("0")
    other_cost: Decimal = Decimal("0")
    labor_backfilled: bool = False
    approved_budget: Optional[Decimal] = None
    work_type: Optional[str] = None
    photo: Optional[PhotoEstimate] = None
    blueprint: Optional[BlueprintAnalysis] = None
    compliance: Optional[ComplianceResult] = None
    failures: set[str] = field(default_factory=set)
    missing_information: list[str] = field(default_factory=list)
    is_draft: bool = True

    @classmethod
    def new(cls, project_id: str, registry: CitationRegistry | None = None) -> ProjectState:
        return cls(project_id=project_id, ledger=MaterialLedger(registry or CitationRegistry()))

    @property
    def registry(self) -> CitationRegistry:
        return self.ledger.registry

    @property
    def mode(self) -> ProjectMode:
        return ProjectMode.SOLO if self.team_member_count == 0 else ProjectMode.TEAM

    @property
    def known_subjects(self) -> set[str]:
        return set(self.ledger.known_ids) | FINANCIAL_SUBJECTS

    def copy(self) -> ProjectState:
        return ProjectState(
            project_id=self.project_id,
            ledger=self.ledger.copy(self.registry.copy()),
            facts=list(self.facts),
            tasks=list(self.tasks),
            team_member_count=self.team_member_count,
            document_count=self.document_count,
            contract_count=self.contract_count,
            labor_cost=self.labor_cost,
            other_cost=self.other_cost,
            labor_backfilled=self.labor_backfilled,
            approved_budget=self.approved_budget,
            work_type=self.work_type,
            photo=self.photo,
            blueprint=self.blueprint,
            compliance=self.compliance,
            failures=set(self.failures),
            missing_information=list(self.missing_information),
            is_draft=self.is_draft,
        )


@dataclass
class AnalysisOutcome:
    """Everything one analysis run produced, applied as a single batch."""

    photo: Optional[PhotoEstimate] = None
    blueprint: Optional[BlueprintAnalysis] = None
    compliance: Optional[ComplianceResult] = None
    failures: set[str] = field(default_factory=set)
    missing_information: list[str] = field(default_factory=list)


def record_fact(
    state: ProjectState, pillar_id: PillarId, value: Any, source: Source
) -> Fact:
    """Append a fact and its citation to ``state`` (in place)."""
    previous = None
    for existing in state.facts:
        if existing.pillar_id == pillar_id:
            previous = existing.value

    fact = Fact(pillar_id=pillar_id, value=to_fact_value(value), source=source)
    state.registry.record(pillar_id.value, source, "value", previous, fact.value)
    state.facts.append(fact)
    return fact


def _ai_materials(state: ProjectState) -> list[MaterialLineItem]:
    if state.photo is None:
        return []
    return [
        MaterialLineItem(
            name=m.name,
            quantity=m.quantity,
            unit=m.unit,
            source=Source.AI_PHOTO,
            is_essential=True,
        )
        for m in state.photo.materials
    ]


def _has_price_gaps(ledger: MaterialLedger) -> bool:
    return ledger.is_fully_unpriced and any(i.unit_price == 0 for i in ledger)


def _needs_labor_backfill(state: ProjectState, catalog: PricingCatalog) -> bool:
    return (
        not state.labor_backfilled
        and state.labor_cost == 0
        and catalog.get_template(state.work_type) is not None
    )


def needs_reconciliation(
    state: ProjectState,
    catalog: PricingCatalog | None = None,
    backfill_labor: bool = True,
) -> bool:
    """Cheap check whether ``reconcile`` would change anything."""
    catalog = catalog or get_catalog()
    if len(state.ledger) == 0 and state.photo is not None and state.photo.materials:
        return True
    if _has_price_gaps(state.ledger):
        return True
    return backfill_labor and _needs_labor_backfill(state, catalog)


def reconcile(
    state: ProjectState,
    catalog: PricingCatalog | None = None,
    backfill_labor: bool = True,
) -> ProjectState:
    """Auto-sync AI materials, fill price gaps and backfill labor once.

    Returns ``state`` itself when nothing needs doing, otherwise a new state.
    Priced items are never touched, so re-running alongside a manual edit
    cannot clobber a price the user just typed.
    """
    catalog = catalog or get_catalog()
    if not needs_reconciliation(state, catalog, backfill_labor):
        return state

    new = state.copy()
    confirmed_area, _ = resolve_confirmed_area(
        new.photo, new.blueprint, new.ledger.items, new.facts
    )

    if len(new.ledger) == 0 and new.photo is not None and new.photo.materials:
        enriched = enrich_materials_with_prices(
            _ai_materials(new), new.work_type, confirmed_area, catalog
        )
        new.ledger.load_batch(enriched, Source.AI_PHOTO)
        logger.info(
            "Auto-synced %d AI material(s) into project %s",
            len(enriched),
            new.project_id,
        )
    elif _has_price_gaps(new.ledger):
        enriched = enrich_materials_with_prices(
            new.ledger.items, new.work_type, confirmed_area, catalog
        )
        changed = new.ledger.apply_enrichment(enriched)
        logger.info("Priced %d unpriced item(s) in project %s", changed, new.project_id)

    if backfill_labor and _needs_labor_backfill(new, catalog):
        template = catalog.get_template(new.work_type)
        estimate = calculate_template_estimate(template)
        new.registry.record(
            "labor_cost", Source.TEMPLATE_PRESET, "labor_cost",
            new.labor_cost, estimate.labor_cost,
        )
        new.labor_cost = estimate.labor_cost
        new.labor_backfilled = True
        logger.info(
            "Backfilled labor cost %s from %s template", estimate.labor_cost, new.work_type
        )

    return new


def apply_analysis(state: ProjectState, outcome: AnalysisOutcome) -> ProjectState:
    """Apply one analysis batch to a copy of ``state``.

    Sources that failed keep their previous payload; the failure itself is
    what the truth matrix reports.
    """
    new = state.copy()
    new.failures = set(outcome.failures)
    new.missing_information = list(outcome.missing_information)

    if outcome.photo is not None:
        new.photo = outcome.photo
        if outcome.photo.area:
            record_fact(new, PillarId.CONFIRMED_AREA, outcome.photo.area, Source.AI_PHOTO)
        record_fact(new, PillarId.MATERIALS, len(outcome.photo.materials), Source.AI_PHOTO)

    if outcome.blueprint is not None:
        new.blueprint = outcome.blueprint
        if outcome.blueprint.detected_area:
            record_fact(
                new, PillarId.CONFIRMED_AREA, outcome.blueprint.detected_area,
                Source.AI_BLUEPRINT,
            )
        record_fact(new, PillarId.BLUEPRINT, "analyzed", Source.AI_BLUEPRINT)

    if outcome.compliance is not None:
        new.compliance = outcome.compliance
        record_fact(
            new, PillarId.OBC_COMPLIANCE, outcome.compliance.status, Source.AI_REGULATORY
        )

    return new
