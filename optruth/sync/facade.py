"""Dashboard sync facade: the read/write boundary for one project.

The facade owns the single authoritative in-memory ``ProjectState``. Reads
are synchronous snapshots. Writes run against a copy which replaces the
current state only once the whole operation (mutation, reconcile, integrity
check) has succeeded. Network work (analysis, persistence) is awaited
first and applied afterwards, so a cancelled call changes nothing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Optional, TypeVar

from pydantic import BaseModel

from optruth.catalog.templates import PricingCatalog, get_catalog, map_work_type_to_items
from optruth.config import AppConfig, get_config
from optruth.errors import PersistenceError
from optruth.finance.rollup import FinancialSummary, compute_financial_summary
from optruth.models import (
    SOURCE_LABELS,
    Citation,
    Fact,
    MaterialLineItem,
    PillarId,
    Source,
    TaskRecord,
)
from optruth.scoring.health import HealthScore, calculate_health_score
from optruth.sync.persistence import ProjectStore, record_to_state, state_to_record
from optruth.sync.state import (
    AnalysisOutcome,
    ProjectState,
    apply_analysis,
    reconcile,
    record_fact,
)
from optruth.truth.matrix import BLUEPRINT, COMPLIANCE, PHOTO, TruthMatrix, build_truth_matrix
from optruth.truth.operational import OperationalTruth, build_operational_truth
from optruth.truth.sources import (
    BlueprintAnalysis,
    ComplianceProvider,
    ComplianceResult,
    DocumentAnalysisProvider,
    PhotoEstimate,
    VisualAnalysisProvider,
    parse_blueprint_analysis,
    parse_compliance_result,
    parse_photo_estimate,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SHORT_LABELS: dict[Source, str] = {
    Source.AI_PHOTO: "AI",
    Source.AI_BLUEPRINT: "BP",
    Source.AI_REGULATORY: "REG",
    Source.TEMPLATE_PRESET: "TPL",
    Source.CALCULATOR: "CALC",
    Source.MANUAL_OVERRIDE: "EDIT",
    Source.IMPORTED: "IMP",
}


class CitationBadge(BaseModel):
    label: str
    short_label: str


class MaterialWithCitation(BaseModel):
    material: MaterialLineItem
    badge: CitationBadge
    citation: Optional[Citation] = None
    history: list[Citation]


def citation_badge(source: Source) -> CitationBadge:
    return CitationBadge(label=SOURCE_LABELS[source], short_label=SHORT_LABELS[source])


class DashboardSyncFacade:
    """Single-writer facade over one project's state.

    Args:
        state: Initial project state
        store: Remote persistence; ``sync`` is a no-op without one
        config: Application config (defaults to ``get_config()``)
        catalog: Pricing catalog (defaults to the packaged one)
        visual: Site photo analysis provider
        document: Blueprint extraction provider
        compliance: Regulatory check provider
    """

    def __init__(
        self,
        state: ProjectState,
        store: ProjectStore | None = None,
        config: AppConfig | None = None,
        catalog: PricingCatalog | None = None,
        visual: VisualAnalysisProvider | None = None,
        document: DocumentAnalysisProvider | None = None,
        compliance: ComplianceProvider | None = None,
    ):
        self._config = config or get_config()
        self._catalog = catalog or get_catalog()
        self._store = store
        self._visual = visual
        self._document = document
        self._compliance = compliance
        self._commit(self._reconciled(state))

    @classmethod
    async def load(
        cls,
        project_id: str,
        store: ProjectStore,
        **kwargs: Any,
    ) -> DashboardSyncFacade:
        """Load a project from the store (or start empty if unknown).

        Raises:
            PersistenceError: If the store cannot be read
        """
        try:
            record = await store.get(project_id)
        except PersistenceError:
            logger.error("Failed to load project %s", project_id, exc_info=True)
            raise
        except Exception as e:
            logger.error("Failed to load project %s", project_id, exc_info=True)
            raise PersistenceError(f"Could not load project {project_id}: {e}") from e

        state = record_to_state(record) if record else ProjectState.new(project_id)
        return cls(state, store=store, **kwargs)

    @property
    def project_id(self) -> str:
        return self._state.project_id

    @property
    def state(self) -> ProjectState:
        return self._state

    # Reads

    def get_financial_summary(self) -> FinancialSummary:
        state = self._state
        return compute_financial_summary(
            material_cost=state.ledger.totals().material_cost,
            labor_cost=state.labor_cost,
            other_cost=state.other_cost,
            tasks=state.tasks,
            tax_rate=self._config.finance.tax_rate,
            approved_budget=state.approved_budget,
            progress_basis=self._config.reconciliation.progress_basis,
            is_draft=state.is_draft,
            currency=self._config.finance.currency,
        )

    def get_materials_with_citations(self) -> list[MaterialWithCitation]:
        registry = self._state.registry
        return [
            MaterialWithCitation(
                material=item,
                badge=citation_badge(item.source),
                citation=registry.get(item.citation_id) if item.citation_id else None,
                history=list(registry.query(item.id)),
            )
            for item in self._state.ledger
        ]

    def get_health_score(self) -> HealthScore:
        state = self._state
        return calculate_health_score(
            state.registry,
            state.team_member_count,
            document_count=state.document_count,
            contract_count=state.contract_count,
        )

    def get_operational_truth(self) -> OperationalTruth:
        state = self._state
        photo, blueprint, compliance = self._live_sources()
        return build_operational_truth(
            photo=photo,
            blueprint=blueprint,
            compliance=compliance,
            materials=state.ledger.items,
            facts=state.facts,
            project_mode=state.mode,
            total_cost=self.get_financial_summary().grand_total,
            tolerance=self._config.reconciliation.conflict_tolerance,
        )

    def get_truth_matrix(self) -> TruthMatrix:
        state = self._state
        photo, blueprint, compliance = self._live_sources()
        return build_truth_matrix(
            self.get_operational_truth(),
            photo=photo,
            blueprint=blueprint,
            compliance=compliance,
            facts=state.facts,
            failures=state.failures,
            team_member_count=state.team_member_count,
            task_count=len(state.tasks),
            tolerance=self._config.reconciliation.conflict_tolerance,
        )

    def get_citation_summary(self) -> dict[str, int]:
        return self._state.registry.source_stats()

    def explain(self, subject_id: str) -> list[str]:
        return self._state.registry.query(subject_id).explain()

    # Writes

    def update_material(self, material_id: str, field_name: str, value: Any) -> MaterialLineItem | None:
        return self._apply(lambda s: s.ledger.update_material(material_id, field_name, value))

    def add_material(
        self, name: str, quantity: Any, unit: str, unit_price: Any = None
    ) -> MaterialLineItem:
        return self._apply(lambda s: s.ledger.add_material(name, quantity, unit, unit_price))

    def remove_material(self, material_id: str) -> MaterialLineItem | None:
        return self._apply(lambda s: s.ledger.remove_material(material_id))

    def reset_override(self, material_id: str) -> MaterialLineItem | None:
        return self._apply(lambda s: s.ledger.reset_override(material_id))

    def load_template(self, work_type: str | None = None) -> list[MaterialLineItem]:
        """Seed an empty ledger from the work type template."""

        def _load(state: ProjectState) -> list[MaterialLineItem]:
            if work_type:
                state.work_type = work_type.lower()
            area = self.get_operational_truth().confirmed_area
            items = map_work_type_to_items(state.work_type, area, self._catalog)
            return state.ledger.load_from_template(items)

        return self._apply(_load)

    def load_from_calculator(
        self, items: Iterable[MaterialLineItem | Mapping[str, Any]]
    ) -> list[MaterialLineItem]:
        batch = list(items)
        return self._apply(lambda s: s.ledger.load_from_calculator(batch))

    def record_fact(
        self, pillar_id: PillarId, value: Any, source: Source = Source.MANUAL_OVERRIDE
    ) -> Fact:
        return self._apply(lambda s: record_fact(s, pillar_id, value, source))

    def register_pillar_citation(
        self, cite_type: str, source: Source = Source.MANUAL_OVERRIDE, value: Any = None
    ) -> str:
        return self._apply(lambda s: s.registry.register_pillar_citation(cite_type, source, value))

    def set_tasks(self, tasks: Sequence[TaskRecord | Mapping[str, Any]]) -> None:
        parsed = [t if isinstance(t, TaskRecord) else TaskRecord.model_validate(t) for t in tasks]

        def _set(state: ProjectState) -> None:
            state.tasks = parsed

        self._apply(_set)

    def set_team_member_count(self, count: int) -> None:
        if count < 0:
            raise ValueError("team member count must be non-negative")

        def _set(state: ProjectState) -> None:
            state.team_member_count = count

        self._apply(_set)

    def set_costs(
        self,
        labor_cost: Decimal | None = None,
        other_cost: Decimal | None = None,
        approved_budget: Decimal | None = None,
    ) -> None:
        """Manually set direct costs; each change is cited."""
        changes = {
            "labor_cost": labor_cost,
            "other_cost": other_cost,
            "approved_budget": approved_budget,
        }
        for name, value in changes.items():
            if value is not None and Decimal(str(value)) < 0:
                raise ValueError(f"{name} must be non-negative")

        def _set(state: ProjectState) -> None:
            for name, value in changes.items():
                if value is None:
                    continue
                amount = Decimal(str(value))
                state.registry.record(
                    name, Source.MANUAL_OVERRIDE, name, getattr(state, name), amount
                )
                setattr(state, name, amount)
                if name == "labor_cost":
                    state.labor_backfilled = True

        self._apply(_set)

    # Async boundary

    async def run_analysis(
        self,
        images: Sequence[str] = (),
        document_text: str | None = None,
    ) -> ProjectState:
        """Re-run the AI providers and apply their output as one batch.

        Provider failures never raise; they mark the engine side ``missing``.
        """
        outcome = AnalysisOutcome()

        async def _call(name: str, factory: Callable[[], Any]) -> Mapping[str, Any] | None:
            try:
                return await factory()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("%s provider failed for %s", name, self.project_id, exc_info=True)
                outcome.failures.add(name)
                outcome.missing_information.append(f"{name}: provider failed")
                return None

        photo_payload = blueprint_payload = None
        calls = []
        if self._visual is not None and images:
            calls.append(_call(PHOTO, lambda: self._visual.analyze_images(images)))
        if self._document is not None and document_text:
            calls.append(_call(BLUEPRINT, lambda: self._document.extract(document_text)))
        results = await asyncio.gather(*calls)

        index = 0
        if self._visual is not None and images:
            photo_payload = results[index]
            index += 1
        if self._document is not None and document_text:
            blueprint_payload = results[index]

        # A malformed payload counts as a failed engine run
        if photo_payload is not None:
            outcome.photo = parse_photo_estimate(photo_payload, outcome.missing_information)
            if outcome.photo is None:
                outcome.failures.add(PHOTO)
        if blueprint_payload is not None:
            outcome.blueprint = parse_blueprint_analysis(
                blueprint_payload, outcome.missing_information
            )
            if outcome.blueprint is None:
                outcome.failures.add(BLUEPRINT)

        if self._compliance is not None:
            payload = self._compliance_payload(outcome)
            compliance_payload = await _call(COMPLIANCE, lambda: self._compliance.check(payload))
            if compliance_payload is not None:
                outcome.compliance = parse_compliance_result(
                    compliance_payload, outcome.missing_information
                )
                if outcome.compliance is None:
                    outcome.failures.add(COMPLIANCE)

        # Everything awaited; apply in one step
        self._commit(self._reconciled(apply_analysis(self._state, outcome)))
        return self._state

    async def finalize(self) -> None:
        """Lock the ledger as non-draft and push to the store.

        The lock stays in memory even if the push fails.

        Raises:
            PersistenceError: If the store rejects the update
        """
        self._state.is_draft = False
        await self.sync()

    async def sync(self) -> None:
        """Push the current state to the store.

        Raises:
            PersistenceError: If the store rejects the update
        """
        if self._store is None:
            logger.debug("No store configured for %s; skipping sync", self.project_id)
            return

        record = state_to_record(
            self._state,
            financial_summary=self.get_financial_summary().model_dump(mode="json"),
            health_score=self.get_health_score().score,
        )
        try:
            await self._store.update(self.project_id, record.model_dump(mode="json"))
        except PersistenceError:
            logger.error("Sync failed for project %s", self.project_id, exc_info=True)
            raise
        except Exception as e:
            logger.error("Sync failed for project %s", self.project_id, exc_info=True)
            raise PersistenceError(f"Could not sync project {self.project_id}: {e}") from e

    # Internals

    def _live_sources(
        self,
    ) -> tuple[PhotoEstimate | None, BlueprintAnalysis | None, ComplianceResult | None]:
        """Engine payloads, minus those whose last run failed."""
        state = self._state
        return (
            None if PHOTO in state.failures else state.photo,
            None if BLUEPRINT in state.failures else state.blueprint,
            None if COMPLIANCE in state.failures else state.compliance,
        )

    def _compliance_payload(self, outcome: AnalysisOutcome) -> dict[str, Any]:
        photo = outcome.photo or self._state.photo
        blueprint = outcome.blueprint or self._state.blueprint
        area = (blueprint.detected_area if blueprint else None) or (photo.area if photo else None)
        return {
            "project_id": self.project_id,
            "work_type": self._state.work_type,
            "area": str(area) if area is not None else None,
            "area_unit": photo.area_unit if photo else "sq ft",
            "materials": [m.name for m in photo.materials] if photo else [],
        }

    def _reconciled(self, state: ProjectState) -> ProjectState:
        return reconcile(
            state,
            self._catalog,
            backfill_labor=self._config.reconciliation.backfill_labor,
        )

    def _checked(self, state: ProjectState) -> ProjectState:
        state.registry.verify_subjects(
            state.known_subjects, strict=self._config.strict_integrity
        )
        return state

    def _apply(self, operation: Callable[[ProjectState], T]) -> T:
        draft = self._state.copy()
        result = operation(draft)
        self._commit(self._reconciled(draft))
        return result

    def _commit(self, state: ProjectState) -> None:
        """Swap in a reconciled draft once it passes checks and its citations are stored."""
        self._checked(state)
        state.registry.flush()
        self._state = state


class ProjectRegistry:
    """Arena of facades keyed by project id.

    Writes to one project are serialized through ``writer``; different
    projects never share state or locks.
    """

    def __init__(self, store: ProjectStore | None = None, **facade_kwargs: Any):
        self._store = store
        self._facade_kwargs = facade_kwargs
        self._facades: dict[str, DashboardSyncFacade] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, project_id: str) -> asyncio.Lock:
        return self._locks.setdefault(project_id, asyncio.Lock())

    async def _load(self, project_id: str) -> DashboardSyncFacade:
        facade = self._facades.get(project_id)
        if facade is None:
            if self._store is not None:
                facade = await DashboardSyncFacade.load(
                    project_id, self._store, **self._facade_kwargs
                )
            else:
                facade = DashboardSyncFacade(
                    ProjectState.new(project_id), **self._facade_kwargs
                )
            self._facades[project_id] = facade
        return facade

    async def get(self, project_id: str) -> DashboardSyncFacade:
        if project_id in self._facades:
            return self._facades[project_id]
        async with self._lock(project_id):
            return await self._load(project_id)

    @asynccontextmanager
    async def writer(self, project_id: str) -> AsyncIterator[DashboardSyncFacade]:
        async with self._lock(project_id):
            yield await self._load(project_id)

    def drop(self, project_id: str) -> None:
        self._facades.pop(project_id, None)
        self._locks.pop(project_id, None)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._facades
