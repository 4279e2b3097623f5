"""Persistence boundary for project state.

The store is treated as an eventually-consistent cache. Derived fields
written alongside the record (financial summary, health score) are for
external readers only; loading always re-derives them from the raw facts.
"""

from __future__ import annotations

import abc
import copy
import logging
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from optruth.citations.registry import CitationRegistry
from optruth.errors import PersistenceError
from optruth.ledger.materials import MaterialLedger
from optruth.models import Fact, MaterialLineItem, TaskRecord
from optruth.sync.state import ProjectState
from optruth.truth.sources import BlueprintAnalysis, ComplianceResult, PhotoEstimate

logger = logging.getLogger(__name__)


class ProjectRecord(BaseModel):
    """Serialized project as stored remotely."""

    project_id: str
    line_items: list[dict[str, Any]] = Field(default_factory=list)
    citations: list[dict[str, Any]] = Field(default_factory=list)
    facts: list[dict[str, Any]] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    team_member_count: int = 0
    document_count: int = 0
    contract_count: int = 0
    labor_cost: Decimal = Decimal("0")
    other_cost: Decimal = Decimal("0")
    labor_backfilled: bool = False
    approved_budget: Optional[Decimal] = None
    work_type: Optional[str] = None
    photo_estimate: Optional[dict[str, Any]] = None
    blueprint_analysis: Optional[dict[str, Any]] = None
    compliance: Optional[dict[str, Any]] = None
    is_draft: bool = True

    # Derived, written for readers; ignored on load
    financial_summary: Optional[dict[str, Any]] = None
    health_score: Optional[int] = None


def state_to_record(
    state: ProjectState,
    financial_summary: dict[str, Any] | None = None,
    health_score: int | None = None,
) -> ProjectRecord:
    return ProjectRecord(
        project_id=state.project_id,
        line_items=state.ledger.dump(),
        citations=state.registry.dump(),
        facts=[f.model_dump(mode="json") for f in state.facts],
        tasks=[t.model_dump(mode="json") for t in state.tasks],
        team_member_count=state.team_member_count,
        document_count=state.document_count,
        contract_count=state.contract_count,
        labor_cost=state.labor_cost,
        other_cost=state.other_cost,
        labor_backfilled=state.labor_backfilled,
        approved_budget=state.approved_budget,
        work_type=state.work_type,
        photo_estimate=state.photo.model_dump(mode="json") if state.photo else None,
        blueprint_analysis=state.blueprint.model_dump(mode="json") if state.blueprint else None,
        compliance=state.compliance.model_dump(mode="json") if state.compliance else None,
        is_draft=state.is_draft,
        financial_summary=financial_summary,
        health_score=health_score,
    )


def record_to_state(record: ProjectRecord) -> ProjectState:
    registry = CitationRegistry.load(record.citations)
    ledger = MaterialLedger(
        registry, (MaterialLineItem.model_validate(i) for i in record.line_items)
    )
    return ProjectState(
        project_id=record.project_id,
        ledger=ledger,
        facts=[Fact.model_validate(f) for f in record.facts],
        tasks=[TaskRecord.model_validate(t) for t in record.tasks],
        team_member_count=record.team_member_count,
        document_count=record.document_count,
        contract_count=record.contract_count,
        labor_cost=record.labor_cost,
        other_cost=record.other_cost,
        labor_backfilled=record.labor_backfilled,
        approved_budget=record.approved_budget,
        work_type=record.work_type,
        photo=PhotoEstimate.model_validate(record.photo_estimate) if record.photo_estimate else None,
        blueprint=(
            BlueprintAnalysis.model_validate(record.blueprint_analysis)
            if record.blueprint_analysis
            else None
        ),
        compliance=(
            ComplianceResult.model_validate(record.compliance) if record.compliance else None
        ),
        is_draft=record.is_draft,
    )


class ProjectStore(abc.ABC):
    """Remote project storage.

    Implementations raise ``PersistenceError`` on any storage failure.
    """

    @abc.abstractmethod
    async def get(self, project_id: str) -> ProjectRecord | None:
        """Fetch a project record, or None if the project is unknown."""

    @abc.abstractmethod
    async def update(self, project_id: str, partial: dict[str, Any]) -> None:
        """Merge ``partial`` into the stored record (creating it if needed)."""


class InMemoryProjectStore(ProjectStore):
    """Dict-backed store for tests and single-process use."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def get(self, project_id: str) -> ProjectRecord | None:
        data = self._records.get(project_id)
        if data is None:
            return None
        try:
            return ProjectRecord.model_validate(copy.deepcopy(data))
        except ValueError as e:
            raise PersistenceError(f"Corrupt record for project {project_id}: {e}") from e

    async def update(self, project_id: str, partial: dict[str, Any]) -> None:
        current = self._records.setdefault(project_id, {"project_id": project_id})
        current.update(copy.deepcopy(partial))
        logger.debug("Stored %d field(s) for project %s", len(partial), project_id)
