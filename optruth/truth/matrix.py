"""Truth matrix: per-pillar, per-engine verification and conflict table.

Two independent engines report on each pillar: the ``visual`` engine (site
photo analysis) and the ``document`` engine (blueprint extraction and the
regulatory check). Numeric disagreement beyond the tolerance marks both
sides ``conflict``. Manual overrides force both sides ``verified`` but the
underlying disagreement is kept; only its surfaced severity is suppressed.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, computed_field

from optruth.models import (
    SOURCE_LABELS,
    Fact,
    FactValue,
    PillarId,
    ProjectMode,
    Source,
    to_fact_value,
)
from optruth.truth.conflicts import DEFAULT_TOLERANCE, has_conflict
from optruth.truth.operational import OperationalTruth, latest_manual_fact
from optruth.truth.sources import BlueprintAnalysis, ComplianceResult, PhotoEstimate

logger = logging.getLogger(__name__)

VerificationStatus = Literal["verified", "conflict", "pending", "missing"]
Priority = Literal["critical", "high", "medium", "low"]

# Provider names reported in ``failures``
PHOTO = "photo"
BLUEPRINT = "blueprint"
COMPLIANCE = "compliance"

TEAM_PILLARS: tuple[tuple[PillarId, str, Priority], ...] = (
    (PillarId.TRADES, "Trades", "medium"),
    (PillarId.TEAM_MEMBERS, "Team Members", "medium"),
    (PillarId.TASKS, "Tasks", "medium"),
    (PillarId.CONTRACTS, "Contracts", "medium"),
    (PillarId.CLIENT_INFO, "Client Info", "medium"),
    (PillarId.SITE_MAP, "Site Map", "medium"),
    (PillarId.DOCUMENTS, "Documents", "medium"),
    (PillarId.WEATHER, "Weather", "low"),
)

MANUAL_LABEL = SOURCE_LABELS[Source.MANUAL_OVERRIDE]


class EngineVerification(BaseModel):
    status: VerificationStatus
    value: Optional[FactValue] = None
    source: str = ""

    @property
    def verified(self) -> bool:
        return self.status == "verified"


def _side(status: VerificationStatus, value: Any = None, source: str = "") -> EngineVerification:
    return EngineVerification(status=status, value=to_fact_value(value), source=source)


class TruthPillar(BaseModel):
    id: PillarId
    name: str
    visual: EngineVerification
    document: EngineVerification
    has_conflict: bool = False
    conflict_suppressed: bool = False
    override_source: Optional[Source] = None
    priority: Priority = "medium"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_blocking(self) -> bool:
        return self.has_conflict and not self.conflict_suppressed

    @property
    def is_verified(self) -> bool:
        return self.visual.verified or self.document.verified

    @property
    def is_missing(self) -> bool:
        return self.visual.status == "missing" and self.document.status == "missing"

    def overridden(self, value: Any, label: str = MANUAL_LABEL) -> TruthPillar:
        """Both sides verified by a manual override; conflicts are kept but muted."""
        fact_value = to_fact_value(value)
        return self.model_copy(
            update={
                "visual": EngineVerification(status="verified", value=fact_value, source=label),
                "document": EngineVerification(status="verified", value=fact_value, source=label),
                "conflict_suppressed": self.has_conflict,
                "override_source": Source.MANUAL_OVERRIDE,
            }
        )


class TruthMatrix(BaseModel):
    pillars: list[TruthPillar]
    conflicts_ignored: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def conflict_count(self) -> int:
        return sum(1 for p in self.pillars if p.is_blocking)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def suppressed_conflict_count(self) -> int:
        return sum(1 for p in self.pillars if p.has_conflict and p.conflict_suppressed)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def verified_count(self) -> int:
        return sum(1 for p in self.pillars if p.is_verified)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def missing_count(self) -> int:
        return sum(1 for p in self.pillars if p.is_missing)

    def get(self, pillar_id: PillarId) -> TruthPillar | None:
        for pillar in self.pillars:
            if pillar.id == pillar_id:
                return pillar
        return None


def _area_pillar(
    photo: PhotoEstimate | None,
    blueprint: BlueprintAnalysis | None,
    failures: Collection[str],
    tolerance: Decimal,
) -> TruthPillar:
    photo_area = photo.area if photo and photo.area and photo.area > 0 else None
    blueprint_area = (
        blueprint.detected_area
        if blueprint and blueprint.detected_area and blueprint.detected_area > 0
        else None
    )

    visual = _side(
        "verified" if photo_area and PHOTO not in failures else "missing",
        photo_area,
        "Photo AI Analysis",
    )
    document = _side(
        "verified" if blueprint_area and BLUEPRINT not in failures else "missing",
        blueprint_area,
        "Blueprint Analysis",
    )

    conflict = visual.verified and document.verified and has_conflict(
        photo_area, blueprint_area, tolerance
    )
    if conflict:
        visual = visual.model_copy(update={"status": "conflict"})
        document = document.model_copy(update={"status": "conflict"})

    return TruthPillar(
        id=PillarId.CONFIRMED_AREA,
        name="Confirmed Area",
        visual=visual,
        document=document,
        has_conflict=conflict,
        priority="critical",
    )


def _materials_pillar(photo: PhotoEstimate | None, failures: Collection[str]) -> TruthPillar:
    count = len(photo.materials) if photo and PHOTO not in failures else 0
    return TruthPillar(
        id=PillarId.MATERIALS,
        name="Materials",
        visual=_side("verified" if count else "missing", count or None, "Visual Material Detection"),
        document=_side("pending", None, "Material Verification"),
        priority="critical",
    )


def _blueprint_pillar(truth: OperationalTruth, failures: Collection[str]) -> TruthPillar:
    status = truth.blueprint_status
    visual_status: VerificationStatus = (
        "verified" if status == "analyzed" else "missing" if status == "none" else "pending"
    )
    if BLUEPRINT in failures:
        document_status: VerificationStatus = "missing"
    else:
        document_status = "verified" if status == "analyzed" else "pending"

    return TruthPillar(
        id=PillarId.BLUEPRINT,
        name="Blueprint",
        visual=_side(visual_status, status, "Document Analysis"),
        document=_side(document_status, None, "Blueprint OCR"),
        priority="high",
    )


def _compliance_pillar(
    truth: OperationalTruth,
    compliance: ComplianceResult | None,
    failures: Collection[str],
) -> TruthPillar:
    if COMPLIANCE in failures:
        document_status: VerificationStatus = "missing"
    elif truth.obc_status in ("clear", "permit_required"):
        document_status = "verified"
    else:
        document_status = "pending"

    score = compliance.compliance_score if compliance is not None else None
    return TruthPillar(
        id=PillarId.OBC_COMPLIANCE,
        name="OBC Status",
        visual=_side("pending", None, "Visual Inspection"),
        document=_side(document_status, score, "Ontario Building Code Check"),
        priority="critical",
    )


def _conflict_pillar(truth: OperationalTruth) -> TruthPillar:
    status = truth.conflict_status
    if status == "aligned":
        side: VerificationStatus = "verified"
    elif status == "conflict_detected":
        side = "conflict"
    else:
        side = "pending"
    value = None if side == "pending" else status

    return TruthPillar(
        id=PillarId.CONFLICT_CHECK,
        name="Conflict Check",
        visual=_side(side, value, "Site Photo vs Blueprint"),
        document=_side(side, value, "Cross-Reference Validation"),
        has_conflict=status == "conflict_detected",
        priority="high",
    )


def _static_pillar(pillar_id: PillarId, name: str, value: str, visual_source: str, document_source: str) -> TruthPillar:
    return TruthPillar(
        id=pillar_id,
        name=name,
        visual=_side("verified", value, visual_source),
        document=_side("verified", value, document_source),
        priority="medium",
    )


def _confidence_pillar(truth: OperationalTruth, photo: PhotoEstimate | None) -> TruthPillar:
    level = truth.confidence_level
    status: VerificationStatus = "verified" if level in ("high", "medium") else "pending"
    raw = (photo.confidence or "").lower() if photo else ""
    return TruthPillar(
        id=PillarId.CONFIDENCE,
        name="AI Confidence",
        visual=_side(status, raw or level, "Visual Engine"),
        document=_side(status, level, "Document Engine"),
        priority="low",
    )


def _team_pillars(
    facts: Sequence[Fact],
    team_member_count: int,
    task_count: int,
) -> list[TruthPillar]:
    pillars = []
    for pillar_id, name, priority in TEAM_PILLARS:
        latest = None
        for fact in facts:
            if fact.pillar_id == pillar_id:
                latest = fact
        if pillar_id == PillarId.TEAM_MEMBERS and team_member_count > 0:
            value: Any = team_member_count
            label = "Team Roster"
        elif pillar_id == PillarId.TASKS and task_count > 0:
            value = task_count
            label = "Task List"
        elif latest is not None:
            value = latest.value
            label = SOURCE_LABELS[latest.source]
        else:
            pillars.append(
                TruthPillar(
                    id=pillar_id,
                    name=name,
                    visual=_side("missing"),
                    document=_side("missing"),
                    priority=priority,
                )
            )
            continue

        pillars.append(
            TruthPillar(
                id=pillar_id,
                name=name,
                visual=_side("verified", value, label),
                document=_side("verified", value, label),
                priority=priority,
            )
        )
    return pillars


def build_truth_matrix(
    truth: OperationalTruth,
    photo: PhotoEstimate | None = None,
    blueprint: BlueprintAnalysis | None = None,
    compliance: ComplianceResult | None = None,
    facts: Sequence[Fact] = (),
    failures: Collection[str] = (),
    team_member_count: int = 0,
    task_count: int = 0,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> TruthMatrix:
    """Build the ordered pillar table.

    Args:
        truth: Operational summary of the same inputs
        photo: Visual engine output (None when unavailable)
        blueprint: Document engine area extraction
        compliance: Document engine regulatory checklist
        facts: Project facts; manual ones override pillars
        failures: Providers that failed ("photo", "blueprint", "compliance")
        team_member_count: Team size; team-only pillars appear when > 0
        task_count: Number of project tasks
        tolerance: Relative numeric disagreement allowed between engines
    """
    pillars = [
        _area_pillar(photo, blueprint, failures, tolerance),
        _materials_pillar(photo, failures),
        _blueprint_pillar(truth, failures),
        _compliance_pillar(truth, compliance, failures),
        _conflict_pillar(truth),
        _static_pillar(
            PillarId.PROJECT_MODE, "Project Mode", truth.project_mode.value,
            "Workflow Detection", "Team Analysis",
        ),
        _static_pillar(
            PillarId.PROJECT_SIZE, "Project Size", truth.project_size,
            "Area Calculation", "Scope Analysis",
        ),
        _confidence_pillar(truth, photo),
    ]
    if truth.project_mode == ProjectMode.TEAM or team_member_count > 0:
        pillars.extend(_team_pillars(facts, team_member_count, task_count))

    conflicts_ignored = False
    for index, pillar in enumerate(pillars):
        manual = latest_manual_fact(facts, pillar.id)
        if manual is None:
            continue
        if pillar.id == PillarId.CONFLICT_CHECK:
            conflicts_ignored = True
            pillars[index] = pillar.overridden("Ignored")
        else:
            pillars[index] = pillar.overridden(manual.value)

    if conflicts_ignored:
        for index, pillar in enumerate(pillars):
            if pillar.has_conflict and not pillar.conflict_suppressed:
                pillars[index] = pillar.overridden(pillar.visual.value)
        logger.debug("Conflicts ignored by manual override")

    return TruthMatrix(pillars=pillars, conflicts_ignored=conflicts_ignored)
