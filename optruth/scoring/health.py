"""Project health score.

A weighted percentage over the data-source pillars relevant to the project
mode. Solo projects (no team members) leave the team-only pillars out of
both the numerator and the denominator; those pillars are reported as
excluded, never as complete or missing.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Literal, NamedTuple

from pydantic import BaseModel, Field

from optruth.core.numbers import percent
from optruth.models import Citation, ProjectMode

HealthStatus = Literal["excellent", "good", "needs-attention", "critical"]


class DataSourcePillar(NamedTuple):
    """One scored data source.

    Lock pillars (``GFA_LOCK``, ``TEMPLATE_LOCK``) weigh 1.5. Client and site
    map weigh 0.5 rather than 1 so the team total comes to 15.5; the dashboard
    this scoring mirrors weighs both at 1 (team total 16.5).
    """

    id: str
    label: str
    cite_type: str
    solo_required: bool
    weight: Decimal


DATA_SOURCE_PILLARS: tuple[DataSourcePillar, ...] = (
    DataSourcePillar("work_type", "Work Type", "WORK_TYPE", True, Decimal("1")),
    DataSourcePillar("photos", "Site Photos", "SITE_PHOTO", True, Decimal("1")),
    DataSourcePillar("documents_core", "Blueprint", "BLUEPRINT_UPLOAD", True, Decimal("1")),
    DataSourcePillar("description", "Project Name", "PROJECT_NAME", True, Decimal("1")),
    DataSourcePillar("data_source", "Area (GFA)", "GFA_LOCK", True, Decimal("1.5")),
    DataSourcePillar("timeline", "Timeline", "TIMELINE", True, Decimal("1")),
    DataSourcePillar("mode", "Project DNA", "DNA_FINALIZED", True, Decimal("1")),
    DataSourcePillar("ai_analysis", "Template", "TEMPLATE_LOCK", True, Decimal("1.5")),
    # Team-only
    DataSourcePillar("trades", "Trades", "TRADE_SELECTION", False, Decimal("1")),
    DataSourcePillar("team_members", "Team", "TEAM_STRUCTURE", False, Decimal("1")),
    DataSourcePillar("tasks", "Tasks", "TASK", False, Decimal("1")),
    DataSourcePillar("contracts", "Contracts", "CONTRACT", False, Decimal("1")),
    DataSourcePillar("client_info", "Client", "CLIENT", False, Decimal("0.5")),
    DataSourcePillar("site_map", "Site Map", "LOCATION", False, Decimal("0.5")),
    DataSourcePillar("documents_team", "Documents", "DOCUMENT", False, Decimal("1")),
    DataSourcePillar("weather", "Weather", "WEATHER", False, Decimal("0.5")),
)

_STATUS_BANDS: tuple[tuple[int, HealthStatus, str], ...] = (
    (90, "excellent", "Excellent"),
    (70, "good", "Good"),
    (40, "needs-attention", "Needs Attention"),
)


class PillarResult(BaseModel):
    id: str
    label: str
    cite_type: str
    weight: Decimal
    completed: bool = False
    excluded: bool = False


class HealthScore(BaseModel):
    score: int
    completed_weight: Decimal
    total_weight: Decimal
    mode: ProjectMode
    pillars: list[PillarResult] = Field(default_factory=list)
    health_status: HealthStatus
    status_label: str

    @property
    def completed_pillars(self) -> list[str]:
        return [p.id for p in self.pillars if p.completed]

    @property
    def missing_pillars(self) -> list[str]:
        return [p.id for p in self.pillars if not p.completed and not p.excluded]

    @property
    def excluded_pillars(self) -> list[str]:
        return [p.id for p in self.pillars if p.excluded]

    @property
    def is_solo_mode(self) -> bool:
        return self.mode == ProjectMode.SOLO


def health_status(score: int) -> tuple[HealthStatus, str]:
    for floor, status, label in _STATUS_BANDS:
        if score >= floor:
            return status, label
    return "critical", "Critical"


def calculate_health_score(
    citations: Iterable[Citation],
    team_member_count: int,
    document_count: int = 0,
    contract_count: int = 0,
) -> HealthScore:
    """Score the citation set.

    Args:
        citations: All project citations; only ``cite_type`` matters
        team_member_count: 0 means solo mode
        document_count: Uploaded team documents (completes ``documents_team``)
        contract_count: Signed contracts (completes ``contracts``)
    """
    cite_types = {c.cite_type for c in citations if c.cite_type}
    mode = ProjectMode.SOLO if team_member_count == 0 else ProjectMode.TEAM

    results: list[PillarResult] = []
    total_weight = Decimal("0")
    completed_weight = Decimal("0")

    for pillar in DATA_SOURCE_PILLARS:
        if mode == ProjectMode.SOLO and not pillar.solo_required:
            results.append(
                PillarResult(
                    id=pillar.id,
                    label=pillar.label,
                    cite_type=pillar.cite_type,
                    weight=pillar.weight,
                    excluded=True,
                )
            )
            continue

        completed = pillar.cite_type in cite_types
        if pillar.id == "documents_team":
            completed = completed or document_count > 0
        elif pillar.id == "contracts":
            completed = completed or contract_count > 0

        total_weight += pillar.weight
        if completed:
            completed_weight += pillar.weight

        results.append(
            PillarResult(
                id=pillar.id,
                label=pillar.label,
                cite_type=pillar.cite_type,
                weight=pillar.weight,
                completed=completed,
            )
        )

    score = percent(completed_weight, total_weight)
    status, label = health_status(score)
    return HealthScore(
        score=score,
        completed_weight=completed_weight,
        total_weight=total_weight,
        mode=mode,
        pillars=results,
        health_status=status,
        status_label=label,
    )
