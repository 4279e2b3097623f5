"""Payloads returned by the AI analysis providers and their parsers.

Providers are external collaborators; only their interfaces live here.
Parsers never raise: a malformed payload degrades to ``None`` and a line in
the caller's ``missing_information`` list.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

ComplianceStatus = Literal["pass", "warn", "fail"]


class DetectedMaterial(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="item")
    quantity: Decimal = Decimal("0")
    unit: str = "units"


class PhotoEstimate(BaseModel):
    """Visual analysis of site photos (``ai_photo``)."""

    model_config = ConfigDict(populate_by_name=True)

    area: Optional[Decimal] = None
    area_unit: str = Field(default="sq ft", alias="areaUnit")
    materials: list[DetectedMaterial] = Field(default_factory=list)
    confidence: Optional[str] = None
    has_blueprint: bool = Field(default=False, alias="hasBlueprint")


class BlueprintAnalysis(BaseModel):
    """Document/blueprint extraction (``ai_blueprint``)."""

    model_config = ConfigDict(populate_by_name=True)

    detected_area: Optional[Decimal] = Field(default=None, alias="detectedArea")
    dimensions: list[str] = Field(default_factory=list)
    analyzed: bool = True


class ComplianceCheck(BaseModel):
    section: str
    status: ComplianceStatus
    note: str = ""


class ComplianceResult(BaseModel):
    """Regulatory checklist (``ai_regulatory``); feeds the OBC pillar only."""

    model_config = ConfigDict(populate_by_name=True)

    checks: list[ComplianceCheck] = Field(default_factory=list)
    permit_required: bool = Field(default=False, alias="permitRequired")

    @property
    def status(self) -> str:
        if self.permit_required or any(c.status == "fail" for c in self.checks):
            return "permit_required"
        return "clear"

    @property
    def compliance_score(self) -> Optional[int]:
        """Percent of checks passing, or None without checks."""
        if not self.checks:
            return None
        passed = sum(1 for c in self.checks if c.status == "pass")
        return round(100 * passed / len(self.checks))


def _parse(
    model: type[BaseModel],
    label: str,
    payload: Mapping[str, Any] | None,
    missing_information: list[str],
) -> Any:
    if payload is None:
        missing_information.append(f"{label}: no data returned")
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning("Malformed %s payload: %s", label, e.errors()[:3])
        missing_information.append(f"{label}: malformed payload")
        return None


def parse_photo_estimate(
    payload: Mapping[str, Any] | None, missing_information: list[str]
) -> PhotoEstimate | None:
    return _parse(PhotoEstimate, "photo_estimate", payload, missing_information)


def parse_blueprint_analysis(
    payload: Mapping[str, Any] | None, missing_information: list[str]
) -> BlueprintAnalysis | None:
    return _parse(BlueprintAnalysis, "blueprint_analysis", payload, missing_information)


def parse_compliance_result(
    payload: Mapping[str, Any] | None, missing_information: list[str]
) -> ComplianceResult | None:
    return _parse(ComplianceResult, "compliance", payload, missing_information)


class VisualAnalysisProvider(abc.ABC):
    """Estimates area and materials from site photos."""

    @abc.abstractmethod
    async def analyze_images(self, images: Sequence[str]) -> Mapping[str, Any]:
        """Return ``{area, areaUnit, materials[], confidence}``."""


class DocumentAnalysisProvider(abc.ABC):
    """Extracts area and dimensions from blueprint text."""

    @abc.abstractmethod
    async def extract(self, text: str) -> Mapping[str, Any]:
        """Return ``{detectedArea, dimensions[]}``."""


class ComplianceProvider(abc.ABC):
    """Checks a project fact payload against the building code."""

    @abc.abstractmethod
    async def check(self, facts: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return ``{checks: [{section, status}], permitRequired}``."""
