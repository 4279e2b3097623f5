"""Operational Truth Pydantic models for type-safe project facts.

Facts and citations are immutable once written; every change produces a new
record rather than an in-place edit.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Source(str, Enum):
    """Origin of a project fact."""

    AI_PHOTO = "ai_photo"
    AI_BLUEPRINT = "ai_blueprint"
    AI_REGULATORY = "ai_regulatory"
    TEMPLATE_PRESET = "template_preset"
    CALCULATOR = "calculator"
    MANUAL_OVERRIDE = "manual_override"
    IMPORTED = "imported"


# Trust ordering between sources (higher wins)
SOURCE_PRIORITY: dict[Source, int] = {
    Source.MANUAL_OVERRIDE: 100,
    Source.AI_BLUEPRINT: 80,
    Source.AI_PHOTO: 70,
    Source.CALCULATOR: 60,
    Source.TEMPLATE_PRESET: 40,
    Source.IMPORTED: 30,
    Source.AI_REGULATORY: 20,
}

CITATION_PREFIXES: dict[Source, str] = {
    Source.AI_PHOTO: "P",
    Source.AI_BLUEPRINT: "B",
    Source.AI_REGULATORY: "REG",
    Source.TEMPLATE_PRESET: "TMPL",
    Source.CALCULATOR: "CALC",
    Source.MANUAL_OVERRIDE: "MO",
    Source.IMPORTED: "IMP",
}

SOURCE_LABELS: dict[Source, str] = {
    Source.AI_PHOTO: "AI Photo Analysis",
    Source.AI_BLUEPRINT: "Blueprint Extraction",
    Source.AI_REGULATORY: "Regulatory Check",
    Source.TEMPLATE_PRESET: "Template Preset",
    Source.CALCULATOR: "Calculator",
    Source.MANUAL_OVERRIDE: "Manual Override",
    Source.IMPORTED: "Imported",
}


class PillarId(str, Enum):
    """Fixed taxonomy of tracked project facts."""

    CONFIRMED_AREA = "confirmed_area"
    MATERIALS = "materials"
    BLUEPRINT = "blueprint"
    OBC_COMPLIANCE = "obc_compliance"
    CONFLICT_CHECK = "conflict_check"
    PROJECT_MODE = "project_mode"
    PROJECT_SIZE = "project_size"
    CONFIDENCE = "confidence"
    # Team-only
    TRADES = "trades"
    TEAM_MEMBERS = "team_members"
    TASKS = "tasks"
    CONTRACTS = "contracts"
    CLIENT_INFO = "client_info"
    SITE_MAP = "site_map"
    DOCUMENTS = "documents"
    WEATHER = "weather"


class ProjectMode(str, Enum):
    SOLO = "solo"
    TEAM = "team"


class NumberValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["number"] = "number"
    value: Decimal


class TextValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    value: str


class RecordValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["record"] = "record"
    value: dict[str, Any]


FactValue = Annotated[
    Union[NumberValue, TextValue, RecordValue], Field(discriminator="kind")
]


def to_fact_value(raw: Any) -> NumberValue | TextValue | RecordValue | None:
    """Wrap a raw python value in its tagged variant.

    Raises:
        TypeError: If the value has no variant (lists, arbitrary objects)
    """
    if raw is None:
        return None
    if isinstance(raw, (NumberValue, TextValue, RecordValue)):
        return raw
    if isinstance(raw, bool):
        return TextValue(value=str(raw).lower())
    if isinstance(raw, (int, float, Decimal)):
        return NumberValue(value=Decimal(str(raw)))
    if isinstance(raw, str):
        return TextValue(value=raw)
    if isinstance(raw, Mapping):
        return RecordValue(value=dict(raw))
    raise TypeError(f"Unsupported fact value type: {type(raw).__name__}")


def as_number(value: NumberValue | TextValue | RecordValue | None) -> Decimal | None:
    if isinstance(value, NumberValue):
        return value.value
    return None


def as_text(value: NumberValue | TextValue | RecordValue | None) -> str | None:
    if isinstance(value, TextValue):
        return value.value
    return None


class Fact(BaseModel):
    """Atomic piece of project knowledge attributed to one source."""

    model_config = ConfigDict(frozen=True)

    pillar_id: PillarId
    value: FactValue | None = None
    source: Source
    produced_at: datetime = Field(default_factory=utcnow)

    @property
    def confidence(self) -> Decimal:
        """Derived from source trust, never stored."""
        return Decimal(SOURCE_PRIORITY[self.source]) / Decimal(100)


class Citation(BaseModel):
    """Immutable provenance record of one fact-producing or fact-changing event."""

    model_config = ConfigDict(frozen=True)

    id: str
    subject_id: str
    source: Source
    field: str  # "added", "removed", "quantity", "unit_price", ...
    previous_value: FactValue | None = None
    new_value: FactValue | None = None
    cite_type: str | None = None  # e.g. "GFA_LOCK", consumed by health scoring
    timestamp: datetime = Field(default_factory=utcnow)


class MaterialLineItem(BaseModel):
    """One material/labor/other line in the project ledger."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"mat-{uuid4().hex[:12]}")
    name: str
    quantity: Decimal = Decimal("0")
    unit: str = "units"
    unit_price: Decimal = Decimal("0")
    source: Source
    origin_source: Source | None = None  # source before any manual override
    citation_id: str | None = None
    is_essential: bool = False
    waste_percentage: Decimal = Decimal("0")
    original_value: Decimal | None = None  # pre-waste / pre-edit quantity
    edited_at: datetime | None = None

    @field_validator("quantity", "unit_price")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("quantity and unit_price must be non-negative")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_price(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def origin(self) -> Source:
        return self.origin_source or self.source

    @property
    def is_priced(self) -> bool:
        return self.unit_price > 0 and self.total_price > 0


class TaskRecord(BaseModel):
    """Read-only task row from the task/team data source."""

    id: str
    title: str = ""
    status: str = "pending"
    total_cost: Decimal | None = None
    unit_price: Decimal | None = None
    quantity: Decimal | None = None

    @property
    def cost(self) -> Decimal:
        if self.total_cost:
            return self.total_cost
        return (self.unit_price or Decimal("0")) * (self.quantity or Decimal("1"))

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"
