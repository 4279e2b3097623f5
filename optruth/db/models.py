"""SQLAlchemy async database models for Operational Truth.

One row per project. Ledger items, citations and facts are stored as JSON
documents; derived summaries are written for readers but never trusted on
load.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ProjectSummaryModel(Base):
    """Persisted project state."""

    __tablename__ = "project_summaries"

    project_id: Mapped[str] = mapped_column(Text, primary_key=True)

    # Raw facts
    line_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    citations: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    facts: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    tasks: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    financial_inputs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    analysis: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    work_type: Mapped[str | None] = mapped_column(Text)
    team_member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_draft: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Derived (informational)
    financial_summary: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    health_score: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ProjectSummary {self.project_id} items={len(self.line_items or [])}>"
