"""SQL-backed project store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from optruth.db.connection import get_session
from optruth.db.models import ProjectSummaryModel
from optruth.errors import PersistenceError
from optruth.sync.persistence import ProjectRecord, ProjectStore

logger = logging.getLogger(__name__)

SessionProvider = Callable[[], AbstractAsyncContextManager[AsyncSession]]

# ProjectRecord fields folded into the JSON columns
_FINANCIAL_FIELDS = (
    "labor_cost",
    "other_cost",
    "labor_backfilled",
    "approved_budget",
    "document_count",
    "contract_count",
)
_ANALYSIS_FIELDS = ("photo_estimate", "blueprint_analysis", "compliance")
_DIRECT_FIELDS = (
    "line_items",
    "citations",
    "facts",
    "tasks",
    "work_type",
    "team_member_count",
    "is_draft",
    "financial_summary",
    "health_score",
)


def _to_record(row: ProjectSummaryModel) -> ProjectRecord:
    data: dict[str, Any] = {"project_id": row.project_id}
    for name in _DIRECT_FIELDS:
        value = getattr(row, name)
        if value is not None:
            data[name] = value
    data.update(row.financial_inputs or {})
    data.update(row.analysis or {})
    return ProjectRecord.model_validate(data)


class SqlProjectStore(ProjectStore):
    """Store project records in the ``project_summaries`` table.

    Args:
        session_provider: Async context manager factory yielding a session
            that commits on exit (defaults to ``get_session``)
    """

    def __init__(self, session_provider: SessionProvider | None = None):
        self._session = session_provider or get_session

    async def get(self, project_id: str) -> ProjectRecord | None:
        try:
            async with self._session() as session:
                row = await session.get(ProjectSummaryModel, project_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error("Failed to read project %s", project_id, exc_info=True)
            raise PersistenceError(f"Could not read project {project_id}: {e}") from e

    async def update(self, project_id: str, partial: dict[str, Any]) -> None:
        try:
            async with self._session() as session:
                row = await session.get(ProjectSummaryModel, project_id)
                if row is None:
                    row = ProjectSummaryModel(
                        project_id=project_id,
                        line_items=[],
                        citations=[],
                        facts=[],
                        tasks=[],
                        financial_inputs={},
                        analysis={},
                    )
                    session.add(row)

                for name in _DIRECT_FIELDS:
                    if name in partial:
                        setattr(row, name, partial[name])

                # Reassign JSON dicts so the change is tracked
                financial = dict(row.financial_inputs or {})
                financial.update({k: partial[k] for k in _FINANCIAL_FIELDS if k in partial})
                row.financial_inputs = financial

                analysis = dict(row.analysis or {})
                analysis.update({k: partial[k] for k in _ANALYSIS_FIELDS if k in partial})
                row.analysis = analysis
        except SQLAlchemyError as e:
            logger.error("Failed to write project %s", project_id, exc_info=True)
            raise PersistenceError(f"Could not write project {project_id}: {e}") from e
