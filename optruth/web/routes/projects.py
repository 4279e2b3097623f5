"""Project dashboard routes for the Operational Truth API.

Reads return snapshots of the project's reconciled state. Writes go through
the project's writer lock and are pushed to the store afterwards; a failed
push answers 502 but the in-memory change stands.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from optruth.errors import PersistenceError
from optruth.finance.rollup import FinancialSummary
from optruth.scoring.health import HealthScore
from optruth.sync.facade import DashboardSyncFacade, MaterialWithCitation, ProjectRegistry
from optruth.truth.matrix import TruthMatrix
from optruth.web.dependencies import get_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["projects"])


class MaterialCreate(BaseModel):
    name: str = Field(min_length=1)
    quantity: Decimal = Field(ge=0)
    unit: str = "units"
    unit_price: Optional[Decimal] = Field(default=None, ge=0)


class MaterialUpdate(BaseModel):
    field: str
    value: Any


async def _facade(project_id: str, registry: ProjectRegistry) -> DashboardSyncFacade:
    try:
        return await registry.get(project_id)
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e


async def _push(facade: DashboardSyncFacade) -> None:
    try:
        await facade.sync()
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e


@router.get("/api/projects/{project_id}/financial-summary", response_model=FinancialSummary)
async def get_financial_summary(project_id: str, registry=Depends(get_registry)):
    facade = await _facade(project_id, registry)
    return facade.get_financial_summary()


@router.get(
    "/api/projects/{project_id}/materials", response_model=list[MaterialWithCitation]
)
async def get_materials(project_id: str, registry=Depends(get_registry)):
    facade = await _facade(project_id, registry)
    return facade.get_materials_with_citations()


@router.get("/api/projects/{project_id}/health-score", response_model=HealthScore)
async def get_health_score(project_id: str, registry=Depends(get_registry)):
    facade = await _facade(project_id, registry)
    return facade.get_health_score()


@router.get("/api/projects/{project_id}/truth-matrix", response_model=TruthMatrix)
async def get_truth_matrix(project_id: str, registry=Depends(get_registry)):
    facade = await _facade(project_id, registry)
    return facade.get_truth_matrix()


@router.post("/api/projects/{project_id}/materials", status_code=201)
async def add_material(
    project_id: str,
    payload: MaterialCreate,
    registry=Depends(get_registry),
):
    """Add a manual line item."""
    try:
        async with registry.writer(project_id) as facade:
            item = facade.add_material(
                payload.name, payload.quantity, payload.unit, payload.unit_price
            )
            await _push(facade)
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return {"success": True, "material": item.model_dump(mode="json")}


@router.patch("/api/projects/{project_id}/materials/{material_id}")
async def update_material(
    project_id: str,
    material_id: str,
    payload: MaterialUpdate,
    registry=Depends(get_registry),
):
    """Manually edit one field of a line item."""
    try:
        async with registry.writer(project_id) as facade:
            item = facade.update_material(material_id, payload.field, payload.value)
            if item is not None:
                await _push(facade)
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    if item is None:
        raise HTTPException(status_code=404, detail=f"Material {material_id} not found")
    return {"success": True, "material": item.model_dump(mode="json")}


@router.delete("/api/projects/{project_id}/materials/{material_id}")
async def remove_material(
    project_id: str,
    material_id: str,
    registry=Depends(get_registry),
):
    """Remove a line item; removing an absent item succeeds without changes."""
    try:
        async with registry.writer(project_id) as facade:
            item = facade.remove_material(material_id)
            if item is not None:
                await _push(facade)
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return {"success": True, "removed": item is not None}


@router.post("/api/projects/{project_id}/finalize")
async def finalize_project(project_id: str, registry=Depends(get_registry)):
    """Lock the ledger and push the final state."""
    try:
        async with registry.writer(project_id) as facade:
            await facade.finalize()
            summary = facade.get_financial_summary()
    except PersistenceError as e:
        logger.error("Finalize failed for project %s", project_id)
        raise HTTPException(status_code=502, detail=str(e)) from e

    return {
        "success": True,
        "project_id": project_id,
        "is_draft": summary.is_draft,
        "grand_total": str(summary.grand_total),
    }
