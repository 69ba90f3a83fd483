"""
Stored workout plan routes.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from ...db import repo
from ...schemas import PlanOut, PlanSummary
from ...services.plan_service import PlanGenerationService
from ..auth import get_owner_id

router = APIRouter()

Owner = Annotated[str, Depends(get_owner_id)]
Preferences = Annotated[Any, Body()]


def get_plan_service(request: Request) -> PlanGenerationService:
    return request.app.state.plan_service


Service = Annotated[PlanGenerationService, Depends(get_plan_service)]


@router.post("/workout/plan", response_model=PlanOut, response_model_by_alias=True)
async def create_plan(owner_id: Owner, service: Service, prefs: Preferences = None) -> PlanOut:
    """Create and store the rule-based plan for the given preferences."""
    return await service.create_deterministic(owner_id, prefs)


@router.get("/workout/plan/latest", response_model=PlanOut | None, response_model_by_alias=True)
async def get_latest_plan(owner_id: Owner) -> PlanOut | None:
    return await repo.latest_plan(owner_id)


@router.get("/workout/plan/{plan_id}", response_model=PlanOut, response_model_by_alias=True)
async def get_plan(plan_id: int, owner_id: Owner) -> PlanOut:
    plan = await repo.fetch_plan(plan_id, owner_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="not found")
    return plan


@router.get("/workout/plans", response_model=list[PlanSummary], response_model_by_alias=True)
async def get_plans(owner_id: Owner) -> list[PlanSummary]:
    return await repo.list_plans(owner_id)


@router.delete("/workout/plan/{plan_id}")
async def remove_plan(plan_id: int, owner_id: Owner) -> dict[str, bool]:
    if not await repo.delete_plan(plan_id, owner_id):
        raise HTTPException(status_code=404, detail="not found")
    return {"ok": True}
