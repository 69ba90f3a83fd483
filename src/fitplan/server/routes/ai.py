"""
Generation-backed routes: generated plans, previews and model listing.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ...schemas import PlanOut
from ...services.providers import CALL_ERRORS, FinishReason
from .plan import Owner, Preferences, Service

router = APIRouter()


@router.post("/ai/workout-plan", response_model=PlanOut, response_model_by_alias=True)
async def create_ai_plan(owner_id: Owner, service: Service, prefs: Preferences = None) -> PlanOut:
    """Generate, normalize and store a plan. Falls back to the rule-based plan."""
    return await service.create(owner_id, prefs)


@router.post("/ai/workout-suggest")
async def suggest_plan(service: Service, prefs: Preferences = None) -> dict[str, Any]:
    """Short free-text preview of a plan; nothing is stored."""
    result = await service.preview(prefs)
    meta = result.meta
    text = result.text.strip()

    if result.blocked:
        return {"ok": False, "error": {"reason": "BLOCKED", "blockReason": meta.block_reason}}
    if meta.finish_reason is FinishReason.TRUNCATED:
        return {
            "ok": False,
            "error": {"reason": "NON_STOP_FINISH", "finish": meta.finish_reason.value},
            "partialText": text,
            "canContinue": True,
        }
    if meta.finish_reason is not FinishReason.COMPLETE:
        return {"ok": False, "error": {"reason": "NON_STOP_FINISH", "finish": meta.finish_reason.value}}
    if not text:
        return {"ok": False, "error": {"reason": "EMPTY_OUTPUT"}}
    return {"ok": True, "text": text, "provider": meta.provider_kind, "model": meta.model_id}


@router.get("/ai/models")
async def list_models(request: Request) -> Any:
    """Models visible to the configured provider."""
    provider = request.app.state.plan_service.provider
    try:
        models = await provider.list_models()
    except CALL_ERRORS as e:
        logging.warning("Listing %s models failed: %s", provider.kind, e)
        return JSONResponse({"error": "list models error"}, status_code=502)
    return {"provider": provider.kind, "count": len(models), "models": models}
