"""
Service for generating and storing workout plans.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..config import SETTINGS
from ..db import repo
from ..planner import build_plan_days
from ..preferences import derive_title, validate_preferences
from ..schemas import PlanOut
from .extraction import extract_json
from .normalizer import extract_title, normalize_days
from .prompts import build_plan_messages, build_preview_messages
from .providers import GenerationProvider, GenerationResult

logger = logging.getLogger(__name__)


class PlanGenerationService:
    """
    Validate preferences, generate, normalize and persist a weekly plan.

    Only invalid preferences, fail-closed provider exhaustion and store
    failures reach the caller; everything else degrades to the rule-based
    plan.
    """

    def __init__(self, provider: GenerationProvider, temperature: float | None = None) -> None:
        self.provider = provider
        self.temperature = SETTINGS.AI_TEMPERATURE if temperature is None else temperature

    async def create(self, owner_id: str, raw: Mapping[str, Any] | None) -> PlanOut:
        """
        Run the generation pipeline and store the result.

        Raises:
            PreferenceError: invalid preferences, nothing else attempted.
            ProviderExhausted: generation failed and the provider is fail-closed.
            PersistenceError: the plan could not be stored.
        """
        prefs = validate_preferences(raw)

        result = await self.provider.generate(build_plan_messages(prefs), self.temperature)
        text: str | None = result.text
        if result.blocked:
            logger.warning(
                "Plan generation blocked (%s), using deterministic plan", result.meta.block_reason
            )
            text = None
        else:
            logger.info(
                "Generated plan text via %s/%s (finish=%s, continued=%d)",
                result.meta.provider_kind,
                result.meta.model_id,
                result.meta.finish_reason.value,
                result.meta.continued_rounds,
            )

        extracted = extract_json(text)
        days = normalize_days(extracted, prefs)
        title = extract_title(extracted, prefs)
        return await repo.persist_plan(owner_id, title, prefs, days)

    async def create_deterministic(self, owner_id: str, raw: Mapping[str, Any] | None) -> PlanOut:
        """Store the rule-based plan without calling the provider."""
        prefs = validate_preferences(raw)
        return await repo.persist_plan(owner_id, derive_title(prefs), prefs, build_plan_days(prefs))

    async def preview(self, raw: Mapping[str, Any] | None) -> GenerationResult:
        """Free-text plan preview. Not stored; finish and block state are left to the caller."""
        prefs = validate_preferences(raw)
        return await self.provider.generate(build_preview_messages(prefs), self.temperature)
