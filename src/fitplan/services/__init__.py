"""
Services layer for plan generation.
"""

from .plan_service import PlanGenerationService
from .providers import GenerationProvider, build_provider

__all__ = ["GenerationProvider", "PlanGenerationService", "build_provider"]
