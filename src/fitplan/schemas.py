"""
API read models for stored plans.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ExerciseOut(_ApiModel):
    seq: int
    name: str
    sets: int | None = None
    reps_or_time: str | None = None
    rest_sec: int | None = None
    notes: str | None = None


class DayOut(_ApiModel):
    day_order: int
    focus: str
    warmup: str | None = None
    cooldown: str | None = None
    exercises: list[ExerciseOut] = Field(default_factory=list)


class PlanSummary(_ApiModel):
    id: int
    title: str
    goal: str
    days_per_week: int
    minutes_per_session: int
    equipment: str
    level: str
    created_at: datetime


class PlanOut(PlanSummary):
    add_cardio: bool = False
    add_core: bool = False
    add_mobility: bool = False
    days: list[DayOut] = Field(default_factory=list)
