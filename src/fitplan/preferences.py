"""
Plan preferences and the validation gate in front of plan generation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

DAYS_PER_WEEK = (3, 4, 5)
MINUTES_PER_SESSION = (30, 45, 60)
EQUIPMENT = ("none", "minimal", "full")
LEVELS = ("beginner", "intermediate", "advanced")
GOALS = ("lose_weight", "build_muscle", "maintain_shape", "general_fitness")

GOAL_NAMES = {
    "lose_weight": "Weight Loss",
    "build_muscle": "Muscle Gain",
    "maintain_shape": "Maintain Shape",
    "general_fitness": "General Fitness",
}


class PreferenceError(ValueError):
    """Raised when plan preferences are missing or outside their allowed values."""


@dataclass(frozen=True)
class PlanPreferences:
    days_per_week: int
    minutes_per_session: int
    equipment: str
    level: str
    goal: str
    add_cardio: bool = False
    add_core: bool = False
    add_mobility: bool = False
    injuries: frozenset[str] = field(default_factory=frozenset)
    restricted_moves: frozenset[str] = field(default_factory=frozenset)
    intensity_mode: str | None = None


def _choice(raw: Mapping[str, Any], key: str, allowed: tuple[Any, ...]) -> Any:
    value = raw.get(key)
    # exact type match: True must not pass for 1, nor 3.0 for 3
    if type(value) is not type(allowed[0]) or value not in allowed:
        options = "|".join(str(a) for a in allowed)
        raise PreferenceError(f"{key} must be one of {options}")
    return value


def _flag(raw: Mapping[str, Any], key: str) -> bool:
    value = raw.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise PreferenceError(f"{key} must be true or false")
    return value


def _string_set(raw: Mapping[str, Any], key: str) -> frozenset[str]:
    value = raw.get(key)
    if value is None:
        return frozenset()
    if not isinstance(value, list | tuple | set | frozenset) or not all(
        isinstance(v, str) for v in value
    ):
        raise PreferenceError(f"{key} must be a list of strings")
    return frozenset(v.strip() for v in value if v.strip())


def validate_preferences(raw: Mapping[str, Any] | None) -> PlanPreferences:
    """
    Validate a raw (JSON-decoded) preference payload.

    Enumerated fields are checked against their closed sets exactly; no
    coercion happens here, so ``"3"`` is rejected for ``daysPerWeek``.

    Raises:
        PreferenceError: naming the first offending field.
    """
    if not isinstance(raw, Mapping):
        raise PreferenceError("preferences must be a JSON object")

    intensity = raw.get("intensityMode")
    if intensity is not None and not isinstance(intensity, str):
        raise PreferenceError("intensityMode must be a string")

    return PlanPreferences(
        days_per_week=_choice(raw, "daysPerWeek", DAYS_PER_WEEK),
        minutes_per_session=_choice(raw, "minutesPerSession", MINUTES_PER_SESSION),
        equipment=_choice(raw, "equipment", EQUIPMENT),
        level=_choice(raw, "level", LEVELS),
        goal=_choice(raw, "goal", GOALS),
        add_cardio=_flag(raw, "addCardio"),
        add_core=_flag(raw, "addCore"),
        add_mobility=_flag(raw, "addMobility"),
        injuries=_string_set(raw, "injuries"),
        restricted_moves=_string_set(raw, "restrictedMoves"),
        intensity_mode=(intensity.strip() or None) if intensity else None,
    )


def derive_title(prefs: PlanPreferences) -> str:
    """Default plan title, e.g. ``General Fitness • 3d x 45m (beginner)``."""
    goal_name = GOAL_NAMES.get(prefs.goal, GOAL_NAMES["general_fitness"])
    return f"{goal_name} • {prefs.days_per_week}d x {prefs.minutes_per_session}m ({prefs.level})"
