"""
Reconcile untrusted generated plan data with the canonical day/exercise schema.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from ..planner import DEFAULT_COOLDOWN, DEFAULT_WARMUP, PlannedDay, PlannedExercise, build_plan_days
from ..preferences import PlanPreferences, derive_title

logger = logging.getLogger(__name__)

TITLE_MAX = 120
FOCUS_MAX = 64
WARMUP_MAX = 255
NAME_MAX = 100
REPS_MAX = 32
NOTES_MAX = 255
SMALLINT_MAX = 32767

_TRAILING_DIGITS = re.compile(r"(\d+)\D*$")


def _clip(value: Any, limit: int) -> str:
    s = "" if value is None else str(value).strip()
    return s[:limit]


def _optional_clip(value: Any, limit: int) -> str | None:
    return _clip(value, limit) or None


def _finite_int(value: Any) -> int | None:
    """Coerce to a finite int, or None. Booleans and junk strings give None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return int(round(number))


def _sets(value: Any) -> int | None:
    n = _finite_int(value)
    return n if n is not None and 1 <= n <= SMALLINT_MAX else None


def _rest(value: Any) -> int | None:
    n = _finite_int(value)
    return n if n is not None and 0 <= n <= SMALLINT_MAX else None


def _reps_or_time(raw: Mapping[str, Any]) -> str | None:
    for key in ("repsOrTime", "reps_or_time", "reps"):
        if raw.get(key) is not None:
            return _optional_clip(raw[key], REPS_MAX)
    seconds = _finite_int(raw.get("timeSec"))
    return f"{seconds}s" if seconds is not None else None


def _day_order(raw: Mapping[str, Any], position: int) -> int:
    for key in ("dayOrder", "day_order"):
        n = _finite_int(raw.get(key))
        if n is not None:
            return n
    label = raw.get("day")
    if isinstance(label, str):
        m = _TRAILING_DIGITS.search(label)
        if m and (n := _finite_int(m.group(1))) is not None:
            return n
    elif (n := _finite_int(label)) is not None:
        return n
    return position


def _normalize_exercises(items: Any) -> tuple[PlannedExercise, ...]:
    if not isinstance(items, list):
        return ()
    out: list[PlannedExercise] = []
    for ex in items:
        if not isinstance(ex, Mapping):
            continue
        name = _clip(ex.get("name"), NAME_MAX)
        if not name:
            continue
        rest = ex.get("restSec", ex.get("rest_sec"))
        if rest is None:
            rest = ex.get("rest")
        out.append(
            PlannedExercise(
                seq=len(out) + 1,
                name=name,
                sets=_sets(ex.get("sets")),
                reps_or_time=_reps_or_time(ex),
                rest_sec=_rest(rest),
                notes=_optional_clip(ex.get("notes"), NOTES_MAX),
            )
        )
    return tuple(out)


def _normalize_day(raw: Any, position: int) -> tuple[int, PlannedDay] | None:
    if not isinstance(raw, Mapping):
        return None
    exercises = _normalize_exercises(raw.get("exercises"))
    if not exercises:
        return None
    order = _day_order(raw, position)
    day = PlannedDay(
        day_order=order,
        focus=_clip(raw.get("focus"), FOCUS_MAX) or "Full-Body",
        warmup=_optional_clip(raw.get("warmup"), WARMUP_MAX) or DEFAULT_WARMUP,
        cooldown=_optional_clip(raw.get("cooldown"), WARMUP_MAX) or DEFAULT_COOLDOWN,
        exercises=exercises,
    )
    return order, day


def normalize_days(extracted: Any, prefs: PlanPreferences) -> list[PlannedDay]:
    """
    Turn an extracted plan object into exactly ``prefs.days_per_week`` days.

    Fields are truncated and coerced rather than rejected. Days that are not
    objects or that keep no named exercise are dropped; missing slots are
    filled from the deterministic builder, keeping the generated prefix as is.
    """
    candidates = extracted.get("days") if isinstance(extracted, Mapping) else None
    if not isinstance(candidates, list) or not candidates:
        logger.info("No generated days to normalize, using deterministic plan")
        return build_plan_days(prefs)

    usable: list[tuple[int, PlannedDay]] = []
    for position, raw in enumerate(candidates, start=1):
        normalized = _normalize_day(raw, position)
        if normalized is None:
            logger.info("Dropping unusable generated day at position %d", position)
            continue
        usable.append(normalized)

    if not usable:
        logger.warning("Generated plan had no usable days, using deterministic plan")
        return build_plan_days(prefs)

    usable.sort(key=lambda item: item[0])  # stable
    target = prefs.days_per_week
    days = [replace(day, day_order=i) for i, (_, day) in enumerate(usable[:target], start=1)]

    if len(days) < target:
        fill = build_plan_days(prefs)
        logger.info("Filling days %d..%d from deterministic plan", len(days) + 1, target)
        days.extend(fill[len(days) : target])

    return days


def extract_title(extracted: Any, prefs: PlanPreferences) -> str:
    """Generated title when present, else the derived default."""
    if isinstance(extracted, Mapping):
        title = _clip(extracted.get("title"), TITLE_MAX)
        if title:
            return title
    return derive_title(prefs)
