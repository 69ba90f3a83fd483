"""
Prompt text for plan generation and previews.
"""

from __future__ import annotations

import json
from typing import Any

from ..preferences import PlanPreferences

Message = dict[str, str]

COACH_SYSTEM_PROMPT = (
    "You are a fitness coach who gives safe, sustainable training advice. "
    "Be concise and concrete."
)

CONTINUE_INSTRUCTION = (
    "Continue exactly where your previous answer stopped, in the same format. "
    "Do not repeat anything you already wrote."
)

# Returned by the mock provider and on fail-open. Prose only: it must not
# contain a JSON object, so plan creation falls through to the rule-based plan.
CANNED_PREVIEW = (
    "Training preview (sample):\n"
    "• Split: Full-Body x3 (45 min per session)\n"
    "• Focus on basic technique + 5 min mobility per day\n"
    "• Day 1: Squat / Push / Pull + Plank\n"
    "• Day 2: Hinge / Lunge / Row + Dead Bug\n"
    "• Day 3: Push / Pull / Legs + 10 min cardio\n"
    "Tip: keep 1-3 reps in reserve on the last sets and sleep enough."
)

PLAN_SHAPE: dict[str, Any] = {
    "title": "short plan title",
    "days": [
        {
            "dayOrder": 1,
            "focus": "Full-Body|Upper|Lower|Push|Pull|Legs|Conditioning",
            "warmup": "string",
            "cooldown": "string",
            "exercises": [
                {"name": "string", "sets": 3, "repsOrTime": "8–12", "restSec": 60, "notes": "RIR 1–2"}
            ],
        }
    ],
}


def _constraints(prefs: PlanPreferences) -> str:
    lines = [
        f"Days per week: {prefs.days_per_week}",
        f"Minutes per session: {prefs.minutes_per_session}",
        f"Equipment: {prefs.equipment}",
        f"Level: {prefs.level}",
        f"Goal: {prefs.goal}",
    ]
    if prefs.add_cardio:
        lines.append("Add cardio")
    if prefs.add_core:
        lines.append("Add core work")
    if prefs.add_mobility:
        lines.append("Add mobility work")
    if prefs.intensity_mode:
        lines.append(f"Intensity mode: {prefs.intensity_mode} (adjust sets/reps/rest)")
    if prefs.injuries:
        lines.append(f"Injuries: {', '.join(sorted(prefs.injuries))}")
    if prefs.restricted_moves:
        lines.append(f"Moves to avoid: {', '.join(sorted(prefs.restricted_moves))}")
    return "\n".join(f"• {line}" for line in lines)


def build_plan_messages(prefs: PlanPreferences) -> list[Message]:
    user = (
        f"Requirements:\n{_constraints(prefs)}\n\n"
        "Task: build a weekly training plan. Return ONLY JSON, no other text, "
        f"shaped like:\n{json.dumps(PLAN_SHAPE, ensure_ascii=False, indent=2)}\n"
        f"Create exactly {prefs.days_per_week} days sized for about "
        f"{prefs.minutes_per_session} minutes each. Avoid moves that aggravate the "
        "listed injuries or appear in the avoid list; pick safe alternatives."
    )
    return [
        {"role": "system", "content": COACH_SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]


def build_preview_messages(prefs: PlanPreferences) -> list[Message]:
    user = (
        f"Requirements:\n{_constraints(prefs)}\n\n"
        "Task: write a short weekly plan preview. List each day (Day 1..), its focus "
        "and 3-5 main moves with brief rest/RIR guidance, then 1-2 lines of tips. "
        "Plain bullet points, no code or JSON."
    )
    return [
        {"role": "system", "content": COACH_SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]
