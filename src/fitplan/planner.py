"""
Rule-based weekly plan builder.

Pure functions over static tables: the same preferences always give the same
days. Used on its own when generation is off or unusable, and to fill gaps
in generated plans.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .preferences import PlanPreferences

DEFAULT_WARMUP = "5–8m warm-up + dynamic mobility"
DEFAULT_COOLDOWN = "3–5m cooldown & stretching"


@dataclass(frozen=True)
class PlannedExercise:
    seq: int
    name: str
    sets: int | None = None
    reps_or_time: str | None = None
    rest_sec: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PlannedDay:
    day_order: int
    focus: str
    warmup: str | None = None
    cooldown: str | None = None
    exercises: tuple[PlannedExercise, ...] = ()


# (days_per_week, build_muscle?) -> focus per day
SPLITS: dict[tuple[int, bool], tuple[str, ...]] = {
    (3, True): ("Full-Body", "Full-Body", "Full-Body"),
    (3, False): ("Full-Body", "Full-Body", "Full-Body"),
    (4, True): ("Upper", "Lower", "Upper", "Lower"),
    (4, False): ("Full-Body", "Push + Core", "Pull + Cardio", "Legs"),
    (5, True): ("Push", "Pull", "Legs", "Upper", "Lower"),
    (5, False): ("Full-Body", "Push", "Pull", "Legs", "Conditioning"),
}

# movement role -> (none, minimal, full)
MOVEMENTS: dict[str, tuple[str, str, str]] = {
    "squat": ("Bodyweight Squat", "Dumbbell Goblet Squat", "Barbell Back Squat"),
    "hinge": ("Hip Hinge (BW Good Morning)", "DB RDL", "Barbell Romanian Deadlift"),
    "push_h": ("Push-up", "DB Bench Press", "Barbell Bench Press"),
    "push_v": ("Pike Push-up", "DB Shoulder Press", "Barbell Overhead Press"),
    "pull_h": ("Inverted Row", "DB Row", "Seated/Barbell Row"),
    "pull_v": ("Doorway Row / Towel Pull", "Band Lat Pulldown", "Lat Pulldown / Pull-up"),
    "lunge": ("Reverse Lunge", "DB Reverse Lunge", "Smith/DB Lunge"),
    "calf": ("Calf Raise (BW)", "DB Calf Raise", "DB Calf Raise"),
    "fly": ("Push-up wide", "DB Fly", "Machine/Cable Fly"),
    "curl": ("Backpack Biceps Curl", "DB Biceps Curl", "DB Biceps Curl"),
    "triceps": ("Bench Dip", "DB Overhead Triceps Extension", "DB Overhead Triceps Extension"),
}
_TIER = {"none": 0, "minimal": 1, "full": 2}

# level -> (sets, rest seconds)
PRESCRIPTIONS: dict[str, tuple[int, int]] = {
    "beginner": (3, 60),
    "intermediate": (3, 75),
    "advanced": (4, 90),
}

# Main lifts per day template: (role, rep range)
TEMPLATES: dict[str, tuple[tuple[str, str], ...]] = {
    "full_body": (("squat", "8–12"), ("push_h", "8–12"), ("pull_h", "8–12"), ("hinge", "8–12")),
    "upper": (
        ("push_h", "8–12"),
        ("pull_h", "8–12"),
        ("push_v", "8–12"),
        ("pull_v", "8–12"),
        ("curl", "10–15"),
        ("triceps", "10–15"),
    ),
    "lower": (("squat", "6–10"), ("hinge", "8–12"), ("lunge", "10–12/side"), ("calf", "12–20")),
    "push": (("push_h", "6–10"), ("push_v", "8–12"), ("fly", "12–15"), ("triceps", "10–15")),
    "pull": (("pull_h", "6–10"), ("pull_v", "8–12"), ("curl", "10–15")),
    "legs": (("squat", "6–10"), ("lunge", "10–12/side"), ("hinge", "8–12"), ("calf", "12–20")),
    "conditioning": (),
}

# Which extras each template appends when the matching flag is on
_CORE_EXTRA = {"full_body": "plank", "upper": "dead_bug", "push": "plank", "pull": "dead_bug",
               "conditioning": "plank"}
_CARDIO_EXTRA = {"full_body": "easy pace 10m", "lower": "zone 2"}

PLANK = PlannedExercise(seq=0, name="Plank", sets=3, reps_or_time="30s", rest_sec=45)
DEAD_BUG = PlannedExercise(seq=0, name="Dead Bug", sets=3, reps_or_time="8–12", rest_sec=60)
MOBILITY = PlannedExercise(
    seq=0, name="Mobility Flow (hips / T-spine)", sets=1, reps_or_time="300s", rest_sec=0,
    notes="5m easy range of motion",
)


def template_for(focus: str) -> str:
    """Map a day focus label to its exercise template key."""
    f = focus.lower()
    if "full" in f:
        return "full_body"
    if "upper" in f:
        return "upper"
    if "lower" in f:
        return "lower"
    if "push" in f and "pull" not in f:
        return "push"
    if "pull" in f and "push" not in f:
        return "pull"
    if "leg" in f:
        return "legs"
    if "condition" in f or "cardio" in f:
        return "conditioning"
    return "full_body"


def movement(role: str, equipment: str) -> str:
    return MOVEMENTS[role][_TIER.get(equipment, 0)]


def _cardio(minutes: int, notes: str) -> PlannedExercise:
    return PlannedExercise(
        seq=0, name="Steady Jog / Bike / Row", sets=1, reps_or_time=f"{minutes * 60}s",
        rest_sec=0, notes=notes,
    )


def build_exercises(focus: str, prefs: PlanPreferences) -> tuple[PlannedExercise, ...]:
    """Build the numbered exercise list for one day."""
    key = template_for(focus)
    sets, rest = PRESCRIPTIONS[prefs.level]
    items: list[PlannedExercise] = [
        PlannedExercise(
            seq=0,
            name=movement(role, prefs.equipment),
            sets=sets,
            reps_or_time=reps,
            rest_sec=rest,
        )
        for role, reps in TEMPLATES[key]
    ]

    if key == "conditioning":
        if prefs.minutes_per_session >= 45:
            items.append(
                PlannedExercise(
                    seq=0, name="Intervals 30s on/30s off", sets=12, reps_or_time="30s",
                    rest_sec=30, notes="12x(30s on/30s off)",
                )
            )
        else:
            items.append(_cardio(20, "20m steady"))

    if prefs.add_core and key in _CORE_EXTRA:
        items.append(PLANK if _CORE_EXTRA[key] == "plank" else DEAD_BUG)
    if prefs.add_cardio and key in _CARDIO_EXTRA:
        items.append(_cardio(10, _CARDIO_EXTRA[key]))
    if prefs.add_mobility:
        items.append(MOBILITY)

    return tuple(replace(ex, seq=i) for i, ex in enumerate(items, start=1))


def build_plan_days(prefs: PlanPreferences) -> list[PlannedDay]:
    """Build the full deterministic week for the given preferences."""
    split = SPLITS[(prefs.days_per_week, prefs.goal == "build_muscle")]
    return [
        PlannedDay(
            day_order=order,
            focus=focus,
            warmup=DEFAULT_WARMUP,
            cooldown=DEFAULT_COOLDOWN,
            exercises=build_exercises(focus, prefs),
        )
        for order, focus in enumerate(split, start=1)
    ]
