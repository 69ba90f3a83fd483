import math

from fitplan.planner import DEFAULT_WARMUP, build_plan_days
from fitplan.preferences import validate_preferences
from fitplan.services.normalizer import extract_title, normalize_days


def _prefs(days=3):
    return validate_preferences(
        {
            "daysPerWeek": days,
            "minutesPerSession": 45,
            "equipment": "minimal",
            "level": "beginner",
            "goal": "general_fitness",
        }
    )


def test_none_gives_builder_plan():
    prefs = _prefs()
    assert normalize_days(None, prefs) == build_plan_days(prefs)
    assert normalize_days({"days": []}, prefs) == build_plan_days(prefs)
    assert normalize_days({"days": "nope"}, prefs) == build_plan_days(prefs)


def test_short_list_is_padded_keeping_prefix():
    prefs = _prefs(3)
    extracted = {
        "days": [
            {
                "dayOrder": 1,
                "focus": "Upper",
                "exercises": [{"name": "Push-up", "sets": 3, "repsOrTime": "10", "restSec": 60}],
            }
        ]
    }
    days = normalize_days(extracted, prefs)
    builder = build_plan_days(prefs)
    assert len(days) == 3
    assert days[0].focus == "Upper"
    assert days[0].exercises[0].name == "Push-up"
    assert days[0].warmup == DEFAULT_WARMUP
    assert days[1:] == builder[1:]


def test_long_list_is_sorted_cut_and_renumbered():
    ex = [{"name": "Squat"}]
    extracted = {
        "days": [
            {"day": "Day 4", "focus": "D", "exercises": ex},
            {"day": "Day 2", "focus": "B", "exercises": ex},
            {"dayOrder": 1, "focus": "A", "exercises": ex},
            {"day_order": 3, "focus": "C", "exercises": ex},
        ]
    }
    days = normalize_days(extracted, _prefs(3))
    assert [d.focus for d in days] == ["A", "B", "C"]
    assert [d.day_order for d in days] == [1, 2, 3]


def test_position_is_used_when_no_order_given():
    ex = [{"name": "Row"}]
    extracted = {"days": [{"focus": "X", "exercises": ex}, {"focus": "Y", "exercises": ex}]}
    days = normalize_days(extracted, _prefs(3))
    assert [d.focus for d in days[:2]] == ["X", "Y"]


def test_exercise_fields_are_coerced_and_truncated():
    extracted = {
        "days": [
            {
                "focus": "F" * 100,
                "exercises": [
                    {"name": "N" * 150, "sets": True, "reps": "R" * 40, "rest": -5, "notes": "n" * 300},
                    {"name": "Bike", "sets": "4", "timeSec": 90, "restSec": math.inf},
                    {"name": "", "sets": 3},
                    "garbage",
                    {"name": "Plank", "sets": 0, "restSec": 30.6},
                ],
            }
        ]
    }
    day = normalize_days(extracted, _prefs(3))[0]
    assert len(day.focus) == 64
    first, second, third = day.exercises
    assert len(first.name) == 100
    assert first.sets is None
    assert first.reps_or_time == "R" * 32
    assert first.rest_sec is None
    assert len(first.notes) == 255
    assert (second.sets, second.reps_or_time, second.rest_sec) == (4, "90s", None)
    assert (third.name, third.sets, third.rest_sec) == ("Plank", None, 31)
    assert [e.seq for e in day.exercises] == [1, 2, 3]


def test_days_without_named_exercises_are_dropped():
    extracted = {
        "days": [
            {"focus": "Empty", "exercises": [{"sets": 3}]},
            {"focus": "Real", "exercises": [{"name": "Lunge"}]},
            42,
        ]
    }
    days = normalize_days(extracted, _prefs(3))
    assert days[0].focus == "Real"
    assert len(days) == 3


def test_no_usable_days_gives_builder_plan():
    prefs = _prefs(4)
    extracted = {"days": [{"focus": "Empty", "exercises": []}]}
    assert normalize_days(extracted, prefs) == build_plan_days(prefs)


def test_extract_title():
    prefs = _prefs()
    assert extract_title({"title": "  My Plan  "}, prefs) == "My Plan"
    assert len(extract_title({"title": "T" * 300}, prefs)) == 120
    assert extract_title({"title": ""}, prefs) == "General Fitness • 3d x 45m (beginner)"
    assert extract_title(None, prefs).startswith("General Fitness")


def test_oversized_numbers_are_coerced_not_raised():
    from fitplan.services.extraction import extract_json

    huge = "9" * 400
    extracted = extract_json('{"days": [{"exercises": [{"name": "Squat", "sets": ' + huge + "}]}]}")
    day = normalize_days(extracted, _prefs(3))[0]
    assert day.exercises[0].name == "Squat"
    assert day.exercises[0].sets is None


def test_day_label_with_too_many_digits_uses_position():
    extracted = {
        "days": [
            {"day": "Day 3", "focus": "Third", "exercises": [{"name": "Row"}]},
            {"day": "Day " + "9" * 5000, "focus": "Long", "exercises": [{"name": "Squat"}]},
        ]
    }
    days = normalize_days(extracted, _prefs(3))
    assert [d.focus for d in days[:2]] == ["Long", "Third"]
