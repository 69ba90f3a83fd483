import pytest

from fitplan.preferences import PreferenceError, derive_title, validate_preferences

BASE = {
    "daysPerWeek": 3,
    "minutesPerSession": 45,
    "equipment": "minimal",
    "level": "beginner",
    "goal": "general_fitness",
}


def test_valid_preferences_parse_camel_case():
    prefs = validate_preferences(
        {
            **BASE,
            "addCore": True,
            "injuries": ["knee", " "],
            "restrictedMoves": ["Deadlift"],
            "intensityMode": " hard ",
        }
    )
    assert prefs.days_per_week == 3
    assert prefs.add_core is True
    assert prefs.add_cardio is False
    assert prefs.injuries == frozenset({"knee"})
    assert prefs.restricted_moves == frozenset({"Deadlift"})
    assert prefs.intensity_mode == "hard"


@pytest.mark.parametrize(
    "key,value",
    [
        ("daysPerWeek", 6),
        ("daysPerWeek", "3"),
        ("daysPerWeek", True),
        ("daysPerWeek", 3.0),
        ("minutesPerSession", 50),
        ("equipment", "fullGym"),
        ("level", "expert"),
        ("goal", "get_big"),
    ],
)
def test_out_of_set_values_are_rejected(key, value):
    with pytest.raises(PreferenceError) as exc:
        validate_preferences({**BASE, key: value})
    assert key in str(exc.value)


def test_missing_field_is_rejected():
    raw = dict(BASE)
    del raw["goal"]
    with pytest.raises(PreferenceError, match="goal"):
        validate_preferences(raw)


def test_flags_must_be_booleans():
    with pytest.raises(PreferenceError, match="addCardio"):
        validate_preferences({**BASE, "addCardio": "yes"})


def test_injuries_must_be_strings():
    with pytest.raises(PreferenceError, match="injuries"):
        validate_preferences({**BASE, "injuries": [1, 2]})


def test_non_object_payload_is_rejected():
    with pytest.raises(PreferenceError):
        validate_preferences(None)
    with pytest.raises(PreferenceError):
        validate_preferences([BASE])  # type: ignore[arg-type]


def test_derive_title():
    prefs = validate_preferences(BASE)
    assert derive_title(prefs) == "General Fitness • 3d x 45m (beginner)"
