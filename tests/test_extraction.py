import pytest

from fitplan.services.extraction import extract_json


def test_fenced_json_block():
    text = 'Here you go:\n```json\n{"title": "A", "days": []}\n```\nEnjoy!'
    assert extract_json(text) == {"title": "A", "days": []}


def test_untagged_fence():
    assert extract_json('```\n{"a": 1}\n```') == {"a": 1}


def test_first_balanced_object_without_fence():
    text = 'Sure! {"a": {"b": 2}} and then {"c": 3}'
    assert extract_json(text) == {"a": {"b": 2}}


def test_braces_inside_strings_are_ignored():
    text = 'prefix {"note": "use {curly} braces \\"quoted\\" }", "n": 1} suffix'
    assert extract_json(text) == {"note": 'use {curly} braces "quoted" }', "n": 1}


def test_broken_fence_falls_back_to_scan():
    text = '```json\nnot json at all\n``` but later {"ok": true}'
    assert extract_json(text) == {"ok": True}


@pytest.mark.parametrize(
    "text",
    [
        None,
        "",
        "just prose, no data",
        "{ unbalanced",
        '{"a": }',
        "[1, 2, 3]",
        '```json\n["list"]\n```',
        "{" * 5000,
    ],
)
def test_unusable_input_returns_none(text):
    assert extract_json(text) is None
