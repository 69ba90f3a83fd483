"""
Pull a JSON object out of free-form model output.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def _first_balanced_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring, ignoring braces inside strings."""
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _parse_object(candidate: str | None) -> dict[str, Any] | None:
    if not candidate:
        return None
    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json(text: str | None) -> dict[str, Any] | None:
    """
    Extract the structured object from a model reply.

    Tries the interior of the first fenced block, then the first balanced
    ``{...}`` substring. Returns ``None`` when nothing parses; never raises.
    """
    if not text or not isinstance(text, str):
        return None

    fence = _FENCE.search(text)
    if fence:
        interior = fence.group(1).strip()
        parsed = _parse_object(interior) or _parse_object(_first_balanced_object(interior))
        if parsed is not None:
            return parsed
        logger.debug("Fenced block did not parse, scanning whole reply")

    parsed = _parse_object(_first_balanced_object(text))
    if parsed is None:
        logger.info("No structured data found in reply (%d chars)", len(text))
    return parsed
