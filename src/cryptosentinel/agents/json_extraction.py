"""
JSON extraction from free-form model output.

Strategies, tried in order until one yields a JSON object:

1. Direct parse of the whole text
2. The first fenced code block (```json ... ``` or bare ```)
3. The first balanced ``{...}`` span, respecting string literals
4. ``json_repair`` over the most promising candidate
"""

import json
import re
from typing import Any, Dict, Optional

from json_repair import repair_json
from loguru import logger

FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def find_balanced_object(text: str) -> Optional[str]:
    """Return the first complete ``{...}`` span, or None.

    Braces inside JSON string literals (including escaped quotes) are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def extract_json(text: str) -> Optional[Dict[str, Any]]:
    """Pull a JSON object out of model output.

    Args:
        text: Raw completion text

    Returns:
        The parsed object, or None when no strategy produced a dict
    """
    if not text or not text.strip():
        return None

    result = _loads_object(text.strip())
    if result is not None:
        return result

    fenced = FENCED_BLOCK.search(text)
    if fenced:
        result = _loads_object(fenced.group(1))
        if result is not None:
            logger.debug("Extracted JSON from fenced code block")
            return result

    balanced = find_balanced_object(text)
    if balanced:
        result = _loads_object(balanced)
        if result is not None:
            logger.debug("Extracted JSON by brace matching")
            return result

    if fenced:
        candidate = fenced.group(1)
    elif "{" in text:
        candidate = text[text.find("{"):]
    else:
        candidate = ""
    if candidate:
        try:
            repaired = repair_json(candidate, return_objects=True)
        except Exception as e:
            logger.debug(f"json_repair could not salvage model output: {e}")
            return None
        if isinstance(repaired, dict) and repaired:
            logger.debug("Extracted JSON with json_repair")
            return repaired

    logger.warning("No JSON object found in model output")
    return None
