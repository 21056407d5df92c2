"""Utilities for extracting a JSON object from free-form LLM responses.

The repair steps here are a best-effort heuristic, not a guarantee: they only
fix the most common formatting slips before strict schema validation runs.
"""

import json
import re
from typing import Any

# greedy: from the first "{" to the last "}" so nested objects stay intact
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_CODE_FENCE_START = re.compile(r"^```[A-Za-z0-9_-]*\s*")
_CODE_FENCE_END = re.compile(r"\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


class LLMJsonError(ValueError):
    """Raised when no JSON object can be recovered from an LLM response."""


def _strip_code_fences(text: str) -> str:
    t = text.strip()
    if t.startswith("```") and t.endswith("```"):
        t = _CODE_FENCE_START.sub("", t)
        t = _CODE_FENCE_END.sub("", t)
    return t.strip()


def _repair(block: str) -> str:
    """Remove trailing commas before closing brackets."""
    return _TRAILING_COMMA.sub(r"\1", block)


def extract_json_object(text: str) -> dict[str, Any]:
    """Extract and parse the first JSON object found in an LLM response.

    Leading or trailing prose and markdown code fences are ignored.

    Args:
        text (str): The raw response text.

    Returns:
        dict[str, Any]: The parsed object.

    Raises:
        LLMJsonError: If the response holds no parsable JSON object.
    """
    if not text or not text.strip():
        raise LLMJsonError("Empty response.")
    t = _strip_code_fences(text)
    match = _JSON_OBJECT.search(t)
    if not match:
        raise LLMJsonError(f"No JSON object found in response: {t[:200]!r}")
    block = match.group(0)
    for candidate in (block, _repair(block)):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise LLMJsonError(f"Response does not contain a valid JSON object: {block[:200]!r}")
