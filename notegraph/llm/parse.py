"""
Recover a JSON array of records from free-form model output.

Models often wrap JSON in prose or markdown fences. ``parse_json_array``
tries, in order:

1. the whole text as JSON (array as-is, object wrapped in a list)
2. the first fenced code block, same rules
3. the span from the first ``[`` to the last ``]``
4. the span from the first ``{`` to the last ``}``, wrapped in a list

It never raises; no recoverable payload gives ``[]``.
"""

import json
import re
from typing import Any, List, Optional

FENCE_RE = re.compile(r"```(?:[\w+-]+)?[ \t]*\n?(.*?)\n?[ \t]*```", re.DOTALL)


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, TypeError, RecursionError):
        return None


def _as_records(value: Any) -> Optional[List[Any]]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return [value]
    return None


def parse_json_array(text: Any) -> List[Any]:
    """Extract a list of records from model output. Never raises."""
    if not isinstance(text, str):
        return []

    records = _as_records(_loads(text.strip()))
    if records is not None:
        return records

    fence = FENCE_RE.search(text)
    if fence:
        records = _as_records(_loads(fence.group(1).strip()))
        if records is not None:
            return records

    start, end = text.find("["), text.rfind("]")
    if start != -1 and end > start:
        value = _loads(text[start : end + 1])
        if isinstance(value, list):
            return value

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        value = _loads(text[start : end + 1])
        if isinstance(value, dict):
            return [value]

    return []
