"""Pull the JSON object out of a raw model completion.

Models wrap their answer in markdown fences or add a sentence before or after
it. The object is located by taking everything from the first ``{`` to the
last ``}``. This is not a balanced-brace scan: stray unbalanced braces in the
surrounding prose can make the candidate span wrong, in which case the parse
fails with ``MalformedJson``.
"""
import json
import re
from typing import Any, Dict

_FENCE_OPEN = re.compile(r"```json\s*")
_FENCE_CLOSE = re.compile(r"```\s*$")


class ExtractionError(ValueError):
    pass


class NoJsonFound(ExtractionError):
    def __init__(self, raw: str):
        super().__init__("No JSON found in response")
        self.raw = raw


class MalformedJson(ExtractionError):
    def __init__(self, candidate: str, reason: str):
        super().__init__(f"Invalid JSON in response: {reason}")
        self.candidate = candidate


def strip_fences(raw: str) -> str:
    cleaned = _FENCE_OPEN.sub("", raw)
    return _FENCE_CLOSE.sub("", cleaned)


def extract_json(raw: str) -> Dict[str, Any]:
    cleaned = strip_fences(raw or "")

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise NoJsonFound(raw)

    candidate = cleaned[start:end + 1]
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedJson(candidate, str(e)) from e

    if not isinstance(data, dict):
        raise MalformedJson(candidate, "top-level value is not an object")
    return data
