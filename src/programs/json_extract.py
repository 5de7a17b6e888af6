"""
Pull a JSON object out of free-form model text.

Models wrap JSON in prose or code fences often enough that we never
`json.loads` the raw reply. The contract: take the first balanced `{...}`
(string and escape aware), parse it, and require an object.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from programs.errors import JsonParseError

_FENCE_RE = re.compile(r"```(?:json)?", flags=re.IGNORECASE)


def _strip_code_fences(s: str) -> str:
    return _FENCE_RE.sub("", str(s or "")).strip()


def extract_json_object(text: str, *, stage: str = "MODEL") -> str:
    """Return the first balanced `{...}` substring, or raise `JsonParseError`."""
    t = _strip_code_fences(text)
    start = t.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(t)):
            ch = t[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return t[start : i + 1]
        # Unbalanced from this brace; try the next opening brace.
        start = t.find("{", start + 1)
    raise JsonParseError(stage, text)


def parse_json_object(text: str, *, stage: str = "MODEL") -> Dict[str, Any]:
    candidate = extract_json_object(text, stage=stage)
    try:
        parsed = json.loads(candidate)
    except ValueError as e:
        raise JsonParseError(stage, text) from e
    if not isinstance(parsed, dict):
        raise JsonParseError(stage, text)
    return parsed


def as_text(v: Any, *, default: str = "") -> str:
    """Coerce a loosely typed JSON value into a display string."""
    if v is None:
        return default
    if isinstance(v, str):
        return v.strip() or default
    if isinstance(v, (list, tuple)):
        return ", ".join(as_text(x) for x in v if as_text(x)) or default
    if isinstance(v, dict):
        return json.dumps(v, ensure_ascii=False)
    return str(v)


__all__ = ["as_text", "extract_json_object", "parse_json_object"]
